"""
BizHub Ledger — Activity Log API routes.
Read access to the audit trail plus a single append endpoint; there is no
update or delete route.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bizhub.database import get_db
from bizhub.models.activity_log import ActivityLog
from bizhub.schemas import ActivityEntryResponse, ActivityListResponse, ActivityRecordRequest
from bizhub.services import ledger

logger = logging.getLogger(__name__)
activity_router = APIRouter(prefix="/activity", tags=["activity"])


def _listing(entries) -> dict:
    return {
        "activities": [entry.to_dict() for entry in entries],
        "total": len(entries),
    }


@activity_router.get("", response_model=ActivityListResponse)
async def list_activities(
    entity_type: Optional[str] = Query(None, description="Filter by entity type"),
    entity_id: Optional[str] = Query(None, description="Filter by entity ID (needs entity_type)"),
    actor_user_id: Optional[int] = Query(None, description="Filter by acting user"),
    action_type: Optional[str] = Query(None, description="Filter by action type"),
    since: Optional[datetime] = Query(None, description="Inclusive lower bound (with action_type)"),
    until: Optional[datetime] = Query(None, description="Exclusive upper bound (with action_type)"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """
    List activity log entries, newest first.
    One filter family applies: entity, then actor, then action type.
    """
    if entity_type and entity_id:
        entries = await ledger.query_by_entity(db, entity_type, entity_id, limit=limit)
    elif actor_user_id is not None:
        entries = await ledger.query_by_actor(db, actor_user_id, limit=limit)
    elif action_type:
        entries = await ledger.query_by_action_type(db, action_type, since, until, limit=limit)
    else:
        entries = await ledger.query_recent(db, limit=limit)
    return _listing(entries)


@activity_router.get("/entity/{entity_type}/{entity_id}", response_model=ActivityListResponse)
async def get_entity_history(
    entity_type: str,
    entity_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Full history for one business object, newest first."""
    return _listing(await ledger.query_by_entity(db, entity_type, entity_id))


@activity_router.post("", response_model=ActivityEntryResponse, status_code=201)
async def record_activity(req: ActivityRecordRequest, db: AsyncSession = Depends(get_db)):
    """Append one entry on behalf of a collaborator that owns the action."""
    try:
        entry_id = await ledger.record_activity(
            db,
            actor_user_id=req.actor_user_id,
            action_type=req.action_type,
            entity_type=req.entity_type,
            entity_id=req.entity_id,
            summary=req.summary,
            metadata=req.metadata,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    entry = await db.get(ActivityLog, entry_id)
    return entry.to_dict()
