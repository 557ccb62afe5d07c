"""
BizHub Ledger — Activity ledger service.

The only way into ``activity_logs``.  Entries can be appended and read
back; there is no update or delete function here, and the
ActivityLog mapper refuses both at flush time.

``record_activity`` adds the entry to the caller's session and flushes it,
but does not commit: the caller's commit makes the entry durable together
with whatever domain change it describes.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizhub.errors import ValidationError
from bizhub.models.activity_log import ActivityLog, ACTION_TYPES, ENTITY_TYPES

logger = logging.getLogger(__name__)

_last_stamp: Optional[datetime] = None


def _next_timestamp() -> datetime:
    """UTC now, nudged forward so two entries from this process never tie."""
    global _last_stamp
    now = datetime.now(timezone.utc)
    if _last_stamp is not None and now <= _last_stamp:
        now = _last_stamp + timedelta(microseconds=1)
    _last_stamp = now
    return now


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return "" if value is None else str(value).strip()


def _require(value: Any, field: str) -> str:
    text = _text(value)
    if not text:
        raise ValidationError(f"{field} is required", field)
    return text


def _newest_first(stmt):
    return stmt.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())


# ═══════════════════════════════════════════════════════
#  Append
# ═══════════════════════════════════════════════════════

async def record_activity(
    db: AsyncSession,
    *,
    action_type: str,
    entity_type: str,
    entity_id: Any,
    summary: str,
    actor_user_id: Optional[int] = None,
    metadata: Optional[dict] = None,
) -> str:
    """
    Append one ledger entry and return its id.

    Raises ValidationError when action_type, entity_type, entity_id or
    summary is empty, or when action_type / entity_type is not a known tag.
    """
    action = _require(action_type, "action_type")
    kind = _require(entity_type, "entity_type")
    target = _require(entity_id, "entity_id")
    text = _require(summary, "summary")

    if action not in ACTION_TYPES:
        raise ValidationError(f"Unknown action_type '{action}'", "action_type")
    if kind not in ENTITY_TYPES:
        raise ValidationError(f"Unknown entity_type '{kind}'", "entity_type")

    entry = ActivityLog(
        id=str(uuid.uuid4()),
        actor_user_id=actor_user_id,
        action_type=action,
        entity_type=kind,
        entity_id=target,
        summary=text,
        extra_data=metadata,
        created_at=_next_timestamp(),
    )
    db.add(entry)
    await db.flush()

    logger.info("📒 %s %s/%s by %s — %s", action, kind, target, actor_user_id or "system", text)
    return entry.id


# ═══════════════════════════════════════════════════════
#  Queries (read-only, newest first)
# ═══════════════════════════════════════════════════════

async def query_by_entity(
    db: AsyncSession, entity_type: str, entity_id: Any, limit: Optional[int] = None,
) -> list[ActivityLog]:
    stmt = _newest_first(
        select(ActivityLog)
        .where(ActivityLog.entity_type == _text(entity_type))
        .where(ActivityLog.entity_id == _text(entity_id))
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def query_by_actor(
    db: AsyncSession, actor_user_id: int, limit: Optional[int] = None,
) -> list[ActivityLog]:
    stmt = _newest_first(select(ActivityLog).where(ActivityLog.actor_user_id == actor_user_id))
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def query_by_action_type(
    db: AsyncSession,
    action_type: str,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[ActivityLog]:
    """Entries of one action type, optionally within ``[since, until)``."""
    stmt = select(ActivityLog).where(ActivityLog.action_type == _text(action_type))
    if since is not None:
        stmt = stmt.where(ActivityLog.created_at >= since)
    if until is not None:
        stmt = stmt.where(ActivityLog.created_at < until)
    stmt = _newest_first(stmt)
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def query_recent(db: AsyncSession, limit: int = 100) -> list[ActivityLog]:
    """The activity feed: latest entries of any kind."""
    result = await db.execute(_newest_first(select(ActivityLog)).limit(limit))
    return list(result.scalars().all())
