"""
BizHub Ledger — Pydantic request/response schemas.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from bizhub.models.activity_log import ActionType, EntityType


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: str | None = None


# ── Activity ledger ─────────────────────────────────────
class ActivityRecordRequest(BaseModel):
    actor_user_id: Optional[int] = None
    action_type: ActionType
    entity_type: EntityType
    entity_id: str = Field(..., min_length=1, max_length=50)
    summary: str = Field(..., min_length=1)
    metadata: Optional[dict[str, Any]] = None


class ActivityEntryResponse(BaseModel):
    id: str
    actor_user_id: Optional[int] = None
    action_type: str
    entity_type: str
    entity_id: str
    summary: str
    metadata: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class ActivityListResponse(BaseModel):
    activities: list[ActivityEntryResponse]
    total: int
