"""
BizHub Ledger — Activity Log model.
Append-only audit trail of payments, refunds, voids and cancellations.
"""

import uuid
from enum import Enum

from sqlalchemy import Column, String, Text, DateTime, Integer, JSON, ForeignKey, Index, event

from bizhub.database import Base
from bizhub.errors import AppendOnlyViolation


class ActionType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    PAYMENT = "payment"
    REFUND = "refund"
    VOID = "void"
    CANCEL = "cancel"


class EntityType(str, Enum):
    INVOICE = "Invoice"
    INVOICE_ITEM = "InvoiceItem"
    INVOICE_PAYMENT = "InvoicePayment"
    CUSTOMER = "Customer"
    ASSET = "Asset"


ACTION_TYPES = frozenset(a.value for a in ActionType)
ENTITY_TYPES = frozenset(e.value for e in EntityType)


class ActivityLog(Base):
    """Immutable record of one state-changing action."""
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Who did it; NULL for system actions or once the user is deleted
    actor_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
        nullable=True,
    )

    # What happened
    action_type = Column(String(50), nullable=False)
    summary = Column(Text, nullable=False)

    # What it happened to (polymorphic, no FK: the target may be deleted later)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(50), nullable=False)

    # Action-specific detail (amounts, reasons, invoice numbers...)
    extra_data = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_activity_logs_entity", "entity_type", "entity_id"),
        Index("idx_activity_logs_actor", "actor_user_id"),
        Index("idx_activity_logs_action", "action_type"),
        Index("idx_activity_logs_created", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_user_id": self.actor_user_id,
            "action_type": self.action_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "summary": self.summary,
            "metadata": self.extra_data,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.entity_type}/{self.entity_id} — {self.action_type}>"


@event.listens_for(ActivityLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise AppendOnlyViolation(f"Activity log entry {target.id} cannot be modified")


@event.listens_for(ActivityLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AppendOnlyViolation(f"Activity log entry {target.id} cannot be deleted")
