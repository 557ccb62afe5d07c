"""
BizHub Ledger — Line-item voiding.

A void is a one-way ``Active → Voided`` transition.  It is applied as a
guarded ``UPDATE ... WHERE voided_at IS NULL`` so the database decides the
winner when two callers race: exactly one UPDATE matches a row, the other
sees zero rows and gets AlreadyVoidedError.  The UPDATE and the ledger entry
describing it are committed together; any failure in between rolls both back.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bizhub.errors import AlreadyVoidedError, NotFoundError, ValidationError
from bizhub.models.activity_log import ActionType, EntityType
from bizhub.models.invoice import Invoice, InvoiceItem
from bizhub.schemas.invoice import VoidResult
from bizhub.services.ledger import record_activity

logger = logging.getLogger(__name__)

# (summary, metadata) for the ledger entry, given the freshly voided row
Describe = Callable[[Any, str], tuple[str, dict]]


def _require_reason(reason: Optional[str]) -> str:
    text = (reason or "").strip()
    if not text:
        raise ValidationError("A reason is required when voiding", "reason")
    return text


async def void_row(
    db: AsyncSession,
    model,
    entity_type: EntityType,
    row_id: Any,
    acting_user_id: Optional[int],
    reason: Optional[str],
    describe: Describe,
) -> VoidResult:
    """Void one row of a voidable ``model`` and append its ledger entry atomically."""
    reason_text = _require_reason(reason)
    row_id = str(row_id)
    now = datetime.now(timezone.utc)

    try:
        result = await db.execute(
            update(model)
            .where(model.id == row_id, model.voided_at.is_(None))
            .values(voided_at=now, voided_by_user_id=acting_user_id, void_reason=reason_text)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            exists = await db.scalar(select(model.id).where(model.id == row_id))
            if exists is None:
                raise NotFoundError(entity_type.value, row_id)
            raise AlreadyVoidedError(entity_type.value, row_id)

        row = (
            await db.execute(
                select(model)
                .options(selectinload(model.invoice))
                .where(model.id == row_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

        summary, metadata = describe(row, reason_text)
        entry_id = await record_activity(
            db,
            actor_user_id=acting_user_id,
            action_type=ActionType.VOID,
            entity_type=entity_type,
            entity_id=row_id,
            summary=summary,
            metadata=metadata,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("🚫 %s %s voided by %s: %s", entity_type.value, row_id, acting_user_id or "system", reason_text)
    return VoidResult(
        entity_type=entity_type.value,
        entity_id=row_id,
        invoice_id=row.invoice_id,
        voided_at=now,
        voided_by_user_id=acting_user_id,
        void_reason=reason_text,
        activity_log_id=entry_id,
    )


def _describe_item(item: InvoiceItem, reason: str) -> tuple[str, dict]:
    invoice_number = item.invoice.invoice_number if item.invoice else item.invoice_id
    summary = f"Line {item.line_position} on invoice {invoice_number} voided: {reason}"
    return summary, {
        "invoice_id": item.invoice_id,
        "invoice_number": invoice_number,
        "line_position": item.line_position,
        "description": item.description or "",
        "quantity": item.quantity,
        "void_reason": reason,
    }


async def void_item(
    db: AsyncSession,
    item_id: str,
    acting_user_id: Optional[int],
    reason: str,
) -> VoidResult:
    """
    Void an invoice line item.

    Raises ValidationError (empty reason), NotFoundError (no such item) or
    AlreadyVoidedError (second attempt).  A void is never a no-op.
    """
    return await void_row(
        db, InvoiceItem, EntityType.INVOICE_ITEM, item_id, acting_user_id, reason, _describe_item,
    )


async def list_active_items(db: AsyncSession, invoice_id: str) -> list[InvoiceItem]:
    """Non-voided items of an invoice in their original line order."""
    if await db.get(Invoice, invoice_id) is None:
        raise NotFoundError("Invoice", invoice_id)

    result = await db.execute(
        select(InvoiceItem)
        .where(InvoiceItem.invoice_id == invoice_id)
        .where(InvoiceItem.voided_at.is_(None))
        .order_by(InvoiceItem.line_position)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
