"""
BizHub Ledger — Invoice creation and cancellation.

Totals are stored as the caller computed them; nothing here does pricing or
currency arithmetic.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizhub.errors import InvoiceStateError, NotFoundError, ValidationError
from bizhub.models.activity_log import ActionType, EntityType
from bizhub.models.invoice import Invoice, InvoiceItem, InvoicePayment, InvoiceStatus, TransactionType
from bizhub.schemas.invoice import InvoiceItemCreate
from bizhub.services.ledger import record_activity
from bizhub.services.settings_snapshot import SettingsSnapshot

logger = logging.getLogger(__name__)


async def get_invoice(db: AsyncSession, invoice_id: str) -> Invoice:
    invoice = (
        await db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError("Invoice", invoice_id)
    return invoice


async def create_invoice(
    db: AsyncSession,
    snapshot: SettingsSnapshot,
    *,
    invoice_number: str,
    currency: Optional[str] = None,
    customer_name: str = "",
    total_amount: Decimal = Decimal("0"),
    items: Iterable[InvoiceItemCreate] = (),
    created_by_user_id: Optional[int] = None,
) -> Invoice:
    """Insert an invoice with its line items (positions 1..n) and log ``create``."""
    number = (invoice_number or "").strip()
    if not number:
        raise ValidationError("invoice_number is required", "invoice_number")
    code = snapshot.ensure_allowed_currency(currency or snapshot.default_sale_currency)

    lines = []
    for position, line in enumerate(items, start=1):
        if line.quantity < 1:
            raise ValidationError("quantity must be at least 1", "quantity")
        lines.append(InvoiceItem(
            line_position=position,
            description=line.description,
            quantity=line.quantity,
            unit_price_amount=line.unit_price_amount,
        ))

    invoice = Invoice(
        invoice_number=number,
        customer_name=customer_name,
        currency=code,
        total_amount=total_amount,
        status=InvoiceStatus.UNPAID.value,
        items=lines,
        payments=[],
    )

    try:
        db.add(invoice)
        await db.flush()
        await record_activity(
            db,
            actor_user_id=created_by_user_id,
            action_type=ActionType.CREATE,
            entity_type=EntityType.INVOICE,
            entity_id=invoice.id,
            summary=f"Invoice {number} created",
            metadata={
                "invoice_number": number,
                "total_amount": str(total_amount),
                "currency": code,
                "item_count": len(lines),
            },
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("🧾 Invoice %s created (%d items)", number, len(lines))
    return await get_invoice(db, invoice.id)


async def net_paid(db: AsyncSession, invoice_id: str) -> Decimal:
    """Active payments minus active refunds."""
    signed = case(
        (InvoicePayment.transaction_type == TransactionType.REFUND.value, -InvoicePayment.amount),
        else_=InvoicePayment.amount,
    )
    total = await db.scalar(
        select(func.coalesce(func.sum(signed), 0))
        .where(InvoicePayment.invoice_id == invoice_id, InvoicePayment.voided_at.is_(None))
    )
    return Decimal(str(total or 0))


async def cancel_invoice(
    db: AsyncSession,
    invoice_id: str,
    acting_user_id: Optional[int],
    reason: Optional[str] = None,
) -> Invoice:
    """
    Cancel an invoice once.  A second attempt raises InvoiceStateError with
    code ALREADY_CANCELLED, and an invoice that still holds money (net paid
    above zero) raises HAS_NET_PAYMENTS until it is refunded or the payments
    are voided.  The status flip and the ``cancel`` ledger entry commit together.
    """
    reason_text = (reason or "").strip() or None
    now = datetime.now(timezone.utc)

    try:
        outstanding = await net_paid(db, invoice_id)
        if outstanding > 0:
            raise InvoiceStateError(
                f"Cannot cancel invoice with outstanding payments (net paid {outstanding:.2f}). "
                "Refund all payments first so net paid = 0.",
                code="HAS_NET_PAYMENTS",
            )

        result = await db.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status != InvoiceStatus.CANCELLED.value)
            .values(
                status=InvoiceStatus.CANCELLED.value,
                cancelled_at=now,
                cancelled_by_user_id=acting_user_id,
                cancellation_reason=reason_text,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            if await db.scalar(select(Invoice.id).where(Invoice.id == invoice_id)) is None:
                raise NotFoundError("Invoice", invoice_id)
            raise InvoiceStateError(
                f"Invoice {invoice_id} is already cancelled", code="ALREADY_CANCELLED",
            )

        invoice = await get_invoice(db, invoice_id)
        summary = f"Invoice {invoice.invoice_number} cancelled"
        if reason_text:
            summary += f": {reason_text}"
        await record_activity(
            db,
            actor_user_id=acting_user_id,
            action_type=ActionType.CANCEL,
            entity_type=EntityType.INVOICE,
            entity_id=invoice.id,
            summary=summary,
            metadata={"invoice_number": invoice.invoice_number, "reason": reason_text},
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("❌ Invoice %s cancelled by %s", invoice.invoice_number, acting_user_id or "system")
    return invoice
