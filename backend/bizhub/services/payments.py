"""
BizHub Ledger — Invoice transactions (payments and refunds).

Recording a transaction and voiding one each land in the activity ledger
within the same commit as the row change.  Voids reuse the guarded
single-transition update from ``bizhub.services.voiding``.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bizhub.errors import InvoiceStateError, NotFoundError, ValidationError
from bizhub.models.activity_log import ActionType, EntityType
from bizhub.models.invoice import Invoice, InvoicePayment, PAYMENT_METHODS, TransactionType
from bizhub.schemas.invoice import VoidResult
from bizhub.services.ledger import record_activity
from bizhub.services.settings_snapshot import SettingsSnapshot
from bizhub.services.voiding import void_row

logger = logging.getLogger(__name__)


def _money(amount: Any) -> str:
    return f"{Decimal(amount):.2f}"


def _transaction_type(value: Any) -> TransactionType:
    try:
        return TransactionType(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Unknown transaction_type '{value}'", "transaction_type") from None


async def record_transaction(
    db: AsyncSession,
    snapshot: SettingsSnapshot,
    *,
    invoice_id: str,
    transaction_type: Any,
    amount: Any,
    currency: str,
    payment_method: str = "Cash",
    received_by_user_id: Optional[int] = None,
    payment_date: Optional[datetime] = None,
) -> InvoicePayment:
    """Insert a payment or refund and its ``payment`` / ``refund`` ledger entry."""
    tx_type = _transaction_type(transaction_type)
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount '{amount}'", "amount") from None
    if value <= 0:
        raise ValidationError("amount must be greater than zero", "amount")
    code = snapshot.ensure_allowed_currency(currency)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment_method '{payment_method}'", "payment_method")

    invoice = await db.get(Invoice, invoice_id, populate_existing=True)
    if invoice is None:
        raise NotFoundError("Invoice", invoice_id)
    if invoice.is_cancelled:
        raise InvoiceStateError(
            f"Cannot record transactions on cancelled invoice {invoice.invoice_number}",
            code="INVOICE_CANCELLED",
        )

    payment = InvoicePayment(
        invoice_id=invoice.id,
        transaction_type=tx_type.value,
        amount=value,
        currency=code,
        payment_method=payment_method,
        received_by_user_id=received_by_user_id,
        payment_date=payment_date or datetime.now(timezone.utc),
    )

    if tx_type is TransactionType.PAYMENT:
        action = ActionType.PAYMENT
        summary = f"Payment of {code} {_money(value)} received for invoice {invoice.invoice_number}"
    else:
        action = ActionType.REFUND
        summary = f"Refund of {code} {_money(value)} recorded for invoice {invoice.invoice_number}"

    try:
        db.add(payment)
        await db.flush()
        await record_activity(
            db,
            actor_user_id=received_by_user_id,
            action_type=action,
            entity_type=EntityType.INVOICE_PAYMENT,
            entity_id=payment.id,
            summary=summary,
            metadata={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "amount": _money(value),
                "currency": code,
                "payment_method": payment_method,
            },
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("💵 %s", summary)
    return payment


def _describe_payment(payment: InvoicePayment, reason: str) -> tuple[str, dict]:
    invoice_number = payment.invoice.invoice_number if payment.invoice else payment.invoice_id
    summary = (
        f"{payment.type_label} of {payment.currency} {_money(payment.amount)} "
        f"voided for invoice {invoice_number}"
    )
    return summary, {
        "invoice_id": payment.invoice_id,
        "invoice_number": invoice_number,
        "amount": _money(payment.amount),
        "currency": payment.currency,
        "transaction_type": payment.transaction_type,
        "void_reason": reason,
    }


async def void_transaction(
    db: AsyncSession,
    payment_id: str,
    acting_user_id: Optional[int],
    reason: str,
) -> VoidResult:
    """
    Void a payment or refund.  Same contract as ``void_item``, plus
    InvoiceStateError (INVOICE_CANCELLED) when the invoice is cancelled.
    """
    payment = (
        await db.execute(
            select(InvoicePayment)
            .options(selectinload(InvoicePayment.invoice))
            .where(InvoicePayment.id == str(payment_id))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if payment is not None and payment.invoice is not None and payment.invoice.is_cancelled:
        raise InvoiceStateError(
            "Cannot void transactions on a cancelled invoice", code="INVOICE_CANCELLED",
        )

    return await void_row(
        db,
        InvoicePayment,
        EntityType.INVOICE_PAYMENT,
        payment_id,
        acting_user_id,
        reason,
        _describe_payment,
    )


async def list_active_transactions(db: AsyncSession, invoice_id: str) -> list[InvoicePayment]:
    """Non-voided payments and refunds, newest first."""
    if await db.get(Invoice, invoice_id) is None:
        raise NotFoundError("Invoice", invoice_id)

    result = await db.execute(
        select(InvoicePayment)
        .where(InvoicePayment.invoice_id == invoice_id)
        .where(InvoicePayment.voided_at.is_(None))
        .order_by(InvoicePayment.payment_date.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
