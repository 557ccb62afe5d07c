"""
BizHub Ledger — Invoice, line-item & transaction API routes.

Thin adapters over ``bizhub.services``: domain errors raised there are
rendered by the BizHubError handler registered in main.py.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bizhub.database import get_db
from bizhub.errors import NotFoundError
from bizhub.schemas.invoice import (
    ActiveItemsResponse,
    CancelInvoiceRequest,
    InvoiceCreateRequest,
    InvoiceItemResponse,
    InvoiceResponse,
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
    VoidRequest,
    VoidResult,
)
from bizhub.services import invoices as invoice_service
from bizhub.services.payments import list_active_transactions, record_transaction, void_transaction
from bizhub.services.settings_snapshot import SettingsSnapshot, get_settings_snapshot
from bizhub.services.voiding import list_active_items, void_item

logger = logging.getLogger(__name__)
invoice_router = APIRouter(prefix="/invoices", tags=["invoices"])


# ═══════════════════════════════════════════════════════
#  Invoices
# ═══════════════════════════════════════════════════════

@invoice_router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    req: InvoiceCreateRequest,
    db: AsyncSession = Depends(get_db),
    snapshot: SettingsSnapshot = Depends(get_settings_snapshot),
):
    """Create an invoice with its line items."""
    return await invoice_service.create_invoice(
        db,
        snapshot,
        invoice_number=req.invoice_number,
        currency=req.currency,
        customer_name=req.customer_name,
        total_amount=req.total_amount,
        items=req.items,
        created_by_user_id=req.created_by_user_id,
    )


@invoice_router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: str, db: AsyncSession = Depends(get_db)):
    return await invoice_service.get_invoice(db, invoice_id)


@invoice_router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: str,
    req: CancelInvoiceRequest,
    db: AsyncSession = Depends(get_db),
):
    """Cancel an invoice (once) with an optional reason."""
    return await invoice_service.cancel_invoice(db, invoice_id, req.user_id, req.reason)


# ═══════════════════════════════════════════════════════
#  Line items
# ═══════════════════════════════════════════════════════

@invoice_router.get("/{invoice_id}/items", response_model=ActiveItemsResponse)
async def get_active_items(invoice_id: str, db: AsyncSession = Depends(get_db)):
    """Active (non-voided) line items in line order."""
    items = await list_active_items(db, invoice_id)
    return {
        "invoice_id": invoice_id,
        "items": [InvoiceItemResponse.model_validate(item) for item in items],
        "total": len(items),
    }


@invoice_router.post("/{invoice_id}/items/{item_id}/void", response_model=VoidResult)
async def void_invoice_item(
    invoice_id: str,
    item_id: str,
    req: VoidRequest,
    db: AsyncSession = Depends(get_db),
):
    """Void a line item. Answers 409 if it is already voided; do not retry that."""
    # scope the item to the invoice in the URL before touching it
    items = {item.id for item in (await invoice_service.get_invoice(db, invoice_id)).items}
    if item_id not in items:
        raise NotFoundError("InvoiceItem", item_id)
    return await void_item(db, item_id, req.user_id, req.reason)


# ═══════════════════════════════════════════════════════
#  Transactions (payments / refunds)
# ═══════════════════════════════════════════════════════

@invoice_router.get("/{invoice_id}/transactions", response_model=TransactionListResponse)
async def get_transactions(invoice_id: str, db: AsyncSession = Depends(get_db)):
    """Active payments and refunds, newest first."""
    payments = await list_active_transactions(db, invoice_id)
    return {
        "invoice_id": invoice_id,
        "transactions": [TransactionResponse.model_validate(p) for p in payments],
        "total": len(payments),
    }


@invoice_router.post("/{invoice_id}/transactions", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    invoice_id: str,
    req: TransactionCreateRequest,
    db: AsyncSession = Depends(get_db),
    snapshot: SettingsSnapshot = Depends(get_settings_snapshot),
):
    """Record a payment or refund."""
    return await record_transaction(
        db,
        snapshot,
        invoice_id=invoice_id,
        transaction_type=req.transaction_type,
        amount=req.amount,
        currency=req.currency,
        payment_method=req.payment_method,
        received_by_user_id=req.received_by_user_id,
        payment_date=req.payment_date,
    )


@invoice_router.post("/{invoice_id}/transactions/{payment_id}/void", response_model=VoidResult)
async def void_invoice_transaction(
    invoice_id: str,
    payment_id: str,
    req: VoidRequest,
    db: AsyncSession = Depends(get_db),
):
    """Void a payment or refund."""
    payments = {p.id for p in (await invoice_service.get_invoice(db, invoice_id)).payments}
    if payment_id not in payments:
        raise NotFoundError("InvoicePayment", payment_id)
    return await void_transaction(db, payment_id, req.user_id, req.reason)
