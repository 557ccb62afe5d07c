"""
BizHub Ledger — Invoice, line-item & transaction schemas.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from bizhub.models.invoice import PAYMENT_METHODS, TransactionType


# ── Line items ──────────────────────────────────────────
class InvoiceItemCreate(BaseModel):
    description: str = ""
    quantity: int = Field(1, ge=1)
    unit_price_amount: Decimal = Field(Decimal("0"), ge=0)


class InvoiceItemResponse(BaseModel):
    id: str
    invoice_id: str
    line_position: int
    description: str = ""
    quantity: int
    unit_price_amount: Decimal
    voided_at: Optional[datetime] = None
    voided_by_user_id: Optional[int] = None
    void_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class ActiveItemsResponse(BaseModel):
    invoice_id: str
    items: list[InvoiceItemResponse]
    total: int


# ── Invoices ────────────────────────────────────────────
class InvoiceCreateRequest(BaseModel):
    invoice_number: str = Field(..., min_length=1, max_length=20)
    customer_name: str = ""
    currency: Optional[str] = Field(None, min_length=3, max_length=3)  # default: sale currency
    total_amount: Decimal = Field(Decimal("0"), ge=0)
    items: list[InvoiceItemCreate] = []
    created_by_user_id: Optional[int] = None


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    customer_name: str = ""
    currency: str
    total_amount: Decimal
    status: str
    cancelled_at: Optional[datetime] = None
    cancelled_by_user_id: Optional[int] = None
    cancellation_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class CancelInvoiceRequest(BaseModel):
    user_id: Optional[int] = None
    reason: Optional[str] = None


# ── Voiding ─────────────────────────────────────────────
class VoidRequest(BaseModel):
    user_id: Optional[int] = None
    reason: str


class VoidResult(BaseModel):
    """Outcome of a successful void: the new void triple plus its ledger entry."""
    entity_type: str
    entity_id: str
    invoice_id: str
    voided_at: datetime
    voided_by_user_id: Optional[int] = None
    void_reason: str
    activity_log_id: str


# ── Transactions (payments / refunds) ───────────────────
class TransactionCreateRequest(BaseModel):
    transaction_type: TransactionType = TransactionType.PAYMENT
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    payment_method: str = "Cash"
    received_by_user_id: Optional[int] = None
    payment_date: Optional[datetime] = None

    @field_validator("payment_method")
    @classmethod
    def _known_method(cls, v: str) -> str:
        if v not in PAYMENT_METHODS:
            raise ValueError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        return v


class TransactionResponse(BaseModel):
    id: str
    invoice_id: str
    transaction_type: str
    amount: Decimal
    currency: str
    payment_method: str
    received_by_user_id: Optional[int] = None
    payment_date: datetime
    voided_at: Optional[datetime] = None
    voided_by_user_id: Optional[int] = None
    void_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class TransactionListResponse(BaseModel):
    invoice_id: str
    transactions: list[TransactionResponse]
    total: int
