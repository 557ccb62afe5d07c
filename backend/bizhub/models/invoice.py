"""
BizHub Ledger — Invoice, InvoiceItem & InvoicePayment models.

Items and payments are never physically removed once an invoice is paid:
they are *voided*.  ``voided_at`` NULL means active; once set it never
changes, and ``voided_by_user_id`` / ``void_reason`` are written in the same
statement.
"""

import uuid
from enum import Enum

from sqlalchemy import (
    CheckConstraint, Column, String, Text, DateTime, Numeric,
    ForeignKey, Index, Integer, func, text,
)
from sqlalchemy.orm import declared_attr, relationship, validates

from bizhub.database import Base
from bizhub.errors import AlreadyVoidedError


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class TransactionType(str, Enum):
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"


PAYMENT_METHODS = ("Cash", "MoMo", "Card", "ACH", "Other")


class VoidableMixin:
    """The void triple shared by invoice items and invoice payments."""

    voided_at = Column(DateTime(timezone=True), nullable=True, default=None)
    void_reason = Column(Text, nullable=True)

    @declared_attr
    def voided_by_user_id(cls):
        return Column(
            Integer,
            ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
            nullable=True,
        )

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    @validates("voided_at")
    def _validate_voided_at(self, key, value):
        if self.voided_at is not None and value != self.voided_at:
            raise AlreadyVoidedError(type(self).__name__, self.id)
        return value


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_number = Column(String(20), unique=True, nullable=False)

    customer_name = Column(String(200), default="")
    currency = Column(String(3), nullable=False, default="GHS")
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=InvoiceStatus.UNPAID.value)

    # Cancellation
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
        nullable=True,
    )
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.line_position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    payments = relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED.value

    def __repr__(self):
        return f"<Invoice {self.invoice_number} – {self.status}>"


class InvoiceItem(VoidableMixin, Base):
    """One line of an invoice."""
    __tablename__ = "invoice_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)

    # Original ordering on the invoice; stable across voids
    line_position = Column(Integer, nullable=False, default=0)

    description = Column(Text, default="")
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_amount = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    invoice = relationship("Invoice", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_invoice_items_quantity_positive"),
        Index(
            "idx_invoice_items_active",
            "invoice_id",
            "line_position",
            postgresql_where=text("voided_at IS NULL"),
            sqlite_where=text("voided_at IS NULL"),
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "line_position": self.line_position,
            "description": self.description or "",
            "quantity": self.quantity,
            "unit_price_amount": self.unit_price_amount,
            "voided_at": self.voided_at,
            "voided_by_user_id": self.voided_by_user_id,
            "void_reason": self.void_reason,
        }

    def __repr__(self):
        state = "voided" if self.is_voided else "active"
        return f"<InvoiceItem {self.id} #{self.line_position} ({state})>"


class InvoicePayment(VoidableMixin, Base):
    """A payment or refund recorded against an invoice."""
    __tablename__ = "invoice_payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)

    transaction_type = Column(String(10), nullable=False, default=TransactionType.PAYMENT.value)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_method = Column(String(20), nullable=False, default="Cash")

    received_by_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
        nullable=True,
    )
    payment_date = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    invoice = relationship("Invoice", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_invoice_payments_amount_positive"),
        Index(
            "idx_invoice_payments_active",
            "invoice_id",
            "payment_date",
            postgresql_where=text("voided_at IS NULL"),
            sqlite_where=text("voided_at IS NULL"),
        ),
    )

    @property
    def type_label(self) -> str:
        return "Payment" if self.transaction_type == TransactionType.PAYMENT.value else "Refund"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "transaction_type": self.transaction_type,
            "amount": self.amount,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "received_by_user_id": self.received_by_user_id,
            "payment_date": self.payment_date,
            "voided_at": self.voided_at,
            "voided_by_user_id": self.voided_by_user_id,
            "void_reason": self.void_reason,
        }

    def __repr__(self):
        return f"<InvoicePayment {self.transaction_type} {self.currency} {self.amount}>"
