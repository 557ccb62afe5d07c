"""
Tests for ORM models — append-only ledger, void triple, constraints, FK clearing.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from bizhub.errors import AlreadyVoidedError, AppendOnlyViolation
from bizhub.models import ActivityLog, Invoice, InvoiceItem, InvoicePayment, User
from bizhub.services.ledger import record_activity
from bizhub.services.voiding import void_item


class TestActivityLogModel:
    async def test_entry_to_dict(self, db_session):
        entry_id = await record_activity(
            db_session,
            action_type="payment",
            entity_type="Invoice",
            entity_id="7",
            summary="Received $100",
            metadata={"amount": "100.00"},
        )
        await db_session.commit()

        entry = await db_session.get(ActivityLog, entry_id)
        d = entry.to_dict()
        assert d["id"] == entry_id
        assert d["actor_user_id"] is None
        assert d["metadata"] == {"amount": "100.00"}
        assert d["created_at"] is not None

    async def test_update_is_refused(self, db_session):
        entry_id = await record_activity(
            db_session, action_type="create", entity_type="Invoice", entity_id="1", summary="Created",
        )
        await db_session.commit()

        entry = await db_session.get(ActivityLog, entry_id)
        entry.summary = "Rewritten history"
        with pytest.raises(AppendOnlyViolation):
            await db_session.commit()
        await db_session.rollback()

        stored = await db_session.scalar(select(ActivityLog.summary).where(ActivityLog.id == entry_id))
        assert stored == "Created"

    async def test_delete_is_refused(self, db_session):
        entry_id = await record_activity(
            db_session, action_type="create", entity_type="Invoice", entity_id="1", summary="Created",
        )
        await db_session.commit()

        entry = await db_session.get(ActivityLog, entry_id)
        await db_session.delete(entry)
        with pytest.raises(AppendOnlyViolation):
            await db_session.flush()
        await db_session.rollback()

        assert await db_session.scalar(select(ActivityLog.id).where(ActivityLog.id == entry_id)) == entry_id


class TestInvoiceItemModel:
    async def test_items_keep_line_order(self, db_session, invoice):
        loaded = (
            await db_session.execute(
                select(Invoice).where(Invoice.id == invoice.id).execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert [i.line_position for i in loaded.items] == [1, 2, 3]
        assert all(not i.is_voided for i in loaded.items)

    async def test_quantity_must_be_positive(self, db_session, invoice):
        db_session.add(InvoiceItem(
            invoice_id=invoice.id,
            line_position=4,
            description="Nothing",
            quantity=0,
            unit_price_amount=Decimal("1.00"),
        ))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_voided_at_cannot_change_once_set(self, db_session, invoice, clerk):
        await void_item(db_session, "42", clerk.id, "Customer returned item")
        item = await db_session.get(InvoiceItem, "42")
        assert item.is_voided

        with pytest.raises(AlreadyVoidedError):
            item.voided_at = datetime.now(timezone.utc)

    async def test_item_to_dict(self, db_session, invoice):
        item = await db_session.get(InvoiceItem, "41")
        d = item.to_dict()
        assert d["line_position"] == 1
        assert d["quantity"] == 1
        assert d["voided_at"] is None


class TestInvoicePaymentModel:
    async def test_amount_must_be_positive(self, db_session, invoice):
        db_session.add(InvoicePayment(
            invoice_id=invoice.id,
            amount=Decimal("0"),
            currency="GHS",
            payment_date=datetime.now(timezone.utc),
        ))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    def test_type_label(self):
        assert InvoicePayment(transaction_type="PAYMENT").type_label == "Payment"
        assert InvoicePayment(transaction_type="REFUND").type_label == "Refund"


class TestUserDeletion:
    async def test_deleting_user_clears_references(self, db_session, invoice, clerk):
        result = await void_item(db_session, "42", clerk.id, "Customer returned item")

        await db_session.delete(clerk)
        await db_session.commit()

        entry = await db_session.get(ActivityLog, result.activity_log_id)
        await db_session.refresh(entry)
        item = await db_session.get(InvoiceItem, "42")
        await db_session.refresh(item)

        # rows survive, only the principal reference is cleared
        assert entry.actor_user_id is None
        assert entry.summary.startswith("Line 2 on invoice INV-001 voided")
        assert item.voided_by_user_id is None
        assert item.voided_at is not None
        assert item.void_reason == "Customer returned item"
        assert await db_session.get(User, 7) is None
