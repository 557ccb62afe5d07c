"""
Tests for the activity ledger service — append, validation, newest-first queries.
"""

import pytest

from bizhub.errors import ValidationError
from bizhub.models import ActivityLog
from bizhub.models.activity_log import ActionType, EntityType
from bizhub.services import ledger


async def _record(db, action="payment", entity="Invoice", entity_id="7", summary="Received $100", actor=None):
    entry_id = await ledger.record_activity(
        db,
        actor_user_id=actor,
        action_type=action,
        entity_type=entity,
        entity_id=entity_id,
        summary=summary,
    )
    await db.commit()
    return entry_id


class TestRecordActivity:
    async def test_system_entry_returns_id(self, db_session):
        entry_id = await _record(db_session)
        assert entry_id

        history = await ledger.query_by_entity(db_session, "Invoice", "7")
        assert len(history) == 1
        assert history[0].id == entry_id
        assert history[0].actor_user_id is None
        assert history[0].summary == "Received $100"

    async def test_accepts_enum_tags(self, db_session, clerk):
        entry_id = await ledger.record_activity(
            db_session,
            actor_user_id=clerk.id,
            action_type=ActionType.REFUND,
            entity_type=EntityType.INVOICE_PAYMENT,
            entity_id=99,
            summary="Refund of GHS 20.00 recorded for invoice INV-001",
        )
        await db_session.commit()

        entry = await db_session.get(ActivityLog, entry_id)
        assert entry.action_type == "refund"
        assert entry.entity_type == "InvoicePayment"
        assert entry.entity_id == "99"

    @pytest.mark.parametrize("field", ["action_type", "entity_type", "entity_id", "summary"])
    async def test_empty_field_rejected(self, db_session, field):
        values = {
            "action_type": "payment",
            "entity_type": "Invoice",
            "entity_id": "7",
            "summary": "Received $100",
        }
        values[field] = "   "
        with pytest.raises(ValidationError) as exc_info:
            await ledger.record_activity(db_session, **values)
        assert exc_info.value.field == field
        assert await ledger.query_recent(db_session) == []

    async def test_unknown_action_type_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.record_activity(
                db_session, action_type="delete", entity_type="Invoice", entity_id="7", summary="Gone",
            )
        assert exc_info.value.field == "action_type"

    async def test_unknown_entity_type_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.record_activity(
                db_session, action_type="update", entity_type="Spaceship", entity_id="7", summary="Moved",
            )
        assert exc_info.value.field == "entity_type"

    async def test_uncommitted_entry_is_discarded_on_rollback(self, db_session):
        await ledger.record_activity(
            db_session, action_type="create", entity_type="Customer", entity_id="3", summary="Customer added",
        )
        await db_session.rollback()
        assert await ledger.query_by_entity(db_session, "Customer", "3") == []


class TestQueries:
    async def test_entity_history_newest_first(self, db_session):
        first = await _record(db_session, summary="Received $100")
        second = await _record(db_session, summary="Received $50")
        third = await _record(db_session, action="refund", summary="Refunded $20")
        await _record(db_session, entity_id="8", summary="Other invoice")

        history = await ledger.query_by_entity(db_session, "Invoice", "7")
        assert [e.id for e in history] == [third, second, first]

    async def test_entity_history_limit(self, db_session):
        for n in range(5):
            await _record(db_session, summary=f"Payment {n}")
        history = await ledger.query_by_entity(db_session, "Invoice", "7", limit=2)
        assert [e.summary for e in history] == ["Payment 4", "Payment 3"]

    async def test_unknown_entity_has_empty_history(self, db_session):
        assert await ledger.query_by_entity(db_session, "Invoice", "does-not-exist") == []

    async def test_by_actor(self, db_session, clerk):
        mine = await _record(db_session, actor=clerk.id)
        await _record(db_session, actor=None)

        entries = await ledger.query_by_actor(db_session, clerk.id)
        assert [e.id for e in entries] == [mine]

    async def test_by_action_type(self, db_session):
        payment = await _record(db_session, action="payment")
        await _record(db_session, action="refund")

        entries = await ledger.query_by_action_type(db_session, ActionType.PAYMENT)
        assert [e.id for e in entries] == [payment]

    async def test_by_action_type_half_open_range(self, db_session):
        ids = [await _record(db_session, summary=f"Payment {n}") for n in range(3)]
        stamps = [(await db_session.get(ActivityLog, i)).created_at for i in ids]

        since = await ledger.query_by_action_type(db_session, "payment", since=stamps[1])
        assert [e.id for e in since] == [ids[2], ids[1]]

        until = await ledger.query_by_action_type(db_session, "payment", until=stamps[2])
        assert [e.id for e in until] == [ids[1], ids[0]]

        window = await ledger.query_by_action_type(db_session, "payment", since=stamps[1], until=stamps[2])
        assert [e.id for e in window] == [ids[1]]

    async def test_recent_feed(self, db_session):
        await _record(db_session, entity_id="1")
        latest = await _record(db_session, entity_id="2")

        feed = await ledger.query_recent(db_session, limit=1)
        assert [e.id for e in feed] == [latest]


class TestTimestamps:
    def test_next_timestamp_strictly_increases(self):
        stamps = [ledger._next_timestamp() for _ in range(50)]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)
