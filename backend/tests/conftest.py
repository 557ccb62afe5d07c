"""
Shared test fixtures — async DB, seeded users/invoices, FastAPI test client.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from bizhub.database import Base, enable_sqlite_foreign_keys, get_db
from bizhub.main import app
from bizhub.models import Invoice, InvoiceItem, InvoiceStatus, User
from bizhub.services.settings_snapshot import SettingsSnapshot


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def snapshot():
    return SettingsSnapshot()


@pytest_asyncio.fixture()
async def client(db_engine, snapshot):
    """FastAPI test client with test DB and settings snapshot injected."""
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.settings_snapshot = snapshot

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.settings_snapshot


# ── Sample Data ─────────────────────────────────────────

async def make_invoice(session, number="INV-001", item_ids=("41", "42", "43"), status=InvoiceStatus.PAID):
    """Invoice with one item per id, line positions 1..n, committed."""
    invoice = Invoice(
        invoice_number=number,
        customer_name="Kofi Mensah",
        currency="GHS",
        total_amount=Decimal("300.00"),
        status=status.value,
    )
    for position, item_id in enumerate(item_ids, start=1):
        invoice.items.append(InvoiceItem(
            id=item_id,
            line_position=position,
            description=f"Refurbished laptop #{position}",
            quantity=1,
            unit_price_amount=Decimal("100.00"),
        ))
    session.add(invoice)
    await session.commit()
    return invoice


@pytest_asyncio.fixture()
async def clerk(db_session):
    """User 7, the clerk who voids things in the scenarios."""
    user = User(id=7, username="ama", full_name="Ama Owusu", role="manager")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture()
async def invoice(db_session):
    return await make_invoice(db_session)
