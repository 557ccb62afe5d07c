"""
Database Migrations — adds new columns to existing tables.

Since the project uses create_all() (which only creates NEW tables, not
new columns on existing tables), this module adds the void / cancellation
columns and the active-row indexes to databases created before they existed.
Existing columns and indexes are detected through the inspector, so every
run is idempotent on PostgreSQL and SQLite alike.

Called from main.py lifespan AFTER init_db().
"""

import logging
from typing import Optional

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine

from bizhub.database import engine

logger = logging.getLogger("bizhub.migrations")

_FK_USER = "INTEGER REFERENCES users(id) ON UPDATE CASCADE ON DELETE SET NULL"

# Each column migration: (table, column, column DDL)
_COLUMNS = [
    # ── Invoice item voiding ──
    ("invoice_items",    "voided_at",            "TIMESTAMP WITH TIME ZONE"),
    ("invoice_items",    "voided_by_user_id",    _FK_USER),
    ("invoice_items",    "void_reason",          "TEXT"),

    # ── Transaction voiding ──
    ("invoice_payments", "transaction_type",     "VARCHAR(10) NOT NULL DEFAULT 'PAYMENT'"),
    ("invoice_payments", "voided_at",            "TIMESTAMP WITH TIME ZONE"),
    ("invoice_payments", "voided_by_user_id",    _FK_USER),
    ("invoice_payments", "void_reason",          "TEXT"),

    # ── Invoice cancellation ──
    ("invoices",         "cancelled_at",         "TIMESTAMP WITH TIME ZONE"),
    ("invoices",         "cancelled_by_user_id", _FK_USER),
    ("invoices",         "cancellation_reason",  "TEXT"),
]

# Each index migration: (table, index name, sql)
_INDEXES = [
    ("invoice_items", "idx_invoice_items_active",
     "CREATE INDEX IF NOT EXISTS idx_invoice_items_active "
     "ON invoice_items (invoice_id, line_position) WHERE voided_at IS NULL"),
    ("invoice_payments", "idx_invoice_payments_active",
     "CREATE INDEX IF NOT EXISTS idx_invoice_payments_active "
     "ON invoice_payments (invoice_id, payment_date) WHERE voided_at IS NULL"),
    ("activity_logs", "idx_activity_logs_entity",
     "CREATE INDEX IF NOT EXISTS idx_activity_logs_entity ON activity_logs (entity_type, entity_id)"),
    ("activity_logs", "idx_activity_logs_actor",
     "CREATE INDEX IF NOT EXISTS idx_activity_logs_actor ON activity_logs (actor_user_id)"),
    ("activity_logs", "idx_activity_logs_action",
     "CREATE INDEX IF NOT EXISTS idx_activity_logs_action ON activity_logs (action_type)"),
    ("activity_logs", "idx_activity_logs_created",
     "CREATE INDEX IF NOT EXISTS idx_activity_logs_created ON activity_logs (created_at)"),
]


def _schema_state(sync_conn) -> dict[str, tuple[set[str], set[str]]]:
    """{table: (column names, index names)} for every existing table."""
    insp = inspect(sync_conn)
    state = {}
    for table in insp.get_table_names():
        columns = {c["name"] for c in insp.get_columns(table)}
        indexes = {i["name"] for i in insp.get_indexes(table) if i.get("name")}
        state[table] = (columns, indexes)
    return state


async def run_migrations(bind: Optional[AsyncEngine] = None) -> int:
    """Run all pending migrations. Returns count of statements executed."""
    count = 0
    async with (bind or engine).begin() as conn:
        state = await conn.run_sync(_schema_state)

        for table, column, ddl in _COLUMNS:
            if table not in state or column in state[table][0]:
                continue
            await conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
            state[table][0].add(column)
            logger.info("Added column %s.%s", table, column)
            count += 1

        for table, name, sql in _INDEXES:
            if table not in state or name in state[table][1]:
                continue
            await conn.execute(text(sql))
            logger.info("Created index %s", name)
            count += 1

    logger.info("Migrations complete: %d statements executed", count)
    return count
