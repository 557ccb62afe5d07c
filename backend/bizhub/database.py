"""
BizHub Ledger — Async SQLAlchemy database setup.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from bizhub.config import settings


def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE SET NULL unless foreign keys are switched on
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def enable_sqlite_foreign_keys(target: AsyncEngine) -> None:
    """Turn on FK enforcement for every new SQLite connection of ``target``."""
    if target.dialect.name == "sqlite":
        event.listen(target.sync_engine, "connect", _set_sqlite_pragma)


engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    # pool settings only for postgres
    **(
        {}
        if settings.is_sqlite
        else {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        }
    ),
)
enable_sqlite_foreign_keys(engine)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency — yields an async session."""
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """Create all tables (used in lifespan and tests)."""
    # models must be registered on Base.metadata before create_all
    import bizhub.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
