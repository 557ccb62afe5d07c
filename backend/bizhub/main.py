"""
FastAPI Application — entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bizhub import __version__
from bizhub.config import settings
from bizhub.database import async_session, close_db, init_db
from bizhub.errors import register_exception_handlers
from bizhub.migrations import run_migrations
from bizhub.routes import router
from bizhub.routes.activity import activity_router
from bizhub.routes.invoices import invoice_router
from bizhub.services.settings_snapshot import load_settings_snapshot, seed_default_settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting BizHub Ledger API v%s", __version__)
    await init_db()
    await run_migrations()
    logger.info("✅ Database ready")

    async with async_session() as session:
        if settings.seed_settings:
            await seed_default_settings(session)
        app.state.settings_snapshot = await load_settings_snapshot(session)

    yield

    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="BizHub Ledger API",
    description=(
        "Append-only activity ledger and invoice voiding for the BizHub "
        "business management backend."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(router, prefix="/api/v1")
app.include_router(activity_router, prefix="/api/v1")
app.include_router(invoice_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "BizHub Ledger API",
        "version": __version__,
        "docs": "/docs",
    }
