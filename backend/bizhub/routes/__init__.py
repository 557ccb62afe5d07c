"""
API Routes — health.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from bizhub import __version__
from bizhub.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health():
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
    )
