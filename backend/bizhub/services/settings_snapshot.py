"""
BizHub Ledger — System settings snapshot.

``system_settings`` is read once when the process starts and frozen into a
``SettingsSnapshot`` kept on ``app.state``.  Collaborators that need the
currency defaults or the allowlist receive the snapshot as a dependency
instead of querying the table ad hoc.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from fastapi import Request
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizhub.errors import ValidationError
from bizhub.models.system_setting import SystemSetting

logger = logging.getLogger(__name__)

# Seeded rows: (key, value, type, description)
DEFAULT_SETTINGS: list[tuple[str, str, str, str]] = [
    ("default_cost_currency", "USD", "string", "Default currency for inventory costs"),
    ("default_sale_currency", "GHS", "string", "Default currency for sales"),
    ("fx_rate_markup", "0.5", "number",
     "Default markup applied to FX rates (in quote currency units per base unit)"),
    ("allowed_currencies", json.dumps(["USD", "GHS", "EUR", "GBP"]), "json",
     "List of allowed ISO 4217 currency codes"),
    ("fx_provider", "exchangerate-api", "string", "FX rate provider service name"),
]


class SettingsSnapshot(BaseModel):
    """Immutable view of system_settings taken at startup."""

    default_cost_currency: str = "USD"
    default_sale_currency: str = "GHS"
    fx_rate_markup: Decimal = Decimal("0.5")
    allowed_currencies: tuple[str, ...] = ("USD", "GHS", "EUR", "GBP")
    fx_provider: str = "exchangerate-api"

    model_config = {"frozen": True}

    def is_allowed_currency(self, code: Optional[str]) -> bool:
        return (code or "").strip().upper() in self.allowed_currencies

    def ensure_allowed_currency(self, code: Optional[str], field: str = "currency") -> str:
        """Normalise ``code`` to upper case or raise ValidationError."""
        normalised = (code or "").strip().upper()
        if normalised not in self.allowed_currencies:
            raise ValidationError(
                f"Currency '{code}' is not allowed (expected one of {', '.join(self.allowed_currencies)})",
                field,
            )
        return normalised


def decode_setting(value: Optional[str], setting_type: str) -> Any:
    """Turn a stored text value into its declared type."""
    if value is None:
        return None
    if setting_type == "number":
        try:
            return Decimal(value)
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e
    if setting_type == "boolean":
        return value.strip().lower() in ("1", "true", "yes", "on")
    if setting_type == "json":
        return json.loads(value)
    return value


async def load_settings_snapshot(db: AsyncSession) -> SettingsSnapshot:
    """Read every system_settings row once; absent keys keep their defaults."""
    result = await db.execute(select(SystemSetting))
    values: dict[str, Any] = {}
    for row in result.scalars().all():
        if row.setting_key not in SettingsSnapshot.model_fields:
            continue
        decoded = decode_setting(row.setting_value, row.setting_type)
        if decoded is None:
            continue
        if row.setting_key == "allowed_currencies":
            decoded = tuple(str(c).upper() for c in decoded)
        values[row.setting_key] = decoded

    snapshot = SettingsSnapshot(**values)
    logger.info(
        "⚙️ Settings loaded: sale=%s cost=%s allowed=%s",
        snapshot.default_sale_currency,
        snapshot.default_cost_currency,
        ",".join(snapshot.allowed_currencies),
    )
    return snapshot


async def seed_default_settings(db: AsyncSession) -> int:
    """Insert any missing default rows. Returns how many were added."""
    result = await db.execute(select(SystemSetting.setting_key))
    existing = set(result.scalars().all())

    added = 0
    for key, value, setting_type, description in DEFAULT_SETTINGS:
        if key in existing:
            continue
        db.add(SystemSetting(
            setting_key=key,
            setting_value=value,
            setting_type=setting_type,
            description=description,
        ))
        added += 1

    if added:
        await db.commit()
        logger.info("Seeded %d default system settings", added)
    return added


def get_settings_snapshot(request: Request) -> SettingsSnapshot:
    """FastAPI dependency — the snapshot loaded during app startup."""
    snapshot = getattr(request.app.state, "settings_snapshot", None)
    if snapshot is None:
        raise RuntimeError("Settings snapshot not loaded — app lifespan has not run")
    return snapshot
