"""
BizHub Ledger — Configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./bizhub.db",
        description="Async SQLAlchemy DB URL",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements to the log")
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)

    # Logging
    log_level: str = Field(default="INFO")

    # Seed system_settings defaults on startup when the table is empty
    seed_settings: bool = Field(default=True)

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.database_url

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "BIZHUB_",
        "extra": "ignore",
    }


settings = Settings()
