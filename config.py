# config.py

"""Runtime settings for the ordering and settlement service.

``config.json`` next to this file supplies site defaults (for example the
outlet's invoice time zone); environment variables, including those from a
``.env`` file, win over it. :func:`get_settings` caches the merged result.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholders POS clients send when no table was captured. Case-sensitive.
DEFAULT_MISSING_TABLE_SENTINELS = ["null", "undefined", "N/A", "Unknown", "None", "-"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str | None = None
    database_url: str = "sqlite+aiosqlite:///./restobill.db"
    redis_url: str = "redis://localhost:6379/0"
    default_payment_method: str = "cash"
    invoice_timezone: str = "UTC"
    missing_table_sentinels: list[str] = DEFAULT_MISSING_TABLE_SENTINELS
    settle_lock_ttl_ms: int = 30_000
    settle_timeout_secs: float = 10.0
    error_dsn: str | None = None
    log_level: str = "INFO"

    @field_validator("invoice_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone {value!r}") from exc
        return value

    @field_validator("settle_lock_ttl_ms")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("settle_lock_ttl_ms must be positive")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return the merged settings, reading ``config.json`` at most once."""

    config_path = Path(__file__).with_name("config.json")
    data = json.loads(config_path.read_text()) if config_path.exists() else {}
    env_override = {
        key.lower(): value
        for key, value in os.environ.items()
        if key.lower() in Settings.model_fields
    }
    return Settings(**{**data, **env_override})
