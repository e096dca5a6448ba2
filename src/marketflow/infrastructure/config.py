"""Application configuration.

Loaded from ``MARKETFLOW_*`` environment variables and an optional
``.env`` file.  Fields are type-checked and validated by pydantic.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Storage
    database_url: str = "sqlite:///data/marketflow.sqlite3"
    database_echo: bool = False
    # How long a SQLite writer waits for another writer's lock.
    database_lock_timeout_seconds: float = Field(default=5.0, ge=0)

    # Logging
    log_level: str = "INFO"

    # Concurrency
    max_conflict_retries: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=0.05, ge=0)

    # Checkout policy: drop shortfalls no wholesaler can cover instead of
    # failing the whole checkout.
    allow_partial_orders: bool = False

    default_delivery_days: int = Field(default=3, ge=0)
    currency: str = "INR"

    # Simulated payment gateway
    declined_payment_methods: list[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_prefix="MARKETFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the Settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings_for_test(**kwargs) -> Settings:
    """For testing only: override the Settings instance with new values."""
    global _settings
    _settings = Settings(**kwargs)
    return _settings
