"""
Configuration management using pydantic-settings.

Loads store defaults from SQLCACHE_* environment variables and .env files.
Validates values and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlcache.cache.sqlite_store import SqliteStore, sqlite_store
from sqlcache.types import is_valid_identifier


class Settings(BaseSettings):
    """Store settings loaded from environment variables.

    All optional:
        SQLCACHE_NAME: Table name for the store
        SQLCACHE_PATH: Database file path, or ":memory:"
        SQLCACHE_SERIALIZER: Payload codec (msgpack|cbor|json)
        SQLCACHE_TTL: Default entry lifetime in seconds
        SQLCACHE_PURGE_INTERVAL: Minimum seconds between purge sweeps
        SQLCACHE_LOG_LEVEL: Logging level
        SQLCACHE_LOG_FILE: JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    NAME: str = Field(default="cache", description="Table name for the store")
    PATH: str = Field(default=":memory:", description="Database file path")
    SERIALIZER: Literal["msgpack", "cbor", "json"] = Field(
        default="msgpack", description="Payload codec"
    )
    TTL: float = Field(
        default=24 * 60 * 60, ge=0.0, description="Default entry lifetime in seconds"
    )
    PURGE_INTERVAL: float = Field(
        default=60 * 60, ge=1.0, description="Minimum seconds between purge sweeps"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("NAME")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that NAME can be used as a table identifier."""
        if not is_valid_identifier(v):
            raise ValueError(
                "SQLCACHE_NAME must be a plain SQL identifier (letters, digits, underscore)"
            )
        return v

    def store_options(self) -> dict[str, Any]:
        """Keyword arguments for sqlite_store() built from these settings."""
        return {
            "name": self.NAME,
            "path": self.PATH,
            "serializer": self.SERIALIZER,
            "ttl": self.TTL,
            "purge_interval": self.PURGE_INTERVAL,
        }

    def display(self) -> dict[str, str | float | None]:
        """Return settings for display."""
        return {
            "NAME": self.NAME,
            "PATH": self.PATH,
            "SERIALIZER": self.SERIALIZER,
            "TTL": self.TTL,
            "PURGE_INTERVAL": self.PURGE_INTERVAL,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()


async def sqlite_store_from_settings(
    settings: Settings | None = None, **overrides: Any
) -> SqliteStore:
    """Create and initialize a store from settings.

    Args:
        settings: Settings to use; the cached singleton when None.
        **overrides: Keyword arguments passed to sqlite_store() on top of
            the settings (e.g. is_cacheable, clock).

    Returns:
        An initialized SqliteStore.
    """
    settings = settings or get_settings()
    options = settings.store_options()
    options.update(overrides)
    return await sqlite_store(**options)
