"""
Pytest configuration and fixtures for sqlcache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import patch

import pytest

from sqlcache.cache.sqlite_store import SqliteStore, sqlite_store
from sqlcache.config import clear_settings_cache

START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += round(seconds * 1000)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test databases."""
    return tmp_path


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Provide a fresh database file path."""
    return temp_dir / "cache.db"


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
async def store(db_path: Path) -> AsyncGenerator[SqliteStore, None]:
    """Create an initialized file-backed store on the wall clock."""
    cache = await sqlite_store(path=db_path)
    yield cache
    await cache.close()


@pytest.fixture
async def clocked_store(db_path: Path, clock: FakeClock) -> AsyncGenerator[SqliteStore, None]:
    """Create an initialized file-backed store driven by the fake clock."""
    cache = await sqlite_store(path=db_path, clock=clock)
    yield cache
    await cache.close()


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide SQLCACHE_* environment variables for testing."""
    env_vars = {
        "SQLCACHE_NAME": "test_cache",
        "SQLCACHE_PATH": str(temp_dir / "env.db"),
        "SQLCACHE_SERIALIZER": "json",
        "SQLCACHE_TTL": "120",
        "SQLCACHE_PURGE_INTERVAL": "30",
        "SQLCACHE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
