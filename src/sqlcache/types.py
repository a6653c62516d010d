"""
Core types for sqlcache.

This module defines the small data structures shared by the store,
the facade and the CLI:
- CacheRow, a frozen view of one physical table row
- Clock, the millisecond time source type
- now_ms() and ttl_to_ms() helpers
- default_is_cacheable(), the default cacheability predicate

Absent and expired keys are reported as None everywhere.
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass
from typing import Any, Callable

Clock = Callable[[], int]
"""Returns the current time as integer epoch milliseconds."""

IsCacheable = Callable[[Any], bool]

SQL_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def now_ms() -> int:
    """Get current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def ttl_to_ms(ttl_seconds: float) -> int:
    """Convert a TTL in seconds (int or float) to whole milliseconds.

    Rounds down, so any negative TTL stays negative.
    """
    return math.floor(ttl_seconds * 1000)


def default_is_cacheable(value: Any) -> bool:
    """Reject None and callables; everything else may be stored."""
    return value is not None and not callable(value)


def is_valid_identifier(name: str) -> bool:
    """Check that a table name is safe to interpolate into DDL."""
    return bool(SQL_IDENTIFIER_RE.match(name))


@dataclass(frozen=True)
class CacheRow:
    """One physical row of a cache table.

    The payload is kept serialized; expired rows may still be physically
    present until the next purge sweep.
    """

    key: str
    val: bytes
    created_at: int
    expire_at: int
