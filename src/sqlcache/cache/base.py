"""
Base classes for caching.

CacheStore is the contract every store exposes to the caching facade
(sqlcache.cache.manager). TTL arguments are in seconds at this boundary;
ttl() answers in milliseconds.

Miss convention: get() and mget() return None for a key that is absent
or expired. Stores with the default cacheability predicate never hold
None, so None is unambiguous there.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

KeyValuePairs = Mapping[str, Any] | Iterable[tuple[str, Any]]


class CacheStore(ABC):
    """Abstract interface for cache store implementations."""

    name: str

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value from the cache, or None on a miss."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Set a value in the cache.

        A negative ttl drops the write; zero writes an already-expired entry.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a value from the cache. Absent keys are ignored."""
        ...

    @abstractmethod
    async def mget(self, *keys: str) -> list[Any | None]:
        """Get several values, positionally aligned with keys."""
        ...

    @abstractmethod
    async def mset(self, pairs: KeyValuePairs, ttl: float | None = None) -> None:
        """Set several values with one shared expiry."""
        ...

    @abstractmethod
    async def mdelete(self, *keys: str) -> None:
        """Delete several keys."""
        ...

    @abstractmethod
    async def keys(self) -> list[str]:
        """List all live keys."""
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Remove every entry."""
        ...

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Milliseconds left for a live key, negative if absent or expired."""
        ...

    @abstractmethod
    def is_cacheable(self, value: Any) -> bool:
        """Whether this store accepts the value."""
        ...
