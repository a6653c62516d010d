"""
Caching facade over one or more stores.

Cache wraps a single CacheStore and adds the read-through ``wrap`` helper.
MultiCache composes several stores in priority order: reads stop at the
first hit, writes fan out to every store.
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping, Sequence
from typing import Any, Awaitable, Callable

from sqlcache.cache.base import CacheStore, KeyValuePairs
from sqlcache.logging import get_logger

logger = get_logger(__name__)

Factory = Callable[[], Any] | Callable[[], Awaitable[Any]]


async def _call(factory: Factory) -> Any:
    result = factory()
    if inspect.isawaitable(result):
        result = await result
    return result


class Cache:
    """Single-store cache with read-through support."""

    def __init__(self, store: CacheStore) -> None:
        self.store = store

    async def get(self, key: str) -> Any | None:
        return await self.store.get(key)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        await self.store.set(key, value, ttl)

    async def delete(self, key: str) -> None:
        await self.store.delete(key)

    async def mget(self, *keys: str) -> list[Any | None]:
        return await self.store.mget(*keys)

    async def mset(self, pairs: KeyValuePairs, ttl: float | None = None) -> None:
        await self.store.mset(pairs, ttl)

    async def mdelete(self, *keys: str) -> None:
        await self.store.mdelete(*keys)

    async def keys(self) -> list[str]:
        return await self.store.keys()

    async def ttl(self, key: str) -> int:
        return await self.store.ttl(key)

    async def reset(self) -> None:
        await self.store.reset()

    async def wrap(self, key: str, factory: Factory, ttl: float | None = None) -> Any:
        """Return the cached value for key, computing and storing it on a miss.

        Args:
            key: Cache key.
            factory: Zero-argument callable (sync or async) producing the value.
            ttl: Seconds to live for a freshly computed value.

        Returns:
            The cached or freshly computed value. Values the store does not
            accept are returned without being cached.
        """
        value = await self.store.get(key)
        if value is not None:
            return value

        value = await _call(factory)
        if self.store.is_cacheable(value):
            await self.store.set(key, value, ttl)
        else:
            logger.debug("Computed value not cacheable", key=key, store=self.store.name)
        return value


class MultiCache:
    """Several stores consulted in order.

    get returns the first hit, back-filling earlier stores that missed;
    mget fills each slot from the first store that has it.
    set/mset/delete/mdelete/reset apply to every store.
    """

    def __init__(self, stores: Sequence[CacheStore]) -> None:
        if not stores:
            raise ValueError("MultiCache needs at least one store")
        self.stores = list(stores)

    async def get(self, key: str) -> Any | None:
        for index, store in enumerate(self.stores):
            value = await store.get(key)
            if value is not None:
                await self._backfill(store, self.stores[:index], key, value)
                return value
        return None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        for store in self.stores:
            await store.set(key, value, ttl)

    async def delete(self, key: str) -> None:
        for store in self.stores:
            await store.delete(key)

    async def mget(self, *keys: str) -> list[Any | None]:
        results: list[Any | None] = [None] * len(keys)
        pending = list(range(len(keys)))

        for store in self.stores:
            if not pending:
                break
            values = await store.mget(*(keys[i] for i in pending))
            missing: list[int] = []
            for index, value in zip(pending, values):
                if value is None:
                    missing.append(index)
                else:
                    results[index] = value
            pending = missing

        return results

    async def mset(self, pairs: KeyValuePairs, ttl: float | None = None) -> None:
        items = list(pairs.items()) if isinstance(pairs, Mapping) else list(pairs)
        for store in self.stores:
            await store.mset(items, ttl)

    async def mdelete(self, *keys: str) -> None:
        for store in self.stores:
            await store.mdelete(*keys)

    async def reset(self) -> None:
        for store in self.stores:
            await store.reset()

    async def wrap(self, key: str, factory: Factory, ttl: float | None = None) -> Any:
        """Read-through across all stores; a computed value is set everywhere."""
        value = await self.get(key)
        if value is not None:
            return value

        value = await _call(factory)
        for store in self.stores:
            if store.is_cacheable(value):
                await store.set(key, value, ttl)
        return value

    async def _backfill(
        self, source: CacheStore, stores: Sequence[CacheStore], key: str, value: Any
    ) -> None:
        if not stores:
            return
        # carry over the remaining lifetime from the store that hit
        remaining = await source.ttl(key)
        ttl = remaining / 1000 if remaining > 0 else None
        for store in stores:
            if store.is_cacheable(value):
                await store.set(key, value, ttl)
