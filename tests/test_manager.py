"""
Tests for the Cache and MultiCache facades.
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest

from sqlcache.cache.manager import Cache, MultiCache
from sqlcache.cache.sqlite_store import SqliteStore, sqlite_store
from sqlcache.exceptions import NotCacheableError


@pytest.fixture
async def stores() -> AsyncGenerator[tuple[SqliteStore, SqliteStore], None]:
    """Create two independent in-memory stores."""
    first = await sqlite_store(name="first")
    second = await sqlite_store(name="second")
    yield first, second
    await first.close()
    await second.close()


class TestCache:
    """Test the single-store facade."""

    @pytest.mark.asyncio
    async def test_pass_through(self, store: SqliteStore) -> None:
        """Test that the facade forwards the store contract."""
        cache = Cache(store)

        await cache.set("a", 1)
        await cache.mset([("b", 2), ("c", 3)], 60)
        assert await cache.get("a") == 1
        assert await cache.mget("a", "b", "x") == [1, 2, None]
        assert await cache.keys() == ["a", "b", "c"]
        assert 0 < await cache.ttl("b") <= 60_000

        await cache.delete("a")
        await cache.mdelete("b")
        assert await cache.keys() == ["c"]

        await cache.reset()
        assert await cache.keys() == []

    @pytest.mark.asyncio
    async def test_wrap_computes_once(self, store: SqliteStore) -> None:
        """Test that wrap() calls the factory only on a miss."""
        cache = Cache(store)
        calls: list[int] = []

        def factory() -> dict[str, int]:
            calls.append(1)
            return {"value": len(calls)}

        assert await cache.wrap("key", factory) == {"value": 1}
        assert await cache.wrap("key", factory) == {"value": 1}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_wrap_async_factory_with_ttl(self, store: SqliteStore) -> None:
        """Test that wrap() awaits async factories and applies the TTL."""
        cache = Cache(store)

        async def factory() -> str:
            return "computed"

        assert await cache.wrap("key", factory, ttl=30) == "computed"
        assert await store.get("key") == "computed"
        assert 0 < await store.ttl("key") <= 30_000

    @pytest.mark.asyncio
    async def test_wrap_uncacheable_result_not_stored(self, store: SqliteStore) -> None:
        """Test that an uncacheable result is returned but not stored."""
        cache = Cache(store)

        assert await cache.wrap("key", lambda: None) is None
        assert await store.keys() == []

    @pytest.mark.asyncio
    async def test_set_uncacheable_raises(self, store: SqliteStore) -> None:
        """Test that direct writes still raise NotCacheableError."""
        with pytest.raises(NotCacheableError):
            await Cache(store).set("key", None)


class TestMultiCache:
    """Test the multi-store facade."""

    def test_requires_a_store(self) -> None:
        """Test that an empty store list is rejected."""
        with pytest.raises(ValueError):
            MultiCache([])

    @pytest.mark.asyncio
    async def test_set_fans_out(self, stores: tuple[SqliteStore, SqliteStore]) -> None:
        """Test that set and delete reach every store."""
        first, second = stores
        cache = MultiCache([first, second])

        await cache.set("foo", {"foo": 1})
        assert await first.get("foo") == {"foo": 1}
        assert await second.get("foo") == {"foo": 1}

        await cache.delete("foo")
        assert await first.get("foo") is None
        assert await second.get("foo") is None

    @pytest.mark.asyncio
    async def test_get_backfills_earlier_stores(
        self, stores: tuple[SqliteStore, SqliteStore]
    ) -> None:
        """Test that a hit in a later store is copied into earlier ones with its TTL."""
        first, second = stores
        cache = MultiCache([first, second])

        await second.set("foo", "bar", 100)
        assert await cache.get("foo") == "bar"
        assert await first.get("foo") == "bar"
        assert 0 < await first.ttl("foo") <= 100_000

    @pytest.mark.asyncio
    async def test_get_miss_everywhere(self, stores: tuple[SqliteStore, SqliteStore]) -> None:
        """Test that a key absent from all stores is a miss."""
        assert await MultiCache(list(stores)).get("missing") is None

    @pytest.mark.asyncio
    async def test_mget_combines_stores(self, stores: tuple[SqliteStore, SqliteStore]) -> None:
        """Test that each slot is filled from the first store holding it."""
        first, second = stores
        await first.mset([("a", "first-a")])
        await second.mset([("a", "second-a"), ("b", "second-b")])

        cache = MultiCache([first, second])
        assert await cache.mget("a", "b", "c") == ["first-a", "second-b", None]

    @pytest.mark.asyncio
    async def test_mset_mdelete_reset_fan_out(
        self, stores: tuple[SqliteStore, SqliteStore]
    ) -> None:
        """Test that batch writes, deletes and reset reach every store."""
        first, second = stores
        cache = MultiCache([first, second])

        await cache.mset({"a": 1, "b": 2, "c": 3})
        assert await first.keys() == ["a", "b", "c"]
        assert await second.keys() == ["a", "b", "c"]

        await cache.mdelete("a")
        assert await second.keys() == ["b", "c"]

        await cache.reset()
        assert await first.keys() == []
        assert await second.keys() == []

    @pytest.mark.asyncio
    async def test_wrap_sets_all_stores(self, stores: tuple[SqliteStore, SqliteStore]) -> None:
        """Test that a computed value lands in every store."""
        first, second = stores
        cache = MultiCache([first, second])
        calls: list[int] = []

        def factory() -> int:
            calls.append(1)
            return 42

        assert await cache.wrap("answer", factory) == 42
        assert await cache.wrap("answer", factory) == 42
        assert len(calls) == 1
        assert await first.get("answer") == 42
        assert await second.get("answer") == 42
