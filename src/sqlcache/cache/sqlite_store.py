"""
SQLite-backed key-value cache store.

One store owns one table in a SQLite database (a file, or ``:memory:``).
Every row carries an absolute ``expire_at`` in epoch milliseconds; read paths
only return rows with ``expire_at > now``, so expired rows are misses even
before they are physically removed.

Expired rows are deleted by a purge sweep that piggybacks on reads
(get, mget, keys, ttl) at most once per ``purge_interval``. An optional
background task can run the same sweep on a timer.

Only the table name is interpolated into SQL; it is validated as a plain
identifier. All keys, payloads and timestamps are bound parameters.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import aiosqlite

from sqlcache.cache.base import CacheStore, KeyValuePairs
from sqlcache.cache.serializers import SerializerName, resolve_serializer
from sqlcache.exceptions import (
    DeserializationError,
    EngineError,
    InitializationError,
    NotCacheableError,
    SerializationError,
)
from sqlcache.logging import get_logger, log_context
from sqlcache.types import (
    CacheRow,
    Clock,
    IsCacheable,
    default_is_cacheable,
    is_valid_identifier,
    now_ms,
    ttl_to_ms,
)

logger = get_logger(__name__)

MEMORY_PATH = ":memory:"
DEFAULT_NAME = "cache"
DEFAULT_TTL = 24 * 60 * 60
DEFAULT_PURGE_INTERVAL = 60 * 60
DEFAULT_TIMEOUT = 5.0

# Lowest SQLITE_MAX_VARIABLE_NUMBER across supported SQLite builds
MAX_BOUND_PARAMS = 999
ROW_PARAMS = 4

# auto_vacuum only takes effect before the first table is created
PRAGMAS = (
    "PRAGMA main.auto_vacuum = INCREMENTAL",
    "PRAGMA main.synchronous = NORMAL",
    "PRAGMA main.journal_mode = WAL",
)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    key TEXT PRIMARY KEY,
    val BLOB,
    created_at INTEGER,
    expire_at INTEGER
);
CREATE INDEX IF NOT EXISTS index_expire_{table} ON {table}(expire_at);
"""

UPSERT_SQL = "INSERT OR REPLACE INTO {table} (key, val, created_at, expire_at) VALUES {rows}"
SELECT_LIVE_SQL = "SELECT val FROM {table} WHERE key = ? AND expire_at > ? LIMIT 1"
SELECT_LIVE_MANY_SQL = (
    "SELECT key, val FROM {table} WHERE key IN ({placeholders}) AND expire_at > ?"
)
SELECT_EXPIRE_SQL = "SELECT expire_at FROM {table} WHERE key = ? LIMIT 1"
SELECT_KEYS_SQL = "SELECT key FROM {table} WHERE expire_at > ? ORDER BY key"
SELECT_ROWS_SQL = "SELECT key, val, created_at, expire_at FROM {table} ORDER BY key"
COUNT_LIVE_SQL = "SELECT COUNT(*) FROM {table} WHERE expire_at > ?"
DELETE_MANY_SQL = "DELETE FROM {table} WHERE key IN ({placeholders})"
TRUNCATE_SQL = "DELETE FROM {table}"
PURGE_SQL = "DELETE FROM {table} WHERE expire_at < ?"

OpenCallback = Callable[[BaseException | None], None]


def _chunks(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)


def _as_pairs(pairs: KeyValuePairs) -> list[tuple[str, Any]]:
    if isinstance(pairs, Mapping):
        return list(pairs.items())
    return [(key, value) for key, value in pairs]


class SqliteStore(CacheStore):
    """TTL-aware cache store on one SQLite table.

    Construct and initialize with ``await sqlite_store(...)``, or call
    ``init()`` yourself, or use the store as an async context manager.
    Two stores with the same name and path share the same table.

    Attributes:
        name: Table name, also the store identifier.
        path: Database path, or ":memory:".
        default_ttl: TTL in seconds used when a write omits one.
    """

    def __init__(
        self,
        name: str = DEFAULT_NAME,
        path: str | Path = MEMORY_PATH,
        serializer: Any = SerializerName.MSGPACK,
        ttl: float = DEFAULT_TTL,
        is_cacheable: IsCacheable | None = None,
        clock: Clock | None = None,
        purge_interval: float = DEFAULT_PURGE_INTERVAL,
        background_purge: bool = False,
        on_open: OpenCallback | None = None,
        on_ready: OpenCallback | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Configure the store. No I/O happens until init().

        Args:
            name: Table name; must be a plain SQL identifier.
            path: Database file path, or ":memory:".
            serializer: "msgpack", "cbor", "json", or a custom serialize/deserialize pair.
            ttl: Default TTL in seconds.
            is_cacheable: Replaces the default predicate (not None, not callable).
            clock: Millisecond time source, defaults to wall-clock.
            purge_interval: Minimum seconds between purge sweeps.
            background_purge: Also run the sweep from a background task.
            on_open: Called once the database is opened, with the error if any.
            on_ready: Called once the schema is ready, with the error if any.
            timeout: Seconds to wait on a database locked by another connection.

        Raises:
            ConfigurationError: If the serializer selector is invalid.
        """
        self.name = name
        self.path = str(path)
        self.default_ttl = ttl
        self._default_ttl_ms = ttl_to_ms(ttl)
        self._serializer = resolve_serializer(serializer)
        self._is_cacheable: IsCacheable = is_cacheable or default_is_cacheable
        self._clock: Clock = clock or now_ms
        self._purge_interval = purge_interval
        self._purge_interval_ms = ttl_to_ms(purge_interval)
        self._background_purge = background_purge
        self._on_open = on_open
        self._on_ready = on_ready
        self._timeout = timeout

        self._db: aiosqlite.Connection | None = None
        self._last_purge = 0
        self._purge_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def serializer(self) -> str:
        """Name of the configured serializer."""
        return self._serializer.name

    @property
    def client(self) -> aiosqlite.Connection:
        """The underlying aiosqlite connection, for diagnostics."""
        if self._db is None:
            raise RuntimeError("SqliteStore not initialized. Call init() first.")
        return self._db

    def _sql(self, template: str, **params: str) -> str:
        return template.format(table=self.name, **params)

    async def init(self) -> None:
        """Open the database and create the table and index if absent.

        Safe to call more than once.

        Raises:
            InitializationError: If the name is not a valid identifier, the
                database cannot be opened, or the schema cannot be created.
        """
        if self._db is not None:
            return

        context = {"store": self.name, "path": self.path}

        if not is_valid_identifier(self.name):
            error = InitializationError("Invalid store name", context=context)
            self._notify(self._on_open, error)
            raise error

        try:
            if self.path != MEMORY_PATH:
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(self.path, timeout=self._timeout)
        except (sqlite3.Error, OSError) as e:
            self._notify(self._on_open, e)
            raise InitializationError(f"Failed to open SQLite store: {e}", context=context) from e

        self._notify(self._on_open, None)

        try:
            for pragma in PRAGMAS:
                await db.execute(pragma)
            await db.executescript(self._sql(CREATE_TABLE_SQL))
            await db.commit()
        except sqlite3.Error as e:
            await db.close()
            self._notify(self._on_ready, e)
            raise InitializationError(
                f"Failed to initialize SQLite store: {e}", context=context
            ) from e

        db.row_factory = aiosqlite.Row
        self._db = db
        self._notify(self._on_ready, None)

        if self._background_purge:
            self._purge_task = asyncio.create_task(self._purge_loop())

        logger.info(
            "SQLite store initialized",
            store=self.name,
            path=self.path,
            serializer=self.serializer,
        )

    async def close(self) -> None:
        """Stop the background sweep and close the database connection."""
        if self._purge_task is not None:
            self._purge_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._purge_task
            self._purge_task = None
        if self._db:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SqliteStore:
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _notify(self, callback: OpenCallback | None, error: BaseException | None) -> None:
        if callback is not None:
            callback(error)

    @asynccontextmanager
    async def _engine(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Yield the connection for one operation, holding the store lock.

        The connection has a single implicit transaction, so operations run
        one at a time from execute through commit or rollback. sqlite3
        errors are re-raised as EngineError.
        """
        db = self.client
        async with self._lock:
            with log_context(store=self.name, operation=operation):
                try:
                    yield db
                except sqlite3.Error as e:
                    with suppress(sqlite3.Error):
                        await db.rollback()
                    logger.error("SQLite operation failed", error=str(e))
                    raise EngineError(
                        f"SQLite {operation} failed: {e}",
                        context={"store": self.name, "operation": operation},
                    ) from e

    def is_cacheable(self, value: Any) -> bool:
        """Apply the configured cacheability predicate."""
        return bool(self._is_cacheable(value))

    def _ttl_ms(self, ttl: float | None) -> int:
        return ttl_to_ms(ttl) if ttl is not None else self._default_ttl_ms

    def _check_cacheable(self, key: str, value: Any) -> None:
        if not self.is_cacheable(value):
            raise NotCacheableError(
                f"{value!r} is not a cacheable value",
                context={"store": self.name, "key": key},
            )

    def _decode(self, key: str, payload: bytes) -> Any | None:
        try:
            return self._serializer.deserialize(payload)
        except DeserializationError as e:
            logger.warning("Unreadable cache entry treated as miss", store=self.name, key=key, error=str(e))
            return None

    async def _upsert(self, operation: str, rows: list[tuple[str, bytes, int, int]]) -> None:
        async with self._engine(operation) as db:
            for chunk in _chunks(rows, MAX_BOUND_PARAMS // ROW_PARAMS):
                values = ", ".join(f"({_placeholders(ROW_PARAMS)})" for _ in chunk)
                params = [param for row in chunk for param in row]
                await db.execute(self._sql(UPSERT_SQL, rows=values), params)
            await db.commit()

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Seconds to live; the store default when None. Negative
                drops the write, zero writes an already-expired entry.

        Raises:
            NotCacheableError: If the predicate rejects the value.
            EngineError: If the SQLite write fails.
        """
        ttl_ms = self._ttl_ms(ttl)
        if ttl_ms < 0:
            logger.debug("Dropped write with negative TTL", store=self.name, key=key, ttl_ms=ttl_ms)
            return

        self._check_cacheable(key, value)

        try:
            payload = self._serializer.serialize(value)
        except SerializationError as e:
            logger.warning("Dropped unserializable value", store=self.name, key=key, error=str(e))
            return

        now = self._clock()
        await self._upsert("set", [(key, payload, now, now + ttl_ms)])

    async def get(self, key: str) -> Any | None:
        """Get a live value, or None if absent, expired or unreadable.

        Raises:
            EngineError: If the SQLite read fails.
        """
        await self._purge_if_due()
        async with self._engine("get") as db:
            async with db.execute(self._sql(SELECT_LIVE_SQL), (key, self._clock())) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return None
        return self._decode(key, row["val"])

    async def delete(self, key: str) -> None:
        """Delete a key if present."""
        await self.mdelete(key)

    async def mset(self, pairs: KeyValuePairs, ttl: float | None = None) -> None:
        """Store several values with one shared expiry.

        The batch is all-or-nothing: one rejected value fails the whole call
        with NotCacheableError, one unserializable value drops the whole batch.

        Args:
            pairs: Mapping or iterable of (key, value).
            ttl: Seconds to live for every entry in the batch.
        """
        ttl_ms = self._ttl_ms(ttl)
        items = _as_pairs(pairs)
        if ttl_ms < 0 or not items:
            return

        for key, value in items:
            self._check_cacheable(key, value)

        try:
            payloads = [(key, self._serializer.serialize(value)) for key, value in items]
        except SerializationError as e:
            logger.warning(
                "Dropped batch with unserializable value",
                store=self.name,
                size=len(items),
                error=str(e),
            )
            return

        now = self._clock()
        expire_at = now + ttl_ms
        await self._upsert("mset", [(key, payload, now, expire_at) for key, payload in payloads])

    async def mget(self, *keys: str) -> list[Any | None]:
        """Get several values, one slot per requested key (duplicates kept)."""
        if not keys:
            return []

        await self._purge_if_due()
        now = self._clock()
        unique = list(dict.fromkeys(keys))
        found: dict[str, bytes] = {}

        async with self._engine("mget") as db:
            for chunk in _chunks(unique, MAX_BOUND_PARAMS - 1):
                query = self._sql(SELECT_LIVE_MANY_SQL, placeholders=_placeholders(len(chunk)))
                async with db.execute(query, (*chunk, now)) as cursor:
                    for row in await cursor.fetchall():
                        found[row["key"]] = row["val"]

        return [self._decode(key, found[key]) if key in found else None for key in keys]

    async def mdelete(self, *keys: str) -> None:
        """Delete several keys; absent ones are ignored."""
        if not keys:
            return

        unique = list(dict.fromkeys(keys))
        async with self._engine("mdelete") as db:
            for chunk in _chunks(unique, MAX_BOUND_PARAMS):
                query = self._sql(DELETE_MANY_SQL, placeholders=_placeholders(len(chunk)))
                await db.execute(query, chunk)
            await db.commit()

    async def keys(self) -> list[str]:
        """List live keys in key order."""
        await self._purge_if_due()
        async with self._engine("keys") as db:
            async with db.execute(self._sql(SELECT_KEYS_SQL), (self._clock(),)) as cursor:
                rows = await cursor.fetchall()
        return [row["key"] for row in rows]

    async def reset(self) -> None:
        """Delete every row in the table."""
        async with self._engine("reset") as db:
            await db.execute(self._sql(TRUNCATE_SQL))
            await db.commit()
        logger.info("Cache reset", store=self.name)

    async def ttl(self, key: str) -> int:
        """Milliseconds left for a live key, -1 if absent or expired."""
        await self._purge_if_due()
        async with self._engine("ttl") as db:
            async with db.execute(self._sql(SELECT_EXPIRE_SQL), (key,)) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return -1
        remaining = row["expire_at"] - self._clock()
        return remaining if remaining > 0 else -1

    async def count(self) -> int:
        """Number of live entries."""
        async with self._engine("count") as db:
            async with db.execute(self._sql(COUNT_LIVE_SQL), (self._clock(),)) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0

    async def rows(self) -> list[CacheRow]:
        """Every physical row, expired ones included."""
        async with self._engine("rows") as db:
            async with db.execute(self._sql(SELECT_ROWS_SQL)) as cursor:
                rows = await cursor.fetchall()
        return [
            CacheRow(
                key=row["key"],
                val=row["val"],
                created_at=row["created_at"],
                expire_at=row["expire_at"],
            )
            for row in rows
        ]

    async def purge_expired(self) -> int:
        """Delete expired rows now and reclaim free pages.

        Returns:
            Number of rows removed.
        """
        now = self._clock()
        async with self._engine("purge") as db:
            cursor = await db.execute(self._sql(PURGE_SQL), (now,))
            removed = cursor.rowcount
            await cursor.close()
            await db.commit()
            await db.execute_fetchall("PRAGMA main.incremental_vacuum")
            if removed:
                logger.info("Purged expired entries", removed=removed)

        self._last_purge = now
        return removed

    async def _purge_if_due(self) -> None:
        now = self._clock()
        if now - self._last_purge < self._purge_interval_ms:
            return
        try:
            await self.purge_expired()
        except EngineError as e:
            self._last_purge = now
            logger.warning("Purge sweep skipped", store=self.name, error=str(e))

    async def _purge_loop(self) -> None:
        while True:
            await asyncio.sleep(self._purge_interval)
            try:
                await self.purge_expired()
            except EngineError as e:
                logger.warning("Background purge failed", store=self.name, error=str(e))


async def sqlite_store(
    name: str = DEFAULT_NAME,
    path: str | Path = MEMORY_PATH,
    serializer: Any = SerializerName.MSGPACK,
    ttl: float = DEFAULT_TTL,
    is_cacheable: IsCacheable | None = None,
    clock: Clock | None = None,
    purge_interval: float = DEFAULT_PURGE_INTERVAL,
    background_purge: bool = False,
    on_open: OpenCallback | None = None,
    on_ready: OpenCallback | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> SqliteStore:
    """Create and initialize a SqliteStore.

    Initialization errors are raised here, not on first use.

    Raises:
        ConfigurationError: If the serializer selector is invalid.
        InitializationError: If the database or schema cannot be set up.
    """
    store = SqliteStore(
        name=name,
        path=path,
        serializer=serializer,
        ttl=ttl,
        is_cacheable=is_cacheable,
        clock=clock,
        purge_interval=purge_interval,
        background_purge=background_purge,
        on_open=on_open,
        on_ready=on_ready,
        timeout=timeout,
    )
    await store.init()
    return store
