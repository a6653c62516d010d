"""
Cache package.

- base.py: CacheStore, the store contract consumed by the facade
- serializers.py: msgpack / json / custom payload codecs
- sqlite_store.py: SqliteStore, the TTL-aware SQLite store
- manager.py: Cache and MultiCache facades with read-through wrap()
"""

from sqlcache.cache.base import CacheStore
from sqlcache.cache.manager import Cache, MultiCache
from sqlcache.cache.serializers import Serializer, SerializerName, resolve_serializer
from sqlcache.cache.sqlite_store import SqliteStore, sqlite_store

__all__ = [
    "Cache",
    "CacheStore",
    "MultiCache",
    "Serializer",
    "SerializerName",
    "SqliteStore",
    "resolve_serializer",
    "sqlite_store",
]
