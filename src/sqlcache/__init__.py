"""
sqlcache: a TTL-aware key-value cache store on SQLite.
"""

from sqlcache.cache import (
    Cache,
    CacheStore,
    MultiCache,
    Serializer,
    SerializerName,
    SqliteStore,
    resolve_serializer,
    sqlite_store,
)
from sqlcache.exceptions import (
    ConfigurationError,
    DeserializationError,
    EngineError,
    InitializationError,
    NotCacheableError,
    SerializationError,
    SqlCacheError,
)

__version__ = "0.1.0"

__all__ = [
    "Cache",
    "CacheStore",
    "ConfigurationError",
    "DeserializationError",
    "EngineError",
    "InitializationError",
    "MultiCache",
    "NotCacheableError",
    "SerializationError",
    "Serializer",
    "SerializerName",
    "SqlCacheError",
    "SqliteStore",
    "__version__",
    "resolve_serializer",
    "sqlite_store",
]
