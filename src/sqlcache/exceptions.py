"""
Custom exception hierarchy for sqlcache.

All exceptions inherit from SqlCacheError, which provides optional context
for structured error handling and logging.

A cache miss is never an exception: reads return None for absent or
expired keys.
"""

from __future__ import annotations

from typing import Any


class SqlCacheError(Exception):
    """Base exception for all sqlcache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(SqlCacheError):
    """Raised when configuration is invalid.

    Examples:
        - Unknown serializer name
        - Custom serializer missing serialize/deserialize
    """

    pass


class NotCacheableError(SqlCacheError):
    """Raised when a value is rejected by the store's cacheability predicate.

    No row is written when this is raised. For batch writes the whole
    batch is rejected.

    Context should include:
        - store: The store name
        - key: The key whose value was rejected
    """

    pass


class InitializationError(SqlCacheError):
    """Raised when a store cannot open its database or create its schema.

    Context should include:
        - store: The store name
        - path: The database path
    """

    pass


class EngineError(SqlCacheError):
    """Raised when the underlying SQLite call fails.

    Wraps sqlite3.Error (I/O errors, corruption, locked database, missing
    table). The store stays usable after one of these.

    Context should include:
        - store: The store name
        - operation: The store operation that failed
    """

    pass


class SerializationError(SqlCacheError):
    """Raised by a serializer when a value cannot be encoded.

    The store treats this as a dropped write and does not propagate it.
    """

    pass


class DeserializationError(SqlCacheError):
    """Raised by a serializer when a stored payload cannot be decoded.

    The store treats this as a cache miss and does not propagate it.
    """

    pass
