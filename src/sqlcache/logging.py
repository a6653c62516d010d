"""
Structured logging for sqlcache.

Each store operation runs inside ``log_context(store=..., operation=...)``;
the store and operation names are then attached to every record logged in
that scope, both on the rich console and in the JSON-lines log file.
Keyword arguments passed to a logger call land in the record's ``extra``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

import orjson
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

LOGGER_NAME = "sqlcache"
DEFAULT_LEVEL = "WARNING"

_store_var: ContextVar[str | None] = ContextVar("store", default=None)
_operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def get_store() -> str | None:
    """Store name of the enclosing log_context, if any."""
    return _store_var.get()


def get_operation() -> str | None:
    """Operation name of the enclosing log_context, if any."""
    return _operation_var.get()


def _context_fields() -> dict[str, str]:
    fields: dict[str, str] = {}
    if (store := get_store()) is not None:
        fields["store"] = store
    if (operation := get_operation()) is not None:
        fields["operation"] = operation
    return fields


@contextmanager
def log_context(store: str | None = None, operation: str | None = None) -> Iterator[None]:
    """Scope the store/operation names attached to log records.

    Arguments left as None keep the value of the enclosing scope.
    """
    store_token = _store_var.set(store) if store is not None else None
    operation_token = _operation_var.set(operation) if operation is not None else None
    try:
        yield
    finally:
        if operation_token is not None:
            _operation_var.reset(operation_token)
        if store_token is not None:
            _store_var.reset(store_token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with scope fields and keyword extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(),
        }
        extra = getattr(record, "extra", None)
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(entry, default=str).decode("utf-8")


class ContextRichHandler(RichHandler):
    """Rich console handler that prefixes the level with ``store/operation``."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)
        scope = "/".join(_context_fields().values())
        if not scope:
            return level_text
        return Text.assemble(level_text, " ", (scope, "cyan"))


class ContextLogger:
    """Logger wrapper: scope fields and keyword arguments go into ``extra``."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, *args: Any, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {**_context_fields(), **fields}
        self._logger.log(level, msg, *args, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, *args, **fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, *args, **fields)

    def error(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.ERROR, msg, *args, **fields)


_configured = False


def setup_logging(
    log_level: str = DEFAULT_LEVEL,
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Configure the ``sqlcache`` logger hierarchy.

    Args:
        log_level: Level for the logger and its console handler.
        log_file: JSON-lines file receiving every record at or above log_level.
        console_output: Attach a rich handler on stderr.
    """
    global _configured

    level = getattr(logging, log_level.upper())
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        package_logger.addHandler(file_handler)

    if console_output:
        console_handler = ContextRichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        package_logger.addHandler(console_handler)

    package_logger.propagate = False

    # aiosqlite logs every queued call at debug
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> ContextLogger:
    """Context-aware logger under the ``sqlcache`` namespace.

    The first call configures logging at WARNING if setup_logging() has not
    run yet.
    """
    if not _configured:
        setup_logging()

    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"
    return ContextLogger(logging.getLogger(name))
