"""
Value codecs for cache payloads.

A store writes every value through a Serializer, a named pair of
``dumps(value) -> bytes`` / ``loads(bytes) -> value`` functions. Three named
codecs ship with the package:

- ``msgpack``: compact binary object codec (default)
- ``cbor``: RFC 8949 binary object codec
- ``json``: orjson-encoded UTF-8 JSON

Callers may also pass their own pair, either as an object exposing
``serialize`` and ``deserialize`` callables or as a two-tuple.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import cbor2
import msgpack
import orjson

from sqlcache.exceptions import (
    ConfigurationError,
    DeserializationError,
    SerializationError,
)


class SerializerName(str, Enum):
    """Named codecs available by selector string."""

    MSGPACK = "msgpack"
    CBOR = "cbor"
    JSON = "json"


@dataclass(frozen=True)
class Serializer:
    """A named encode/decode function pair.

    Any exception raised by the underlying functions is re-raised as
    SerializationError or DeserializationError.
    """

    name: str
    dumps: Callable[[Any], bytes]
    loads: Callable[[bytes], Any]

    def serialize(self, value: Any) -> bytes:
        try:
            payload = self.dumps(value)
        except Exception as e:
            raise SerializationError(
                f"Failed to serialize value with {self.name}: {e}",
                context={"serializer": self.name, "type": type(value).__name__},
            ) from e
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise SerializationError(
                f"Serializer {self.name} returned {type(payload).__name__}, expected bytes",
                context={"serializer": self.name},
            )
        return bytes(payload)

    def deserialize(self, payload: bytes) -> Any:
        try:
            return self.loads(payload)
        except Exception as e:
            raise DeserializationError(
                f"Failed to deserialize payload with {self.name}: {e}",
                context={"serializer": self.name, "size": len(payload)},
            ) from e


def _msgpack_dumps(value: Any) -> bytes:
    return bytes(msgpack.packb(value, use_bin_type=True))


def _msgpack_loads(payload: bytes) -> Any:
    return msgpack.unpackb(payload, raw=False)


MSGPACK = Serializer(name=SerializerName.MSGPACK.value, dumps=_msgpack_dumps, loads=_msgpack_loads)
CBOR = Serializer(name=SerializerName.CBOR.value, dumps=cbor2.dumps, loads=cbor2.loads)
JSON = Serializer(name=SerializerName.JSON.value, dumps=orjson.dumps, loads=orjson.loads)

_NAMED: dict[str, Serializer] = {
    SerializerName.MSGPACK.value: MSGPACK,
    SerializerName.CBOR.value: CBOR,
    SerializerName.JSON.value: JSON,
}


def resolve_serializer(selector: Any = SerializerName.MSGPACK) -> Serializer:
    """Resolve a serializer selector into a Serializer.

    Args:
        selector: A codec name ("msgpack", "cbor", "json"), a SerializerName, a
            Serializer, a (serialize, deserialize) tuple, or any object with
            callable ``serialize`` and ``deserialize`` attributes.

    Returns:
        The matching Serializer.

    Raises:
        ConfigurationError: If the name is unknown or the custom pair is
            incomplete.
    """
    if isinstance(selector, Serializer):
        return selector

    if isinstance(selector, SerializerName):
        return _NAMED[selector.value]

    if isinstance(selector, str):
        try:
            return _NAMED[selector.strip().lower()]
        except KeyError:
            raise ConfigurationError(
                f"Unknown serializer {selector!r}",
                context={"available": sorted(_NAMED)},
            ) from None

    if isinstance(selector, tuple):
        if len(selector) != 2 or not all(callable(fn) for fn in selector):
            raise ConfigurationError(
                "Custom serializer tuple must be (serialize, deserialize)"
            )
        dumps, loads = selector
        return Serializer(name="custom", dumps=dumps, loads=loads)

    dumps = getattr(selector, "serialize", None)
    loads = getattr(selector, "deserialize", None)
    if callable(dumps) and callable(loads):
        name = getattr(selector, "name", None) or type(selector).__name__
        return Serializer(name=str(name), dumps=dumps, loads=loads)

    raise ConfigurationError(
        "Serializer must be a codec name or provide serialize/deserialize",
        context={"type": type(selector).__name__},
    )
