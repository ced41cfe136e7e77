"""Codec-directed conversion between cached values and bytes."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set, Type

from .errors import CacheSerializationError

logger = logging.getLogger(__name__)


class Codec(ABC):
    """
    Converts values of one type to and from a JSON-compatible structure.

    Register a codec with Serializer.register() or pass it directly to a
    cache call for types the serializer does not know.
    """

    @abstractmethod
    def to_structured(self, value: Any) -> Any:
        """Return a structure made of dicts, lists, str, int, float, bool and None."""

    @abstractmethod
    def from_structured(self, data: Any) -> Any:
        """Rebuild a value from the structure produced by to_structured()."""


class Serializable(ABC):
    """Mixin for value types that know how to cache themselves."""

    @abstractmethod
    def to_cache(self) -> Any:
        """Return a JSON-compatible structure describing this object."""

    @classmethod
    @abstractmethod
    def from_cache(cls, data: Any) -> "Serializable":
        """Rebuild an instance from the structure returned by to_cache()."""


class Serializer:
    """
    Encodes values to bytes and decodes them back to a requested type.

    str is stored as UTF-8; int, float and bool as their text form (bool as
    ``true``/``false``); dict and list as compact JSON whose contents are
    checked so nothing is silently coerced. Any other type needs a Codec or
    must subclass Serializable. Decoding always requires the target type.
    """

    def __init__(self):
        self._codecs: Dict[type, Codec] = {}

    def register(self, value_type: type, codec: Codec) -> None:
        """Register codec for value_type and its subclasses."""
        self._codecs[value_type] = codec
        logger.debug(f"Registered cache codec for {value_type.__name__}")

    def unregister(self, value_type: type) -> None:
        self._codecs.pop(value_type, None)

    def find_codec(self, value_type: type) -> Optional[Codec]:
        for klass in getattr(value_type, "__mro__", (value_type,)):
            codec = self._codecs.get(klass)
            if codec is not None:
                return codec
        return None

    def encode(self, value: Any, codec: Optional[Codec] = None) -> bytes:
        """
        Encode value to bytes.

        Raises:
            CacheSerializationError: If value has no supported encoding
        """
        value_type = type(value)
        codec = codec or self.find_codec(value_type)

        if codec is not None:
            try:
                structured = codec.to_structured(value)
            except Exception as e:
                raise CacheSerializationError(
                    f"Codec failed to encode {value_type.__name__}: {e}",
                    value_type=value_type,
                    cause=e,
                )
            return self._dump_json(structured, value_type)

        if isinstance(value, Serializable):
            try:
                structured = value.to_cache()
            except Exception as e:
                raise CacheSerializationError(
                    f"{value_type.__name__}.to_cache() failed: {e}",
                    value_type=value_type,
                    cause=e,
                )
            return self._dump_json(structured, value_type)

        # Exact types only; subclasses such as IntEnum need a codec
        if value_type is str:
            return value.encode("utf-8")
        if value_type is bool:
            return b"true" if value else b"false"
        if value_type is int:
            return str(value).encode("utf-8")
        if value_type is float:
            return repr(value).encode("utf-8")
        if value_type in (dict, list):
            return self._dump_json(value, value_type)

        raise CacheSerializationError(
            f"No serializer for type {value_type.__name__}; register a Codec "
            f"or subclass Serializable",
            value_type=value_type,
        )

    def decode(self, payload: bytes, value_type: Type, codec: Optional[Codec] = None) -> Any:
        """
        Decode payload into an instance of value_type.

        Raises:
            CacheSerializationError: If payload is malformed for value_type or
                value_type has no supported decoding
        """
        codec = codec or self.find_codec(value_type)

        if codec is not None:
            structured = self._load_json(payload, value_type)
            try:
                return codec.from_structured(structured)
            except Exception as e:
                raise CacheSerializationError(
                    f"Codec failed to decode {value_type.__name__}: {e}",
                    value_type=value_type,
                    cause=e,
                )

        if isinstance(value_type, type) and issubclass(value_type, Serializable):
            structured = self._load_json(payload, value_type)
            try:
                return value_type.from_cache(structured)
            except Exception as e:
                raise CacheSerializationError(
                    f"{value_type.__name__}.from_cache() failed: {e}",
                    value_type=value_type,
                    cause=e,
                )

        if value_type is str:
            return self._decode_text(payload, value_type)
        if value_type is bool:
            text = self._decode_text(payload, value_type)
            if text == "true":
                return True
            if text == "false":
                return False
            raise CacheSerializationError(
                f"Invalid bool payload: {text!r}", value_type=value_type
            )
        if value_type in (int, float):
            text = self._decode_text(payload, value_type)
            try:
                return value_type(text)
            except ValueError as e:
                raise CacheSerializationError(
                    f"Invalid {value_type.__name__} payload: {text!r}",
                    value_type=value_type,
                    cause=e,
                )
        if value_type in (dict, list):
            data = self._load_json(payload, value_type)
            if not isinstance(data, value_type):
                raise CacheSerializationError(
                    f"Expected {value_type.__name__} payload, got {type(data).__name__}",
                    value_type=value_type,
                )
            return data

        raise CacheSerializationError(
            f"No deserializer for type {getattr(value_type, '__name__', value_type)}; "
            f"register a Codec or subclass Serializable",
            value_type=value_type,
        )

    def _dump_json(self, structured: Any, value_type: type) -> bytes:
        try:
            _check_json_compatible(structured, value_type, "value", set())
            return json.dumps(structured, separators=(",", ":"), allow_nan=False).encode("utf-8")
        except (ValueError, RecursionError) as e:
            raise CacheSerializationError(
                f"Failed to serialize {value_type.__name__} to JSON: {e}",
                value_type=value_type,
                cause=e,
            )

    def _load_json(self, payload: bytes, value_type: type) -> Any:
        text = self._decode_text(payload, value_type)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CacheSerializationError(
                f"Malformed JSON payload for {getattr(value_type, '__name__', value_type)}: {e}",
                value_type=value_type,
                cause=e,
            )

    def _decode_text(self, payload: bytes, value_type: type) -> str:
        try:
            return bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise CacheSerializationError(
                f"Payload is not valid UTF-8: {e}", value_type=value_type, cause=e
            )


def _check_json_compatible(value: Any, value_type: type, path: str, seen: Set[int]) -> None:
    """Reject anything json.dumps would coerce, including cycles."""
    kind = type(value)
    if value is None or kind in (str, bool, int, float):
        return
    if kind not in (list, dict):
        raise CacheSerializationError(
            f"Unsupported type {kind.__name__} at {path}", value_type=value_type
        )

    if id(value) in seen:
        raise CacheSerializationError(f"Circular reference at {path}", value_type=value_type)
    seen.add(id(value))

    if kind is list:
        for index, item in enumerate(value):
            _check_json_compatible(item, value_type, f"{path}[{index}]", seen)
    else:
        for key, item in value.items():
            if type(key) is not str:
                raise CacheSerializationError(
                    f"Non-string mapping key {key!r} at {path}", value_type=value_type
                )
            _check_json_compatible(item, value_type, f"{path}.{key}", seen)

    # Siblings may share a container; only the current path counts as a cycle
    seen.discard(id(value))
