"""
JSON codec at the edge of the cache engine.

Values are converted to JSON text with orjson before they reach the store,
and parsed back into plain JSON structures on the way out. Turning that
structure into the caller's type is the caller's from_json function.

Only strict JSON is written: NaN, infinity and non-string object keys are
rejected rather than coerced, so every stored row parses back to what was
cached.

Both directions raise CodecError so the engine can treat every codec
failure the same way, whichever stage produced it.
"""

from __future__ import annotations

import dataclasses
import math
from typing import Any, Callable, TypeVar

import orjson
from pydantic import BaseModel

from remote_caching.exceptions import CodecError

T = TypeVar("T")

FromJson = Callable[[Any], T]
ToJson = Callable[[T], Any]


def _check_finite(obj: Any) -> Any:
    """Reject NaN and infinity, which orjson would silently write as null."""
    if isinstance(obj, float):
        if not math.isfinite(obj):
            raise ValueError(f"Out of range float values are not JSON compliant: {obj!r}")
    elif isinstance(obj, dict):
        for item in obj.values():
            _check_finite(item)
    elif isinstance(obj, (list, tuple)):
        for item in obj:
            _check_finite(item)
    elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        for field in dataclasses.fields(obj):
            _check_finite(getattr(obj, field.name))
    return obj


def _default(obj: Any) -> Any:
    """Fallback for types orjson does not serialize natively."""
    if isinstance(obj, BaseModel):
        return _check_finite(obj.model_dump(mode="json"))
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return _check_finite(to_json())
    if isinstance(obj, (set, frozenset)):
        return _check_finite(list(obj))
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def encode(value: Any, to_json: ToJson[Any] | None = None, key: str | None = None) -> str:
    """Encode a value to JSON text.

    Args:
        value: The value to encode.
        to_json: Optional conversion applied before serialization.
        key: Cache key, for error context only.

    Returns:
        JSON text.

    Raises:
        CodecError: If conversion or serialization fails.
    """
    try:
        payload = to_json(value) if to_json is not None else value
        return orjson.dumps(_check_finite(payload), default=_default).decode("utf-8")
    except Exception as e:
        raise CodecError(
            f"Serialization error: {e}",
            context={"stage": "encode", "key": key},
        ) from e


def decode_text(text: str, key: str | None = None) -> Any:
    """Parse JSON text into plain Python structures.

    Raises:
        CodecError: If the text is not valid JSON.
    """
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise CodecError(
            f"Deserialization error (json): {e}",
            context={"stage": "json_decode", "key": key},
        ) from e


def decode(text: str, from_json: FromJson[T], key: str | None = None) -> T:
    """Parse JSON text and convert it with the caller's from_json.

    Raises:
        CodecError: If either stage fails.
    """
    parsed = decode_text(text, key=key)
    try:
        return from_json(parsed)
    except Exception as e:
        raise CodecError(
            f"Deserialization error (from_json): {e}",
            context={"stage": "from_json", "key": key},
        ) from e


def identity(value: Any) -> Any:
    """from_json for values that are already plain JSON structures."""
    return value
