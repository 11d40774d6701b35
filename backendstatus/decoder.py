"""
Update decoder.

Turns one raw datagram payload into an Update. The proxy plugin sends a
compact JSON object per datagram, with single-letter keys because the
field names repeat in every packet:

    {"I": 17, "B": "10.0.0.1:80", "C": 1, "U": "/index.html?x=1"}
    {"I": 17, "B": "10.0.0.1:80", "C": 2, "T": 0.25, "R": 200}

Keys the sender leaves out take zero values. Only the shape is checked
here; the kind code is interpreted when the update is applied.
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict

from backendstatus.models import Update


class DecodeError(ValueError):
    """Raised when a datagram cannot be turned into an Update."""


def _int_field(raw: Dict[str, Any], key: str) -> int:
    value = raw.get(key, 0)
    # bool is an int subclass, but never a valid id/code
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"field {key!r} must be an integer, got {value!r}")
    return value


def _float_field(raw: Dict[str, Any], key: str) -> float:
    value = raw.get(key, 0.0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"field {key!r} must be a number, got {value!r}")
    try:
        value = float(value)
    except OverflowError:
        raise DecodeError(f"field {key!r} is out of range") from None
    # the egress document is strict JSON, which has no NaN or Infinity
    if not math.isfinite(value):
        raise DecodeError(f"field {key!r} must be finite, got {value!r}")
    return value


def _str_field(raw: Dict[str, Any], key: str) -> str:
    value = raw.get(key, "")
    if not isinstance(value, str):
        raise DecodeError(f"field {key!r} must be a string, got {value!r}")
    return value


def decode_update(payload: bytes) -> Update:
    """
    Decode a datagram payload.

    Raises:
        DecodeError: if the payload is not a JSON object of the expected
            shape, or has no backend.
    """
    try:
        raw = json.loads(payload.decode("utf-8"))
    except (ValueError, RecursionError) as exc:
        # covers bad UTF-8, bad JSON, over-long integers and deep nesting
        raise DecodeError(f"failed to parse JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise DecodeError(f"expected a JSON object, got {type(raw).__name__}")

    backend = _str_field(raw, "B")
    if not backend:
        raise DecodeError("invalid structure, no B value")

    return Update(
        request_id=_int_field(raw, "I"),
        backend=backend,
        kind=_int_field(raw, "C"),
        elapsed=_float_field(raw, "T"),
        status=_int_field(raw, "R"),
        uri=_str_field(raw, "U"),
    )
