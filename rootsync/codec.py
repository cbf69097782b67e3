"""Wire codec for root object values.

Converts in-memory values into a JSON-compatible representation and back.
Values with no safe wire representation (callables, sets, arbitrary objects,
cyclic references) are encoded as an explicit "undefined" marker, member by
member, so encoding never fails.
"""

import json
import math
from collections.abc import Mapping, Sequence
from typing import Any

TYPE_FIELD = "$type"


class _Undefined:
    """Sentinel for a value that is present but has no defined value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()

UNDEFINED_MARKER = {TYPE_FIELD: "undefined"}

_NON_FINITE = {"nan": math.nan, "inf": math.inf, "-inf": -math.inf}


def _escape_key(key: str) -> str:
    # "$type" is reserved; user keys starting with "$" get one extra "$".
    if key.startswith("$"):
        return "$" + key
    return key


def _unescape_key(key: str) -> str:
    if key.startswith("$$"):
        return key[1:]
    return key


def _encode_float(value: float) -> Any:
    if math.isfinite(value):
        return value
    if math.isnan(value):
        label = "nan"
    else:
        label = "inf" if value > 0 else "-inf"
    return {TYPE_FIELD: "float", "value": label}


def _encode(value: Any, active: set[int]) -> Any:
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        return _encode_float(value)
    if value is UNDEFINED:
        return dict(UNDEFINED_MARKER)

    if isinstance(value, Mapping):
        if id(value) in active:
            return dict(UNDEFINED_MARKER)
        if not all(isinstance(k, str) for k in value.keys()):
            return dict(UNDEFINED_MARKER)
        active.add(id(value))
        try:
            return {_escape_key(k): _encode(v, active) for k, v in value.items()}
        finally:
            active.discard(id(value))

    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        if id(value) in active:
            return dict(UNDEFINED_MARKER)
        active.add(id(value))
        try:
            return [_encode(item, active) for item in value]
        finally:
            active.discard(id(value))

    return dict(UNDEFINED_MARKER)


def encode(value: Any) -> Any:
    """Encode a value into its wire representation.

    Args:
        value: Any in-memory value.

    Returns:
        A JSON-compatible value. Unrepresentable members are replaced by
        the undefined marker.
    """
    return _encode(value, set())


def decode(wire: Any) -> Any:
    """Decode a wire value produced by :func:`encode`.

    Args:
        wire: A JSON-compatible wire value.

    Returns:
        The decoded value, with undefined markers replaced by ``UNDEFINED``.
    """
    if isinstance(wire, dict):
        tag = wire.get(TYPE_FIELD)
        if tag == "undefined":
            return UNDEFINED
        if tag == "float":
            return _NON_FINITE[wire["value"]]
        if tag is not None:
            raise ValueError(f"Unknown wire type tag: {tag!r}")
        return {_unescape_key(k): decode(v) for k, v in wire.items()}
    if isinstance(wire, list):
        return [decode(item) for item in wire]
    return wire


class Codec:
    """Codec with a JSON text framing for transports that send strings."""

    def encode(self, value: Any) -> Any:
        return encode(value)

    def decode(self, wire: Any) -> Any:
        return decode(wire)

    def dumps(self, payload: Any) -> str:
        """Serialize an already-encoded payload as compact JSON text."""
        return json.dumps(payload, separators=(",", ":"), allow_nan=False)

    def loads(self, text: str | bytes) -> Any:
        """Parse JSON text into a payload (not decoded)."""
        return json.loads(text)
