"""Payload encoding and decoding for the two wire formats.

``plain`` payloads carry a bare scalar (``1``, ``21.5``, ``true``).
``json`` payloads carry a compact object with a ``val`` field and, for echoed
input states, ``ack``.

Decoding inbound commands is total: whatever arrives, :func:`decode_command`
yields a definite boolean together with the rule that produced it.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

_LEADING_INT = re.compile(r"\s*[+-]?([0-9]+)")


class PayloadMode(StrEnum):
    PLAIN = "plain"
    JSON = "json"

    @classmethod
    def parse(cls, value: str | PayloadMode) -> PayloadMode:
        """Parse a configured payload mode; ``structured`` means ``json``."""
        if isinstance(value, PayloadMode):
            return value
        normalized = str(value).strip().lower()
        if normalized == "structured":
            return cls.JSON
        return cls(normalized)


class DecodeKind(StrEnum):
    STRUCTURED = "structured"
    LITERAL = "literal"
    NUMERIC = "numeric"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DecodedCommand:
    """Result of decoding an inbound command payload."""

    kind: DecodeKind
    value: bool

    @property
    def level(self) -> int:
        """Output level to write: ``1`` for true, ``0`` for false."""
        return 1 if self.value else 0


def _dumps(obj: dict[str, Any]) -> str:
    return json.dumps(obj, separators=(",", ":"))


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _loads(text: str) -> Any:
    # NaN and Infinity are not JSON.
    return json.loads(text, parse_constant=_reject_constant)


def format_number(value: float) -> str:
    """Render a reading the way it appears on the wire (``21`` not ``21.0``)."""
    number = float(value)
    if math.isfinite(number) and number.is_integer():
        return str(int(number))
    return repr(number)


def _wire_number(value: float) -> int | float:
    number = float(value)
    if math.isfinite(number) and number.is_integer():
        return int(number)
    return number


def _is_truthy(value: Any) -> bool:
    # Containers count as "set" even when empty.
    if isinstance(value, (dict, list)):
        return True
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def encode_input_state(raw: int | bool, mode: PayloadMode) -> str:
    """Encode a raw GPIO input level.

    The published state is the inverted level: a line pulled low reads as
    active.
    """
    active = not bool(raw)
    if mode is PayloadMode.JSON:
        return _dumps({"val": active, "ack": True})
    return "1" if active else "0"


def encode_sensor_reading(value: float, mode: PayloadMode) -> str:
    if mode is PayloadMode.JSON:
        return _dumps({"val": _wire_number(value)})
    return format_number(value)


def encode_connection_state(connected: bool, mode: PayloadMode) -> str:
    """Encode the testament payload published on connect and as last will."""
    if mode is PayloadMode.JSON:
        return _dumps({"val": bool(connected)})
    return "true" if connected else "false"


def _as_text(payload: Any) -> str | None:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, (bytes, bytearray)):
        try:
            return bytes(payload).decode("utf-8")
        except UnicodeDecodeError:
            return None
    return None


def decode_command(payload: Any) -> DecodedCommand:
    """Decode an inbound command payload into a boolean.

    Rules, first match wins:

    1. a JSON object with a ``val`` field -> truthiness of ``val``
    2. the literal text ``false`` or ``true``
    3. text starting with an integer -> nonzero means true
    4. any other text -> false
    5. non-text payloads -> their truthiness
    """
    text = _as_text(payload)

    if text is not None:
        try:
            parsed = _loads(text)
        except (ValueError, RecursionError):
            parsed = None
        if isinstance(parsed, dict) and "val" in parsed:
            return DecodedCommand(DecodeKind.STRUCTURED, _is_truthy(parsed["val"]))

        if text == "false":
            return DecodedCommand(DecodeKind.LITERAL, False)
        if text == "true":
            return DecodedCommand(DecodeKind.LITERAL, True)

        match = _LEADING_INT.match(text)
        if match is not None:
            # Nonzero check without int(); digit runs may exceed its conversion limit.
            return DecodedCommand(DecodeKind.NUMERIC, match.group(1).strip("0") != "")
        return DecodedCommand(DecodeKind.FALLBACK, False)

    try:
        value = _is_truthy(payload)
    except Exception:  # noqa: BLE001 - objects with a broken __bool__/__len__
        value = False
    return DecodedCommand(DecodeKind.FALLBACK, value)


def decode_value(payload: Any) -> bool | float | None:
    """Read back a published value (``val`` field or plain scalar).

    Returns ``None`` when the payload holds neither.
    """
    text = _as_text(payload)
    if text is None:
        return None
    try:
        parsed = _loads(text)
    except (ValueError, RecursionError):
        return None
    if isinstance(parsed, dict):
        parsed = parsed.get("val")
    if isinstance(parsed, bool):
        return parsed
    if isinstance(parsed, (int, float)):
        return float(parsed)
    return None
