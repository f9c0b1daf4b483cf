"""Value coercion shared by the filter, formula and aggregation code.

Row values arrive as loosely typed JSON: numbers may be strings, booleans may
be numbers, nested objects are already flattened. These helpers give every
widget the same reading of a cell.
"""

from __future__ import annotations

import json
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

PLACEHOLDER = "—"

_FLOAT_PREFIX_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INFINITY_RE = re.compile(r"^\s*([+-]?)Infinity")
_TWO_PLACES = Decimal("0.01")


def parse_float(value: Any) -> float | None:
    """Read a number the way ``parseFloat(String(value))`` does.

    The longest leading numeric prefix wins, so ``"12px"`` is ``12.0``;
    anything without one is ``None``.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) else number
    text = to_display_string(value)
    match = _FLOAT_PREFIX_RE.match(text)
    if match:
        return float(match.group(1))
    infinity = _INFINITY_RE.match(text)
    if infinity:
        return -math.inf if infinity.group(1) == "-" else math.inf
    return None


def coerce_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) else number
    if isinstance(value, str):
        return parse_float(value)
    return None


def to_display_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_display_string(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


def format_number(value: float, prefix: str | None = None, suffix: str | None = None) -> str:
    """Thousands separators, at most two decimals, half-up rounding."""
    if not math.isfinite(value):
        return PLACEHOLDER
    try:
        rounded = Decimal(repr(float(value))).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return PLACEHOLDER
    if rounded == rounded.to_integral_value():
        formatted = f"{int(rounded):,}"
    else:
        formatted = f"{rounded:,f}".rstrip("0").rstrip(".")
    if formatted == "-0":
        formatted = "0"
    return f"{prefix or ''}{formatted}{suffix or ''}"


def round_half_up(value: float, places: int = 2) -> float:
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    try:
        return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return value
