from __future__ import annotations

import math
from collections.abc import Mapping
from decimal import Context, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")

# No bill carries amounts, rates or counts this large; such input is treated like garbage.
MAX_MAGNITUDE = Decimal("1e15")
MAX_COUNT = 10**15
MIN_EXPONENT = -15

# Rounding to rupees or paise happens here so totals of many lines never run out of digits.
ROUNDING_CONTEXT = Context(prec=60)

_FALSE_STRINGS = {"", "0", "false", "f", "no", "n", "off", "none", "null"}


def field(source: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping or an object, whichever ``source`` is."""
    if source is None:
        return default
    if isinstance(source, Mapping):
        value = source.get(name, default)
    else:
        value = getattr(source, name, default)
    return default if value is None else value


def _bounded(value: Decimal) -> Decimal:
    if not value.is_finite() or value.copy_abs() >= MAX_MAGNITUDE:
        return ZERO
    # Vanishingly small values would only underflow further down.
    return ZERO if not value or value.adjusted() < MIN_EXPONENT else value


def to_decimal(value: Any) -> Decimal:
    """Coerce form input to a finite, bounded Decimal, falling back to zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return _bounded(value)
    if isinstance(value, int):
        return Decimal(value) if abs(value) < MAX_COUNT else ZERO
    if isinstance(value, float):
        if not math.isfinite(value):
            return ZERO
        return _bounded(Decimal(str(value)))
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return ZERO
        return _bounded(parsed)
    return ZERO


def to_int(value: Any) -> int:
    """Integer parse that truncates decimals ("3.7" -> 3) and never raises."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if abs(value) < MAX_COUNT else 0
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            pass
        else:
            return parsed if abs(parsed) < MAX_COUNT else 0
    return int(to_decimal(value))


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)
