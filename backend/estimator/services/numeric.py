"""
Numeric coercion for user-typed line-item fields.

Every calculator reads its inputs through ``to_number`` so that partial,
blank or currency-formatted values degrade to 0 instead of raising.
"""

import math
import numbers
import re
from typing import Any

# Everything except digits, the decimal point and the minus sign
_NON_NUMERIC = re.compile(r"[^0-9.\-]+")
# Longest leading number, e.g. "12.5" out of "12.5.3" or "7" out of "7-2"
_LEADING_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def to_number(raw: Any) -> float:
    """
    Coerce ``raw`` into a finite float, defaulting to 0.0.

    Accepts numbers, numeric strings and formatted strings such as
    ``"$1,234.56"`` or ``"10%"``. ``None``, ``""``, non-numeric text and
    NaN/inf all return 0.0. Never raises.
    """
    if raw is None or raw == "":
        return 0.0

    if isinstance(raw, numbers.Real) and not isinstance(raw, bool):
        try:
            value = float(raw)
        except (TypeError, ValueError, OverflowError):
            return 0.0
        return value if math.isfinite(value) else 0.0

    try:
        text = _NON_NUMERIC.sub("", str(raw))
    except (TypeError, ValueError):
        return 0.0

    match = _LEADING_NUMBER.match(text)
    if not match:
        return 0.0

    try:
        value = float(match.group())
    except (ValueError, OverflowError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def to_count(raw: Any, default: float = 1.0) -> float:
    """Coerce a quantity/days field where a missing or zero value means ``default``."""
    return to_number(raw) or default


def finite_or_zero(value: float) -> float:
    """Clamp NaN/inf to 0.0 at a total boundary."""
    return value if math.isfinite(value) else 0.0
