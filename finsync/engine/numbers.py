"""
Numeric coercion and rounding shared by validation, derivation and totals.

All money rounding is "round half away from zero to 2 decimal places",
done in Decimal on the shortest decimal representation of the float so
that 1.005 rounds to 1.01 rather than drifting with binary error.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Optional

TWO_PLACES = Decimal("0.01")

# Enough digits for the largest finite float (about 309) plus the cents
QUANTIZE_PRECISION = 400


def round2(value: Any) -> float:
    """Round half away from zero to 2 decimals. Non-finite input becomes 0."""
    number = float(value)
    if not math.isfinite(number):
        return 0.0
    with localcontext() as ctx:
        ctx.prec = QUANTIZE_PRECISION
        rounded = Decimal(repr(number)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    # Adding 0.0 turns -0.0 into 0.0
    return float(rounded) + 0.0


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a user or wire value as a finite number.

    Returns None when the value is empty (None or blank string).
    Raises ValueError when the value is present but not numeric.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, Decimal):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # float() accepts digit separators, the wire format does not
        if "_" in text:
            raise ValueError(f"Not a number: {value!r}")
        number = float(text)
    else:
        raise ValueError(f"Not a number: {value!r}")

    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def to_number(value: Any, default: float = 0.0) -> float:
    """
    Lenient coercion: the number, or `default` when the value is empty,
    non-numeric or zero-like garbage.

    Mirrors "number or default" semantics used for totals and derivations.
    """
    try:
        number = parse_number(value)
    except (TypeError, ValueError):
        return default
    if number is None:
        return default
    return number
