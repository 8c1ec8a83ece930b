"""Validation and coercion utilities for user-entered values."""

import math
from typing import Any


def coerce_number(value: Any) -> int | float:
    """
    Coerce a user-entered numeric value, treating anything unusable as zero.

    Accepts ints, floats and numeric strings ("10", " 2.5 "). Booleans,
    None, blanks, NaN/inf, negatives and non-numeric strings all become 0.

    Args:
        value: Raw value from a form, payload or stored document

    Returns:
        An int when the value is integral, a float otherwise
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            number = int(stripped)
        except ValueError:
            try:
                number = float(stripped)
            except ValueError:
                return 0
    else:
        return 0

    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number) or number < 0:
            return 0
        if number.is_integer():
            return int(number)
    return number if number >= 0 else 0


def is_blank(value: Any) -> bool:
    """Check whether a value is None or an empty/whitespace-only string."""
    return value is None or (isinstance(value, str) and not value.strip())
