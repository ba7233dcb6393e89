"""
Numeric helpers shared by every engine module.

Rounding is half-up at 2 decimals (0.125 -> 0.13, -0.125 -> -0.12), which
makes rounding idempotent on values that are already rounded.
"""

import math
from typing import Optional


def finite_or_zero(value: Optional[float]) -> float:
    """Missing, NaN and infinite values all read as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def round_currency(value: float) -> float:
    """Round a money amount to cents, half-up."""
    return math.floor(finite_or_zero(value) * 100 + 0.5) / 100


def round_percent(value: float) -> float:
    """Round a percentage to 2 decimals, half-up."""
    return math.floor(finite_or_zero(value) * 100 + 0.5) / 100
