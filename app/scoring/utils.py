"""
Decimal Utilities
app/scoring/utils.py

Provides precision-safe decimal math for scoring calculations.
All rounding is ROUND_HALF_UP on the decimal representation of the input,
so 2.675 rounds to 2.68 (binary floats would give 2.67).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Union

Number = Union[int, float, str, Decimal]

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal via its string form (no binary noise)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Number, places: int = 2) -> Decimal:
    """Round to ``places`` decimals, halves away from zero."""
    return to_decimal(value).quantize(Decimal(10) ** -places, rounding=ROUND_HALF_UP)


def mean(values: Iterable[Number]) -> Decimal:
    """
    Arithmetic mean, unrounded.

    Returns Decimal("0") for an empty input.
    """
    items: List[Decimal] = [to_decimal(v) for v in values]
    if not items:
        return Decimal("0")
    return sum(items, Decimal("0")) / Decimal(len(items))


def weighted_sum(values: List[Decimal], weights: List[Decimal]) -> Decimal:
    """
    Calculate weighted sum.

    Formula: Σ(value_i × weight_i)
    """
    if len(values) != len(weights):
        raise ValueError("values and weights must have same length")
    return sum((v * w for v, w in zip(values, weights)), Decimal("0"))


def within(value: Number, lower: Number, upper: Number) -> bool:
    """Inclusive range check on Decimal representations."""
    d = to_decimal(value)
    if not d.is_finite():
        return False
    return to_decimal(lower) <= d <= to_decimal(upper)
