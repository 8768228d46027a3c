"""Conversion between decimal currency amounts and integer minor units"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Decimal amount -> integer cents (half-up at the third decimal)"""
    return int((Decimal(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: Union[int, float]) -> Decimal:
    """
    Integer (or fractional, for averages) cents -> currency-precision Decimal.

    Example:
        33334 -> Decimal("333.34")
        1666.666 -> Decimal("16.67")
    """
    return (Decimal(str(cents)) / 100).quantize(CENT, rounding=ROUND_HALF_UP)
