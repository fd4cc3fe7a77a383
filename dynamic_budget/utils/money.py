"""Decimal helpers for monetary values"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def as_decimal(value: Number) -> Decimal:
    """Convert to Decimal without inheriting binary float noise"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    """Round to 2 decimal places, half-up"""
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
