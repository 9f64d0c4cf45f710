"""
zapvault - Vault math

Integer mul-div with explicit rounding direction. Deposits round down and
withdrawals round up so neither direction ever pays out more than the vault
holds.
"""

from enum import Enum


class Rounding(Enum):
    FLOOR = "floor"
    CEIL = "ceil"


def mul_div(x: int, y: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """
    Compute x * y / denominator on unbounded ints.

    Examples:
        >>> mul_div(10, 30, 20)
        15
        >>> mul_div(7, 3, 2, Rounding.CEIL)
        11
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    if x < 0 or y < 0 or denominator < 0:
        raise ValueError("mul_div operands must be non-negative")
    quotient, remainder = divmod(x * y, denominator)
    if rounding == Rounding.CEIL and remainder:
        quotient += 1
    return quotient
