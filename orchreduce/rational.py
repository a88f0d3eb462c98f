"""Exact rational time values.

Every position and duration in the package is a :class:`fractions.Fraction`
measured in quarter notes. ``Fraction`` already keeps itself in lowest terms
with a positive denominator and compares exactly, so this module only adds the
handful of operations the timeline and bar arithmetic need by name.
"""

import math
from fractions import Fraction

ZERO = Fraction(0)


def rational(numerator: int, denominator: int = 1) -> Fraction:
    """
    Build a reduced fraction.

    Raises:
        ZeroDivisionError: If ``denominator`` is zero.
    """
    return Fraction(numerator, denominator)


def is_zero(value: Fraction) -> bool:
    return value.numerator == 0


def to_whole(value: Fraction) -> int:
    """Truncate towards zero, e.g. ``7/2 -> 3`` and ``-7/2 -> -3``."""
    return math.trunc(value)


def remainder(dividend: Fraction, divisor: Fraction) -> Fraction:
    """Return ``dividend - floor(dividend / divisor) * divisor``."""
    quotient = Fraction(dividend) / divisor
    whole = to_whole(quotient)
    if whole > quotient:
        whole -= 1
    return dividend - whole * divisor


def from_quarter_length(value: float | Fraction | int) -> Fraction:
    """
    Convert a music21 offset or quarterLength to an exact fraction.

    music21 stores binary-exact values as floats and everything else (triplets
    and other tuplets) as ``Fraction``, so converting the float directly is
    lossless.
    """
    return Fraction(value)
