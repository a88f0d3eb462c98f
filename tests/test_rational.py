"""Unit tests for the exact time arithmetic helpers."""

import random
from fractions import Fraction

import pytest

from orchreduce.rational import ZERO, from_quarter_length, is_zero, rational, remainder, to_whole


def test_rational_reduces_to_lowest_terms() -> None:
    value = rational(6, 8)
    assert value.numerator == 3
    assert value.denominator == 4


def test_rational_moves_sign_to_numerator() -> None:
    assert rational(1, -2) == Fraction(-1, 2)
    assert rational(1, -2).denominator == 2


def test_rational_zero_denominator_raises() -> None:
    with pytest.raises(ZeroDivisionError):
        rational(1, 0)


def test_scaled_fractions_are_equal() -> None:
    rng = random.Random(7)
    for _ in range(200):
        n = rng.randint(-50, 50)
        d = rng.choice([i for i in range(-20, 21) if i != 0])
        k = rng.choice([i for i in range(-9, 10) if i != 0])
        assert rational(n, d) == rational(k * n, k * d)


def test_arithmetic_inverses() -> None:
    rng = random.Random(11)
    for _ in range(200):
        a = rational(rng.randint(-40, 40), rng.randint(1, 16))
        b = rational(rng.randint(1, 40), rng.randint(1, 16))
        assert a + b - b == a
        assert a * b / b == a


def test_ordering_matches_cross_multiplication() -> None:
    rng = random.Random(3)
    for _ in range(200):
        a, b = rng.randint(-30, 30), rng.randint(1, 12)
        c, d = rng.randint(-30, 30), rng.randint(1, 12)
        assert (rational(a, b) < rational(c, d)) == (a * d < c * b)


def test_is_zero() -> None:
    assert is_zero(ZERO)
    assert is_zero(rational(0, 5))
    assert not is_zero(rational(1, 1024))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Fraction(7, 2), 3),
        (Fraction(-7, 2), -3),
        (Fraction(4), 4),
        (Fraction(1, 3), 0),
    ],
)
def test_to_whole_truncates(value: Fraction, expected: int) -> None:
    assert to_whole(value) == expected


@pytest.mark.parametrize(
    ("dividend", "divisor", "expected"),
    [
        (Fraction(7, 2), Fraction(1), Fraction(1, 2)),
        (Fraction(9), Fraction(4), Fraction(1)),
        (Fraction(8), Fraction(4), ZERO),
        (Fraction(-1, 2), Fraction(1), Fraction(1, 2)),
        (Fraction(5), Fraction(3, 2), Fraction(1, 2)),
    ],
)
def test_remainder_is_floor_based(dividend: Fraction, divisor: Fraction, expected: Fraction) -> None:
    assert remainder(dividend, divisor) == expected


def test_from_quarter_length_is_exact() -> None:
    assert from_quarter_length(0.5) == Fraction(1, 2)
    assert from_quarter_length(0.375) == Fraction(3, 8)
    assert from_quarter_length(Fraction(1, 3)) == Fraction(1, 3)
    assert from_quarter_length(2) == Fraction(2)
