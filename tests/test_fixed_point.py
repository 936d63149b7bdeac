"""Tests for fixed-point arithmetic module."""

from __future__ import annotations

from decimal import Decimal

import pytest

from src.accounting.errors import DivisionByZero, InvalidAmount
from src.accounting.fixed_point import FixedPoint, raw_to_decimal

E18 = 10**18


def test_raw_to_decimal_one_ether() -> None:
    """Test 1e18 wei converts to exactly one."""
    assert raw_to_decimal(E18) == FixedPoint.from_int(1)
    assert str(raw_to_decimal(E18)) == "1"


def test_raw_to_decimal_smallest_unit() -> None:
    """Test a single wei keeps all 18 fractional digits."""
    assert str(raw_to_decimal(1)) == "0.000000000000000001"


def test_raw_to_decimal_uint256_max_is_exact() -> None:
    """Test the largest uint256 converts without precision loss."""
    raw = 2**256 - 1
    assert raw_to_decimal(raw).scaled == raw


def test_raw_to_decimal_six_decimals() -> None:
    """Test conversion with non-default decimals."""
    assert raw_to_decimal(1_500_000, 6) == FixedPoint.from_string("1.5")


def test_raw_to_decimal_more_than_eighteen_decimals_truncates() -> None:
    """Test assets with more than 18 decimals truncate to the fixed scale."""
    assert raw_to_decimal(199, 20) == FixedPoint(1)


def test_raw_to_decimal_negative_raises() -> None:
    """Test negative raw amounts are rejected."""
    with pytest.raises(InvalidAmount, match="non-negative"):
        raw_to_decimal(-1)


def test_invalid_amount_is_value_error() -> None:
    """Test InvalidAmount can be caught as ValueError."""
    with pytest.raises(ValueError):
        raw_to_decimal(5, -1)


def test_addition_and_subtraction_are_exact() -> None:
    """Test add/sub do not drift over many small steps."""
    total = FixedPoint.zero()
    step = FixedPoint.from_string("0.1")
    for _ in range(10):
        total += step
    assert total == FixedPoint.from_int(1)
    assert total - step * 10 == FixedPoint.zero()


def test_multiplication() -> None:
    """Test fixed-point multiplication."""
    assert FixedPoint.from_string("0.1") * FixedPoint.from_int(100) == FixedPoint.from_int(10)
    assert FixedPoint.from_string("1.5") * 2 == FixedPoint.from_int(3)


def test_division_truncates_toward_zero() -> None:
    """Test division truncates at the 18th digit for both signs."""
    third = FixedPoint.from_int(1) / FixedPoint.from_int(3)
    assert str(third) == "0.333333333333333333"
    assert str(FixedPoint.from_int(-1) / FixedPoint.from_int(3)) == "-0.333333333333333333"
    assert str(FixedPoint.from_int(2) / FixedPoint.from_int(3)) == "0.666666666666666666"


def test_division_by_zero_raises() -> None:
    """Test dividing by zero raises instead of returning a sentinel."""
    with pytest.raises(DivisionByZero):
        FixedPoint.from_int(1) / FixedPoint.zero()
    with pytest.raises(ZeroDivisionError):
        FixedPoint.from_int(1) / 0


def test_comparisons() -> None:
    """Test ordering and equality, including against ints."""
    tiny = FixedPoint(1)
    assert FixedPoint.zero() < tiny
    assert tiny > FixedPoint.zero()
    assert FixedPoint.from_int(5) == 5
    assert FixedPoint.from_string("-0.5") < 0
    assert max(FixedPoint.from_int(2), FixedPoint.from_string("2.5")) == FixedPoint.from_string("2.5")


def test_hash_agrees_with_int_equality() -> None:
    """Test values equal to an int hash like it and dedupe in sets."""
    assert hash(FixedPoint.from_int(1)) == hash(1)
    assert hash(FixedPoint.from_int(-7)) == hash(-7)
    assert len({FixedPoint.from_int(2), 2}) == 1
    assert hash(FixedPoint.from_string("0.5")) == hash(FixedPoint.from_string("0.50"))


def test_from_string_canonical_forms() -> None:
    """Test parsing and rendering of canonical decimal strings."""
    for text in ["0", "1", "-2", "12.5", "0.000000000000000001", "-3.14159"]:
        assert str(FixedPoint.from_string(text)) == text
    assert str(FixedPoint.from_string("1.50")) == "1.5"
    assert str(FixedPoint.from_string("-.5")) == "-0.5"


@pytest.mark.parametrize("text", ["", "abc", "1e5", "1.2.3", "-"])
def test_from_string_invalid(text: str) -> None:
    """Test non-decimal text is rejected."""
    with pytest.raises(InvalidAmount):
        FixedPoint.from_string(text)


def test_to_decimal() -> None:
    """Test conversion to decimal.Decimal."""
    assert FixedPoint.from_string("1.5").to_decimal() == Decimal("1.5")


def test_truthiness_and_zero() -> None:
    """Test zero is falsy and is_zero agrees."""
    assert not FixedPoint.zero()
    assert FixedPoint.zero().is_zero()
    assert FixedPoint(1)


def test_rejects_float() -> None:
    """Test floats cannot sneak into the scaled representation."""
    with pytest.raises(TypeError):
        FixedPoint(1.5)  # type: ignore[arg-type]
