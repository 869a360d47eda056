"""Tests for amount parsing."""

from decimal import Decimal

import pytest

from receiptflow.utils.amount_parser import parse_amount, round_money


def test_parse_numbers():
    """Test that JSON numbers keep their written value."""
    assert parse_amount(12) == Decimal("12")
    assert parse_amount(0.1) == Decimal("0.1")
    assert parse_amount(Decimal("3.50")) == Decimal("3.50")


def test_parse_amount_strings():
    """Test symbols, separators and parentheses."""
    assert parse_amount("123.45") == Decimal("123.45")
    assert parse_amount("£1,234.56") == Decimal("1234.56")
    assert parse_amount(" €9.99 ") == Decimal("9.99")
    assert parse_amount("(20.00)") == Decimal("-20.00")


@pytest.mark.parametrize("value", ["", "abc", "NaN", "Infinity", True, None, ["1"]])
def test_parse_invalid(value):
    """Test that unreadable and non-finite amounts raise ValueError."""
    with pytest.raises(ValueError):
        parse_amount(value)


def test_round_money_half_up():
    """Test rounding to cents."""
    assert round_money(Decimal("78.995")) == Decimal("79.00")
    assert round_money(Decimal("0.125")) == Decimal("0.13")
    assert round_money(Decimal("10")) == Decimal("10.00")


@pytest.mark.parametrize("value", ["1e30", 1e15, "-1000000000000", Decimal("1E+12")])
def test_parse_out_of_range(value):
    """Test that amounts too large to store are refused."""
    with pytest.raises(ValueError, match="out of range"):
        parse_amount(value)


def test_parse_largest_amount():
    assert parse_amount("999,999,999,999.99") == Decimal("999999999999.99")
