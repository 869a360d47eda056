"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re
from typing import Any

CENT = Decimal("0.01")
# Amount columns hold 12 integer digits
MAX_AMOUNT = Decimal("1000000000000")


def parse_amount(value: Any) -> Decimal:
    """Parse a monetary value into a Decimal.

    Extraction payloads carry amounts as JSON numbers or as strings the model
    copied off the receipt, so both are accepted:
    - 123.45 / 123 (numbers)
    - "123.45", "£123.45", "1,234.56"
    - "(123.45)" (negative in parentheses)

    Args:
        value: Number or amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If the value cannot be parsed or is out of range
    """
    if isinstance(value, bool):
        raise ValueError(f"Could not parse amount '{value}'")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        # str() keeps the shortest repr, so 0.1 stays 0.1 rather than its binary expansion
        amount = Decimal(str(value))
    elif isinstance(value, str):
        amount = _parse_amount_string(value)
    else:
        raise ValueError(f"Could not parse amount '{value}'")

    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number, got '{value}'")
    if not in_amount_range(amount):
        raise ValueError(f"Amount out of range, got '{value}'")
    return amount


def _parse_amount_string(amount_str: str) -> Decimal:
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols and thousands separators
    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e!r}")
    return -amount if is_negative else amount


def round_money(amount: Decimal) -> Decimal:
    """Round an amount to whole cents, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def in_amount_range(amount: Decimal) -> bool:
    """Check that an amount fits the stored precision (below 10^12 either way)."""
    return abs(amount) < MAX_AMOUNT
