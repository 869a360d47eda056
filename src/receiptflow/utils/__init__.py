"""Utility functions for receiptflow."""

from receiptflow.utils.date_parser import parse_date, get_date_range
from receiptflow.utils.amount_parser import parse_amount, round_money
from receiptflow.utils.clock import utc_now

__all__ = ["parse_date", "get_date_range", "parse_amount", "round_money", "utc_now"]
