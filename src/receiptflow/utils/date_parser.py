"""Date parsing utilities."""

from datetime import date, datetime, timedelta
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

PERIODS = ("this-week", "last-week", "this-month", "last-month", "this-year", "last-year")


def parse_date(value: Any, today: Optional[date] = None) -> date:
    """Parse a date value into a date object.

    Supports:
    - date / datetime instances (datetimes are truncated)
    - Absolute dates: "2024-01-15", "15/01/2024", "January 15, 2024"
    - Relative dates: "today", "yesterday", "this week", "last month", ...

    Args:
        value: Date value in one of the forms above
        today: Reference date for relative forms (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Could not parse date '{value}'")

    date_str = value.strip().lower()
    today = today or date.today()

    relative = _relative_date(date_str, today)
    if relative is not None:
        return relative

    try:
        # Receipts outside the US print day first
        return date_parser.parse(date_str, dayfirst=not _looks_iso(date_str)).date()
    except (ValueError, OverflowError, TypeError) as e:
        raise ValueError(f"Could not parse date '{value}': {e}")


def _looks_iso(date_str: str) -> bool:
    return len(date_str) >= 4 and date_str[:4].isdigit()


def _relative_date(date_str: str, today: date) -> Optional[date]:
    if date_str == "today":
        return today
    if date_str == "yesterday":
        return today - timedelta(days=1)
    if date_str == "tomorrow":
        return today + timedelta(days=1)

    prefix, _, period = date_str.partition(" ")
    if prefix not in ("last", "this") or period not in ("week", "month", "year"):
        return None
    start, _ = get_date_range(f"{prefix}-{period}", today=today)
    return start


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a named period.

    Args:
        period: One of this-week, last-week, this-month, last-month, this-year, last-year
        today: Reference date (defaults to today)

    Returns:
        Tuple of (start_date, end_date) for the period

    Raises:
        ValueError: If the period is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "this-week":
        return today - timedelta(days=today.weekday()), today
    if period == "last-week":
        start = today - timedelta(days=today.weekday() + 7)
        return start, start + timedelta(days=6)
    if period == "this-month":
        return today.replace(day=1), today
    if period == "last-month":
        first_of_month = today.replace(day=1)
        return first_of_month - relativedelta(months=1), first_of_month - timedelta(days=1)
    if period == "this-year":
        return today.replace(month=1, day=1), today
    if period == "last-year":
        first_of_year = today.replace(month=1, day=1)
        return first_of_year - relativedelta(years=1), first_of_year - timedelta(days=1)

    raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")
