"""Clock helpers."""

from datetime import datetime, UTC


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime.

    SQLite drops tzinfo on round-trip, so every stored timestamp is naive UTC.
    """
    return datetime.now(UTC).replace(tzinfo=None)
