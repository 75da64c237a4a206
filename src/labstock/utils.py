"""Utility functions for labstock."""

from datetime import date, datetime, time, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """
    Current time as a naive UTC datetime.

    All timestamps are stored naive-in-UTC so that SQLite compares them
    as plain strings in a single timezone.

    Returns:
        The current UTC time without tzinfo
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: Union[datetime, date]) -> datetime:
    """
    Normalize a date or datetime to a naive UTC datetime.

    Args:
        value: An aware datetime, a naive datetime (taken as UTC),
            or a date (taken as midnight UTC)

    Returns:
        A naive datetime in UTC

    Example:
        >>> to_utc_naive(date(2024, 12, 31))
        datetime.datetime(2024, 12, 31, 0, 0)
        >>> from datetime import timedelta
        >>> to_utc_naive(datetime(2024, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=2))))
        datetime.datetime(2024, 1, 1, 7, 0)
    """
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(value: str) -> datetime:
    """
    Parse a YYYY-MM-DD or ISO-8601 datetime string into naive UTC.

    Args:
        value: Date string as typed on the command line

    Returns:
        A naive datetime in UTC

    Raises:
        ValueError: If the string is not a valid ISO date or datetime

    Example:
        >>> parse_date("2025-01-15")
        datetime.datetime(2025, 1, 15, 0, 0)
    """
    value = value.strip()
    if not value:
        raise ValueError("Empty date string")
    try:
        return to_utc_naive(date.fromisoformat(value))
    except ValueError:
        return to_utc_naive(datetime.fromisoformat(value))


def days_between(start: datetime, end: Optional[datetime] = None) -> int:
    """
    Whole days from start to end (end defaults to now).

    Negative when end is before start.

    Example:
        >>> days_between(datetime(2025, 1, 1), datetime(2025, 1, 4, 12))
        3
    """
    end = end or utcnow()
    return (end.date() - start.date()).days
