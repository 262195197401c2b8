"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes.

    Some drivers (SQLite) return ``DateTime(timezone=True)`` columns
    without tzinfo; all stored values are written in UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def start_of_day(value: datetime) -> datetime:
    """Midnight UTC of the given moment's day."""
    value = ensure_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(value: datetime) -> datetime:
    """Monday midnight UTC of the given moment's week."""
    day = start_of_day(value)
    return day - timedelta(days=day.weekday())


def start_of_month(value: datetime) -> datetime:
    """First day of the month, midnight UTC."""
    return start_of_day(value).replace(day=1)


def weekday_name(value: datetime) -> str:
    """Lowercase English weekday name (``monday`` .. ``sunday``)."""
    return ensure_utc(value).strftime("%A").lower()


def count_working_days(start: datetime, end: datetime) -> int:
    """
    Count Monday-Friday days after ``start`` up to and including ``end``.

    The activation day itself never counts.
    """
    first = start_of_day(start)
    last = start_of_day(end)
    if last <= first:
        return 0

    total_days = (last - first).days
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * 5
    weekday = first.weekday()
    for offset in range(1, remainder + 1):
        if (weekday + offset) % 7 < 5:
            count += 1
    return count
