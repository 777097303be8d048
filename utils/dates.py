"""Calendar helpers for dashboard bucketing.

Timestamps are stored as naive UTC, so every boundary here is a UTC boundary.
"""
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt).replace(day=1)


def add_months(month_start: datetime, months: int) -> datetime:
    """Shift a first-of-month datetime by a (possibly negative) number of months."""
    index = month_start.year * 12 + (month_start.month - 1) + months
    return month_start.replace(year=index // 12, month=index % 12 + 1, day=1)


def day_window(now: datetime, offset: int = 0):
    """Return [start, end) of the calendar day `offset` days from `now`."""
    start = start_of_day(now) + timedelta(days=offset)
    return start, start + timedelta(days=1)


def month_window(now: datetime, offset: int = 0):
    """Return [start, end) of the calendar month `offset` months from `now`."""
    start = add_months(start_of_month(now), offset)
    return start, add_months(start, 1)


def format_display_date(dt: datetime) -> str:
    """Render like 'Oct 9, 2026'."""
    if dt is None:
        return ""
    return f"{dt:%b} {dt.day}, {dt.year}"


def format_month_label(dt: datetime) -> str:
    return f"{dt:%b} {dt.year}"
