"""
UTC helpers. Columns store naive UTC datetimes, so everything written or compared
against them goes through utcnow().
"""
from datetime import datetime, date, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return utcnow().date()


def month_bounds(day: date):
    """Return (first instant of the month containing `day`, first instant of the next month)."""
    start = datetime(day.year, day.month, 1)
    if day.month == 12:
        end = datetime(day.year + 1, 1, 1)
    else:
        end = datetime(day.year, day.month + 1, 1)
    return start, end


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)
