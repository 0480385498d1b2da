"""Time utilities for UTC handling."""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime read from the database to aware UTC.

    SQLite drops tzinfo on round trip; naive values are stored in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_today() -> date:
    """Current calendar date in UTC."""
    return utcnow().date()
