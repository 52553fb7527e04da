"""Datetime utilities for persistence layer."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Server-assigned timestamp for appended records."""
    return datetime.now(timezone.utc)


def normalize_to_utc(dt: datetime) -> datetime:
    """Ensure datetime is UTC and timezone-aware.

    SQLite drops timezone info on the way in, so values read back are
    naive and are treated as UTC.

    Args:
        dt: datetime to process

    Returns:
        timezone-aware datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
