"""
Timezone utilities.

All database timestamps are stored in UTC, timezone-naive.
"""

from datetime import datetime

import pytz

UTC_TZ = pytz.UTC


def utc_now() -> datetime:
    """Get current time in UTC (timezone-aware)."""
    return datetime.now(UTC_TZ)


def db_now() -> datetime:
    """Current UTC time, timezone-naive for database storage."""
    return utc_now().replace(tzinfo=None)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC for storage or comparison.

    Args:
        dt: Aware datetime in any timezone, or naive datetime already in UTC

    Returns:
        Timezone-naive datetime in UTC
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC_TZ).replace(tzinfo=None)
