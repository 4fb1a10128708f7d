"""
Datetime utility functions.
Provides timezone-aware replacements for naive datetime handling.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are assumed to already be UTC (this is how SQLite hands
    back DateTime(timezone=True) columns). Aware values in another zone are
    converted.

    Args:
        value: Datetime to normalize, or None

    Returns:
        Aware UTC datetime, or None if value was None

    Examples:
        >>> ensure_utc(datetime(2026, 1, 21, 18, 30)).tzinfo
        <UTC>
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)
