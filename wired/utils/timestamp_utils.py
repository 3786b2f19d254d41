"""
Timestamp utilities for consistent time handling across the system.
"""

import time
from datetime import datetime, timedelta
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def to_seconds_str(timestamp: Optional[float] = None) -> str:
    """Convert timestamp to seconds string format.

    Args:
        timestamp: Unix timestamp in seconds (optional, uses current time if None)

    Returns:
        Seconds timestamp as string
    """
    if timestamp is None:
        timestamp = time.time()
    return str(int(timestamp))


def to_datetime(timestamp: Optional[float] = None) -> datetime:
    """Convert timestamp to datetime object.

    Args:
        timestamp: Unix timestamp in seconds (optional, uses current time if None)

    Returns:
        datetime object
    """
    if timestamp is None:
        timestamp = time.time()
    return datetime.fromtimestamp(timestamp)


def as_local(moment: datetime) -> datetime:
    """Naive local-time view of ``moment``; timezone-aware values are converted, naive ones kept."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if ``earlier`` is in the future)."""
    return (as_local(later) - as_local(earlier)).total_seconds() / SECONDS_PER_DAY


def days_before(moment: datetime, days: float) -> datetime:
    """Return the datetime ``days`` (fractional) before ``moment``."""
    return as_local(moment) - timedelta(seconds=days * SECONDS_PER_DAY)
