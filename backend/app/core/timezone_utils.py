"""
Timezone utilities for the tutoring platform.

All instants are stored and compared in UTC. ``Clock`` is the injectable
time source used by the booking services and the completion sweep.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are treated as UTC (SQLite returns naive datetimes for
    timezone-aware columns).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
