"""Datetime helpers.

Timestamps are stored as naive UTC datetimes in models.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(ts: float) -> datetime:
    """Convert a POSIX timestamp to a naive UTC datetime."""
    return datetime.fromtimestamp(ts, timezone.utc).replace(tzinfo=None)


def to_timestamp(dt: datetime) -> float:
    """Convert a naive UTC datetime to a POSIX timestamp."""
    return dt.replace(tzinfo=timezone.utc).timestamp()
