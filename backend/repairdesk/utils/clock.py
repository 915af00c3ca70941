from __future__ import annotations
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; stored columns are timezone-less UTC on every backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)

__all__ = ['utcnow', 'to_naive_utc']
