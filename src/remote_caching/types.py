"""
Core types for the remote caching system.

This module defines:
- CacheEntry: immutable view of one row in the durable cache table
- CachingStats: aggregate snapshot of the stored set
- Helper functions for timestamps (UTC now, epoch milliseconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def to_millis(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds.

    Naive datetimes are interpreted as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class CacheEntry:
    """Immutable row from the cache table.

    Timestamps are stored as epoch milliseconds, exactly as persisted.
    """

    key: str
    data: str  # JSON text, opaque to the store
    created_at: int
    expires_at: int

    def is_valid(self, now_ms: int) -> bool:
        """An entry is valid strictly before its expiry instant."""
        return now_ms < self.expires_at


@dataclass(frozen=True)
class CachingStats:
    """Point-in-time statistics over the cache table.

    Computed from two independent aggregate reads, so under concurrent
    writes the counts may not describe one single state of the table.
    """

    total_entries: int = 0
    total_size_bytes: int = 0
    expired_entries: int = 0

    @property
    def valid_entries(self) -> int:
        return max(self.total_entries - self.expired_entries, 0)
