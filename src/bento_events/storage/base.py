"""
Module: base.py
Description: Storage contracts used by the gateway guard and retry scheduler.

CacheStore holds short-lived shared counters and flags with TTLs; no
transactional read-modify-write is assumed. ScheduledRetryStore keeps
one independently keyed record per pending retry so concurrent sweeps
only contend on individual records.
"""

from typing import Any, List, Optional, Protocol

from bento_events.models.queue_item import ScheduledRetry


class CacheStore(Protocol):
    """Key/value cache with per-entry expiry."""

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent or expired."""

    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store a JSON-serializable value for ttl seconds."""

    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""


class ScheduledRetryStore(Protocol):
    """Keyed store of ScheduledRetry records."""

    def put(self, record: ScheduledRetry) -> None:
        """Write a record under record.key."""

    def due(self, now: int) -> List[ScheduledRetry]:
        """Return records whose scheduled_time is at or before now."""

    def claim(self, key: str) -> bool:
        """Delete a record; True only for the caller that removed it."""

    def count(self) -> int:
        """Number of pending records."""
