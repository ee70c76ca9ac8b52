"""
Module: memory.py
Description: In-process cache and scheduled retry stores.

Used for local runs and tests. Expiry is driven by an injectable clock
so TTL behaviour can be exercised without sleeping.
"""

import copy
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from bento_events.models.queue_item import ScheduledRetry


class InMemoryCacheStore:
    """Dict-backed CacheStore with clock-driven expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at <= self.clock():
            del self._entries[key]
            return None

        return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (copy.deepcopy(value), self.clock() + ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class InMemoryScheduledRetryStore:
    """Dict-backed ScheduledRetryStore."""

    def __init__(self):
        self._records: Dict[str, ScheduledRetry] = {}

    def put(self, record: ScheduledRetry) -> None:
        self._records[record.key] = record.model_copy(deep=True)

    def due(self, now: int) -> List[ScheduledRetry]:
        return [
            record.model_copy(deep=True)
            for record in self._records.values()
            if record.is_due(now)
        ]

    def claim(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    def count(self) -> int:
        return len(self._records)

    def all(self) -> List[ScheduledRetry]:
        """Every pending record, due or not."""
        return [record.model_copy(deep=True) for record in self._records.values()]
