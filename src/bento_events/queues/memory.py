"""
Module: memory.py
Description: In-process work queue for local runs and tests.

FIFO with claim leases: a claimed item is invisible until deleted or
released, mirroring the SQS visibility semantics without a timeout.
"""

import copy
import itertools
from collections import OrderedDict
from typing import Dict, List, Optional

from bento_events.queues.base import ClaimedItem


class InMemoryWorkQueue:
    """List-backed queue implementing the WorkQueue contract."""

    def __init__(self, name: str = "memory"):
        self.name = name
        self._ids = itertools.count(1)
        self._available: "OrderedDict[str, dict]" = OrderedDict()
        self._leased: Dict[str, dict] = {}

    def create(self, item: dict) -> str:
        item_id = f"{self.name}-{next(self._ids)}"
        # Copy so later mutation by the caller cannot alter queued data
        self._available[item_id] = copy.deepcopy(item)
        return item_id

    def claim(self) -> Optional[ClaimedItem]:
        if not self._available:
            return None
        item_id, data = self._available.popitem(last=False)
        self._leased[item_id] = data
        return ClaimedItem(data=copy.deepcopy(data), handle=item_id, item_id=item_id)

    def delete(self, claimed: ClaimedItem) -> None:
        self._leased.pop(claimed.handle, None)

    def release(self, claimed: ClaimedItem) -> None:
        data = self._leased.pop(claimed.handle, None)
        if data is not None:
            self._available[claimed.handle] = data

    def count(self) -> int:
        return len(self._available)

    def peek_all(self) -> List[dict]:
        """Snapshot of available items in queue order, without claiming."""
        return [copy.deepcopy(data) for data in self._available.values()]
