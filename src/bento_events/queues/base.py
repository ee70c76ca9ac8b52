"""
Module: base.py
Description: Work queue contract shared by the SQS and in-memory queues.

The queue is at-least-once and multi-consumer. A claimed item is hidden
from other consumers until it is deleted (acknowledged) or released;
claim/delete is the only concurrency boundary the pipeline relies on.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol


@dataclass
class ClaimedItem:
    """
    An item leased from a work queue.

    Attributes:
        data: Decoded item payload (normally a dict, but anything a
              producer managed to put on the queue)
        handle: Queue-specific lease handle used to delete or release
        item_id: Queue-assigned identifier, for logging
    """

    data: Any
    handle: Any
    item_id: Optional[str] = None


class WorkQueue(Protocol):
    """Durable queue primitive used for the work and dead-letter queues."""

    name: str

    def create(self, item: dict) -> str:
        """Append an item; returns its queue-assigned id."""

    def claim(self) -> Optional[ClaimedItem]:
        """Lease the next available item, or None if the queue is drained."""

    def delete(self, claimed: ClaimedItem) -> None:
        """Acknowledge a claimed item, removing it permanently."""

    def release(self, claimed: ClaimedItem) -> None:
        """Return a claimed item to the queue for another consumer."""

    def count(self) -> int:
        """Approximate number of items available."""
