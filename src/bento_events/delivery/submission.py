"""
Module: submission.py
Description: Event submission gate and direct send fallback.

The gate is the only entry point for producers. It validates the
envelope, wraps it in a QueueItem and puts it on the work queue. When
the queue itself is unavailable the event is sent once, synchronously,
through the DirectSender instead of being dropped. Nothing here raises
to the caller: the result is True (accepted) or False (rejected).

Key Components:
- DirectSender: guarded, fire-once synchronous delivery
- EventSubmissionGate: submit(), queue_size(), clear_queue(), get_queue_stats()

Dependencies: pydantic, time, queues, gateway, logger
"""

import time
from typing import Any, Callable, Dict, Optional, Union

from pydantic import ValidationError

from bento_events.delivery.gateway import DeliverFn, GatewayGuard
from bento_events.models.envelope import EventEnvelope
from bento_events.models.queue_item import QueueItem
from bento_events.queues.base import WorkQueue
from bento_events.utils.logger import get_logger
from bento_events.utils.metrics import EVENTS_QUEUED, MetricsClient
from bento_events.utils.sanitize import sanitize_email, sanitize_error_message

logger = get_logger(__name__)


class DirectSender:
    """
    Synchronous, fire-once delivery through the gateway guard.

    No retry and no backoff: the caller blocks for exactly one attempt,
    bounded by the timeout of the delivery primitive it was given.
    """

    def __init__(self, deliver: DeliverFn, guard: Optional[GatewayGuard] = None):
        self.deliver = guard.protect(deliver) if guard else deliver

    def send(self, envelope: EventEnvelope) -> bool:
        try:
            self.deliver(envelope)
        except Exception as e:
            logger.error(
                "Direct send failed",
                event_type=envelope.type,
                email=sanitize_email(envelope.email),
                error=sanitize_error_message(e),
                error_type=type(e).__name__
            )
            return False

        logger.info(
            "Event delivered by direct send",
            event_type=envelope.type,
            email=sanitize_email(envelope.email)
        )
        return True


class EventSubmissionGate:
    """
    Validates events and queues them for delivery.

    Example:
        >>> gate = EventSubmissionGate(work_queue, direct_sender)
        >>> gate.submit({"type": "user_registration", "email": "a@example.com"})
        True
    """

    def __init__(
        self,
        work_queue: WorkQueue,
        direct_sender: Optional[DirectSender] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsClient] = None
    ):
        self.work_queue = work_queue
        self.direct_sender = direct_sender
        self.clock = clock
        self.metrics = metrics

    def validate(self, envelope: Union[EventEnvelope, Dict[str, Any]]) -> Optional[EventEnvelope]:
        """Return a validated envelope, or None after logging why it was rejected."""
        if isinstance(envelope, EventEnvelope):
            # Re-validate: the instance may have been built with model_construct
            envelope = envelope.model_dump()

        try:
            return EventEnvelope.model_validate(envelope)
        except ValidationError as e:
            logger.error(
                "Event rejected",
                errors=[
                    {'field': '.'.join(str(part) for part in error['loc']), 'message': error['msg']}
                    for error in e.errors()
                ]
            )
            return None

    def submit(self, envelope: Union[EventEnvelope, Dict[str, Any]]) -> bool:
        """
        Accept an event for asynchronous delivery.

        Args:
            envelope: EventEnvelope or its dict form

        Returns:
            True if the event was queued (or delivered by the direct send
            fallback), False if it was rejected or the fallback failed
        """
        validated = self.validate(envelope)
        if validated is None:
            return False

        item = QueueItem.from_envelope(validated, int(self.clock()))

        try:
            self.work_queue.create(item.model_dump())
        except Exception as e:
            logger.warning(
                "Work queue unavailable, falling back to direct send",
                event_type=validated.type,
                email=sanitize_email(validated.email),
                error=sanitize_error_message(e)
            )
            if self.direct_sender is None:
                logger.error(
                    "Event dropped, no direct sender configured",
                    event_type=validated.type
                )
                return False
            return self.direct_sender.send(validated)

        logger.info(
            "Event queued",
            event_type=validated.type,
            email=sanitize_email(validated.email)
        )
        if self.metrics:
            self.metrics.increment(EVENTS_QUEUED, validated.type)

        return True

    def queue_size(self) -> int:
        """Items waiting on the work queue, 0 if the queue cannot be read."""
        try:
            return self.work_queue.count()
        except Exception as e:
            logger.error("Failed to get queue size", error=sanitize_error_message(e))
            return 0

    def clear_queue(self) -> int:
        """
        Remove every available item from the work queue.

        Returns:
            Number of items removed
        """
        cleared = 0
        while True:
            claimed = self.work_queue.claim()
            if claimed is None:
                break
            self.work_queue.delete(claimed)
            cleared += 1

        logger.info("Work queue cleared", removed=cleared)
        return cleared

    def get_queue_stats(self) -> Dict[str, int]:
        return {'size': self.queue_size()}
