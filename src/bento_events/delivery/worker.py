"""
Module: delivery/worker.py
Description: Queue worker delivering events to Bento.

Drains the work queue on each periodic tick. Every claimed item goes
through one state machine:

    CLAIMED -> DELIVERED
            -> failure -> RESCHEDULED | DEAD_LETTERED | DISCARDED

Malformed items and permanent failures are discarded, retryable
failures go to the retry scheduler. The claimed item is deleted once
its outcome is settled, and released back to the queue only when the
outcome itself could not be recorded.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from bento_events.config.settings import SettingsProvider, get_settings
from bento_events.delivery.classifier import is_retryable
from bento_events.delivery.gateway import DeliverFn, GatewayGuard
from bento_events.delivery.retry import RetryOutcome, RetryScheduler
from bento_events.models.queue_item import QueueItem
from bento_events.queues.base import ClaimedItem, WorkQueue
from bento_events.utils.logger import get_logger
from bento_events.utils.metrics import (
    DELIVERY_DURATION_MS,
    EVENTS_DELIVERED,
    EVENTS_DISCARDED,
    MetricsClient,
)
from bento_events.utils.sanitize import sanitize_email, sanitize_error_message

logger = get_logger(__name__)


class WorkerOutcome(str, Enum):
    DELIVERED = "delivered"
    RESCHEDULED = "rescheduled"
    DEAD_LETTERED = "dead_lettered"
    DISCARDED = "discarded"


_RETRY_OUTCOMES = {
    RetryOutcome.RESCHEDULED: WorkerOutcome.RESCHEDULED,
    RetryOutcome.DEAD_LETTERED: WorkerOutcome.DEAD_LETTERED,
}


class DeliveryWorker:
    """
    Periodic queue worker.

    Attributes:
        work_queue: Queue to drain
        retry_scheduler: Receives retryable failures
        deliver: Delivery primitive, wrapped by the gateway guard when given
    """

    def __init__(
        self,
        work_queue: WorkQueue,
        deliver: DeliverFn,
        retry_scheduler: RetryScheduler,
        guard: Optional[GatewayGuard] = None,
        settings_provider: SettingsProvider = get_settings,
        metrics: Optional[MetricsClient] = None,
        monotonic: Callable[[], float] = time.monotonic
    ):
        self.work_queue = work_queue
        self.retry_scheduler = retry_scheduler
        self.deliver = guard.protect(deliver) if guard else deliver
        self.settings_provider = settings_provider
        self.metrics = metrics
        self.monotonic = monotonic

    def process_item(self, data: Any) -> WorkerOutcome:
        """
        Deliver one claimed item and settle its outcome.

        Args:
            data: Raw payload claimed from the work queue

        Returns:
            Final outcome for the item

        Raises:
            Exception: If a retryable failure could not be handed to the
                retry scheduler
        """
        start = self.monotonic()

        try:
            item = QueueItem.model_validate(data)
            envelope = item.to_envelope()
        except ValidationError as e:
            # Retrying cannot fix a malformed payload
            logger.error(
                "Discarding invalid queue item",
                errors=[error['msg'] for error in e.errors()],
                item_kind=type(data).__name__
            )
            self._count(EVENTS_DISCARDED)
            return WorkerOutcome.DISCARDED

        logger.info(
            "Processing event from queue",
            event_type=item.event_type,
            email=sanitize_email(item.email),
            attempt_count=item.attempt_count
        )

        try:
            self.deliver(envelope)
        except Exception as e:
            return self._handle_failure(item, e)

        elapsed_ms = round((self.monotonic() - start) * 1000, 1)
        logger.info(
            "Event delivered from queue",
            event_type=item.event_type,
            email=sanitize_email(item.email),
            elapsed_ms=elapsed_ms
        )
        self._count(EVENTS_DELIVERED, item.event_type)
        if self.metrics:
            self.metrics.put_metric(DELIVERY_DURATION_MS, elapsed_ms, unit='Milliseconds')

        return WorkerOutcome.DELIVERED

    def _handle_failure(self, item: QueueItem, error: Exception) -> WorkerOutcome:
        reason = str(error) or type(error).__name__

        try:
            retryable = is_retryable(error)
        except Exception:
            logger.exception("Failure classification crashed, retrying item")
            retryable = True

        if not retryable:
            logger.error(
                "Permanent delivery failure, discarding event",
                event_type=item.event_type,
                email=sanitize_email(item.email),
                error=sanitize_error_message(reason)
            )
            self._count(EVENTS_DISCARDED, item.event_type)
            return WorkerOutcome.DISCARDED

        logger.warning(
            "Event delivery failed, will retry",
            event_type=item.event_type,
            email=sanitize_email(item.email),
            attempt_count=item.attempt_count,
            error=sanitize_error_message(reason)
        )
        outcome = self.retry_scheduler.handle_retry(item, reason)
        return _RETRY_OUTCOMES[outcome]

    def process_queue(
        self,
        max_items: Optional[int] = None,
        time_limit: Optional[float] = None
    ) -> Dict[str, int]:
        """
        Drain the work queue for one tick.

        Stops when the queue is empty, max_items items were claimed or
        time_limit seconds have passed. Items that could not be settled are
        released only after the loop, so a tick never claims them twice.

        Args:
            max_items: Claim ceiling; defaults to worker_batch_size
            time_limit: Seconds to run; defaults to worker_time_limit

        Returns:
            Count of items per outcome, plus ``released`` for items
            returned to the queue and ``processed`` for all claims
        """
        settings = self.settings_provider()
        max_items = max_items or settings.worker_batch_size
        deadline = self.monotonic() + (time_limit or settings.worker_time_limit)

        summary = {outcome.value: 0 for outcome in WorkerOutcome}
        summary['released'] = 0
        summary['processed'] = 0
        unsettled: List[ClaimedItem] = []

        try:
            while summary['processed'] < max_items and self.monotonic() < deadline:
                claimed = self.work_queue.claim()
                if claimed is None:
                    break

                summary['processed'] += 1
                try:
                    outcome = self.process_item(claimed.data)
                except Exception as e:
                    logger.error(
                        "Error processing queue item, releasing it after this tick",
                        item_id=claimed.item_id,
                        error=sanitize_error_message(e),
                        error_type=type(e).__name__
                    )
                    unsettled.append(claimed)
                    continue

                self.work_queue.delete(claimed)
                summary[outcome.value] += 1
        finally:
            for claimed in unsettled:
                self.work_queue.release(claimed)
            summary['released'] = len(unsettled)

        if summary['processed']:
            logger.info("Work queue drained", **summary)

        return summary

    def _count(self, metric_name: str, event_type: Optional[str] = None) -> None:
        if self.metrics:
            self.metrics.increment(metric_name, event_type)
