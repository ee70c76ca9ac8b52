"""
Module: retry.py
Description: Retry scheduling for failed event deliveries.

Implements exponential backoff over a sweep: a retryable failure is
written to the scheduled retry store with its due time, and a periodic
sweep promotes due records back onto the work queue as new items.
There is no timer per item. Items that reach max_attempts move to the
dead-letter queue with their final error instead.

Key Components:
- RetryScheduler.handle_retry(): count the attempt, reschedule or dead-letter
- RetryScheduler.process_scheduled_retries(): promote due records
- RetryScheduler.purge_expired_dead_letters(): enforce dead_letter_retention
- RetryScheduler.get_retry_stats(): backlog snapshot

Dependencies: pydantic, time, queues, storage, settings, logger
"""

import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from bento_events.config.settings import SettingsProvider, get_settings
from bento_events.models.queue_item import DeadLetterItem, QueueItem, ScheduledRetry
from bento_events.queues.base import ClaimedItem, WorkQueue
from bento_events.storage.base import ScheduledRetryStore
from bento_events.utils.logger import get_logger
from bento_events.utils.metrics import (
    EVENTS_DEAD_LETTERED,
    EVENTS_RETRIED,
    RETRIES_PROMOTED,
    MetricsClient,
)
from bento_events.utils.sanitize import sanitize_email, sanitize_error_message

logger = get_logger(__name__)


class RetryOutcome(str, Enum):
    RESCHEDULED = "rescheduled"
    DEAD_LETTERED = "dead_lettered"


class RetryScheduler:
    """
    Backoff, scheduled retry and dead-letter management.

    Attributes:
        work_queue: Queue that due retries are promoted onto
        dead_letter_queue: Queue holding exhausted items
        retry_store: Store of pending ScheduledRetry records
    """

    def __init__(
        self,
        work_queue: WorkQueue,
        dead_letter_queue: WorkQueue,
        retry_store: ScheduledRetryStore,
        settings_provider: SettingsProvider = get_settings,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsClient] = None
    ):
        self.work_queue = work_queue
        self.dead_letter_queue = dead_letter_queue
        self.retry_store = retry_store
        self.settings_provider = settings_provider
        self.clock = clock
        self.metrics = metrics

    def _now(self) -> int:
        return int(self.clock())

    def get_max_attempts(self) -> int:
        return self.settings_provider().max_attempts

    def calculate_backoff_delay(self, attempt_count: int) -> int:
        """
        Delay before the given (1-based) attempt is retried.

        base_delay * 2 ** (attempt_count - 1), capped at max_delay:
        60, 120, 240, 300, 300, ... with the default settings.
        """
        settings = self.settings_provider()
        delay = settings.base_delay * (2 ** max(attempt_count - 1, 0))
        return min(delay, settings.max_delay)

    def handle_retry(self, item: QueueItem, failure_reason: str) -> RetryOutcome:
        """
        Record a failed attempt and decide the item's next stop.

        Args:
            item: Item whose delivery attempt failed
            failure_reason: Reason reported by the delivery attempt

        Returns:
            RESCHEDULED if a retry record was written, DEAD_LETTERED if
            the item exhausted its attempts

        Raises:
            Exception: If neither the retry store nor the work queue
                could take the item; the caller must keep it claimed
        """
        now = self._now()
        max_attempts = self.get_max_attempts()
        updated = item.record_failure(failure_reason, now)

        if updated.attempt_count >= max_attempts:
            self.move_to_dead_letter_queue(updated)
            logger.error(
                "Event moved to dead letter queue after max attempts",
                attempts=updated.attempt_count,
                event_type=updated.event_type,
                email=sanitize_email(updated.email),
                final_error=sanitize_error_message(failure_reason)
            )
            return RetryOutcome.DEAD_LETTERED

        delay = self.calculate_backoff_delay(updated.attempt_count)
        self.requeue_with_delay(updated, delay)

        logger.info(
            "Event scheduled for retry",
            attempt=updated.attempt_count,
            max_attempts=max_attempts,
            delay_seconds=delay,
            event_type=updated.event_type,
            email=sanitize_email(updated.email)
        )
        if self.metrics:
            self.metrics.increment(EVENTS_RETRIED, updated.event_type)

        return RetryOutcome.RESCHEDULED

    def move_to_dead_letter_queue(self, item: QueueItem) -> DeadLetterItem:
        """Archive an item with its final error; no further processing."""
        dead_letter = DeadLetterItem.from_item(item, self._now())
        self.dead_letter_queue.create(dead_letter.model_dump())

        if self.metrics:
            self.metrics.increment(EVENTS_DEAD_LETTERED, item.event_type)

        return dead_letter

    def requeue_with_delay(self, item: QueueItem, delay: int) -> Optional[ScheduledRetry]:
        """
        Write a scheduled retry record due ``delay`` seconds from now.

        If the store is unavailable the item goes straight back onto the
        work queue without delay, and None is returned.
        """
        now = self._now()
        record = ScheduledRetry.for_item(item, now + delay, now)

        try:
            self.retry_store.put(record)
        except Exception as e:
            logger.error(
                "Failed to schedule retry, re-queuing immediately",
                error=sanitize_error_message(e),
                event_type=item.event_type
            )
            self.work_queue.create(item.model_dump())
            return None

        logger.debug(
            "Retry record written",
            retry_key=record.key,
            scheduled_time=record.scheduled_time
        )
        return record

    def process_scheduled_retries(self) -> int:
        """
        Promote every due retry record back onto the work queue.

        Records are claimed one by one, so overlapping sweeps never
        promote the same record twice. A record whose promotion fails is
        written back for the next sweep.

        Returns:
            Number of records promoted
        """
        now = self._now()
        promoted = 0

        for record in self.retry_store.due(now):
            if not self.retry_store.claim(record.key):
                continue

            try:
                self.work_queue.create(record.item.model_dump())
            except Exception as e:
                logger.error(
                    "Failed to promote scheduled retry, keeping it for next sweep",
                    retry_key=record.key,
                    error=sanitize_error_message(e)
                )
                self.retry_store.put(record)
                continue

            promoted += 1
            logger.debug(
                "Scheduled retry promoted",
                retry_key=record.key,
                attempt=record.item.attempt_count
            )

        if promoted:
            logger.info("Processed scheduled retry items", count=promoted)
            if self.metrics:
                self.metrics.put_metric(RETRIES_PROMOTED, float(promoted))

        return promoted

    def purge_expired_dead_letters(self) -> int:
        """
        Delete dead-letter items older than dead_letter_retention.

        Younger items and items that do not parse are released back to
        the dead-letter queue untouched. A retention of 0 keeps items
        forever.

        Returns:
            Number of items deleted
        """
        retention = self.settings_provider().dead_letter_retention
        if retention <= 0:
            return 0

        now = self._now()
        purged = 0
        kept: List[ClaimedItem] = []

        try:
            for _ in range(self.dead_letter_queue.count()):
                claimed = self.dead_letter_queue.claim()
                if claimed is None:
                    break

                try:
                    dead_letter = DeadLetterItem.model_validate(claimed.data)
                except ValidationError:
                    kept.append(claimed)
                    continue

                if dead_letter.moved_to_dlq + retention <= now:
                    self.dead_letter_queue.delete(claimed)
                    purged += 1
                else:
                    kept.append(claimed)
        finally:
            for claimed in kept:
                self.dead_letter_queue.release(claimed)

        if purged:
            logger.info(
                "Purged expired dead letter items",
                count=purged,
                retention_seconds=retention
            )

        return purged

    def get_retry_stats(self) -> Dict[str, int]:
        """
        Snapshot of retry backlog.

        Returns:
            scheduled_retries, dead_letter_queue_size and max_attempts;
            counts are zero if a store cannot be read
        """
        max_attempts = self.get_max_attempts()
        try:
            return {
                'scheduled_retries': self.retry_store.count(),
                'dead_letter_queue_size': self.dead_letter_queue.count(),
                'max_attempts': max_attempts,
            }
        except Exception as e:
            logger.error("Failed to get retry statistics", error=sanitize_error_message(e))
            return {
                'scheduled_retries': 0,
                'dead_letter_queue_size': 0,
                'max_attempts': max_attempts,
            }
