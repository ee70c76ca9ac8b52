"""
Module: test_worker.py
Description: Unit tests for DeliveryWorker.

Tests the per-item state machine (delivered, rescheduled, dead-lettered,
discarded) and the queue drain loop.
"""

from unittest.mock import MagicMock

import pytest

from bento_events.delivery.errors import CircuitOpenError, DeliveryError, FailureKind
from bento_events.delivery.retry import RetryOutcome
from bento_events.delivery.worker import DeliveryWorker, WorkerOutcome
from bento_events.models.envelope import EventEnvelope
from bento_events.models.queue_item import QueueItem


@pytest.fixture
def queued(work_queue, sample_envelope, clock):
    """Put events on the work queue and return their items."""
    def _queue(count=1, **updates):
        items = []
        for _ in range(count):
            item = QueueItem.from_envelope(EventEnvelope.model_validate(sample_envelope), int(clock()))
            item = item.model_copy(update=updates)
            work_queue.create(item.model_dump())
            items.append(item)
        return items
    return _queue


class TestProcessItem:
    """Test cases for process_item."""

    def test_successful_delivery(self, worker, deliverer, queued, sample_envelope):
        [item] = queued()

        outcome = worker.process_item(item.model_dump())

        assert outcome is WorkerOutcome.DELIVERED
        assert deliverer.calls == [EventEnvelope.model_validate(sample_envelope)]

    @pytest.mark.parametrize("data", [
        {"event_data": {"type": "", "email": "a@example.com"}},
        {"event_data": {"type": "signup"}},
        {"attempt_count": 1},
        "not an item",
        None,
    ])
    def test_malformed_items_are_discarded(self, worker, deliverer, data):
        assert worker.process_item(data) is WorkerOutcome.DISCARDED
        assert deliverer.calls == []

    def test_invalid_envelope_is_discarded(self, worker, deliverer):
        data = {"event_data": {"type": "signup", "email": "not-an-email"}}

        assert worker.process_item(data) is WorkerOutcome.DISCARDED
        assert deliverer.calls == []

    def test_retryable_failure_is_rescheduled(self, worker, deliverer, retry_store, queued, clock):
        [item] = queued()
        deliverer.fail_with(DeliveryError("connection timeout while contacting Bento API", FailureKind.NETWORK))

        outcome = worker.process_item(item.model_dump())

        assert outcome is WorkerOutcome.RESCHEDULED
        [record] = retry_store.all()
        assert record.item.attempt_count == 1
        assert record.scheduled_time == int(clock()) + 60

    def test_permanent_failure_is_discarded(self, worker, deliverer, retry_store, dead_letter_queue, queued):
        [item] = queued()
        deliverer.fail_with(DeliveryError("401 Unauthorized: invalid Bento API credentials", FailureKind.AUTH))

        outcome = worker.process_item(item.model_dump())

        assert outcome is WorkerOutcome.DISCARDED
        assert retry_store.count() == 0
        assert dead_letter_queue.count() == 0

    def test_untyped_failure_uses_message_text(self, worker, deliverer, retry_store, queued):
        [item] = queued()
        deliverer.fail_with(RuntimeError("validation failed: missing field"))

        assert worker.process_item(item.model_dump()) is WorkerOutcome.DISCARDED
        assert retry_store.count() == 0

    def test_last_attempt_is_dead_lettered(self, worker, deliverer, dead_letter_queue, retry_store, queued):
        [item] = queued(attempt_count=2)
        deliverer.fail_with(RuntimeError("500 server error"))

        assert worker.process_item(item.model_dump()) is WorkerOutcome.DEAD_LETTERED
        assert dead_letter_queue.count() == 1
        assert retry_store.count() == 0

    def test_guard_rejection_is_rescheduled(self, work_queue, retry_store, retry_scheduler, settings_provider, queued):
        [item] = queued()
        guard = MagicMock()
        guard.protect.side_effect = lambda deliver: MagicMock(side_effect=CircuitOpenError())
        worker = DeliveryWorker(
            work_queue, MagicMock(), retry_scheduler,
            guard=guard, settings_provider=settings_provider
        )

        assert worker.process_item(item.model_dump()) is WorkerOutcome.RESCHEDULED
        [record] = retry_store.all()
        assert record.item.error_message == "API service temporarily unavailable. Please try again later."

    def test_classifier_crash_counts_as_retryable(self, worker, deliverer, retry_store, queued, monkeypatch):
        [item] = queued()
        deliverer.fail_with(RuntimeError("boom"))

        def explode(error):
            raise TypeError("classifier bug")

        monkeypatch.setattr("bento_events.delivery.worker.is_retryable", explode)

        assert worker.process_item(item.model_dump()) is WorkerOutcome.RESCHEDULED
        assert retry_store.count() == 1

    def test_failure_without_message_uses_type_name(self, worker, deliverer, retry_store, queued):
        [item] = queued()
        deliverer.fail_with(ConnectionError())

        worker.process_item(item.model_dump())

        [record] = retry_store.all()
        assert record.item.error_message == "ConnectionError"


class TestProcessQueue:
    """Test cases for the drain loop."""

    def test_empty_queue(self, worker):
        summary = worker.process_queue()

        assert summary['processed'] == 0
        assert summary['delivered'] == 0

    def test_drains_and_acknowledges(self, worker, work_queue, deliverer, queued):
        queued(3)

        summary = worker.process_queue()

        assert summary['processed'] == 3
        assert summary['delivered'] == 3
        assert work_queue.count() == 0
        assert len(deliverer.calls) == 3

    def test_mixed_outcomes(self, worker, work_queue, deliverer, queued):
        queued(3)
        work_queue.create({"garbage": True})
        deliverer.fail_with(
            RuntimeError("connection timeout"),
            DeliveryError("422 Unprocessable Entity", FailureKind.VALIDATION)
        )

        summary = worker.process_queue()

        assert summary == {
            'delivered': 1,
            'rescheduled': 1,
            'dead_lettered': 0,
            'discarded': 2,
            'released': 0,
            'processed': 4,
        }
        assert work_queue.count() == 0

    def test_respects_max_items(self, worker, work_queue, queued):
        queued(3)

        summary = worker.process_queue(max_items=2)

        assert summary['processed'] == 2
        assert work_queue.count() == 1

    def test_respects_time_limit(self, work_queue, deliverer, retry_scheduler, settings_provider, queued):
        queued(5)
        ticks = iter(range(0, 1000, 10))
        worker = DeliveryWorker(
            work_queue, deliverer, retry_scheduler,
            settings_provider=settings_provider,
            monotonic=lambda: next(ticks)
        )

        # Each item costs three ticks (loop check, start, elapsed)
        summary = worker.process_queue(time_limit=45)

        assert 0 < summary['processed'] < 5
        assert work_queue.count() == 5 - summary['processed']

    def test_failed_retry_handoff_releases_item(self, work_queue, deliverer, settings_provider, queued):
        [item] = queued()
        deliverer.fail_with(RuntimeError("connection timeout"))
        retry_scheduler = MagicMock()
        retry_scheduler.handle_retry.side_effect = RuntimeError("queue unavailable")
        worker = DeliveryWorker(work_queue, deliverer, retry_scheduler, settings_provider=settings_provider)

        summary = worker.process_queue()

        assert summary['released'] == 1
        assert summary['rescheduled'] == 0
        [data] = work_queue.peek_all()
        # Released unchanged, the failed attempt was never recorded
        assert QueueItem.model_validate(data).attempt_count == 0

    def test_released_items_are_delivered_once_per_tick(self, work_queue, deliverer, settings_provider, queued):
        queued(3)
        deliverer.fail_with(*[RuntimeError("connection timeout")] * 100)
        retry_scheduler = MagicMock()
        retry_scheduler.handle_retry.side_effect = RuntimeError("table unavailable")
        worker = DeliveryWorker(work_queue, deliverer, retry_scheduler, settings_provider=settings_provider)

        summary = worker.process_queue(max_items=50)

        assert len(deliverer.calls) == 3
        assert summary['processed'] == 3
        assert summary['released'] == 3
        assert work_queue.count() == 3

    def test_retry_outcome_is_mapped(self, work_queue, deliverer, settings_provider, queued):
        queued()
        deliverer.fail_with(RuntimeError("connection timeout"))
        retry_scheduler = MagicMock()
        retry_scheduler.handle_retry.return_value = RetryOutcome.DEAD_LETTERED
        worker = DeliveryWorker(work_queue, deliverer, retry_scheduler, settings_provider=settings_provider)

        assert worker.process_queue()['dead_lettered'] == 1

    def test_metrics_are_counted(self, work_queue, deliverer, retry_scheduler, settings_provider, queued):
        queued()
        metrics = MagicMock()
        worker = DeliveryWorker(
            work_queue, deliverer, retry_scheduler,
            settings_provider=settings_provider, metrics=metrics
        )

        worker.process_queue()

        metrics.increment.assert_called_once_with("EventsDelivered", "user_registration")
        metrics.put_metric.assert_called_once()
