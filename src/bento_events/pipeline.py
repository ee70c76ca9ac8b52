"""
Module: pipeline.py
Description: Wiring of the delivery pipeline components.

build_pipeline() assembles the AWS-backed pipeline used by the Lambda
handlers; build_local_pipeline() assembles an in-memory one for local
runs and tests. Both share one GatewayGuard between the worker and the
submission fallback, so they throttle against the same counters.
"""

import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from bento_events.config.settings import SettingsProvider, get_settings
from bento_events.delivery.gateway import DeliverFn, GatewayGuard
from bento_events.delivery.push import BentoClient
from bento_events.delivery.retry import RetryScheduler
from bento_events.delivery.submission import DirectSender, EventSubmissionGate
from bento_events.delivery.worker import DeliveryWorker
from bento_events.queues.base import WorkQueue
from bento_events.queues.memory import InMemoryWorkQueue
from bento_events.queues.sqs import SQSWorkQueue
from bento_events.storage.base import CacheStore, ScheduledRetryStore
from bento_events.storage.dynamodb import DynamoDBCacheStore, DynamoDBScheduledRetryStore
from bento_events.storage.memory import InMemoryCacheStore, InMemoryScheduledRetryStore
from bento_events.utils.logger import get_logger
from bento_events.utils.metrics import MetricsClient

logger = get_logger(__name__)


@dataclass
class EventPipeline:
    """All components of one wired pipeline."""

    gate: EventSubmissionGate
    worker: DeliveryWorker
    retry_scheduler: RetryScheduler
    guard: GatewayGuard
    work_queue: WorkQueue
    dead_letter_queue: WorkQueue
    retry_store: ScheduledRetryStore
    cache: CacheStore


def assemble_pipeline(
    work_queue: WorkQueue,
    dead_letter_queue: WorkQueue,
    retry_store: ScheduledRetryStore,
    cache: CacheStore,
    deliver: DeliverFn,
    direct_deliver: Optional[DeliverFn] = None,
    settings_provider: SettingsProvider = get_settings,
    clock: Callable[[], float] = time.time,
    metrics: Optional[MetricsClient] = None
) -> EventPipeline:
    """
    Connect storage primitives and delivery callables into a pipeline.

    Args:
        deliver: Delivery primitive used by the worker
        direct_deliver: Delivery primitive for the submission fallback;
            defaults to ``deliver``
    """
    guard = GatewayGuard(cache, settings_provider, clock)
    retry_scheduler = RetryScheduler(
        work_queue,
        dead_letter_queue,
        retry_store,
        settings_provider=settings_provider,
        clock=clock,
        metrics=metrics
    )
    worker = DeliveryWorker(
        work_queue,
        deliver,
        retry_scheduler,
        guard=guard,
        settings_provider=settings_provider,
        metrics=metrics
    )
    gate = EventSubmissionGate(
        work_queue,
        DirectSender(direct_deliver or deliver, guard=guard),
        clock=clock,
        metrics=metrics
    )

    return EventPipeline(
        gate=gate,
        worker=worker,
        retry_scheduler=retry_scheduler,
        guard=guard,
        work_queue=work_queue,
        dead_letter_queue=dead_letter_queue,
        retry_store=retry_store,
        cache=cache
    )


def build_pipeline(settings_provider: SettingsProvider = get_settings) -> EventPipeline:
    """
    Build the SQS / DynamoDB / Bento API pipeline from settings.

    Queue URLs, table names and the region are bound here; every other
    setting is read through settings_provider on each operation.
    """
    settings = settings_provider()
    region = settings.aws_region

    pipeline = assemble_pipeline(
        work_queue=SQSWorkQueue(
            settings.event_queue_url,
            name="events",
            region_name=region,
            settings_provider=settings_provider
        ),
        dead_letter_queue=SQSWorkQueue(
            settings.dead_letter_queue_url,
            name="dead-letter",
            region_name=region,
            settings_provider=settings_provider
        ),
        retry_store=DynamoDBScheduledRetryStore(settings.scheduled_retries_table_name, region_name=region),
        cache=DynamoDBCacheStore(settings.cache_table_name, region_name=region),
        deliver=BentoClient(settings_provider).deliver,
        direct_deliver=BentoClient(settings_provider, timeout_setting="direct_send_timeout").deliver,
        settings_provider=settings_provider,
        metrics=MetricsClient(region_name=region)
    )

    logger.info("Delivery pipeline built", stage=settings.stage, region=region)
    return pipeline


def build_local_pipeline(
    deliver: DeliverFn,
    clock: Callable[[], float] = time.time,
    settings_provider: SettingsProvider = get_settings
) -> EventPipeline:
    """Build an in-memory pipeline around the given delivery primitive."""
    return assemble_pipeline(
        work_queue=InMemoryWorkQueue("events"),
        dead_letter_queue=InMemoryWorkQueue("dead-letter"),
        retry_store=InMemoryScheduledRetryStore(),
        cache=InMemoryCacheStore(clock),
        deliver=deliver,
        settings_provider=settings_provider,
        clock=clock
    )


@lru_cache(maxsize=1)
def get_pipeline() -> EventPipeline:
    """Process-wide pipeline, built on first use (one per Lambda container)."""
    return build_pipeline()
