"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains all data models used by the delivery pipeline:
- EventEnvelope: producer-facing event with validation
- QueueItem, ScheduledRetry, DeadLetterItem: pipeline records
- CircuitBreakerState: shared breaker record
- SubmitEventResponse, PipelineStatsResponse: API responses
"""

from .envelope import EventEnvelope, MAX_PAYLOAD_BYTES, is_valid_email
from .guard import CircuitBreakerState
from .queue_item import DeadLetterItem, QueueItem, ScheduledRetry
from .response import PipelineStatsResponse, SubmitEventResponse

__all__ = [
    "EventEnvelope",
    "MAX_PAYLOAD_BYTES",
    "is_valid_email",
    "CircuitBreakerState",
    "QueueItem",
    "ScheduledRetry",
    "DeadLetterItem",
    "SubmitEventResponse",
    "PipelineStatsResponse",
]
