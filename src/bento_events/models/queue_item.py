"""
Module: queue_item.py
Description: Queue, retry and dead-letter record models.

A QueueItem wraps one envelope with delivery bookkeeping. Items are
never mutated in place on the queue: a failed attempt produces an
updated copy that goes either into a ScheduledRetry record (later
promoted back onto the work queue as a new item) or into the
dead-letter queue as a DeadLetterItem.

Key Components:
- QueueItem: envelope data plus attempt_count / timestamps / last error
- ScheduledRetry: a QueueItem waiting for its backoff to elapse
- DeadLetterItem: terminal record with final error context

Dependencies: pydantic, hashlib, json, typing
"""

import hashlib
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from .envelope import EventEnvelope


class QueueItem(BaseModel):
    """
    Envelope plus retry bookkeeping, as stored on the work queue.

    Validation here is structural only: a claimed item must carry
    non-empty type and email and sane counters. A payload that fails
    it cannot be fixed by retrying.

    Attributes:
        event_data: Serialized EventEnvelope
        attempt_count: Failed delivery attempts so far
        created: Unix timestamp when the event was first queued
        last_attempt: Unix timestamp of the last failed attempt
        error_message: Reason of the last failed attempt
    """

    model_config = ConfigDict(extra="ignore")

    event_data: Dict[str, Any]
    attempt_count: StrictInt = Field(default=0, ge=0)
    created: Optional[StrictInt] = Field(default=None, gt=0)
    last_attempt: Optional[StrictInt] = Field(default=None, gt=0)
    error_message: Optional[str] = None

    @field_validator('event_data')
    @classmethod
    def validate_event_data(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Require non-empty type and email."""
        for key in ('type', 'email'):
            value = v.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"event_data must contain a non-empty {key}")
        return v

    @field_validator('attempt_count', mode='before')
    @classmethod
    def default_attempt_count(cls, v: Any) -> Any:
        """A missing attempt count means no attempt was made yet."""
        return 0 if v is None else v

    @classmethod
    def from_envelope(cls, envelope: EventEnvelope, now: int) -> 'QueueItem':
        """Build a fresh item for a newly submitted envelope."""
        return cls(
            event_data=envelope.model_dump(),
            attempt_count=0,
            created=now,
            last_attempt=None,
            error_message=None
        )

    @property
    def event_type(self) -> str:
        return self.event_data['type']

    @property
    def email(self) -> str:
        return self.event_data['email']

    def to_envelope(self) -> EventEnvelope:
        """
        Rebuild the envelope for delivery.

        Raises:
            pydantic.ValidationError: If the stored data is not a valid envelope
        """
        return EventEnvelope.model_validate(self.event_data)

    def record_failure(self, reason: str, now: int) -> 'QueueItem':
        """Return a copy with the attempt counted and the failure stamped."""
        return self.model_copy(update={
            'attempt_count': self.attempt_count + 1,
            'last_attempt': now,
            'error_message': reason
        })


class ScheduledRetry(BaseModel):
    """
    A failed item waiting for its backoff delay to elapse.

    Attributes:
        key: Content hash of (item, scheduled_time)
        item: Item to re-queue, attempt_count already incremented
        scheduled_time: Unix timestamp after which the item is due
        created: Unix timestamp when the record was written
    """

    key: str
    item: QueueItem
    scheduled_time: int
    created: int

    @staticmethod
    def make_key(item: QueueItem, scheduled_time: int) -> str:
        """Hash the item content together with its due time."""
        serialized = json.dumps(item.model_dump(), sort_keys=True, default=str)
        return hashlib.sha256(f"{serialized}|{scheduled_time}".encode('utf-8')).hexdigest()

    @classmethod
    def for_item(cls, item: QueueItem, scheduled_time: int, now: int) -> 'ScheduledRetry':
        return cls(
            key=cls.make_key(item, scheduled_time),
            item=item,
            scheduled_time=scheduled_time,
            created=now
        )

    def is_due(self, now: int) -> bool:
        return self.scheduled_time <= now


class DeadLetterItem(QueueItem):
    """
    Item that exhausted its delivery attempts.

    Terminal: kept for operator inspection until the dead-letter
    retention window passes.
    """

    moved_to_dlq: int
    final_error: str

    @classmethod
    def from_item(cls, item: QueueItem, now: int) -> 'DeadLetterItem':
        return cls(
            **item.model_dump(),
            moved_to_dlq=now,
            final_error=item.error_message or "Unknown error"
        )
