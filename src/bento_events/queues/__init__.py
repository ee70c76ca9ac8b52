"""
Package: queues
Description: Work queue primitives for the delivery pipeline.

Provides the WorkQueue contract with an SQS implementation for
deployed stages and an in-memory one for local runs and tests.
"""

from .base import ClaimedItem, WorkQueue
from .memory import InMemoryWorkQueue
from .sqs import SQSWorkQueue

__all__ = ["ClaimedItem", "WorkQueue", "InMemoryWorkQueue", "SQSWorkQueue"]
