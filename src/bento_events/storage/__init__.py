"""
Module: storage
Description: Package initialization for the shared state layer.

This package contains the stores behind the gateway guard and the
retry scheduler:
- dynamodb: DynamoDB cache and scheduled retry stores
- memory: in-process equivalents for local runs and tests
"""

from .base import CacheStore, ScheduledRetryStore
from .dynamodb import DynamoDBCacheStore, DynamoDBScheduledRetryStore
from .memory import InMemoryCacheStore, InMemoryScheduledRetryStore

__all__ = [
    "CacheStore",
    "ScheduledRetryStore",
    "DynamoDBCacheStore",
    "DynamoDBScheduledRetryStore",
    "InMemoryCacheStore",
    "InMemoryScheduledRetryStore",
]
