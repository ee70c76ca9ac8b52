"""
Module: dynamodb.py
Description: DynamoDB-backed cache and scheduled retry stores.

Provides the shared state of the pipeline: rate limit counters and the
circuit breaker record (DynamoDBCacheStore) and pending retries
(DynamoDBScheduledRetryStore), with error handling and logging.

Key Components:
- DynamoDBCacheStore: JSON values with an expires_at TTL attribute
- DynamoDBScheduledRetryStore: one item per scheduled retry, claimed by
  conditional delete so only one sweep promotes a record
- Error handling: ClientError logged with code and message, then raised

Dependencies: boto3, botocore, json, time, typing
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from bento_events.models.queue_item import QueueItem, ScheduledRetry
from bento_events.utils.logger import get_logger

logger = get_logger(__name__)


def _log_client_error(message: str, table_name: str, error: ClientError, **context) -> None:
    logger.error(
        message,
        table_name=table_name,
        error_code=error.response['Error']['Code'],
        error_message=error.response['Error']['Message'],
        **context
    )


class DynamoDBCacheStore:
    """
    Cache entries in a DynamoDB table.

    Table schema: hash key ``cache_key`` (S). Items carry ``value`` (JSON
    string) and ``expires_at`` (N, epoch seconds). DynamoDB TTL deletion
    is lazy, so reads treat items past expires_at as absent.

    Example:
        >>> cache = DynamoDBCacheStore(table_name="bento-events-cache")
        >>> cache.set("bento_api:circuit_breaker:failures", 3, ttl=3600)
        >>> cache.get("bento_api:circuit_breaker:failures")
        3
    """

    def __init__(
        self,
        table_name: str,
        region_name: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize DynamoDB cache store.

        Args:
            table_name: Name of the DynamoDB cache table
            region_name: AWS region; boto3 default resolution when omitted
            clock: Time source used for expiry

        Raises:
            ValueError: If table_name is empty or invalid
        """
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.clock = clock
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)

        logger.info("DynamoDB cache store initialized", table_name=table_name)

    def get(self, key: str) -> Optional[Any]:
        try:
            response = self.table.get_item(Key={'cache_key': key})
        except ClientError as e:
            _log_client_error("Failed to read cache entry", self.table_name, e, cache_key=key)
            raise

        item = response.get('Item')
        if not item:
            return None

        if int(item['expires_at']) <= int(self.clock()):
            return None

        return json.loads(item['value'])

    def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            self.table.put_item(Item={
                'cache_key': key,
                'value': json.dumps(value),
                'expires_at': int(self.clock()) + int(ttl)
            })
        except ClientError as e:
            _log_client_error("Failed to write cache entry", self.table_name, e, cache_key=key)
            raise

    def delete(self, key: str) -> None:
        try:
            self.table.delete_item(Key={'cache_key': key})
        except ClientError as e:
            _log_client_error("Failed to delete cache entry", self.table_name, e, cache_key=key)
            raise


class DynamoDBScheduledRetryStore:
    """
    Scheduled retry records in a DynamoDB table.

    Table schema: hash key ``retry_key`` (S). Items carry ``item`` (JSON
    string of the QueueItem), ``scheduled_time`` (N) and ``created`` (N).
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB scheduled retry store.

        Args:
            table_name: Name of the DynamoDB scheduled retries table
            region_name: AWS region; boto3 default resolution when omitted

        Raises:
            ValueError: If table_name is empty or invalid
        """
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)

        logger.info("DynamoDB scheduled retry store initialized", table_name=table_name)

    def put(self, record: ScheduledRetry) -> None:
        try:
            self.table.put_item(Item={
                'retry_key': record.key,
                'item': record.item.model_dump_json(),
                'scheduled_time': record.scheduled_time,
                'created': record.created
            })
        except ClientError as e:
            _log_client_error(
                "Failed to store scheduled retry",
                self.table_name,
                e,
                retry_key=record.key
            )
            raise

        logger.debug(
            "Scheduled retry stored in DynamoDB",
            retry_key=record.key,
            scheduled_time=record.scheduled_time
        )

    def due(self, now: int) -> List[ScheduledRetry]:
        """
        Return due records.

        Rows that do not parse are logged and skipped so they cannot
        block the rest of the sweep.
        """
        records: List[ScheduledRetry] = []
        for item in self._scan(FilterExpression=Attr('scheduled_time').lte(now)):
            try:
                records.append(self._to_record(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(
                    "Skipping unreadable scheduled retry",
                    table_name=self.table_name,
                    retry_key=item.get('retry_key'),
                    error_type=type(e).__name__
                )
        return records

    def claim(self, key: str) -> bool:
        try:
            self.table.delete_item(
                Key={'retry_key': key},
                ConditionExpression='attribute_exists(retry_key)'
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                # Another sweep promoted it first
                return False
            _log_client_error("Failed to claim scheduled retry", self.table_name, e, retry_key=key)
            raise
        return True

    def count(self) -> int:
        total = 0
        kwargs: Dict[str, Any] = {'Select': 'COUNT'}
        while True:
            response = self.table.scan(**kwargs)
            total += response['Count']
            if 'LastEvaluatedKey' not in response:
                return total
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    def _scan(self, **kwargs) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        try:
            while True:
                response = self.table.scan(**kwargs)
                items.extend(response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    return items
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except ClientError as e:
            _log_client_error("Failed to scan scheduled retries", self.table_name, e)
            raise

    @staticmethod
    def _to_record(item: Dict[str, Any]) -> ScheduledRetry:
        return ScheduledRetry(
            key=item['retry_key'],
            item=QueueItem.model_validate_json(item['item']),
            scheduled_time=int(item['scheduled_time']),
            created=int(item['created'])
        )
