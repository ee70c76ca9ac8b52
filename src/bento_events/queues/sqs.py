"""
Module: sqs.py
Description: SQS-backed work queue.

Implements the WorkQueue contract over an SQS queue: create sends a
message, claim receives one message under a visibility timeout, delete
acknowledges it and release makes it visible again immediately. The
same class backs the main work queue and the dead-letter queue.
"""

import json
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from bento_events.config.settings import SettingsProvider
from bento_events.queues.base import ClaimedItem
from bento_events.utils.logger import get_logger

logger = get_logger(__name__)


class SQSWorkQueue:
    """
    SQS work queue.

    Attributes:
        queue_url: URL of the SQS queue
        name: Short name used in log lines
        visibility_timeout: Seconds a claimed message stays hidden, used
            when no settings provider is given
    """

    def __init__(
        self,
        queue_url: str,
        name: str = "events",
        visibility_timeout: int = 60,
        region_name: Optional[str] = None,
        settings_provider: Optional[SettingsProvider] = None
    ):
        """
        Initialize SQS work queue.

        Args:
            queue_url: URL of the SQS queue
            name: Short name used in log lines
            visibility_timeout: Seconds a claimed message stays hidden
            region_name: AWS region; boto3 default resolution when omitted
            settings_provider: When given, queue_visibility_timeout is read
                from it on every claim

        Raises:
            ValueError: If queue_url is empty
        """
        if not queue_url or not isinstance(queue_url, str):
            raise ValueError("queue_url must be a non-empty string")

        self.queue_url = queue_url
        self.name = name
        self.visibility_timeout = visibility_timeout
        self.settings_provider = settings_provider
        self.sqs = boto3.client('sqs', region_name=region_name)

        logger.info(
            "SQS work queue initialized",
            queue=name,
            queue_url=queue_url
        )

    def create(self, item: dict) -> str:
        """
        Send an item to the queue.

        Args:
            item: JSON-serializable item

        Returns:
            Message ID from SQS

        Raises:
            ClientError: If the SQS operation fails
        """
        try:
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(item)
            )
        except ClientError as e:
            logger.error(
                "Failed to send message to SQS",
                queue=self.name,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise

        message_id = response['MessageId']
        logger.debug("Message sent to SQS", queue=self.name, message_id=message_id)
        return message_id

    def get_visibility_timeout(self) -> int:
        if self.settings_provider is None:
            return self.visibility_timeout
        return self.settings_provider().queue_visibility_timeout

    def claim(self) -> Optional[ClaimedItem]:
        """
        Receive one message under the visibility timeout.

        Bodies that are not valid JSON are returned as raw strings so the
        worker can discard them as malformed.
        """
        response = self.sqs.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=1,
            VisibilityTimeout=self.get_visibility_timeout(),
            WaitTimeSeconds=0
        )

        messages = response.get('Messages', [])
        if not messages:
            return None

        message = messages[0]
        try:
            data = json.loads(message['Body'])
        except ValueError:
            logger.warning(
                "SQS message body is not JSON",
                queue=self.name,
                message_id=message['MessageId']
            )
            data = message['Body']

        return ClaimedItem(
            data=data,
            handle=message['ReceiptHandle'],
            item_id=message['MessageId']
        )

    def delete(self, claimed: ClaimedItem) -> None:
        self.sqs.delete_message(
            QueueUrl=self.queue_url,
            ReceiptHandle=claimed.handle
        )

    def release(self, claimed: ClaimedItem) -> None:
        self.sqs.change_message_visibility(
            QueueUrl=self.queue_url,
            ReceiptHandle=claimed.handle,
            VisibilityTimeout=0
        )

    def count(self) -> int:
        response = self.sqs.get_queue_attributes(
            QueueUrl=self.queue_url,
            AttributeNames=['ApproximateNumberOfMessages']
        )
        return int(response['Attributes']['ApproximateNumberOfMessages'])
