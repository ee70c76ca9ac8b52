"""
Module: test_sqs_queue.py
Description: Unit tests for the SQS work queue.

Uses moto to mock SQS.
"""

import boto3
import pytest
from botocore.exceptions import ClientError

from bento_events.queues.sqs import SQSWorkQueue


@pytest.fixture
def queue(sqs_queue_urls):
    return SQSWorkQueue(sqs_queue_urls["events"], name="events", region_name="us-east-1")


class TestSQSWorkQueue:
    """Test cases for SQSWorkQueue."""

    def test_initialization_requires_url(self):
        with pytest.raises(ValueError, match="queue_url must be a non-empty string"):
            SQSWorkQueue("")

    def test_create_and_claim(self, queue):
        message_id = queue.create({"event_data": {"type": "signup", "email": "a@example.com"}})

        claimed = queue.claim()

        assert claimed.item_id == message_id
        assert claimed.data == {"event_data": {"type": "signup", "email": "a@example.com"}}
        assert claimed.handle

    def test_claim_empty_queue(self, queue):
        assert queue.claim() is None

    def test_claimed_item_is_hidden(self, queue):
        queue.create({"n": 1})

        assert queue.claim() is not None
        assert queue.claim() is None
        assert queue.count() == 0

    def test_delete_acknowledges(self, queue, sqs_queue_urls):
        queue.create({"n": 1})
        claimed = queue.claim()

        queue.delete(claimed)

        attributes = boto3.client("sqs", region_name="us-east-1").get_queue_attributes(
            QueueUrl=sqs_queue_urls["events"],
            AttributeNames=["ApproximateNumberOfMessagesNotVisible"]
        )
        assert attributes["Attributes"]["ApproximateNumberOfMessagesNotVisible"] == "0"

    def test_release_makes_item_visible(self, queue):
        queue.create({"n": 1})
        claimed = queue.claim()

        queue.release(claimed)

        again = queue.claim()
        assert again is not None
        assert again.data == {"n": 1}

    def test_count(self, queue):
        for n in range(3):
            queue.create({"n": n})

        assert queue.count() == 3

    def test_non_json_body_is_returned_raw(self, queue, sqs_queue_urls):
        boto3.client("sqs", region_name="us-east-1").send_message(
            QueueUrl=sqs_queue_urls["events"],
            MessageBody="not json"
        )

        assert queue.claim().data == "not json"

    def test_create_error_propagates(self, queue, monkeypatch):
        def fail(**kwargs):
            raise ClientError(
                {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "gone"}},
                "SendMessage"
            )

        monkeypatch.setattr(queue.sqs, "send_message", fail)

        with pytest.raises(ClientError):
            queue.create({"n": 1})

    def test_visibility_timeout_follows_settings(self, sqs_queue_urls, settings_factory):
        current = {"settings": settings_factory(queue_visibility_timeout=30)}
        queue = SQSWorkQueue(
            sqs_queue_urls["events"],
            region_name="us-east-1",
            settings_provider=lambda: current["settings"]
        )

        assert queue.get_visibility_timeout() == 30

        current["settings"] = settings_factory(queue_visibility_timeout=90)
        assert queue.get_visibility_timeout() == 90

    def test_fixed_visibility_timeout_without_provider(self, queue):
        assert queue.get_visibility_timeout() == 60
