"""
Module: conftest.py
Description: Shared pytest fixtures for delivery pipeline tests.

Provides settings, a controllable clock, in-memory queues and stores,
a scriptable delivery stub, and moto-backed SQS / DynamoDB resources
for the AWS adapters.
"""

import boto3
import pytest
from moto import mock_aws

from bento_events.config.settings import Settings
from bento_events.delivery.gateway import GatewayGuard
from bento_events.delivery.retry import RetryScheduler
from bento_events.delivery.submission import DirectSender, EventSubmissionGate
from bento_events.delivery.worker import DeliveryWorker
from bento_events.pipeline import build_local_pipeline
from bento_events.queues.memory import InMemoryWorkQueue
from bento_events.storage.memory import InMemoryCacheStore, InMemoryScheduledRetryStore

START_TIME = 1_700_000_000


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = START_TIME):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubDeliverer:
    """
    Delivery primitive double.

    Records every envelope it is called with and raises the scripted
    errors in order; once the script runs out, calls succeed.
    """

    def __init__(self):
        self.calls = []
        self.script = []

    def fail_with(self, *errors: Exception) -> "StubDeliverer":
        self.script.extend(errors)
        return self

    def __call__(self, envelope) -> None:
        self.calls.append(envelope)
        if self.script:
            raise self.script.pop(0)


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values = {
        "log_level": "DEBUG",
        "stage": "test",
        "event_queue_url": "",
        "dead_letter_queue_url": "",
        "max_attempts": 3,
        "base_delay": 60,
        "max_delay": 300,
        "dead_letter_retention": 2592000,
        "enable_rate_limiting": True,
        "max_requests_per_minute": 60,
        "max_requests_per_hour": 1000,
        "enable_circuit_breaker": True,
        "circuit_breaker_failure_threshold": 5,
        "circuit_breaker_timeout": 300,
        "bento_site_uuid": "",
        "bento_publishable_key": "",
        "bento_secret_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings_factory():
    """Build isolated settings with overrides."""
    return make_settings


@pytest.fixture
def test_settings():
    """Default pipeline settings for tests."""
    return make_settings()


@pytest.fixture
def settings_provider(test_settings):
    return lambda: test_settings


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_envelope():
    """A typical producer event."""
    return {
        "type": "user_registration",
        "email": "a@example.com",
        "fields": {"first_name": "Ada"},
        "details": {"source": "signup_form", "plan": {"name": "pro", "seats": 3}},
    }


@pytest.fixture
def work_queue():
    return InMemoryWorkQueue("events")


@pytest.fixture
def dead_letter_queue():
    return InMemoryWorkQueue("dead-letter")


@pytest.fixture
def retry_store():
    return InMemoryScheduledRetryStore()


@pytest.fixture
def cache(clock):
    return InMemoryCacheStore(clock)


@pytest.fixture
def deliverer():
    return StubDeliverer()


@pytest.fixture
def guard(cache, settings_provider, clock):
    return GatewayGuard(cache, settings_provider, clock)


@pytest.fixture
def retry_scheduler(work_queue, dead_letter_queue, retry_store, settings_provider, clock):
    return RetryScheduler(
        work_queue,
        dead_letter_queue,
        retry_store,
        settings_provider=settings_provider,
        clock=clock
    )


@pytest.fixture
def worker(work_queue, deliverer, retry_scheduler, guard, settings_provider):
    return DeliveryWorker(
        work_queue,
        deliverer,
        retry_scheduler,
        guard=guard,
        settings_provider=settings_provider
    )


@pytest.fixture
def gate(work_queue, deliverer, guard, clock):
    return EventSubmissionGate(work_queue, DirectSender(deliverer, guard=guard), clock=clock)


@pytest.fixture
def pipeline(deliverer, clock, settings_provider):
    """Fully wired in-memory pipeline."""
    return build_local_pipeline(deliverer, clock=clock, settings_provider=settings_provider)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def sqs_queue_urls(aws_credentials):
    """Mocked SQS work and dead-letter queues."""
    with mock_aws():
        sqs = boto3.client("sqs", region_name="us-east-1")
        events_url = sqs.create_queue(QueueName="test-events")["QueueUrl"]
        dead_letter_url = sqs.create_queue(QueueName="test-events-dead-letter")["QueueUrl"]
        yield {"events": events_url, "dead_letter": dead_letter_url}


@pytest.fixture
def dynamodb_tables(aws_credentials):
    """Mocked cache and scheduled retry tables."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        cache_table = dynamodb.create_table(
            TableName="test-cache",
            KeySchema=[{"AttributeName": "cache_key", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "cache_key", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST"
        )
        retries_table = dynamodb.create_table(
            TableName="test-scheduled-retries",
            KeySchema=[{"AttributeName": "retry_key", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "retry_key", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST"
        )

        yield {"cache": cache_table, "scheduled_retries": retries_table}
