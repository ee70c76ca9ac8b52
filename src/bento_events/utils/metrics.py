"""
Module: metrics.py
Description: CloudWatch custom metrics publishing.

Publishes pipeline metrics to CloudWatch for monitoring queue intake,
delivery outcomes, retry promotions and dead-lettering.

Key Components:
- MetricsClient: CloudWatch metrics client
- put_metric(): Publish individual metrics
- increment(): Shorthand for Count metrics
- Graceful error handling for metrics failures

Dependencies: boto3, typing, logger
"""

from typing import Optional

import boto3

from bento_events.utils.logger import get_logger

logger = get_logger(__name__)

EVENTS_QUEUED = "EventsQueued"
EVENTS_DELIVERED = "EventsDelivered"
EVENTS_RETRIED = "EventsRetried"
EVENTS_DEAD_LETTERED = "EventsDeadLettered"
EVENTS_DISCARDED = "EventsDiscarded"
RETRIES_PROMOTED = "RetriesPromoted"
DELIVERY_DURATION_MS = "DeliveryDurationMs"


class MetricsClient:
    """CloudWatch metrics client."""

    def __init__(self, namespace: str = "BentoEvents", region_name: Optional[str] = None):
        """
        Initialize metrics client.

        Args:
            namespace: CloudWatch metrics namespace
            region_name: AWS region; boto3 default resolution when omitted
        """
        self.namespace = namespace
        self.cloudwatch = boto3.client('cloudwatch', region_name=region_name)

        logger.info(
            "Metrics client initialized",
            namespace=namespace
        )

    def put_metric(
        self,
        metric_name: str,
        value: float,
        unit: str = 'Count',
        dimensions: Optional[dict] = None
    ) -> None:
        """
        Publish a metric to CloudWatch.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit (Count, Milliseconds, etc.)
            dimensions: Optional metric dimensions
        """
        try:
            metric_data = {
                'MetricName': metric_name,
                'Value': value,
                'Unit': unit
            }

            if dimensions:
                metric_data['Dimensions'] = [
                    {'Name': k, 'Value': v}
                    for k, v in dimensions.items()
                ]

            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )

            logger.debug(
                "Metric published to CloudWatch",
                metric_name=metric_name,
                value=value,
                unit=unit,
                namespace=self.namespace
            )

        except Exception as e:
            # Don't fail delivery if metrics fail
            logger.warning(
                "Failed to publish metric",
                metric_name=metric_name,
                value=value,
                error=str(e),
                namespace=self.namespace
            )

    def increment(self, metric_name: str, event_type: Optional[str] = None) -> None:
        """Publish a Count of one, dimensioned by event type when given."""
        dimensions = {'EventType': event_type} if event_type else None
        self.put_metric(metric_name, 1.0, dimensions=dimensions)
