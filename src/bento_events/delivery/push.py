"""
Module: push.py
Description: Push event delivery to the Bento API.

Implements the delivery primitive: one HTTP POST per event to the
batch events endpoint. Every failure is raised as a DeliveryError
tagged with its FailureKind, so the worker's classifier never has to
parse transport messages.
"""

import time
from typing import Any, Dict

import httpx

from bento_events.config.settings import Settings, SettingsProvider, get_settings
from bento_events.delivery.errors import DeliveryError, FailureKind
from bento_events.models.envelope import EventEnvelope
from bento_events.utils.logger import get_logger
from bento_events.utils.sanitize import sanitize_email, sanitize_error_message

logger = get_logger(__name__)

EVENTS_ENDPOINT = "batch/events"

_STATUS_MESSAGES = {
    400: "Bento API rejected the event as a bad request",
    401: "invalid Bento API credentials",
    403: "access denied to Bento API resource",
    404: "Bento API endpoint not found",
    422: "Bento API validation failed for the event",
    429: "Bento API rate limit exceeded",
}


def _kind_for_status(status_code: int) -> FailureKind:
    if status_code in (401, 403):
        return FailureKind.AUTH
    if status_code == 429:
        return FailureKind.RATE_LIMITED
    if status_code in (400, 422):
        return FailureKind.VALIDATION
    if status_code >= 500:
        return FailureKind.SERVER_ERROR
    return FailureKind.CLIENT_ERROR


def format_event_payload(envelope: EventEnvelope) -> Dict[str, Any]:
    """
    Build the batch events request body for one envelope.

    A ``timestamp`` detail is added when the producer did not set one.
    """
    details = dict(envelope.details)
    details.setdefault('timestamp', int(time.time()))

    return {
        'events': [
            {
                'type': envelope.type,
                'email': envelope.email,
                'fields': dict(envelope.fields),
                'details': details,
            }
        ]
    }


class BentoClient:
    """
    HTTP client delivering events to Bento.

    Handles delivery attempts with request and connection timeouts and
    maps transport errors and HTTP statuses to DeliveryErrors. The base
    URL, credentials and timeouts are read from the settings provider on
    every call, so reloaded settings apply to the next delivery.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider = get_settings,
        timeout_setting: str = "request_timeout"
    ):
        """
        Initialize Bento client.

        Args:
            settings_provider: Source of API location, keys and timeouts
            timeout_setting: Name of the setting holding the request
                timeout (``direct_send_timeout`` for the fallback client)
        """
        self.settings_provider = settings_provider
        self.timeout_setting = timeout_setting

        logger.info("Bento client initialized", timeout_setting=timeout_setting)

    @staticmethod
    def is_configured(settings: Settings) -> bool:
        return bool(
            settings.bento_site_uuid
            and settings.bento_publishable_key
            and settings.bento_secret_key
        )

    def get_timeout(self, settings: Settings) -> httpx.Timeout:
        return httpx.Timeout(
            getattr(settings, self.timeout_setting),
            connect=settings.connection_timeout
        )

    def deliver(self, envelope: EventEnvelope) -> None:
        """
        Deliver one event to Bento via HTTP POST.

        Args:
            envelope: Event to deliver

        Raises:
            DeliveryError: If the event was not accepted
        """
        settings = self.settings_provider()
        if not self.is_configured(settings):
            raise DeliveryError(
                "Bento API credentials are not configured",
                FailureKind.AUTH
            )

        start = time.monotonic()
        with httpx.Client(timeout=self.get_timeout(settings)) as client:
            try:
                response = client.post(
                    settings.bento_api_base_url + EVENTS_ENDPOINT,
                    params={'site_uuid': settings.bento_site_uuid},
                    json=format_event_payload(envelope),
                    auth=(settings.bento_publishable_key, settings.bento_secret_key),
                    headers={'Accept': 'application/json'}
                )
                response.raise_for_status()

            except httpx.TimeoutException as e:
                logger.warning(
                    "Event delivery timeout",
                    event_type=envelope.type,
                    email=sanitize_email(envelope.email)
                )
                raise DeliveryError(
                    "connection timeout while contacting Bento API",
                    FailureKind.NETWORK
                ) from e

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                detail = _STATUS_MESSAGES.get(
                    status_code,
                    "Bento API server error" if status_code >= 500 else "Bento API request failed"
                )
                logger.warning(
                    "Event delivery HTTP error",
                    event_type=envelope.type,
                    email=sanitize_email(envelope.email),
                    status_code=status_code,
                    response=sanitize_error_message(e.response.text)
                )
                raise DeliveryError(
                    f"{status_code} {e.response.reason_phrase}: {detail}",
                    _kind_for_status(status_code)
                ) from e

            except httpx.TransportError as e:
                logger.warning(
                    "Event delivery network error",
                    event_type=envelope.type,
                    email=sanitize_email(envelope.email),
                    error=sanitize_error_message(e)
                )
                raise DeliveryError(
                    "connection to Bento API failed",
                    FailureKind.NETWORK
                ) from e

        logger.info(
            "Event delivered successfully",
            event_type=envelope.type,
            email=sanitize_email(envelope.email),
            status_code=response.status_code,
            response_time_ms=round((time.monotonic() - start) * 1000, 1)
        )
