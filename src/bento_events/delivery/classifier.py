"""
Module: classifier.py
Description: Retryable vs permanent classification of delivery failures.

classify_failure() is exact for typed DeliveryErrors. Anything else
(an unexpected exception from a transport, a plain reason string) goes
through classify_error_text(), a substring heuristic that biases
toward retrying so events are not dropped on unknown errors.
"""

from enum import Enum
from typing import Union

from bento_events.delivery.errors import DeliveryError, FailureKind


class FailureClass(str, Enum):
    RETRYABLE = "retryable"
    PERMANENT = "permanent"


PERMANENT_ERROR_PATTERNS = (
    'invalid',
    'malformed',
    'validation',
    'bad request',
    'unauthorized',
    'forbidden',
    'authentication',
    'api key',
)

RETRYABLE_ERROR_PATTERNS = (
    'timeout',
    'connection',
    'network',
    '429',
)

RETRYABLE_KINDS = frozenset({
    FailureKind.NETWORK,
    FailureKind.RATE_LIMITED,
    FailureKind.SERVER_ERROR,
    FailureKind.UNAVAILABLE,
})


def classify_error_text(error_text: str) -> FailureClass:
    """
    Classify a free-text failure reason.

    >>> classify_error_text("401 unauthorized")
    <FailureClass.PERMANENT: 'permanent'>
    >>> classify_error_text("429 too many requests")
    <FailureClass.RETRYABLE: 'retryable'>
    """
    text = (error_text or '').lower()

    if any(pattern in text for pattern in PERMANENT_ERROR_PATTERNS):
        return FailureClass.PERMANENT

    # 4xx client errors, except rate limiting
    if text.startswith('4') and '429' not in text:
        return FailureClass.PERMANENT

    if any(pattern in text for pattern in RETRYABLE_ERROR_PATTERNS):
        return FailureClass.RETRYABLE

    if text.startswith('5'):
        return FailureClass.RETRYABLE

    return FailureClass.RETRYABLE


def classify_failure(error: Union[BaseException, str]) -> FailureClass:
    """Classify a delivery failure, using its kind when it carries one."""
    if isinstance(error, DeliveryError):
        if error.kind in RETRYABLE_KINDS:
            return FailureClass.RETRYABLE
        return FailureClass.PERMANENT

    return classify_error_text(str(error))


def is_retryable(error: Union[BaseException, str]) -> bool:
    return classify_failure(error) is FailureClass.RETRYABLE
