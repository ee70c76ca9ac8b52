"""
Module: errors.py
Description: Typed delivery failures.

The delivery primitive raises DeliveryError tagged with a FailureKind,
so retry policy is a total function over a closed set of tags instead
of a guess over free-text messages. Guard rejections are DeliveryErrors
too, and always retryable.
"""

from enum import Enum


class FailureKind(str, Enum):
    """Closed set of delivery failure causes."""

    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    UNAVAILABLE = "unavailable"
    CLIENT_ERROR = "client_error"
    VALIDATION = "validation"
    AUTH = "auth"


class DeliveryError(Exception):
    """A delivery attempt failed for the given reason."""

    def __init__(self, message: str, kind: FailureKind):
        super().__init__(message)
        self.kind = kind


class RateLimitExceeded(DeliveryError):
    """Outbound call refused by the rate limiter."""

    def __init__(self, message: str = "API rate limit exceeded. Please try again later."):
        super().__init__(message, FailureKind.RATE_LIMITED)


class CircuitOpenError(DeliveryError):
    """Outbound call refused because the circuit breaker is open."""

    def __init__(self, message: str = "API service temporarily unavailable. Please try again later."):
        super().__init__(message, FailureKind.UNAVAILABLE)
