"""
Module: gateway.py
Description: Outbound gateway guard for Bento API calls.

Every outbound delivery attempt passes two gates, rate limiter first,
then circuit breaker, and reports its outcome to the breaker afterwards.
Both gates keep their state in a shared CacheStore so all workers and
the submission fallback see the same counters. Reads and increments are
not atomic; concurrent workers may overshoot a ceiling slightly.

Key Components:
- RateLimiter: per-minute and per-hour call ceilings
- CircuitBreaker: opens after consecutive failures, resets on timeout
- GatewayGuard: runs a delivery callable between the gates

Dependencies: time, typing, cache store, settings, logger
"""

import time
from typing import Callable, Optional, TypeVar

from bento_events.config.settings import SettingsProvider, get_settings
from bento_events.delivery.errors import CircuitOpenError, RateLimitExceeded
from bento_events.models.envelope import EventEnvelope
from bento_events.models.guard import CircuitBreakerState
from bento_events.storage.base import CacheStore
from bento_events.utils.logger import get_logger
from bento_events.utils.sanitize import sanitize_error_message

logger = get_logger(__name__)

T = TypeVar("T")

DeliverFn = Callable[[EventEnvelope], object]

MINUTE_COUNTER_TTL = 120
HOUR_COUNTER_TTL = 7200
FAILURE_COUNTER_TTL = 3600
BREAKER_RECORD_TTL = 3600


class RateLimiter:
    """
    Minute and hour call ceilings over shared cache counters.

    Counters are keyed by time bucket (floor(now / 60), floor(now / 3600))
    and counted on every attempted call, successful or not.
    """

    def __init__(
        self,
        cache: CacheStore,
        settings_provider: SettingsProvider = get_settings,
        clock: Callable[[], float] = time.time,
        key_prefix: str = "bento_api"
    ):
        self.cache = cache
        self.settings_provider = settings_provider
        self.clock = clock
        self.key_prefix = key_prefix

    def minute_key(self, now: int) -> str:
        return f"{self.key_prefix}:rate_limit:minute:{now // 60}"

    def hour_key(self, now: int) -> str:
        return f"{self.key_prefix}:rate_limit:hour:{now // 3600}"

    def check(self) -> None:
        """
        Count one outbound call, refusing it if a ceiling is reached.

        Raises:
            RateLimitExceeded: If the minute or hour ceiling is met
        """
        settings = self.settings_provider()
        if not settings.enable_rate_limiting:
            return

        now = int(self.clock())
        minute_key = self.minute_key(now)
        hour_key = self.hour_key(now)

        minute_count = self.cache.get(minute_key) or 0
        if minute_count >= settings.max_requests_per_minute:
            logger.warning(
                "Bento API rate limit exceeded",
                window="minute",
                count=minute_count,
                max=settings.max_requests_per_minute
            )
            raise RateLimitExceeded()

        hour_count = self.cache.get(hour_key) or 0
        if hour_count >= settings.max_requests_per_hour:
            logger.warning(
                "Bento API rate limit exceeded",
                window="hour",
                count=hour_count,
                max=settings.max_requests_per_hour
            )
            raise RateLimitExceeded("API hourly rate limit exceeded. Please try again later.")

        self.cache.set(minute_key, minute_count + 1, MINUTE_COUNTER_TTL)
        self.cache.set(hour_key, hour_count + 1, HOUR_COUNTER_TTL)


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker over shared cache entries.

    States: closed (no breaker record) and open (record present and
    younger than circuit_breaker_timeout). An open record older than the
    timeout is cleared on the next check and the call goes through.
    """

    def __init__(
        self,
        cache: CacheStore,
        settings_provider: SettingsProvider = get_settings,
        clock: Callable[[], float] = time.time,
        key_prefix: str = "bento_api"
    ):
        self.cache = cache
        self.settings_provider = settings_provider
        self.clock = clock
        self.state_key = f"{key_prefix}:circuit_breaker"
        self.failures_key = f"{key_prefix}:circuit_breaker:failures"

    def get_state(self) -> Optional[CircuitBreakerState]:
        data = self.cache.get(self.state_key)
        if not data:
            return None
        return CircuitBreakerState.model_validate(data)

    def is_open(self) -> bool:
        state = self.get_state()
        if state is None:
            return False
        timeout = self.settings_provider().circuit_breaker_timeout
        return state.is_open(int(self.clock()), timeout)

    def check(self) -> None:
        """
        Refuse the call while the breaker is open.

        Raises:
            CircuitOpenError: If the breaker opened less than
                circuit_breaker_timeout seconds ago
        """
        settings = self.settings_provider()
        if not settings.enable_circuit_breaker:
            return

        state = self.get_state()
        if state is None:
            return

        if not state.is_open(int(self.clock()), settings.circuit_breaker_timeout):
            self.cache.delete(self.state_key)
            logger.info("Circuit breaker reset after timeout", opened_at=state.opened_at)
            return

        logger.warning(
            "Circuit breaker is open, blocking API request",
            opened_at=state.opened_at,
            failure_count=state.failure_count
        )
        raise CircuitOpenError()

    def record_success(self) -> None:
        if not self.settings_provider().enable_circuit_breaker:
            return
        self.cache.delete(self.failures_key)

    def record_failure(self) -> None:
        settings = self.settings_provider()
        if not settings.enable_circuit_breaker:
            return

        failure_count = (self.cache.get(self.failures_key) or 0) + 1
        self.cache.set(self.failures_key, failure_count, FAILURE_COUNTER_TTL)

        if failure_count >= settings.circuit_breaker_failure_threshold:
            state = CircuitBreakerState(
                opened_at=int(self.clock()),
                failure_count=failure_count
            )
            self.cache.set(
                self.state_key,
                state.model_dump(),
                max(BREAKER_RECORD_TTL, settings.circuit_breaker_timeout)
            )
            logger.warning(
                "Circuit breaker opened after consecutive failures",
                failure_count=failure_count
            )


class GatewayGuard:
    """
    Runs outbound calls between the rate limiter and circuit breaker.

    Guard rejections propagate unchanged and are not reported back to
    the breaker; only failures of the call itself count toward opening.

    Example:
        >>> guard = GatewayGuard(cache)
        >>> guard.call(client.deliver, envelope)
    """

    def __init__(
        self,
        cache: CacheStore,
        settings_provider: SettingsProvider = get_settings,
        clock: Callable[[], float] = time.time
    ):
        self.rate_limiter = RateLimiter(cache, settings_provider, clock)
        self.circuit_breaker = CircuitBreaker(cache, settings_provider, clock)

    def check(self) -> None:
        self.rate_limiter.check()
        self.circuit_breaker.check()

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        self.check()

        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.debug(
                "Guarded call failed",
                error=sanitize_error_message(e),
                error_type=type(e).__name__
            )
            raise

        self.circuit_breaker.record_success()
        return result

    def protect(self, deliver: DeliverFn) -> DeliverFn:
        """Wrap a delivery primitive so every call goes through the guard."""
        def guarded_deliver(envelope: EventEnvelope):
            return self.call(deliver, envelope)

        return guarded_deliver
