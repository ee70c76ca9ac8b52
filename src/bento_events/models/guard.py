"""
Module: guard.py
Description: Circuit breaker record stored in the shared cache.
"""

from pydantic import BaseModel, Field


class CircuitBreakerState(BaseModel):
    """
    Open-breaker record. Absence of the record means the breaker is closed.

    Attributes:
        opened_at: Unix timestamp when the breaker opened
        failure_count: Consecutive failures that opened it
    """

    opened_at: int = Field(..., gt=0)
    failure_count: int = Field(..., ge=1)

    def is_open(self, now: int, timeout: int) -> bool:
        return now - self.opened_at <= timeout
