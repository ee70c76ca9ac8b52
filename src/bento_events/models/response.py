"""
Module: response.py
Description: API response models for the event intake endpoints.
"""

from pydantic import BaseModel, Field


class SubmitEventResponse(BaseModel):
    """Result of POST /events."""

    accepted: bool = Field(..., description="True if the event was accepted for processing")
    message: str = Field(..., description="Human readable outcome")


class PipelineStatsResponse(BaseModel):
    """Snapshot of the pipeline backlog returned by GET /events/stats."""

    queue_size: int = Field(..., ge=0, description="Items waiting on the work queue")
    scheduled_retries: int = Field(..., ge=0, description="Items waiting for their backoff")
    dead_letter_queue_size: int = Field(..., ge=0, description="Items that exhausted their attempts")
    max_attempts: int = Field(..., ge=1, description="Configured delivery attempts")
