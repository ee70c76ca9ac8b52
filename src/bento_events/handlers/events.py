"""
Module: events.py
Description: Event intake endpoints.

Implements the HTTP surface producers use to submit events:
- POST /events: validate and queue an event for delivery
- GET /events/stats: queue and retry backlog

Key Components:
- submit_event(): thin adapter over EventSubmissionGate.submit()
- get_stats(): queue size plus retry scheduler stats
- get_event_pipeline(): dependency injection for the pipeline

Dependencies: FastAPI, typing, models, pipeline, utils
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi import status as status_codes
from fastapi.responses import JSONResponse

from bento_events.models.response import PipelineStatsResponse, SubmitEventResponse
from bento_events.pipeline import EventPipeline, get_pipeline
from bento_events.utils.logger import get_logger

router = APIRouter(prefix="/events", tags=["events"])
logger = get_logger(__name__)


def get_event_pipeline() -> EventPipeline:
    """
    Dependency to get the delivery pipeline.

    Returns the process-wide pipeline; tests override this dependency
    with an in-memory pipeline.
    """
    return get_pipeline()


@router.post(
    "",
    status_code=status_codes.HTTP_202_ACCEPTED,
    response_model=SubmitEventResponse,
    responses={400: {"model": SubmitEventResponse}}
)
def submit_event(
    payload: Dict[str, Any] = Body(...),
    pipeline: EventPipeline = Depends(get_event_pipeline)
):
    """
    Accept an event for delivery.

    Example:
        POST /events
        {"type": "user_registration", "email": "a@example.com",
         "fields": {"first_name": "Ada"}}

        Response (202):
        {"accepted": true, "message": "Event accepted for processing"}
    """
    if pipeline.gate.submit(payload):
        return SubmitEventResponse(accepted=True, message="Event accepted for processing")

    return JSONResponse(
        status_code=status_codes.HTTP_400_BAD_REQUEST,
        content=SubmitEventResponse(
            accepted=False,
            message="Event rejected"
        ).model_dump()
    )


@router.get("/stats", response_model=PipelineStatsResponse)
def get_stats(pipeline: EventPipeline = Depends(get_event_pipeline)) -> PipelineStatsResponse:
    """Return the current queue and retry backlog."""
    stats = pipeline.retry_scheduler.get_retry_stats()

    return PipelineStatsResponse(
        queue_size=pipeline.gate.queue_size(),
        scheduled_retries=stats['scheduled_retries'],
        dead_letter_queue_size=stats['dead_letter_queue_size'],
        max_attempts=stats['max_attempts']
    )
