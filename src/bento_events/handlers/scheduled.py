"""
Module: scheduled.py
Description: Lambda handlers for the periodic pipeline triggers.

Both handlers are invoked by EventBridge schedules (every 1 to 5
minutes). The pipeline never schedules itself; overlapping invocations
are safe because queue claims and retry record claims are the only
coordination between them.

Key Components:
- process_queue_handler(): drain the work queue for one tick
- process_retries_handler(): promote due retries, purge old dead letters
"""

from typing import Any, Dict

from bento_events.pipeline import get_pipeline
from bento_events.utils.logger import get_logger
from bento_events.utils.sanitize import sanitize_error_message

logger = get_logger(__name__)


def process_queue_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Drain the work queue.

    Args:
        event: Scheduled event; optional ``max_items`` overrides the batch size
        context: Lambda context

    Returns:
        Outcome counts for this tick
    """
    pipeline = get_pipeline()
    max_items = (event or {}).get('max_items')

    summary = pipeline.worker.process_queue(max_items=max_items)
    return {'status': 'ok', 'summary': summary}


def process_retries_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Promote due scheduled retries and purge expired dead letters.

    Args:
        event: Scheduled event (unused)
        context: Lambda context

    Returns:
        Promotion and purge counts with the current retry stats
    """
    scheduler = get_pipeline().retry_scheduler

    try:
        promoted = scheduler.process_scheduled_retries()
    except Exception as e:
        logger.error(
            "Failed to process scheduled retries",
            error=sanitize_error_message(e),
            error_type=type(e).__name__
        )
        return {'status': 'error', 'error': type(e).__name__}

    try:
        purged = scheduler.purge_expired_dead_letters()
    except Exception as e:
        logger.error(
            "Failed to purge dead letter queue",
            error=sanitize_error_message(e),
            error_type=type(e).__name__
        )
        purged = 0

    return {
        'status': 'ok',
        'promoted': promoted,
        'purged': purged,
        'stats': scheduler.get_retry_stats(),
    }
