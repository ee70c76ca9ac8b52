"""
Package: handlers
Description: Entry points of the delivery pipeline.

- events: FastAPI router for event intake
- scheduled: Lambda handlers for the periodic worker and retry sweep
"""

__all__ = []
