"""
Module: main.py
Description: FastAPI application entry point for event intake.

Initializes the FastAPI application with the intake routes and error
handlers, and exposes it to API Gateway through Mangum.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from mangum import Mangum

from bento_events import __version__
from bento_events.config.settings import get_settings
from bento_events.handlers.events import router as events_router
from bento_events.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Bento Events",
    description="Event intake for asynchronous delivery to the Bento API",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.include_router(events_router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    settings = get_settings()

    return {
        "status": "ok",
        "message": "Bento events pipeline is healthy",
        "version": settings.app_version,
        "environment": settings.stage
    }


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    Logs unexpected exceptions and returns generic error responses.
    """
    logger.error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": 500,
                "message": "Internal server error",
                "type": "internal_error"
            }
        }
    )


# Lambda handler
handler = Mangum(app, lifespan="off")
