"""
Application Factory
===================

Builds the FastAPI app serving the booking engine, the channel manager and
the platform webhooks.

Run with:
    uvicorn pms_core.app:app
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Type

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config import settings
from .database import create_all, dispose_engine
from .errors import (
    ExternalSyncFailure,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    PMSError,
    Unauthenticated,
    Unauthorized,
    Unavailable,
)
from .logging import configure_logging

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES: Dict[Type[PMSError], int] = {
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Unavailable: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    InvalidRequest: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ExternalSyncFailure: status.HTTP_502_BAD_GATEWAY,
}


def status_code_for(exc: PMSError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return status.HTTP_400_BAD_REQUEST


async def pms_error_handler(request: Request, exc: PMSError) -> JSONResponse:
    status_code = status_code_for(exc)
    body = {"detail": exc.message}
    if isinstance(exc, Unavailable) and exc.conflicts:
        body["conflicts"] = [
            {
                "id": str(block.id),
                "start_date": block.start_date.isoformat(),
                "end_date": block.end_date.isoformat(),
                "reason": block.reason,
            }
            for block in exc.conflicts
        ]

    logger.info(
        "Request rejected",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=status_code, content=body)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT == "development":
        await create_all()
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    from booking_engine.api import router as booking_router
    from channel_manager.api import router as channel_router
    from channel_manager.webhook_handlers import router as webhook_router

    app = FastAPI(
        title="PMS Booking Core",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(PMSError, pms_error_handler)

    app.include_router(booking_router)
    app.include_router(channel_router)
    app.include_router(webhook_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/metrics", tags=["Health"])
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
