"""Map domain errors onto HTTP responses."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from healthtrack.core.errors import TrackerError
from healthtrack.observability.metrics import log_metric

logger = logging.getLogger(__name__)


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None) or ""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    log_metric("http.error", 1, metadata={"error": exc.code, "route": request.url.path})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code, "request_id": request_id},
        headers={"X-Request-Id": request_id} if request_id else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrackerError, tracker_error_handler)  # type: ignore[arg-type]
