"""Main FastAPI application for the Health Track backend."""
import logging

from fastapi import FastAPI, Request
from sqlalchemy.exc import SQLAlchemyError

from healthtrack.api.errors import register_exception_handlers
from healthtrack.api.routes.goals import router as goals_router
from healthtrack.api.routes.recommendations import router as recommendations_router
from healthtrack.api.routes.sessions import router as sessions_router
from healthtrack.api.routes.user_settings import router as user_settings_router
from healthtrack.api.routes.weight import router as weight_router
from healthtrack.core.config import settings
from healthtrack.core.errors import StorageError
from healthtrack.core.logging import configure_logging
from healthtrack.core.middleware import RequestIDMiddleware
from healthtrack.observability.client import init_opik
from healthtrack.observability.tracing import trace
from healthtrack.services.job_runner import get_job_runner, shutdown_job_runner

configure_logging(log_level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
register_exception_handlers(app)
app.include_router(sessions_router)
app.include_router(recommendations_router)
app.include_router(weight_router)
app.include_router(goals_router)
app.include_router(user_settings_router)


@app.on_event("startup")
async def startup_background_services() -> None:
    """Initialize observability and the recommendation runner after the event loop starts."""
    init_opik()
    runner = get_job_runner()
    runner.start()
    if settings.jobs_resume_on_startup:
        try:
            runner.resume_pending()
        except (StorageError, SQLAlchemyError):
            logger.warning("Could not resume pending recommendations on startup", exc_info=True)


@app.on_event("shutdown")
async def shutdown_background_services() -> None:
    shutdown_job_runner(wait=False)


@app.get("/health", tags=["health"], summary="Readiness check")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can check the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
