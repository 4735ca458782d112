"""User settings and stats API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthtrack.api.schemas.tracker import StatsResponse, UserSettingsRequest, UserSettingsView
from healthtrack.core.errors import StorageError
from healthtrack.db.deps import get_db
from healthtrack.db.models.user_settings import SETTINGS_ROW_ID, UserSettings
from healthtrack.observability.metrics import log_metric
from healthtrack.observability.tracing import trace
from healthtrack.services.stats_service import get_stats, load_settings_view

router = APIRouter(tags=["settings"])


@router.get("/settings", response_model=UserSettingsView)
def get_user_settings(db: Session = Depends(get_db)) -> UserSettingsView:
    """Return stored settings, falling back to lbs/inches defaults."""
    return load_settings_view(db)


@router.post("/settings", response_model=UserSettingsView)
def save_user_settings(
    payload: UserSettingsRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> UserSettingsView:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("settings.save", metadata=payload.model_dump(), request_id=request_id):
        row = db.get(UserSettings, SETTINGS_ROW_ID) or UserSettings(id=SETTINGS_ROW_ID)
        row.weight_unit = payload.weight_unit
        row.height_unit = payload.height_unit
        row.user_height = payload.user_height
        db.add(row)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Failed to save settings") from exc

    log_metric("settings.save.success", 1, metadata={"weight_unit": payload.weight_unit})
    return load_settings_view(db)


@router.get("/stats", response_model=StatsResponse, tags=["stats"])
def get_tracker_stats(http_request: Request, db: Session = Depends(get_db)) -> StatsResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("stats.get", request_id=request_id):
        return get_stats(db)
