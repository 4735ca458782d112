"""Aggregation helpers for the stats endpoint."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from healthtrack.api.schemas.tracker import StatsResponse, UserSettingsView, WeightGoalView
from healthtrack.db.models.goal import WeightGoal
from healthtrack.db.models.user_settings import (
    DEFAULT_HEIGHT_UNIT,
    DEFAULT_WEIGHT_UNIT,
    SETTINGS_ROW_ID,
    UserSettings,
)
from healthtrack.db.models.weight_entry import WeightEntry

LBS_TO_KG = 0.453592
INCHES_TO_M = 0.0254
CM_TO_M = 0.01


def load_settings_view(db: Session) -> UserSettingsView:
    row = db.get(UserSettings, SETTINGS_ROW_ID)
    if row is None:
        return UserSettingsView(weight_unit=DEFAULT_WEIGHT_UNIT, height_unit=DEFAULT_HEIGHT_UNIT, user_height=None)
    return UserSettingsView(weight_unit=row.weight_unit, height_unit=row.height_unit, user_height=row.user_height)


def compute_bmi(weight: float, height: float, *, weight_unit: str, height_unit: str) -> Optional[float]:
    weight_kg = weight * LBS_TO_KG if weight_unit == "lbs" else weight
    height_m = height * INCHES_TO_M if height_unit == "inches" else height * CM_TO_M
    if height_m <= 0:
        return None
    return round(weight_kg / (height_m * height_m), 1)


def compute_progress(current_weight: float, goal: WeightGoal) -> Optional[float]:
    """Percent of the way from start_weight to target_weight; 0 when there is nothing to lose."""
    if goal.start_weight is None:
        return None
    total_to_lose = goal.start_weight - goal.target_weight
    if total_to_lose <= 0:
        return 0.0
    lost_so_far = goal.start_weight - current_weight
    return (lost_so_far / total_to_lose) * 100


def get_stats(db: Session) -> StatsResponse:
    prefs = load_settings_view(db)
    latest = db.query(WeightEntry).order_by(desc(WeightEntry.date), desc(WeightEntry.id)).first()
    current_weight = latest.weight if latest else None
    goal = db.query(WeightGoal).order_by(desc(WeightGoal.created_at), desc(WeightGoal.id)).first()

    bmi = None
    if current_weight and prefs.user_height:
        bmi = compute_bmi(
            current_weight,
            prefs.user_height,
            weight_unit=prefs.weight_unit,
            height_unit=prefs.height_unit,
        )

    progress = None
    if current_weight and goal is not None:
        progress = compute_progress(current_weight, goal)

    return StatsResponse(
        settings=prefs,
        current_weight=current_weight,
        bmi=bmi,
        goal=WeightGoalView.model_validate(goal) if goal else None,
        progress=progress,
    )
