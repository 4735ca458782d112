"""Read-only snapshot of user data used to personalise recommendations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from healthtrack.db.models.goal import SleepGoal, WeightGoal
from healthtrack.db.models.user_settings import SETTINGS_ROW_ID, UserSettings
from healthtrack.db.models.weight_entry import WeightEntry


@dataclass(frozen=True)
class UserContext:
    current_weight: Optional[float] = None
    goal_weight: Optional[float] = None
    weight_unit: Optional[str] = None
    target_sleep_hours: Optional[float] = None


def get_user_context(db: Session) -> UserContext:
    latest_weight = (
        db.query(WeightEntry.weight)
        .order_by(desc(WeightEntry.date), desc(WeightEntry.id))
        .first()
    )
    goal = db.query(WeightGoal).order_by(desc(WeightGoal.created_at), desc(WeightGoal.id)).first()
    sleep_goal = db.query(SleepGoal).order_by(desc(SleepGoal.created_at), desc(SleepGoal.id)).first()
    prefs = db.get(UserSettings, SETTINGS_ROW_ID)

    return UserContext(
        current_weight=latest_weight[0] if latest_weight else None,
        goal_weight=goal.target_weight if goal else None,
        weight_unit=prefs.weight_unit if prefs else None,
        target_sleep_hours=sleep_goal.target_hours if sleep_goal else None,
    )
