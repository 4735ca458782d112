"""Weight goal and sleep goal API routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthtrack.api.schemas.tracker import SleepGoalRequest, SleepGoalView, WeightGoalRequest, WeightGoalView
from healthtrack.core.errors import StorageError
from healthtrack.db.deps import get_db
from healthtrack.db.models.goal import SleepGoal, WeightGoal
from healthtrack.observability.metrics import log_metric
from healthtrack.observability.tracing import trace

router = APIRouter(tags=["goals"])


@router.get("/goals", response_model=Optional[WeightGoalView])
def get_weight_goal(db: Session = Depends(get_db)) -> Optional[WeightGoalView]:
    """Return the most recently set weight goal, or null."""
    goal = db.query(WeightGoal).order_by(desc(WeightGoal.created_at), desc(WeightGoal.id)).first()
    return WeightGoalView.model_validate(goal) if goal else None


@router.post("/goals", response_model=WeightGoalView, status_code=status.HTTP_201_CREATED)
def set_weight_goal(
    payload: WeightGoalRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> WeightGoalView:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("goals.weight.set", metadata={"target_weight": payload.target_weight}, request_id=request_id):
        goal = WeightGoal(
            target_weight=payload.target_weight,
            start_weight=payload.start_weight,
            target_date=payload.target_date,
        )
        db.add(goal)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Failed to save weight goal") from exc
        db.refresh(goal)

    log_metric("goals.weight.set", 1)
    return WeightGoalView.model_validate(goal)


@router.get("/sleep-goals", response_model=Optional[SleepGoalView])
def get_sleep_goal(db: Session = Depends(get_db)) -> Optional[SleepGoalView]:
    goal = db.query(SleepGoal).order_by(desc(SleepGoal.created_at), desc(SleepGoal.id)).first()
    return SleepGoalView.model_validate(goal) if goal else None


@router.post("/sleep-goals", response_model=SleepGoalView, status_code=status.HTTP_201_CREATED)
def set_sleep_goal(
    payload: SleepGoalRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> SleepGoalView:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("goals.sleep.set", metadata={"target_hours": payload.target_hours}, request_id=request_id):
        goal = SleepGoal(
            target_hours=payload.target_hours,
            target_bedtime=payload.target_bedtime,
            target_wake_time=payload.target_wake_time,
        )
        db.add(goal)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Failed to save sleep goal") from exc
        db.refresh(goal)

    log_metric("goals.sleep.set", 1)
    return SleepGoalView.model_validate(goal)
