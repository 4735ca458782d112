"""Recommendation job API routes."""
from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from healthtrack.api.schemas.recommendations import RecommendationView
from healthtrack.core.errors import NotFoundError
from healthtrack.db.deps import get_db
from healthtrack.observability.metrics import log_metric
from healthtrack.observability.tracing import trace
from healthtrack.services.recommendation_store import RecommendationStore

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("", response_model=List[RecommendationView])
def list_recommendations(
    http_request: Request,
    status: Optional[Literal["pending", "processing", "completed", "failed"]] = Query(default=None),
    kind: Optional[Literal["fasting", "sleep"]] = Query(default=None),
    db: Session = Depends(get_db),
) -> List[RecommendationView]:
    """List recommendation jobs, newest first, optionally filtered."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("recommendation.list", metadata={"status": status, "kind": kind}, request_id=request_id):
        jobs = RecommendationStore(db).list(status=status, kind=kind)

    log_metric("recommendation.list.count", len(jobs), metadata={"status": status, "kind": kind})
    return [RecommendationView.model_validate(job) for job in jobs]


@router.get("/{recommendation_id}", response_model=RecommendationView)
def get_recommendation(
    recommendation_id: int,
    db: Session = Depends(get_db),
) -> RecommendationView:
    job = RecommendationStore(db).get_by_id(recommendation_id)
    if job is None:
        raise NotFoundError(f"Recommendation {recommendation_id} not found")
    return RecommendationView.model_validate(job)
