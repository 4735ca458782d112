"""Fasting and sleep session API routes."""
from __future__ import annotations

from time import perf_counter
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from healthtrack.api.schemas.sessions import (
    SessionEndRequest,
    SessionEndResponse,
    SessionStartRequest,
    SessionUpdateRequest,
    SessionView,
)
from healthtrack.db.deps import get_db
from healthtrack.db.models.timed_session import SessionKind
from healthtrack.observability.metrics import log_metric
from healthtrack.observability.tracing import trace
from healthtrack.services.job_runner import RecommendationJobRunner, get_job_runner
from healthtrack.services.session_lifecycle import CloseResult, SessionLifecycle

router = APIRouter(prefix="/sessions", tags=["sessions"])

MSG_QUEUED = "Session completed. Your recommendation is being generated in the background."
MSG_DONE = "Session completed."


def get_lifecycle(
    db: Session = Depends(get_db),
    runner: RecommendationJobRunner = Depends(get_job_runner),
) -> SessionLifecycle:
    return SessionLifecycle(db, runner=runner)


@router.post("/{kind}/start", response_model=SessionView, status_code=status.HTTP_201_CREATED)
def start_session(
    kind: SessionKind,
    payload: SessionStartRequest,
    http_request: Request,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> SessionView:
    """Open a new session of the given kind."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "session.start",
        metadata={"kind": kind.value, "target_hours": payload.target_hours},
        request_id=request_id,
    ):
        session = lifecycle.start_session(kind, payload.start_time, payload.target_hours)

    log_metric("session.start.success", 1, metadata={"kind": kind.value})
    return SessionView.model_validate(session)


@router.get("/{kind}/current", response_model=Optional[SessionView])
def get_current_session(
    kind: SessionKind,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> Optional[SessionView]:
    """Return the open session for ``kind`` or null. Safe to poll after a reload."""
    session = lifecycle.get_current(kind)
    return SessionView.model_validate(session) if session else None


@router.get("/{kind}", response_model=List[SessionView])
def list_sessions(
    kind: SessionKind,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> List[SessionView]:
    sessions = lifecycle.list_sessions(kind)
    log_metric("session.list.count", len(sessions), metadata={"kind": kind.value})
    return [SessionView.model_validate(session) for session in sessions]


@router.patch("/{kind}/{session_id}/end", response_model=SessionEndResponse)
def end_session(
    kind: SessionKind,
    session_id: int,
    payload: SessionEndRequest,
    http_request: Request,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> SessionEndResponse:
    """Close a specific session; queues a recommendation when notes are given."""
    request_id = getattr(http_request.state, "request_id", None)
    start = perf_counter()
    with trace(
        "session.end",
        metadata={"kind": kind.value, "session_id": session_id, "has_notes": bool(payload.notes)},
        request_id=request_id,
    ):
        result = lifecycle.end_session(kind, session_id, payload.end_time, payload.notes)

    return _end_response(kind, result, request_id, start)


@router.post("/{kind}/end", response_model=SessionEndResponse)
def end_current_session(
    kind: SessionKind,
    payload: SessionEndRequest,
    http_request: Request,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> SessionEndResponse:
    """Close whichever session of ``kind`` is open, now or at ``end_time``."""
    request_id = getattr(http_request.state, "request_id", None)
    start = perf_counter()
    with trace(
        "session.end_current",
        metadata={"kind": kind.value, "has_notes": bool(payload.notes)},
        request_id=request_id,
    ):
        if payload.end_time is None:
            result = lifecycle.end_session_now(kind, payload.notes)
        else:
            result = lifecycle.end_session_at(kind, payload.end_time, payload.notes)

    return _end_response(kind, result, request_id, start)


@router.put("/{kind}/{session_id}", response_model=SessionView)
def update_session(
    kind: SessionKind,
    session_id: int,
    payload: SessionUpdateRequest,
    http_request: Request,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> SessionView:
    """Edit a completed session."""
    request_id = getattr(http_request.state, "request_id", None)
    changes = payload.model_dump(exclude_unset=True)
    with trace("session.update", metadata={"kind": kind.value, "session_id": session_id}, request_id=request_id):
        session = lifecycle.update_session(kind, session_id, **changes)
    log_metric("session.update.success", 1, metadata={"kind": kind.value})
    return SessionView.model_validate(session)


@router.delete("/{kind}/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    kind: SessionKind,
    session_id: int,
    http_request: Request,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> Response:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("session.delete", metadata={"kind": kind.value, "session_id": session_id}, request_id=request_id):
        lifecycle.delete_session(kind, session_id)
    log_metric("session.delete.success", 1, metadata={"kind": kind.value})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _end_response(kind: SessionKind, result: CloseResult, request_id: Optional[str], start: float) -> SessionEndResponse:
    latency_ms = (perf_counter() - start) * 1000
    queued = result.recommendation_id is not None
    log_metric("session.end.success", 1, metadata={"kind": kind.value, "recommendation_queued": queued})
    log_metric("session.end.latency_ms", latency_ms, metadata={"kind": kind.value})

    return SessionEndResponse(
        id=result.session.id,
        end_time=result.session.end_time,
        actual_hours=result.actual_hours,
        recommendation_id=result.recommendation_id,
        message=MSG_QUEUED if queued else MSG_DONE,
        request_id=request_id or "",
    )
