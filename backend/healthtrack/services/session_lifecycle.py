"""Open/closed state machine for fasting and sleep sessions.

A session is created open by ``start_session`` and closed exactly once by one
of the ``end_session*`` operations; a closed session is terminal. The current
session of a kind is always re-read from the store rather than cached.

Two behaviours are configurable through ``strict``:

* lenient (default): a second session of the same kind may be started while
  one is open, and a close with ``end_time`` before ``start_time`` records a
  negative ``actual_hours``;
* strict: the first raises ``AlreadyActiveError`` and the second raises
  ``ValidationError``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthtrack.core.config import settings
from healthtrack.core.errors import (
    AlreadyActiveError,
    InvalidStateError,
    NoActiveSessionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from healthtrack.db.models.timed_session import SessionKind, TimedSession
from healthtrack.db.types import ensure_utc
from healthtrack.observability.metrics import log_metric
from healthtrack.services.job_runner import RecommendationJobRunner
from healthtrack.services.session_store import SessionStore

logger = logging.getLogger(__name__)

Instant = Union[datetime, str]

_UNSET = object()


@dataclass
class CloseResult:
    session: TimedSession
    recommendation_id: Optional[int]

    @property
    def actual_hours(self) -> float:
        return self.session.actual_hours


def parse_instant(value: Optional[Instant], *, field: str) -> datetime:
    """Coerce an ISO-8601 string or datetime into an aware UTC datetime."""
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError as exc:
            raise ValidationError(f"{field} is not a valid timestamp: {value!r}") from exc
    raise ValidationError(f"{field} must be a timestamp")


def duration_hours(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600


def clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    trimmed = notes.strip()
    return trimmed or None


class SessionLifecycle:
    def __init__(
        self,
        db: Session,
        *,
        runner: Optional[RecommendationJobRunner] = None,
        strict: Optional[bool] = None,
        recommendations_enabled: Optional[bool] = None,
    ) -> None:
        self.db = db
        self.sessions = SessionStore(db)
        self.runner = runner
        self.strict = settings.strict_sessions if strict is None else strict
        self.recommendations_enabled = (
            settings.recommendations_enabled if recommendations_enabled is None else recommendations_enabled
        )

    def start_session(
        self,
        kind: SessionKind,
        start_time: Optional[Instant],
        target_hours: Optional[float] = None,
    ) -> TimedSession:
        start = parse_instant(start_time, field="start_time")
        target = _validate_target_hours(kind, target_hours)

        if self.strict:
            current = self.sessions.get_open(kind)
            if current is not None:
                raise AlreadyActiveError(kind.value, current.id)

        session = self.sessions.create(kind, start, target)
        self._commit()
        self.db.refresh(session)
        log_metric("session.started", 1, metadata={"kind": kind.value})
        logger.info("Started %s session %s at %s", kind.value, session.id, start.isoformat())
        return session

    def get_current(self, kind: SessionKind) -> Optional[TimedSession]:
        return self.sessions.get_open(kind)

    def list_sessions(self, kind: SessionKind) -> List[TimedSession]:
        return self.sessions.list(kind)

    def end_session_now(self, kind: SessionKind, notes: Optional[str] = None) -> CloseResult:
        return self.end_session_at(kind, _now(), notes)

    def end_session_at(self, kind: SessionKind, end_time: Optional[Instant], notes: Optional[str] = None) -> CloseResult:
        """Close whichever session of ``kind`` is currently open."""
        end = parse_instant(end_time, field="end_time") if end_time is not None else _now()
        current = self.sessions.get_open(kind)
        if current is None:
            raise NoActiveSessionError(kind.value)
        return self._close(kind, current, end, notes)

    def end_session(
        self,
        kind: SessionKind,
        session_id: int,
        end_time: Optional[Instant] = None,
        notes: Optional[str] = None,
    ) -> CloseResult:
        """Close a specific session by id."""
        end = parse_instant(end_time, field="end_time") if end_time is not None else _now()
        session = self.sessions.get_by_id(kind, session_id)
        if session is None:
            raise NotFoundError(f"{kind.value.capitalize()} session {session_id} not found")
        if not session.is_open:
            raise InvalidStateError(f"{kind.value.capitalize()} session {session_id} is already closed")
        return self._close(kind, session, end, notes)

    def update_session(
        self,
        kind: SessionKind,
        session_id: int,
        *,
        start_time: Optional[Instant] = None,
        end_time: Optional[Instant] = None,
        target_hours: Optional[float] = None,
        notes: object = _UNSET,
    ) -> TimedSession:
        """Edit a closed (historical) session and recompute its duration."""
        session = self.sessions.get_by_id(kind, session_id)
        if session is None:
            raise NotFoundError(f"{kind.value.capitalize()} session {session_id} not found")
        if session.is_open:
            raise InvalidStateError(
                f"{kind.value.capitalize()} session {session_id} is still open; end it before editing"
            )

        start = parse_instant(start_time, field="start_time") if start_time is not None else session.start_time
        end = parse_instant(end_time, field="end_time") if end_time is not None else session.end_time
        fields = {
            "start_time": start,
            "end_time": end,
            "actual_hours": self._checked_duration(start, end),
        }
        if target_hours is not None:
            fields["target_hours"] = _validate_target_hours(kind, target_hours)
        if notes is not _UNSET:
            fields["notes"] = clean_notes(notes)  # type: ignore[arg-type]

        updated = self.sessions.update(kind, session_id, **fields)
        self._commit()
        self.db.refresh(updated)
        return updated

    def delete_session(self, kind: SessionKind, session_id: int) -> None:
        self.sessions.delete(kind, session_id)
        self._commit()
        logger.info("Deleted %s session %s", kind.value, session_id)

    def _close(self, kind: SessionKind, session: TimedSession, end: datetime, notes: Optional[str]) -> CloseResult:
        actual_hours = self._checked_duration(session.start_time, end)
        cleaned = clean_notes(notes)

        closed = self.sessions.close_session(
            kind,
            session.id,
            end_time=end,
            actual_hours=actual_hours,
            notes=cleaned,
        )

        recommendation_id: Optional[int] = None
        if cleaned and self.recommendations_enabled and self.runner is not None:
            recommendation_id = self.runner.enqueue(self.db, kind, closed)

        # The close and its pending job commit together; dispatch only after.
        self._commit()
        if recommendation_id is not None:
            self.runner.dispatch(recommendation_id)

        self.db.refresh(closed)
        log_metric("session.closed", 1, metadata={"kind": kind.value, "actual_hours": actual_hours})
        logger.info(
            "Closed %s session %s after %.2f h (recommendation=%s)",
            kind.value,
            closed.id,
            actual_hours,
            recommendation_id,
        )
        return CloseResult(session=closed, recommendation_id=recommendation_id)

    def _checked_duration(self, start: datetime, end: datetime) -> float:
        hours = duration_hours(start, end)
        if hours < 0:
            if self.strict:
                raise ValidationError("end_time must not be earlier than start_time")
            logger.warning("Session end %s precedes start %s; recording negative duration", end, start)
        return hours

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to save session changes") from exc


def _validate_target_hours(kind: SessionKind, target_hours: Optional[float]) -> Optional[float]:
    if kind is SessionKind.SLEEP:
        if target_hours is not None:
            raise ValidationError("target_hours only applies to fasting sessions")
        return None
    if target_hours is None:
        raise ValidationError("target_hours is required for fasting sessions")
    if isinstance(target_hours, bool) or not isinstance(target_hours, (int, float)):
        raise ValidationError("target_hours must be a number")
    if not math.isfinite(target_hours) or target_hours <= 0:
        raise ValidationError("target_hours must be a positive, finite number")
    return float(target_hours)


def _now() -> datetime:
    return datetime.now(timezone.utc)
