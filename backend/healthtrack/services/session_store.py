"""Persistence for fasting and sleep sessions."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthtrack.core.errors import InvalidStateError, NotFoundError, StorageError
from healthtrack.db.models.timed_session import SessionKind, TimedSession

EDITABLE_FIELDS = frozenset({"start_time", "end_time", "target_hours", "actual_hours", "notes"})


class SessionStore:
    """Row-level operations on ``timed_sessions``.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(self, kind: SessionKind, start_time: datetime, target_hours: Optional[float] = None) -> TimedSession:
        session = TimedSession(
            kind=kind.value,
            start_time=start_time,
            target_hours=target_hours,
            completed=False,
        )
        self.db.add(session)
        self._flush()
        return session

    def get_open(self, kind: SessionKind) -> Optional[TimedSession]:
        """Return the most recently started open session of ``kind``."""
        try:
            return (
                self.db.query(TimedSession)
                .filter(TimedSession.kind == kind.value, TimedSession.end_time.is_(None))
                .order_by(desc(TimedSession.start_time), desc(TimedSession.id))
                .first()
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load current {kind.value} session") from exc

    def get_by_id(self, kind: SessionKind, session_id: int) -> Optional[TimedSession]:
        try:
            return (
                self.db.query(TimedSession)
                .filter(TimedSession.id == session_id, TimedSession.kind == kind.value)
                .one_or_none()
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load {kind.value} session {session_id}") from exc

    def list(self, kind: SessionKind) -> List[TimedSession]:
        try:
            return (
                self.db.query(TimedSession)
                .filter(TimedSession.kind == kind.value)
                .order_by(desc(TimedSession.start_time), desc(TimedSession.id))
                .all()
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list {kind.value} sessions") from exc

    def close_session(
        self,
        kind: SessionKind,
        session_id: int,
        *,
        end_time: datetime,
        actual_hours: float,
        notes: Optional[str],
    ) -> TimedSession:
        """Close an open session with one conditional UPDATE.

        The ``end_time IS NULL`` guard makes the database serialise racing
        closes: only the first writer matches a row.
        """
        try:
            updated = (
                self.db.query(TimedSession)
                .filter(
                    TimedSession.id == session_id,
                    TimedSession.kind == kind.value,
                    TimedSession.end_time.is_(None),
                )
                .update(
                    {
                        TimedSession.end_time: end_time,
                        TimedSession.actual_hours: actual_hours,
                        TimedSession.completed: True,
                        TimedSession.notes: notes,
                    },
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to close {kind.value} session {session_id}") from exc

        if updated != 1:
            existing = self.get_by_id(kind, session_id)
            if existing is None:
                raise NotFoundError(f"{kind.value.capitalize()} session {session_id} not found")
            raise InvalidStateError(f"{kind.value.capitalize()} session {session_id} is already closed")

        closed = self.get_by_id(kind, session_id)
        self.db.refresh(closed)
        return closed

    def update(self, kind: SessionKind, session_id: int, **fields: Any) -> TimedSession:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported session fields: {sorted(unknown)}")

        session = self.get_by_id(kind, session_id)
        if session is None:
            raise NotFoundError(f"{kind.value.capitalize()} session {session_id} not found")
        for name, value in fields.items():
            setattr(session, name, value)
        session.completed = session.end_time is not None
        self.db.add(session)
        self._flush()
        return session

    def delete(self, kind: SessionKind, session_id: int) -> None:
        session = self.get_by_id(kind, session_id)
        if session is None:
            raise NotFoundError(f"{kind.value.capitalize()} session {session_id} not found")
        self.db.delete(session)
        self._flush()

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to write session") from exc
