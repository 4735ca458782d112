"""Persistence and state transitions for recommendation jobs."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthtrack.core.errors import InvalidStateError, NotFoundError, StorageError
from healthtrack.db.models.recommendation import TERMINAL_STATUSES, RecommendationJob, RecommendationStatus
from healthtrack.db.models.timed_session import SessionKind

PENDING = RecommendationStatus.PENDING.value
PROCESSING = RecommendationStatus.PROCESSING.value
COMPLETED = RecommendationStatus.COMPLETED.value
FAILED = RecommendationStatus.FAILED.value


class RecommendationStore:
    """Row-level operations on ``recommendations``.

    Every transition is a conditional UPDATE on the expected source status,
    so a job can only be claimed once and only reaches one terminal state.
    Methods flush but never commit.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(self, kind: SessionKind, session_id: int, session_data: Dict[str, Any]) -> RecommendationJob:
        job = RecommendationJob(
            session_kind=kind.value,
            session_id=session_id,
            status=PENDING,
            session_data=session_data,
        )
        self.db.add(job)
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to create recommendation job") from exc
        return job

    def get_by_id(self, job_id: int) -> Optional[RecommendationJob]:
        try:
            return self.db.get(RecommendationJob, job_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load recommendation {job_id}") from exc

    def list(self, *, status: Optional[str] = None, kind: Optional[str] = None) -> List[RecommendationJob]:
        query = self.db.query(RecommendationJob)
        if status:
            query = query.filter(RecommendationJob.status == status)
        if kind:
            query = query.filter(RecommendationJob.session_kind == kind)
        try:
            return query.order_by(desc(RecommendationJob.created_at), desc(RecommendationJob.id)).all()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to list recommendations") from exc

    def list_pending_ids(self) -> List[int]:
        try:
            rows = (
                self.db.query(RecommendationJob.id)
                .filter(RecommendationJob.status == PENDING)
                .order_by(asc(RecommendationJob.id))
                .all()
            )
        except SQLAlchemyError as exc:
            raise StorageError("Failed to list pending recommendations") from exc
        return [row[0] for row in rows]

    def list_stale_ids(self, started_before: datetime) -> List[int]:
        """Ids of jobs stuck in ``processing`` since before ``started_before``."""
        try:
            rows = (
                self.db.query(RecommendationJob.id)
                .filter(
                    RecommendationJob.status == PROCESSING,
                    RecommendationJob.started_at < started_before,
                )
                .order_by(asc(RecommendationJob.id))
                .all()
            )
        except SQLAlchemyError as exc:
            raise StorageError("Failed to list stale recommendations") from exc
        return [row[0] for row in rows]

    def expire(self, job_id: int, started_before: datetime, error: str) -> bool:
        """Fail a ``processing`` job whose worker never finished it. False if it moved on meanwhile."""
        try:
            updated = (
                self.db.query(RecommendationJob)
                .filter(
                    RecommendationJob.id == job_id,
                    RecommendationJob.status == PROCESSING,
                    RecommendationJob.started_at < started_before,
                )
                .update(
                    {
                        RecommendationJob.status: FAILED,
                        RecommendationJob.error: error,
                        RecommendationJob.completed_at: _now(),
                    },
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Failed to expire recommendation {job_id}") from exc
        return updated == 1

    def begin(self, job_id: int) -> Optional[RecommendationJob]:
        """Claim a pending job. Returns None when it was not pending anymore."""
        claimed = self._transition(job_id, PENDING, {RecommendationJob.status: PROCESSING, RecommendationJob.started_at: _now()})
        if not claimed:
            return None
        return self._reload(job_id)

    def succeed(self, job_id: int, result: str) -> RecommendationJob:
        changed = self._transition(
            job_id,
            PROCESSING,
            {
                RecommendationJob.status: COMPLETED,
                RecommendationJob.result: result,
                RecommendationJob.completed_at: _now(),
            },
        )
        if not changed:
            self._raise_for_state(job_id, COMPLETED)
        return self._reload(job_id)

    def fail(self, job_id: int, error: str) -> RecommendationJob:
        changed = self._transition(
            job_id,
            PROCESSING,
            {
                RecommendationJob.status: FAILED,
                RecommendationJob.error: error,
                RecommendationJob.completed_at: _now(),
            },
        )
        if not changed:
            self._raise_for_state(job_id, FAILED)
        return self._reload(job_id)

    def _transition(self, job_id: int, expected: str, values: Dict[Any, Any]) -> bool:
        try:
            updated = (
                self.db.query(RecommendationJob)
                .filter(RecommendationJob.id == job_id, RecommendationJob.status == expected)
                .update(values, synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Failed to update recommendation {job_id}") from exc
        return updated == 1

    def _reload(self, job_id: int) -> RecommendationJob:
        job = self.get_by_id(job_id)
        self.db.refresh(job)
        return job

    def _raise_for_state(self, job_id: int, target: str) -> None:
        job = self.get_by_id(job_id)
        if job is None:
            raise NotFoundError(f"Recommendation {job_id} not found")
        self.db.refresh(job)
        if job.status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Recommendation {job_id} is already {job.status}")
        raise InvalidStateError(f"Recommendation {job_id} cannot move from {job.status} to {target}")


def _now() -> datetime:
    return datetime.now(timezone.utc)
