"""Background runner for recommendation jobs."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from threading import Lock
from time import perf_counter
from typing import Callable, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from healthtrack.core.config import settings
from healthtrack.core.context import bind_job_id
from healthtrack.core.errors import GenerationError, InvalidStateError, StorageError
from healthtrack.db.models.timed_session import SessionKind, TimedSession
from healthtrack.db.session import SessionLocal
from healthtrack.observability.metrics import log_metric
from healthtrack.observability.tracing import trace
from healthtrack.services.recommendation_generator import (
    RecommendationGenerator,
    build_prompt,
    session_snapshot,
)
from healthtrack.services.recommendation_store import COMPLETED, FAILED, RecommendationStore
from healthtrack.services.text_generation.base import TextGenerator
from healthtrack.services.text_generation.factory import get_text_generator
from healthtrack.services.user_context import get_user_context


logger = logging.getLogger(__name__)


def build_scheduler() -> BackgroundScheduler:
    return BackgroundScheduler(
        timezone=settings.scheduler_timezone,
        executors={"default": ThreadPoolExecutor(max_workers=settings.recommendation_workers)},
        # misfire_grace_time=None: a job queued before start() still runs, however late.
        job_defaults={"coalesce": False, "misfire_grace_time": None, "max_instances": 1},
    )


class RecommendationJobRunner:
    """Turns closed-session notes into recommendations off the request path.

    ``enqueue`` writes a ``pending`` row inside the caller's transaction and
    ``dispatch`` hands the committed job to the scheduler. ``run_job`` does
    the work on a scheduler thread with its own database session.
    """

    def __init__(
        self,
        *,
        session_factory: Optional[sessionmaker] = None,
        text_generator_factory: Optional[Callable[[], TextGenerator]] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._text_generator_factory = text_generator_factory or get_text_generator
        self.scheduler = scheduler if scheduler is not None else build_scheduler()

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Recommendation runner started")

    def shutdown(self, *, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Recommendation runner stopped")

    def enqueue(self, db: Session, kind: SessionKind, session: TimedSession) -> int:
        """Create the pending job record and return its id. The caller commits."""
        job = RecommendationStore(db).create(kind, session.id, session_snapshot(session))
        log_metric("recommendation.enqueued", 1, metadata={"kind": kind.value})
        logger.info("Recommendation %s queued for %s session %s", job.id, kind.value, session.id)
        return job.id

    def dispatch(self, job_id: int) -> None:
        """Schedule a committed job to run as soon as a worker thread is free."""
        try:
            self.scheduler.add_job(
                self.run_job,
                trigger="date",
                args=[job_id],
                id=f"recommendation-{job_id}",
                replace_existing=True,
            )
        except Exception:
            # The job stays pending and is picked up by resume_pending.
            logger.exception("Failed to dispatch recommendation %s", job_id)

    def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Fail ``processing`` jobs whose worker died or lost its database mid-run."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(
            seconds=settings.recommendation_timeout_seconds + settings.stale_job_grace_seconds
        )
        expired = 0
        db = self._session_factory()
        try:
            store = RecommendationStore(db)
            for job_id in store.list_stale_ids(cutoff):
                if store.expire(job_id, cutoff, "Recommendation timed out while processing"):
                    expired += 1
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Failed to expire stale recommendations") from exc
        except StorageError:
            db.rollback()
            raise
        finally:
            db.close()
        if expired:
            log_metric("recommendation.expired", expired)
            logger.warning("Expired %s stale recommendation(s)", expired)
        return expired

    def resume_pending(self) -> int:
        """Dispatch every job still pending, e.g. after a restart. Stale claims are failed first."""
        self.expire_stale()
        db = self._session_factory()
        try:
            job_ids = RecommendationStore(db).list_pending_ids()
        finally:
            db.close()
        for job_id in job_ids:
            self.dispatch(job_id)
        if job_ids:
            logger.info("Resumed %s pending recommendation(s)", len(job_ids))
        return len(job_ids)

    def run_job(self, job_id: int) -> Optional[str]:
        """Drive one job to a terminal state. Returns that state, or None if not claimed."""
        with bind_job_id(job_id):
            db = self._session_factory()
            try:
                return self._process(db, job_id)
            except InvalidStateError as exc:
                # Expired by a sweep while generation was still running.
                db.rollback()
                logger.warning("Recommendation %s finished too late: %s", job_id, exc.message)
                return None
            except StorageError as exc:
                db.rollback()
                logger.exception("Storage failure while processing recommendation %s", job_id)
                self._record_storage_failure(job_id, exc)
                return None
            finally:
                db.close()

    def _record_storage_failure(self, job_id: int, exc: StorageError) -> None:
        # Best effort on a fresh session; otherwise expire_stale picks the job up later.
        db = self._session_factory()
        try:
            RecommendationStore(db).fail(job_id, f"Storage failure: {exc.message}")
            db.commit()
        except (StorageError, InvalidStateError, SQLAlchemyError):
            db.rollback()
            logger.warning("Could not mark recommendation %s as failed", job_id)
        finally:
            db.close()

    def _process(self, db: Session, job_id: int) -> Optional[str]:
        store = RecommendationStore(db)
        job = store.begin(job_id)
        if job is None:
            logger.info("Recommendation %s was not pending; skipping", job_id)
            return None
        db.commit()

        kind = SessionKind(job.session_kind)
        snapshot = dict(job.session_data or {})
        metadata = {"job_id": job_id, "kind": kind.value, "session_id": job.session_id}
        start = perf_counter()

        try:
            with trace("recommendation.generate", metadata=metadata):
                prompt = build_prompt(kind, snapshot, snapshot.get("notes"), get_user_context(db))
                generator = RecommendationGenerator(self._text_generator_factory())
                text = generator.generate(prompt)
        except GenerationError as exc:
            return self._finish_failed(db, store, job_id, kind, exc.message)
        except Exception as exc:
            logger.exception("Unexpected error generating recommendation %s", job_id)
            return self._finish_failed(db, store, job_id, kind, f"Unexpected error: {exc}")

        store.succeed(job_id, text)
        db.commit()
        latency_ms = (perf_counter() - start) * 1000
        log_metric("recommendation.completed", 1, metadata={"kind": kind.value})
        log_metric("recommendation.latency_ms", latency_ms, metadata={"kind": kind.value})
        logger.info("Recommendation %s completed (%.0f ms)", job_id, latency_ms)
        return COMPLETED

    def _finish_failed(self, db: Session, store: RecommendationStore, job_id: int, kind: SessionKind, error: str) -> str:
        # A failed read inside the try block may have left the transaction aborted.
        db.rollback()
        store.fail(job_id, error or "Unknown generation error")
        db.commit()
        log_metric("recommendation.failed", 1, metadata={"kind": kind.value})
        logger.warning("Recommendation %s failed: %s", job_id, error)
        return FAILED


_runner: Optional[RecommendationJobRunner] = None
_runner_lock = Lock()


def get_job_runner() -> RecommendationJobRunner:
    """Return the process-wide runner (also used as a FastAPI dependency)."""
    global _runner
    with _runner_lock:
        if _runner is None:
            _runner = RecommendationJobRunner()
        return _runner


def shutdown_job_runner(*, wait: bool = False) -> None:
    """Stop and forget the process-wide runner; the next get_job_runner builds a new one."""
    global _runner
    with _runner_lock:
        runner, _runner = _runner, None
    if runner is not None:
        runner.shutdown(wait=wait)
