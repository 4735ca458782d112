"""Dedicated APScheduler process that sweeps pending recommendation jobs.

The API process dispatches jobs as sessions close; this worker picks up any
job left ``pending`` (API restarted, dispatch failed) so none is stranded.
Claims are conditional updates, so running both is safe.
"""
from __future__ import annotations

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from healthtrack.core.config import settings
from healthtrack.core.errors import StorageError
from healthtrack.core.logging import configure_logging
from healthtrack.services.job_runner import RecommendationJobRunner, build_scheduler


logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "recommendation_sweep"


def main() -> None:
    configure_logging(log_level=settings.log_level)
    logger.info(
        "Recommendation worker starting (enabled=%s, interval=%ss)",
        settings.recommendations_enabled,
        settings.sweeper_interval_seconds,
    )

    scheduler = build_scheduler()
    runner = RecommendationJobRunner(scheduler=scheduler)

    if settings.recommendations_enabled:
        register_jobs(scheduler, runner)
        scheduler.start()
        sweep_pending(runner)
    else:
        logger.warning("Recommendations disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Recommendation worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def register_jobs(scheduler: BackgroundScheduler, runner: RecommendationJobRunner) -> None:
    scheduler.add_job(
        sweep_pending,
        trigger="interval",
        seconds=settings.sweeper_interval_seconds,
        args=[runner],
        id=SWEEP_JOB_ID,
        replace_existing=True,
        max_instances=1,
    )
    logger.info("Registered recommendation sweep every %ss", settings.sweeper_interval_seconds)


def sweep_pending(runner: RecommendationJobRunner) -> int:
    try:
        resumed = runner.resume_pending()
    except StorageError:
        logger.exception("Recommendation sweep failed")
        return 0
    if resumed:
        logger.info("Recommendation sweep dispatched %s job(s)", resumed)
    return resumed


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
