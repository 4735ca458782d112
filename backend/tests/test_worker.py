from __future__ import annotations

from healthtrack.core.errors import StorageError
from healthtrack.worker import recommendation_worker


class RecordingScheduler:
    def __init__(self):
        self.jobs = []

    def add_job(self, func, **kwargs):
        self.jobs.append((func, kwargs))


class _Runner:
    def __init__(self, resumed=0, error=None):
        self.resumed = resumed
        self.error = error
        self.calls = 0

    def resume_pending(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.resumed


def test_register_jobs_adds_interval_sweep(monkeypatch) -> None:
    monkeypatch.setattr(recommendation_worker.settings, "sweeper_interval_seconds", 30)
    scheduler = RecordingScheduler()
    runner = _Runner()

    recommendation_worker.register_jobs(scheduler, runner)

    func, kwargs = scheduler.jobs[0]
    assert func is recommendation_worker.sweep_pending
    assert kwargs["trigger"] == "interval"
    assert kwargs["seconds"] == 30
    assert kwargs["args"] == [runner]
    assert kwargs["id"] == recommendation_worker.SWEEP_JOB_ID


def test_sweep_returns_resumed_count() -> None:
    runner = _Runner(resumed=3)

    assert recommendation_worker.sweep_pending(runner) == 3
    assert runner.calls == 1


def test_sweep_survives_storage_errors() -> None:
    runner = _Runner(error=StorageError("database unavailable"))

    assert recommendation_worker.sweep_pending(runner) == 0
