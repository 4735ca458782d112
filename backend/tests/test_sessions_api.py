from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from healthtrack.api.routes.sessions import MSG_DONE, MSG_QUEUED
from healthtrack.core.config import settings
from healthtrack.db.base import Base
from healthtrack.db.deps import get_db
from healthtrack.main import app
from healthtrack.services.job_runner import RecommendationJobRunner, get_job_runner
from healthtrack.services.text_generation.base import GenerationResult, TextGenerator


class RecordingScheduler:
    def __init__(self):
        self.running = False
        self.jobs = []

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False

    def add_job(self, func, trigger=None, args=None, id=None, replace_existing=False, **kwargs):
        self.jobs.append({"func": func, "args": list(args or []), "id": id})


class StaticGenerator(TextGenerator):
    def generate(self, prompt):
        return GenerationResult(text="Keep a consistent wake time.", model="test-model")


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(settings, "jobs_resume_on_startup", False)
    monkeypatch.setattr(settings, "recommendations_enabled", True)
    monkeypatch.setattr(settings, "strict_sessions", False)

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)

    scheduler = RecordingScheduler()
    runner = RecommendationJobRunner(
        session_factory=TestingSessionLocal,
        text_generator_factory=StaticGenerator,
        scheduler=scheduler,
    )

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_job_runner] = lambda: runner
    with TestClient(app) as test_client:
        yield test_client, runner, scheduler
    app.dependency_overrides.clear()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_fasting_lifecycle_without_notes(client):
    test_client, _, scheduler = client

    start = test_client.post(
        "/sessions/fasting/start",
        json={"start_time": "2024-01-01T20:00:00Z", "target_hours": 16},
    )
    assert start.status_code == 201
    body = start.json()
    assert body["kind"] == "fasting"
    assert body["completed"] is False
    assert body["end_time"] is None

    current = test_client.get("/sessions/fasting/current")
    assert current.status_code == 200
    assert current.json()["id"] == body["id"]

    end = test_client.patch(
        f"/sessions/fasting/{body['id']}/end",
        json={"end_time": "2024-01-02T12:00:00Z"},
    )
    assert end.status_code == 200
    data = end.json()
    assert data["actual_hours"] == 16.0
    assert data["recommendation_id"] is None
    assert data["message"] == MSG_DONE
    assert data["request_id"] == end.headers["X-Request-Id"]
    assert _parse(data["end_time"]) == _parse("2024-01-02T12:00:00Z")

    assert test_client.get("/sessions/fasting/current").json() is None
    assert scheduler.jobs == []


def test_sleep_close_with_notes_returns_pending_recommendation(client):
    test_client, runner, scheduler = client
    start = test_client.post("/sessions/sleep/start", json={"start_time": "2024-01-01T23:00:00Z"})
    session_id = start.json()["id"]

    end = test_client.post(
        "/sessions/sleep/end",
        json={"end_time": "2024-01-02T07:00:00Z", "notes": "felt great"},
    )

    assert end.status_code == 200
    data = end.json()
    assert data["id"] == session_id
    assert data["actual_hours"] == 8.0
    assert data["message"] == MSG_QUEUED
    job_id = data["recommendation_id"]
    assert job_id is not None

    pending = test_client.get(f"/recommendations/{job_id}")
    assert pending.status_code == 200
    assert pending.json()["status"] == "pending"
    assert pending.json()["session_id"] == session_id
    assert scheduler.jobs[0]["args"] == [job_id]

    assert runner.run_job(job_id) == "completed"

    done = test_client.get(f"/recommendations/{job_id}").json()
    assert done["status"] == "completed"
    assert done["result"] == "Keep a consistent wake time."


def test_end_without_active_session_returns_404(client):
    test_client, _, _ = client

    response = test_client.post("/sessions/fasting/end", json={})

    assert response.status_code == 404
    assert response.json()["error"] == "no_active_session"


def test_end_current_now_closes_open_session(client):
    test_client, _, _ = client
    test_client.post("/sessions/sleep/start", json={"start_time": "2024-01-01T23:00:00Z"})

    response = test_client.post("/sessions/sleep/end", json={})

    assert response.status_code == 200
    assert response.json()["actual_hours"] > 0
    assert test_client.get("/sessions/sleep/current").json() is None


def test_ending_closed_session_twice_returns_conflict(client):
    test_client, _, _ = client
    session_id = test_client.post(
        "/sessions/fasting/start",
        json={"start_time": "2024-01-01T20:00:00Z", "target_hours": 16},
    ).json()["id"]
    first = test_client.patch(f"/sessions/fasting/{session_id}/end", json={"end_time": "2024-01-02T12:00:00Z"})
    second = test_client.patch(f"/sessions/fasting/{session_id}/end", json={"end_time": "2024-01-02T14:00:00Z"})

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"] == "invalid_state"

    history = test_client.get("/sessions/fasting").json()
    assert len(history) == 1
    assert history[0]["actual_hours"] == 16.0


def test_start_validation_errors(client):
    test_client, _, _ = client

    missing_target = test_client.post("/sessions/fasting/start", json={"start_time": "2024-01-01T20:00:00Z"})
    sleep_target = test_client.post(
        "/sessions/sleep/start",
        json={"start_time": "2024-01-01T23:00:00Z", "target_hours": 8},
    )
    missing_start = test_client.post("/sessions/sleep/start", json={})
    unknown_kind = test_client.post("/sessions/nap/start", json={"start_time": "2024-01-01T23:00:00Z"})

    assert missing_target.status_code == 422
    assert missing_target.json()["error"] == "validation_error"
    assert sleep_target.status_code == 422
    assert missing_start.status_code == 422
    assert unknown_kind.status_code == 422


def test_strict_mode_rejects_second_open_session(client, monkeypatch):
    test_client, _, _ = client
    monkeypatch.setattr(settings, "strict_sessions", True)
    test_client.post("/sessions/sleep/start", json={"start_time": "2024-01-01T23:00:00Z"})

    response = test_client.post("/sessions/sleep/start", json={"start_time": "2024-01-02T23:00:00Z"})

    assert response.status_code == 409
    assert response.json()["error"] == "already_active"


def test_update_and_delete_closed_session(client):
    test_client, _, _ = client
    session_id = test_client.post("/sessions/sleep/start", json={"start_time": "2024-01-01T23:00:00Z"}).json()["id"]
    test_client.patch(f"/sessions/sleep/{session_id}/end", json={"end_time": "2024-01-02T07:00:00Z"})

    updated = test_client.put(
        f"/sessions/sleep/{session_id}",
        json={"start_time": "2024-01-01T22:00:00Z", "notes": "read before bed"},
    )
    assert updated.status_code == 200
    assert updated.json()["actual_hours"] == 9.0
    assert updated.json()["notes"] == "read before bed"

    deleted = test_client.delete(f"/sessions/sleep/{session_id}")
    assert deleted.status_code == 204
    assert test_client.get("/sessions/sleep").json() == []

    missing = test_client.delete(f"/sessions/sleep/{session_id}")
    assert missing.status_code == 404


def test_update_open_session_returns_conflict(client):
    test_client, _, _ = client
    session_id = test_client.post("/sessions/sleep/start", json={"start_time": "2024-01-01T23:00:00Z"}).json()["id"]

    response = test_client.put(f"/sessions/sleep/{session_id}", json={"notes": "still asleep"})

    assert response.status_code == 409


def test_recommendations_disabled_closes_without_job(client, monkeypatch):
    test_client, _, scheduler = client
    monkeypatch.setattr(settings, "recommendations_enabled", False)
    test_client.post("/sessions/sleep/start", json={"start_time": "2024-01-01T23:00:00Z"})

    response = test_client.post("/sessions/sleep/end", json={"end_time": "2024-01-02T07:00:00Z", "notes": "fine"})

    assert response.status_code == 200
    assert response.json()["recommendation_id"] is None
    assert test_client.get("/recommendations").json() == []
    assert scheduler.jobs == []


@pytest.mark.parametrize("target_hours", [True, "16", 0, -1])
def test_start_rejects_non_numeric_or_non_positive_target(client, target_hours):
    test_client, _, _ = client

    response = test_client.post(
        "/sessions/fasting/start",
        json={"start_time": "2024-01-01T20:00:00Z", "target_hours": target_hours},
    )

    assert response.status_code == 422
    assert test_client.get("/sessions/fasting").json() == []
