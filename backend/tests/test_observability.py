"""Tests ensuring observability wiring is safe by default."""
from __future__ import annotations

import logging

import pytest

from healthtrack.core.context import bind_job_id, get_job_id, request_id_ctx_var
from healthtrack.core.logging import ContextFilter
from healthtrack.observability import client as client_module
from healthtrack.observability import tracing


class _DummyTrace:
    def __init__(self, name=None, metadata=None, **kwargs):
        self.name = name
        self.metadata = metadata or {}
        self.error_info = None
        self.ended = False

    def update(self, error_info=None, **kwargs):
        self.error_info = error_info

    def end(self):
        self.ended = True


class _DummyOpik:
    def __init__(self, *args, **kwargs):
        self.kwargs = kwargs
        self.traces = []

    def trace(self, **kwargs):
        trace = _DummyTrace(**kwargs)
        self.traces.append(trace)
        return trace


@pytest.fixture()
def fresh_client():
    client_module.reset_opik_client()
    yield
    client_module.reset_opik_client()


def test_opik_disabled_returns_no_client(monkeypatch, fresh_client) -> None:
    monkeypatch.setattr(client_module.settings, "opik_enabled", False)

    assert client_module.init_opik() is None
    with tracing.trace("noop") as opik_trace:
        assert opik_trace is None


def test_opik_enabled_without_key_is_skipped(monkeypatch, fresh_client) -> None:
    monkeypatch.setattr(client_module.settings, "opik_enabled", True)
    monkeypatch.setattr(client_module.settings, "opik_api_key", None)

    assert client_module.init_opik() is None


def test_trace_attaches_context_and_errors(monkeypatch, fresh_client) -> None:
    monkeypatch.setattr(client_module.settings, "opik_enabled", True)
    monkeypatch.setattr(client_module.settings, "opik_api_key", "test-key")
    monkeypatch.setattr(client_module, "Opik", _DummyOpik)

    opik = client_module.init_opik()
    assert isinstance(opik, _DummyOpik)
    assert opik.kwargs["project_name"] == client_module.settings.opik_project

    with bind_job_id(5):
        with pytest.raises(RuntimeError):
            with tracing.trace("recommendation.generate", metadata={"kind": "fasting"}):
                raise RuntimeError("generation exploded")

    recorded = opik.traces[0]
    assert recorded.name == "recommendation.generate"
    assert recorded.metadata == {"job_id": "5", "kind": "fasting"}
    assert recorded.error_info["exception_type"] == "RuntimeError"
    assert recorded.ended is True


def test_bind_job_id_resets_after_block() -> None:
    with bind_job_id("abc"):
        assert get_job_id() == "abc"

    assert get_job_id() is None


def test_context_filter_tags_records() -> None:
    record = logging.LogRecord("healthtrack", logging.INFO, __file__, 1, "msg", None, None)
    token = request_id_ctx_var.set("req-1")
    try:
        with bind_job_id(9):
            ContextFilter().filter(record)
    finally:
        request_id_ctx_var.reset(token)

    assert record.request_id == "req-1"
    assert record.job_id == "9"
