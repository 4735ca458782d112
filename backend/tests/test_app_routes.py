"""Regression tests for application route registration."""
from fastapi.routing import APIRoute

from healthtrack.main import app


def _routes(path: str, method: str) -> list[APIRoute]:
    return [
        route
        for route in app.routes
        if isinstance(route, APIRoute) and route.path == path and method in route.methods
    ]


def test_session_end_routes_registered_once() -> None:
    assert len(_routes("/sessions/{kind}/end", "POST")) == 1
    assert len(_routes("/sessions/{kind}/{session_id}/end", "PATCH")) == 1


def test_tracker_routes_registered() -> None:
    for path, method in [
        ("/recommendations", "GET"),
        ("/recommendations/{recommendation_id}", "GET"),
        ("/weight", "POST"),
        ("/goals", "GET"),
        ("/sleep-goals", "POST"),
        ("/settings", "POST"),
        ("/stats", "GET"),
    ]:
        assert len(_routes(path, method)) == 1, (path, method)
