"""Tests for prompt construction and text generation providers."""
from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from healthtrack.core.errors import GenerationError
from healthtrack.db.models.timed_session import SessionKind
from healthtrack.services.recommendation_generator import (
    FASTING_INSTRUCTIONS,
    SLEEP_INSTRUCTIONS,
    RecommendationGenerator,
    build_prompt,
    sanitize_recommendation,
)
from healthtrack.services.text_generation import factory as factory_module
from healthtrack.services.text_generation.base import GenerationResult, TextGenerator
from healthtrack.services.text_generation.disabled import DisabledTextGenerator
from healthtrack.services.text_generation.openai_generator import OpenAITextGenerator
from healthtrack.services.user_context import UserContext


FASTING_SNAPSHOT = {
    "id": 1,
    "kind": "fasting",
    "start_time": "2024-01-01T20:00:00+00:00",
    "end_time": "2024-01-02T12:00:00+00:00",
    "target_hours": 16.0,
    "actual_hours": 16.0,
    "notes": "Energy dipped mid-morning",
}


class _FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _fake_client(response=None, error=None):
    completions = _FakeCompletions(response=response, error=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def _completion(content, finish_reason="stop"):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(model="gpt-test", choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


def _generator(client):
    return OpenAITextGenerator(api_key="sk-test", model="gpt-test", timeout_seconds=5, max_tokens=100, client=client)


def test_fasting_prompt_includes_session_and_context():
    context = UserContext(current_weight=180, goal_weight=165, weight_unit="lbs", target_sleep_hours=8)

    prompt = build_prompt(SessionKind.FASTING, FASTING_SNAPSHOT, FASTING_SNAPSHOT["notes"], context)

    assert "Session: intermittent fast" in prompt
    assert "- Target duration: 16 hours" in prompt
    assert "- Actual duration: 16 hours" in prompt
    assert "- Started: 2024-01-01T20:00:00+00:00" in prompt
    assert '- User notes: "Energy dipped mid-morning"' in prompt
    assert "- Current weight: 180 lbs" in prompt
    assert "- Goal weight: 165 lbs" in prompt
    assert "Target sleep" not in prompt
    assert prompt.endswith(FASTING_INSTRUCTIONS)


def test_sleep_prompt_omits_absent_fields():
    snapshot = {"kind": "sleep", "actual_hours": 7.3333, "start_time": None, "end_time": None}

    prompt = build_prompt(SessionKind.SLEEP, snapshot, "woke at 3am", UserContext())

    assert "Session: sleep" in prompt
    assert "- Actual duration: 7.33 hours" in prompt
    assert "Target duration" not in prompt
    assert "Started" not in prompt
    assert "Ended" not in prompt
    assert "User context:" not in prompt
    assert prompt.endswith(SLEEP_INSTRUCTIONS)


def test_sleep_prompt_uses_sleep_goal_only():
    context = UserContext(current_weight=180, goal_weight=165, weight_unit="lbs", target_sleep_hours=7.5)

    prompt = build_prompt(SessionKind.SLEEP, {"actual_hours": 6.0}, "late coffee", context)

    assert "- Target sleep: 7.5 hours" in prompt
    assert "Current weight" not in prompt


def test_prompt_is_deterministic():
    context = UserContext(current_weight=180)

    first = build_prompt(SessionKind.FASTING, FASTING_SNAPSHOT, "notes", context)
    second = build_prompt(SessionKind.FASTING, dict(FASTING_SNAPSHOT), "notes", context)

    assert first == second


def test_sanitize_strips_think_blocks_and_blank_runs():
    raw = "<THINK>\nreasoning\n</THINK>\n\nTip one.\r\n\r\n\r\n\r\nTip two.  "

    assert sanitize_recommendation(raw) == "Tip one.\n\nTip two."
    assert sanitize_recommendation("") == ""


def test_recommendation_generator_rejects_blank_output():
    class _Blank(TextGenerator):
        def generate(self, prompt):
            return GenerationResult(text="   ", model="blank")

    with pytest.raises(GenerationError):
        RecommendationGenerator(_Blank()).generate("prompt")


def test_recommendation_generator_warns_on_truncated_output(caplog):
    class _Truncated(TextGenerator):
        def generate(self, prompt):
            return GenerationResult(text="Drink water and", model="gpt-test", finish_reason="length")

    with caplog.at_level("WARNING", logger="healthtrack.services.recommendation_generator"):
        text = RecommendationGenerator(_Truncated()).generate("prompt")

    assert text == "Drink water and"
    assert "cut off" in caplog.text
    assert "gpt-test" in caplog.text


def test_openai_generator_returns_completion_text():
    client, completions = _fake_client(response=_completion("Eat slowly when breaking the fast."))

    result = _generator(client).generate("prompt text")

    assert result.text == "Eat slowly when breaking the fast."
    assert result.model == "gpt-test"
    assert result.finish_reason == "stop"
    call = completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["max_tokens"] == 100
    assert call["messages"][-1] == {"role": "user", "content": "prompt text"}


def test_openai_generator_maps_timeout_to_generation_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    client, _ = _fake_client(error=openai.APITimeoutError(request=request))

    with pytest.raises(GenerationError) as excinfo:
        _generator(client).generate("prompt")

    assert excinfo.value.message == "Text generation timed out"


def test_openai_generator_maps_status_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(503, request=request)
    error = openai.APIStatusError("unavailable", response=response, body=None)
    client, _ = _fake_client(error=error)

    with pytest.raises(GenerationError) as excinfo:
        _generator(client).generate("prompt")

    assert "503" in excinfo.value.message


@pytest.mark.parametrize(
    "response",
    [
        SimpleNamespace(model="gpt-test", choices=[]),
        _completion(None),
    ],
)
def test_openai_generator_rejects_missing_text(response):
    client, _ = _fake_client(response=response)

    with pytest.raises(GenerationError):
        _generator(client).generate("prompt")


def test_disabled_generator_always_fails():
    with pytest.raises(GenerationError) as excinfo:
        DisabledTextGenerator("OPENAI_API_KEY is not configured").generate("prompt")

    assert excinfo.value.message == "OPENAI_API_KEY is not configured"


def test_factory_disables_generation_without_api_key(monkeypatch):
    monkeypatch.setattr(factory_module.settings, "text_generation_provider", "openai")
    monkeypatch.setattr(factory_module.settings, "openai_api_key", None)
    factory_module.get_text_generator.cache_clear()
    try:
        generator = factory_module.get_text_generator()
    finally:
        factory_module.get_text_generator.cache_clear()

    assert isinstance(generator, DisabledTextGenerator)


def test_factory_builds_openai_generator(monkeypatch):
    monkeypatch.setattr(factory_module.settings, "text_generation_provider", "openai")
    monkeypatch.setattr(factory_module.settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(factory_module.settings, "openai_model", "gpt-test")
    factory_module.get_text_generator.cache_clear()
    try:
        generator = factory_module.get_text_generator()
    finally:
        factory_module.get_text_generator.cache_clear()

    assert isinstance(generator, OpenAITextGenerator)
    assert generator.model == "gpt-test"
    assert generator.client.max_retries == 0
