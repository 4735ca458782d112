"""Prompt construction and generation for session coaching notes."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from healthtrack.core.errors import GenerationError
from healthtrack.db.models.timed_session import SessionKind, TimedSession
from healthtrack.db.types import ensure_utc
from healthtrack.services.text_generation.base import TextGenerator
from healthtrack.services.user_context import UserContext

logger = logging.getLogger(__name__)

PREAMBLE = (
    "You are a supportive health coach reviewing one of the user's tracked sessions. "
    "Offer general wellness guidance only: do not diagnose conditions, prescribe medication, "
    "or recommend extreme restriction. If the notes mention pain, dizziness, fainting or other "
    "worrying symptoms, advise the user to speak with a healthcare professional."
)

FASTING_INSTRUCTIONS = (
    "Based on this fast and the user's notes, give 2-3 short, specific recommendations for "
    "their next fast (timing, hydration, how to break the fast, energy management). "
    "Keep the answer under 150 words."
)

SLEEP_INSTRUCTIONS = (
    "Based on this night and the user's notes, give 2-3 short, specific recommendations to "
    "improve their sleep (schedule consistency, wind-down routine, environment). "
    "Keep the answer under 150 words."
)

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


def session_snapshot(session: TimedSession) -> Dict[str, Any]:
    """Serialisable copy of a closed session, stored on its recommendation job."""
    return {
        "id": session.id,
        "kind": session.kind,
        "start_time": _iso(session.start_time),
        "end_time": _iso(session.end_time),
        "target_hours": session.target_hours,
        "actual_hours": session.actual_hours,
        "notes": session.notes,
    }


def build_prompt(
    kind: SessionKind,
    snapshot: Dict[str, Any],
    notes: Optional[str],
    user_context: Optional[UserContext] = None,
) -> str:
    """Build a deterministic prompt; absent fields are left out entirely."""
    context = user_context or UserContext()
    lines: List[str] = [PREAMBLE, ""]

    if kind is SessionKind.FASTING:
        lines.append("Session: intermittent fast")
        if snapshot.get("target_hours") is not None:
            lines.append(f"- Target duration: {_number(snapshot['target_hours'])} hours")
    else:
        lines.append("Session: sleep")
    if snapshot.get("actual_hours") is not None:
        lines.append(f"- Actual duration: {_number(snapshot['actual_hours'])} hours")
    if snapshot.get("start_time"):
        lines.append(f"- Started: {snapshot['start_time']}")
    if snapshot.get("end_time"):
        lines.append(f"- Ended: {snapshot['end_time']}")
    if notes and notes.strip():
        lines.append(f'- User notes: "{notes.strip()}"')

    context_lines = _context_lines(kind, context)
    if context_lines:
        lines.append("")
        lines.append("User context:")
        lines.extend(context_lines)

    lines.append("")
    lines.append(FASTING_INSTRUCTIONS if kind is SessionKind.FASTING else SLEEP_INSTRUCTIONS)
    return "\n".join(lines)


def sanitize_recommendation(text: str) -> str:
    cleaned = _THINK_BLOCK.sub("", text or "")
    cleaned = cleaned.replace("\r\n", "\n").strip()
    return _EXCESS_BLANK_LINES.sub("\n\n", cleaned)


class RecommendationGenerator:
    def __init__(self, text_generator: TextGenerator) -> None:
        self.text_generator = text_generator

    def generate(self, prompt: str) -> str:
        result = self.text_generator.generate(prompt)
        if result.finish_reason == "length":
            logger.warning("Recommendation from %s was cut off at the token limit", result.model)
        text = sanitize_recommendation(result.text)
        if not text:
            logger.warning("Empty recommendation from %s", result.model)
            raise GenerationError("Text generation returned an empty response")
        return text


def _context_lines(kind: SessionKind, context: UserContext) -> List[str]:
    lines: List[str] = []
    if kind is SessionKind.FASTING:
        unit = f" {context.weight_unit}" if context.weight_unit else ""
        if context.current_weight is not None:
            lines.append(f"- Current weight: {_number(context.current_weight)}{unit}")
        if context.goal_weight is not None:
            lines.append(f"- Goal weight: {_number(context.goal_weight)}{unit}")
    elif context.target_sleep_hours is not None:
        lines.append(f"- Target sleep: {_number(context.target_sleep_hours)} hours")
    return lines


def _number(value: float) -> str:
    # 16.0 -> "16", 7.25 -> "7.25", 7.3333 -> "7.33"
    return f"{round(float(value), 2):g}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat()
