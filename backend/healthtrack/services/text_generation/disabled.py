"""Disabled text-generation provider (logs and fails every call)."""
from __future__ import annotations

import logging

from healthtrack.core.errors import GenerationError
from healthtrack.services.text_generation.base import GenerationResult, TextGenerator


logger = logging.getLogger(__name__)


class DisabledTextGenerator(TextGenerator):
    name = "disabled"

    def __init__(self, reason: str = "text generation provider is disabled") -> None:
        self.reason = reason

    def generate(self, prompt: str) -> GenerationResult:
        logger.info("Text generation skipped (%s); prompt_length=%s", self.reason, len(prompt))
        raise GenerationError(self.reason)
