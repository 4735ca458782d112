"""Text generation provider interface."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class GenerationResult:
    text: str
    model: str
    finish_reason: Optional[str] = None


class TextGenerator:
    """Base interface for text-generation providers.

    Implementations take a complete prompt and return the full response in a
    single call. They raise ``GenerationError`` for transport failures,
    timeouts, or responses without usable text.
    """

    name = "base"

    def generate(self, prompt: str) -> GenerationResult:
        raise NotImplementedError
