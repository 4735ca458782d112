"""OpenAI-compatible chat completion provider."""
from __future__ import annotations

import logging
from typing import Optional

import openai

from healthtrack.core.errors import GenerationError
from healthtrack.services.text_generation.base import GenerationResult, TextGenerator


logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a concise, supportive wellness coach. "
    "You give practical, encouraging advice and never present it as medical diagnosis."
)


class OpenAITextGenerator(TextGenerator):
    """Single-shot chat completion against the OpenAI API (or a compatible server)."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: float,
        max_tokens: int,
        base_url: Optional[str] = None,
        client: Optional[openai.OpenAI] = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        # Jobs are never retried, so the client must not retry either.
        self.client = client or openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    def generate(self, prompt: str) -> GenerationResult:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.APITimeoutError as exc:
            raise GenerationError("Text generation timed out") from exc
        except openai.APIConnectionError as exc:
            raise GenerationError(f"Text generation service unreachable: {exc}") from exc
        except openai.APIStatusError as exc:
            raise GenerationError(f"Text generation failed with status {exc.status_code}") from exc
        except openai.OpenAIError as exc:
            raise GenerationError(f"Text generation failed: {exc}") from exc

        choices = getattr(completion, "choices", None) or []
        if not choices:
            raise GenerationError("Text generation returned no choices")
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise GenerationError("Text generation returned no text content")

        logger.debug("Completion received (model=%s, length=%s)", self.model, len(content))
        return GenerationResult(
            text=content,
            model=getattr(completion, "model", None) or self.model,
            finish_reason=getattr(choices[0], "finish_reason", None),
        )
