"""Text generation provider factory."""
from __future__ import annotations

import logging
from functools import lru_cache

from healthtrack.core.config import settings
from healthtrack.services.text_generation.base import TextGenerator
from healthtrack.services.text_generation.disabled import DisabledTextGenerator
from healthtrack.services.text_generation.openai_generator import OpenAITextGenerator

logger = logging.getLogger(__name__)


@lru_cache
def get_text_generator() -> TextGenerator:
    provider = settings.text_generation_provider.lower()
    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY missing; recommendations will fail until it is configured.")
            return DisabledTextGenerator("OPENAI_API_KEY is not configured")
        return OpenAITextGenerator(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            timeout_seconds=settings.recommendation_timeout_seconds,
            max_tokens=settings.recommendation_max_tokens,
        )
    if provider != "disabled":
        logger.warning("Unknown text generation provider %r; generation disabled.", provider)
    return DisabledTextGenerator()
