"""Factory returning the configured text-generation client, if any."""

from __future__ import annotations

import logging

from config.settings import Settings, get_settings
from llm.base import BaseLLMClient

LOGGER = logging.getLogger(__name__)


def build_llm_client(settings: Settings | None = None) -> BaseLLMClient | None:
    """Instantiate the configured LLM connector, or None when generation is off."""

    settings = settings or get_settings()
    if settings.llm_provider == "none":
        return None
    if settings.llm_provider == "openai":
        if not settings.llm_api_key:
            LOGGER.info("LLM_API_KEY not set; opening lines use the plain template")
            return None
        from llm.openai_client import OpenAIClient

        return OpenAIClient(settings)
    raise ValueError(f"Unsupported llm_provider: {settings.llm_provider}")
