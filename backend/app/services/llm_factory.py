"""
LLM Provider Factory

Builds the chat-completion provider from Settings.
"""
import logging

from app.config import Settings
from .llm_base import LLMProvider
from .llm_openai import OpenAIChatProvider

logger = logging.getLogger(__name__)


def get_llm_provider(settings: Settings) -> LLMProvider:
    """
    Get the configured LLM provider.

    Note:
    - Needs AI_API_KEY in .env; without it the provider is still returned,
      but every call fails with UpstreamError so the rest of the API keeps working.
    """
    provider = OpenAIChatProvider(settings)
    if provider.is_available():
        logger.info("[llm] Using %s (model=%s)", provider.name, provider.model)
    else:
        logger.warning("[llm] AI_API_KEY not set -> chat replies will fail with upstream errors")
    return provider
