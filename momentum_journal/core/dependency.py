from functools import lru_cache
from typing import Callable
import logging

from momentum_journal.analysis.ai_providers.base import AIService
from momentum_journal.analysis.ai_providers.claude import ClaudeAIService
from momentum_journal.analysis.ai_providers.openai import OpenAIAIService
from momentum_journal.core.config import AI_PROVIDER
from momentum_journal.core.errors import AIServiceError

logger = logging.getLogger(__name__)
DEFAULT_PROVIDER = "claude"


@lru_cache(maxsize=None)
def _claude() -> AIService:
    return ClaudeAIService()


@lru_cache(maxsize=None)
def _chatgpt() -> AIService:
    return OpenAIAIService()


def pick_ai_service(provider: str) -> AIService:
    """
    Selects the AI service implementation for a provider name.

    Args:
        provider (str): "claude" or "openai" (alias "chatgpt").

    Returns:
        AIService: A process-wide instance of the selected service.
    """
    provider = (provider or DEFAULT_PROVIDER).strip().lower()
    if provider in ("openai", "chatgpt"):
        return _chatgpt()
    if provider != DEFAULT_PROVIDER:
        logger.warning(f"Unknown AI provider '{provider}' configured. Falling back to '{DEFAULT_PROVIDER}'.")
    return _claude()


def get_ai_service() -> AIService:
    """FastAPI dependency returning the configured AI service."""
    try:
        return pick_ai_service(AI_PROVIDER)
    except RuntimeError as e:
        logger.error(f"AI provider unavailable: {e}")
        raise AIServiceError("AI service is not configured")


def get_ai_service_factory() -> Callable[[], AIService]:
    """FastAPI dependency for routes that only need a provider on a cache miss."""
    return get_ai_service
