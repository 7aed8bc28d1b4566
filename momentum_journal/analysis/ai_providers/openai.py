from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from openai import OpenAI, APIError, APIStatusError, RateLimitError

from momentum_journal.analysis.ai_providers.base import AIService
from momentum_journal.core.config import (
    OPENAI_API_KEY,
    OPENAI_CHAT_MODEL,
    AI_MAX_TOKENS,
    AI_TIMEOUT_SECONDS,
)
from momentum_journal.core.errors import AIServiceError, RateLimitedError

logger = logging.getLogger(__name__)


class OpenAIAIService(AIService):
    """Chat Completions backend, asked for a JSON object response."""

    model_tag = "chatgpt"

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = OPENAI_CHAT_MODEL):
        if client is None:
            if not OPENAI_API_KEY:
                raise RuntimeError("Missing OPENAI_API_KEY in environment")
            client = OpenAI(api_key=OPENAI_API_KEY, timeout=AI_TIMEOUT_SECONDS, max_retries=0)
        if not model:
            raise RuntimeError("Missing OPENAI_CHAT_MODEL in environment")
        self.client = client
        self.model = model

    def _complete(self, system: str, prompt: str) -> Tuple[str, int]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": AI_MAX_TOKENS,
            "temperature": 0.2,
            "response_format": {"type": "json_object"},
        }
        try:
            resp = self.client.chat.completions.create(**kwargs)
        except RateLimitError as e:
            logger.warning(f"OpenAI rate limited the request: {e}")
            raise RateLimitedError()
        except APIStatusError as e:
            logger.error(f"OpenAI API error {e.status_code}: {e}")
            raise AIServiceError()
        except APIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise AIServiceError()

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            logger.error("OpenAI returned an empty completion")
            raise AIServiceError()
        tokens = resp.usage.total_tokens if resp.usage else 0
        return content, tokens
