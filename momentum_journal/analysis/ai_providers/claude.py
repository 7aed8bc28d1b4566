import logging
from typing import Optional, Tuple

import anthropic

from momentum_journal.analysis.ai_providers.base import AIService
from momentum_journal.core.config import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_MODEL,
    AI_MAX_TOKENS,
    AI_TIMEOUT_SECONDS,
)
from momentum_journal.core.errors import AIServiceError, RateLimitedError

logger = logging.getLogger(__name__)


class ClaudeAIService(AIService):
    """Anthropic Messages API backend."""

    model_tag = "claude"

    def __init__(self, client: Optional[anthropic.Anthropic] = None, model: str = ANTHROPIC_MODEL):
        if client is None:
            if not ANTHROPIC_API_KEY:
                raise RuntimeError("Missing ANTHROPIC_API_KEY in environment")
            # Retries are left to the user re-issuing the request
            client = anthropic.Anthropic(api_key=ANTHROPIC_API_KEY, timeout=AI_TIMEOUT_SECONDS, max_retries=0)
        self.client = client
        self.model = model

    def _complete(self, system: str, prompt: str) -> Tuple[str, int]:
        try:
            resp = self.client.messages.create(
                model=self.model,
                max_tokens=AI_MAX_TOKENS,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.RateLimitError as e:
            logger.warning(f"Claude rate limited the request: {e}")
            raise RateLimitedError()
        except anthropic.APIStatusError as e:
            logger.error(f"Claude API error {e.status_code}: {e}")
            if e.status_code == 429:
                raise RateLimitedError()
            raise AIServiceError()
        except anthropic.APIError as e:
            logger.error(f"Claude request failed: {e}")
            raise AIServiceError()

        text = next((block.text for block in resp.content if block.type == "text"), None)
        if not text:
            logger.error("Claude returned no text content")
            raise AIServiceError()
        usage = resp.usage
        tokens = (usage.input_tokens or 0) + (usage.output_tokens or 0) if usage else 0
        return text, tokens
