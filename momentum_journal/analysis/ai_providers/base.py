from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from momentum_journal.analysis.schemas import GoalLLMResponse, JournalLLMResponse, PeriodLLMResponse
import momentum_journal.analysis.prompts.insights_prompts_templates as prompts
from momentum_journal.core.errors import AIServiceError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def parse_json_response(raw: Optional[str]) -> Dict[str, Any]:
    """
    Extracts a JSON object from model output.

    Handles ```json fenced blocks and stray prose around the object.

    Raises:
        AIServiceError: If no JSON object can be recovered.
    """
    if not raw or not raw.strip():
        raise AIServiceError()
    s = raw.strip()
    match = _FENCE_RE.search(s)
    if match:
        s = match.group(1).strip()
    try:
        parsed = json.loads(s)
    except json.JSONDecodeError:
        start = s.find("{")
        end = s.rfind("}")
        if start == -1 or end <= start:
            logger.warning(f"Model returned non-JSON output: {raw[:200]!r}")
            raise AIServiceError()
        try:
            parsed = json.loads(s[start : end + 1])
        except json.JSONDecodeError:
            logger.warning(f"Model returned non-JSON output: {raw[:200]!r}")
            raise AIServiceError()
    if not isinstance(parsed, dict):
        raise AIServiceError()
    return parsed


class AIService(ABC):
    """
    An LLM backend that turns goal/journal context into structured insights.

    Subclasses only implement `_complete`: one completion call, no retries,
    provider throttling raised as `RateLimitedError` and every other failure
    as `AIServiceError`.
    """

    model_tag: str

    @abstractmethod
    def _complete(self, system: str, prompt: str) -> Tuple[str, int]:
        """Returns the raw text of the completion and the tokens it used."""

    def _complete_json(self, prompt: str) -> Tuple[Dict[str, Any], int]:
        text, tokens = self._complete(prompts.SYSTEM_PROMPT, prompt)
        return parse_json_response(text), tokens

    @staticmethod
    def _validate(schema, payload: Dict[str, Any], tokens: int):
        try:
            cleaned = {k: v for k, v in payload.items() if v is not None}
            return schema.model_validate({**cleaned, "tokens_used": tokens})
        except PydanticValidationError as e:
            logger.warning(f"Model output did not match {schema.__name__}: {e}")
            raise AIServiceError()

    def analyze_journal_entry(self, content: str, goals: List[Any], mood: Optional[str]) -> JournalLLMResponse:
        """Sentiment, themes and goal alignment for a single journal entry."""
        payload, tokens = self._complete_json(prompts.build_journal_prompt(content, goals, mood))
        return self._validate(JournalLLMResponse, payload, tokens)

    def analyze_goal_progress(self, goal: Any, related_journals: List[Any]) -> GoalLLMResponse:
        """Progress assessment for one goal given the entries that mention it."""
        payload, tokens = self._complete_json(prompts.build_goal_prompt(goal, related_journals))
        result = self._validate(GoalLLMResponse, payload, tokens)
        if not result.progress_summary:
            result.progress_summary = {"overall_progress": goal.progress_percentage, "momentum_score": 50}
        return result

    def generate_period_insights(
        self, journals: List[Any], goals: List[Any], stats: Dict[str, Any], period: str = "weekly"
    ) -> PeriodLLMResponse:
        """Weekly or monthly review across all goals and the period's entries."""
        payload, tokens = self._complete_json(prompts.build_period_prompt(journals, goals, stats, period))
        return self._validate(PeriodLLMResponse, payload, tokens)
