import logging
import threading
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from momentum_journal.analysis.ai_providers.base import AIService
from momentum_journal.analysis.db import (
    create_analysis,
    get_period_analysis,
    upsert_period_analysis,
    upsert_weekly_insight,
)
from momentum_journal.analysis.models import AIAnalysis
from momentum_journal.analysis.schemas import AIAnalysisCreate
from momentum_journal.core.errors import NotFoundError
from momentum_journal.dashboard.db import add_months, calculate_streaks, get_all_entry_dates
from momentum_journal.goals.db import get_user_goals, require_goal
from momentum_journal.goals.models import Goal
from momentum_journal.journals.db import get_journal, get_journals_between, get_journals_for_goal

logger = logging.getLogger(__name__)

ANALYSIS_TYPE_BY_TIMELINE = {"week": "weekly", "month": "monthly"}
RELATED_JOURNALS_LIMIT = 20
MOOD_SCORES = {"great": 5, "good": 4, "neutral": 3, "bad": 2, "terrible": 1}

GenerationKey = Tuple[UUID, str, date]


class KeyedLocks:
    """
    One lock per key, created on first use and dropped once no caller holds or
    waits on it, so the registry only ever holds keys in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[GenerationKey, threading.Lock] = {}
        self._users: Dict[GenerationKey, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: GenerationKey) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


# Serialises generation per (user, kind, period) within this process
_generation_locks = KeyedLocks()


def get_period_start(timeline: str, today: Optional[date] = None) -> date:
    """Sunday on or before today for a week, the first of the month for a month."""
    today = today or date.today()
    if timeline == "week":
        return today - timedelta(days=(today.weekday() + 1) % 7)
    if timeline == "month":
        return today.replace(day=1)
    raise ValueError(f"Unknown insights timeline: {timeline}")


def average_mood_label(moods: List[Optional[str]]) -> Optional[str]:
    """Maps the mean mood score back onto the mood scale, or None without moods."""
    scores = [MOOD_SCORES[m] for m in moods if m in MOOD_SCORES]
    if not scores:
        return None
    avg = sum(scores) / len(scores)
    if avg >= 4.5:
        return "great"
    if avg >= 3.5:
        return "good"
    if avg >= 2.5:
        return "neutral"
    if avg >= 1.5:
        return "bad"
    return "terrible"


def build_progress_summary(goals: List[Goal], current_streak: int, journal_count: int) -> Dict[str, Any]:
    active = [g for g in goals if g.status == "active"]
    overall = round(sum(g.progress_percentage or 0 for g in goals) / len(goals)) if goals else 0
    return {
        "overall_progress": overall,
        "goals_on_track": [g.title for g in active if (g.progress_percentage or 0) >= 50],
        "goals_behind": [g.title for g in active if (g.progress_percentage or 0) < 50],
        "momentum_score": min(100, current_streak * 10 + journal_count * 5),
    }


def _period_window(timeline: str, today: date) -> Tuple[date, date]:
    if timeline == "week":
        return today - timedelta(days=7), today
    return add_months(today, -1), today


def _generate_period_analysis(
    db: Session,
    user_id: UUID,
    get_ai: Callable[[], AIService],
    timeline: str,
    period_start: date,
    today: date,
) -> Dict[str, Any]:
    analysis_type = ANALYSIS_TYPE_BY_TIMELINE[timeline]
    start, end = _period_window(timeline, today)
    journals = get_journals_between(db, user_id, start, end)
    goals = get_user_goals(db, user_id)
    current_streak, _ = calculate_streaks(get_all_entry_dates(db, user_id), today)

    stats = {
        "activeGoals": sum(1 for g in goals if g.status == "active"),
        "completedGoals": sum(1 for g in goals if g.status == "completed"),
        "journalCount": len(journals),
        "currentStreak": current_streak,
        "avgMood": average_mood_label([j.mood for j in journals]),
    }

    logger.info(f"Generating {analysis_type} insights for user {user_id} (period {period_start})")
    result = get_ai().generate_period_insights(journals, goals, stats, analysis_type)

    insights = {
        **result.insights.model_dump(),
        "summary": result.summary,
        "key_achievements": result.key_achievements,
        "areas_for_improvement": result.areas_for_improvement,
        "goal_progress_updates": result.goal_progress_updates,
    }
    data = AIAnalysisCreate(
        analysis_type=analysis_type,
        period_start=period_start,
        journal_entries_analyzed=[str(j.id) for j in journals],
        goals_analyzed=[str(g.id) for g in goals],
        insights=insights,
        recommendations=result.recommendations.model_dump(),
        progress_summary=build_progress_summary(goals, current_streak, len(journals)),
        tokens_used=result.tokens_used,
    )
    # analysis and weekly insight land in one commit
    try:
        analysis = upsert_period_analysis(db, user_id, data)
        if timeline == "week":
            upsert_weekly_insight(
                db,
                user_id,
                period_start,
                result.summary,
                result.key_achievements,
                result.areas_for_improvement,
                result.goal_progress_updates,
                analysis.id,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(analysis)

    return {
        "analysis": analysis,
        "summary": result.summary,
        "key_achievements": result.key_achievements,
        "areas_for_improvement": result.areas_for_improvement,
        "goal_progress_updates": result.goal_progress_updates,
        "stats": stats,
        "cached": False,
        "timeline": timeline,
        "period_start": period_start,
    }


def get_or_generate_insights(
    db: Session,
    user_id: UUID,
    get_ai: Callable[[], AIService],
    timeline: str = "week",
    force_refresh: bool = False,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Returns the insight for the current week or month, generating it at most once.

    A cached row for (user, kind, period start) is returned unchanged unless
    `force_refresh` is set, in which case the model is called again and the row
    is overwritten. Concurrent callers for the same key wait on one generation.
    Nothing is written when the model call fails. The AI service is only
    resolved on a cache miss, so cached insights are served even when no
    provider is configured.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the user.
        get_ai (Callable[[], AIService]): Resolves the LLM backend when needed.
        timeline (str): "week" or "month".
        force_refresh (bool): Regenerate even if cached.
        today (date): Reference date, defaults to the current date.

    Returns:
        Dict[str, Any]: The analysis plus response metadata.

    Raises:
        RateLimitedError: The provider throttled the request.
        AIServiceError: Any other model or parsing failure.
    """
    today = today or date.today()
    analysis_type = ANALYSIS_TYPE_BY_TIMELINE[timeline]
    period_start = get_period_start(timeline, today)

    with _generation_locks.hold((user_id, analysis_type, period_start)):
        if not force_refresh:
            cached = get_period_analysis(db, user_id, analysis_type, period_start)
            if cached is not None:
                logger.info(f"Serving cached {analysis_type} insights for user {user_id} (period {period_start})")
                return {"analysis": cached, "cached": True, "timeline": timeline, "period_start": period_start}
        return _generate_period_analysis(db, user_id, get_ai, timeline, period_start, today)


def analyze_goal(db: Session, user_id: UUID, ai_service: AIService, goal_id: UUID) -> Dict[str, Any]:
    """
    Runs an on-demand progress analysis for one goal.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the user.
        ai_service (AIService): LLM backend.
        goal_id (UUID): Goal to analyze.

    Returns:
        Dict[str, Any]: The stored analysis, the goal and how many entries informed it.
    """
    goal = require_goal(db, goal_id, user_id)
    journals = get_journals_for_goal(db, goal_id, user_id, limit=RELATED_JOURNALS_LIMIT)

    result = ai_service.analyze_goal_progress(goal, journals)
    analysis = create_analysis(
        db,
        user_id,
        AIAnalysisCreate(
            analysis_type="on-demand",
            journal_entries_analyzed=[str(j.id) for j in journals],
            goals_analyzed=[str(goal.id)],
            insights=result.insights.model_dump(),
            recommendations=result.recommendations.model_dump(),
            progress_summary=result.progress_summary,
            tokens_used=result.tokens_used,
        ),
    )
    return {"analysis": analysis, "goal": goal, "related_journals_count": len(journals)}


def analyze_journal(db: Session, user_id: UUID, ai_service: AIService, journal_id: UUID) -> Dict[str, Any]:
    """Runs an on-demand analysis of one journal entry against the user's goals."""
    journal = get_journal(db, journal_id, user_id)
    if journal is None:
        raise NotFoundError("Journal entry not found", code="JOURNAL_NOT_FOUND")
    goals = get_user_goals(db, user_id)

    result = ai_service.analyze_journal_entry(journal.content, goals, journal.mood)
    analysis: AIAnalysis = create_analysis(
        db,
        user_id,
        AIAnalysisCreate(
            analysis_type="on-demand",
            journal_entries_analyzed=[str(journal.id)],
            goals_analyzed=[str(g.id) for g in goals],
            insights=result.insights.model_dump(),
            recommendations=result.recommendations.model_dump(),
            tokens_used=result.tokens_used,
        ),
    )
    return {"analysis": analysis, "journal": journal}
