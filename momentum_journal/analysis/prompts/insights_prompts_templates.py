from datetime import date
from typing import Any, Dict, List, Optional

SYSTEM_PROMPT: str = (
    "You are the reflection coach inside a goal-tracking journal. "
    "You read a user's goals and journal entries and answer with a single JSON object only, "
    "no markdown and no prose outside the JSON."
)

JOURNAL_PROMPT: str = (
    "Read the journal entry below and relate it to the user's goals.\n\n"
    "{mood_context}\n\n"
    "{goals_context}\n\n"
    "Entry:\n\"\"\"\n{content}\n\"\"\"\n\n"
    "Return JSON shaped as:\n"
    "{{\n"
    '  "insights": {{"sentiment": "positive|neutral|negative", "patterns": [str], '
    '"key_themes": [str], "goal_alignment": {{"<goal id>": 0.0-1.0}}}},\n'
    '  "recommendations": {{"suggestions": [str], "action_items": [str], "focus_areas": [str]}}\n'
    "}}\n"
    "Only score goals the entry actually touches. Keep each list to 3-5 specific items."
)

GOAL_PROMPT: str = (
    "Assess how this goal is going and what would move it forward.\n\n"
    "Goal: {title}\n"
    "Description: {description}\n"
    "Type: {type} | Status: {status} | Progress: {progress}%\n"
    "Target date: {target}\n"
    "Created: {created}\n\n"
    "{journals_context}\n\n"
    "Return JSON shaped as:\n"
    "{{\n"
    '  "insights": {{"sentiment": "positive|neutral|negative", "patterns": [str], "key_themes": [str]}},\n'
    '  "recommendations": {{"suggestions": [str], "action_items": [str], "focus_areas": [str]}},\n'
    '  "progress_summary": {{"overall_progress": 0-100, "goals_on_track": [str], '
    '"goals_behind": [str], "momentum_score": 0-100}}\n'
    "}}\n"
    "Judge whether the goal is on track from its progress, time left and journal activity."
)

PERIOD_PROMPT: str = (
    "Write a {period} review of the user's goals and journaling.\n\n"
    "Stats for the period:\n"
    "- Active goals: {active_goals}\n"
    "- Completed goals: {completed_goals}\n"
    "- Journal entries: {journal_count}\n"
    "- Current streak: {current_streak} days\n"
    "{mood_line}\n"
    "{goals_context}\n\n"
    "{journals_context}\n\n"
    "Return JSON shaped as:\n"
    "{{\n"
    '  "summary": "2-3 sentences",\n'
    '  "key_achievements": [{{"title": str, "description": str, "goal_id": str|null, "date": "YYYY-MM-DD"}}],\n'
    '  "areas_for_improvement": [{{"area": str, "suggestion": str, "priority": "high|medium|low"}}],\n'
    '  "goal_progress_updates": [{{"goal_id": str, "goal_title": str, "previous_progress": int, '
    '"current_progress": int, "change": int, "notes": str}}],\n'
    '  "insights": {{"sentiment": "positive|neutral|negative", "patterns": [str], "key_themes": [str]}},\n'
    '  "recommendations": {{"suggestions": [str], "action_items": [str], "focus_areas": [str]}}\n'
    "}}\n"
    "Be encouraging and honest, focus on momentum, at most 5 items per list."
)


def _goals_context(goals: List[Any]) -> str:
    if not goals:
        return "No goals defined."
    lines = [
        f"- [{g.id}] {g.title} ({g.type}, {g.status}, {g.progress_percentage}%)"
        for g in goals
    ]
    return "Goals:\n" + "\n".join(lines)


def _journals_context(journals: List[Any], label: str, excerpt: int) -> str:
    if not journals:
        return f"No {label}."
    lines = [
        f"[{j.entry_date.isoformat()}] mood: {j.mood or 'none'}\n{j.content[:excerpt]}"
        for j in journals
    ]
    return f"{label.capitalize()} ({len(journals)}):\n" + "\n\n".join(lines)


def build_journal_prompt(content: str, goals: List[Any], mood: Optional[str]) -> str:
    return JOURNAL_PROMPT.format(
        mood_context=f"Reported mood: {mood}" if mood else "No mood reported.",
        goals_context=_goals_context(goals),
        content=content,
    )


def build_goal_prompt(goal: Any, related_journals: List[Any], today: Optional[date] = None) -> str:
    today = today or date.today()
    target = "Not set"
    if goal.target_date:
        days = (goal.target_date - today).days
        state = "remaining" if days >= 0 else "overdue"
        target = f"{goal.target_date.isoformat()} ({abs(days)} days {state})"
    return GOAL_PROMPT.format(
        title=goal.title,
        description=goal.description or "No description",
        type=goal.type,
        status=goal.status,
        progress=goal.progress_percentage,
        target=target,
        created=goal.created_at.date().isoformat() if goal.created_at else "unknown",
        journals_context=_journals_context(related_journals, "related journal entries", 200),
    )


def build_period_prompt(journals: List[Any], goals: List[Any], stats: Dict[str, Any], period: str) -> str:
    avg_mood = stats.get("avgMood")
    return PERIOD_PROMPT.format(
        period=period,
        active_goals=stats.get("activeGoals", 0),
        completed_goals=stats.get("completedGoals", 0),
        journal_count=stats.get("journalCount", 0),
        current_streak=stats.get("currentStreak", 0),
        mood_line=f"- Average mood: {avg_mood}\n" if avg_mood else "",
        goals_context=_goals_context(goals),
        journals_context=_journals_context(journals, "journal entries this period", 150),
    )
