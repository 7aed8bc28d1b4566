"""
Read-only aggregation queries behind the dashboard.

Every function takes an optional `today` so callers (and tests) can pin the
reference date; it defaults to the server's current date.
"""

import calendar
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from momentum_journal.goals.models import Goal
from momentum_journal.goals.linking import SHORT_TERM
from momentum_journal.journals.models import JournalEntry, JournalGoalMention

GOAL_STATUSES = ("active", "completed", "paused", "abandoned")
GOAL_TYPES = ("long-term", "short-term")
MOODS = ("great", "good", "neutral", "bad", "terrible")
WEEKS_IN_TIMELINE = {"week": 1, "month": 4, "year": 52}
GOAL_COLORS = [
    "#6366f1", "#22c55e", "#f59e0b", "#ef4444", "#06b6d4",
    "#a855f7", "#ec4899", "#84cc16", "#f97316", "#14b8a6",
]


def add_months(d: date, months: int) -> date:
    """Shifts a date by whole months, clamping to the end of shorter months."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def get_date_range(timeline: str, today: Optional[date] = None) -> Tuple[date, date]:
    """Returns the trailing (start, end) window for a timeline; end is today."""
    today = today or date.today()
    if timeline == "week":
        return today - timedelta(days=7), today
    if timeline == "month":
        return add_months(today, -1), today
    if timeline == "year":
        return add_months(today, -12), today
    raise ValueError(f"Unknown timeline: {timeline}")


def get_calendar_range(timeline: str, today: Optional[date] = None) -> Tuple[date, date]:
    """Returns the calendar period containing today: ISO week (Mon-Sun), month or year."""
    today = today or date.today()
    if timeline == "week":
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=6)
    if timeline == "month":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)
    if timeline == "year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    raise ValueError(f"Unknown timeline: {timeline}")


def calculate_streaks(entry_dates: Iterable[date], today: Optional[date] = None) -> Tuple[int, int]:
    """
    Computes (current, longest) runs of consecutive days with at least one entry.

    The current streak only counts when the latest entry is today or yesterday.
    """
    today = today or date.today()
    unique_dates = sorted(set(entry_dates), reverse=True)
    if not unique_dates:
        return 0, 0

    longest = 1
    run = 1
    for newer, older in zip(unique_dates, unique_dates[1:]):
        if (newer - older).days == 1:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    longest = max(longest, run)

    current = 0
    if unique_dates[0] in (today, today - timedelta(days=1)):
        current = 1
        for newer, older in zip(unique_dates, unique_dates[1:]):
            if (newer - older).days != 1:
                break
            current += 1
    return current, longest


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_goals_stats(db: Session, user_id: UUID, timeline: str, today: Optional[date] = None) -> Dict:
    start, _ = get_date_range(timeline, today)
    goals = (
        db.query(Goal.status, Goal.type, Goal.progress_percentage)
        .filter(Goal.user_id == user_id, Goal.created_at >= _start_of_day(start))
        .all()
    )
    total = len(goals)
    by_status = {s: 0 for s in GOAL_STATUSES}
    by_type = {t: 0 for t in GOAL_TYPES}
    for goal in goals:
        if goal.status in by_status:
            by_status[goal.status] += 1
        if goal.type in by_type:
            by_type[goal.type] += 1

    completion_rate = round(by_status["completed"] / total * 100) if total else 0
    average_progress = round(sum(g.progress_percentage or 0 for g in goals) / total) if total else 0
    return {
        "total": total,
        "byStatus": by_status,
        "byType": by_type,
        "completionRate": completion_rate,
        "averageProgress": average_progress,
    }


def get_all_entry_dates(db: Session, user_id: UUID) -> List[date]:
    return [row[0] for row in db.query(JournalEntry.entry_date).filter(JournalEntry.user_id == user_id).all()]


def get_journal_stats(db: Session, user_id: UUID, timeline: str, today: Optional[date] = None) -> Dict:
    start, _ = get_date_range(timeline, today)
    moods = (
        db.query(JournalEntry.mood)
        .filter(JournalEntry.user_id == user_id, JournalEntry.entry_date >= start)
        .all()
    )
    total = len(moods)
    by_mood = {m: 0 for m in MOODS}
    for (mood,) in moods:
        if mood in by_mood:
            by_mood[mood] += 1

    current_streak, longest_streak = calculate_streaks(get_all_entry_dates(db, user_id), today)
    avg_per_week = round(total / WEEKS_IN_TIMELINE[timeline], 1)
    return {
        "total": total,
        "byMood": by_mood,
        "currentStreak": current_streak,
        "longestStreak": longest_streak,
        "avgEntriesPerWeek": avg_per_week,
    }


def get_recent_activity(db: Session, user_id: UUID, limit: int = 10) -> List[Dict]:
    """Goals and journal entries merged by last update, newest first."""
    goals = (
        db.query(Goal)
        .filter(Goal.user_id == user_id)
        .order_by(Goal.updated_at.desc())
        .limit(limit)
        .all()
    )
    journals = (
        db.query(JournalEntry)
        .filter(JournalEntry.user_id == user_id)
        .order_by(JournalEntry.updated_at.desc())
        .limit(limit)
        .all()
    )
    items = [
        {
            "type": "goal",
            "id": g.id,
            "title": g.title,
            "createdAt": _as_utc(g.created_at),
            "updatedAt": _as_utc(g.updated_at),
            "status": g.status,
            "progressPercentage": g.progress_percentage,
        }
        for g in goals
    ]
    items += [
        {
            "type": "journal",
            "id": j.id,
            "title": j.title or "Untitled Entry",
            "createdAt": _as_utc(j.created_at),
            "updatedAt": _as_utc(j.updated_at),
            "mood": j.mood,
            "entryDate": j.entry_date,
        }
        for j in journals
    ]
    items.sort(key=lambda item: item["updatedAt"], reverse=True)
    return items[:limit]


def get_dashboard_stats(db: Session, user_id: UUID, timeline: str, limit: int = 10, today: Optional[date] = None) -> Dict:
    return {
        "goals": get_goals_stats(db, user_id, timeline, today),
        "journals": get_journal_stats(db, user_id, timeline, today),
        "recentActivity": get_recent_activity(db, user_id, limit),
    }


def _step(d: date, timeline: str) -> date:
    if timeline == "week":
        return d + timedelta(days=1)
    if timeline == "month":
        return d + timedelta(days=7)
    return add_months(d, 1)


def get_progress_over_time(db: Session, user_id: UUID, timeline: str, today: Optional[date] = None) -> List[Dict]:
    """
    Buckets goal and journal activity across the timeline.

    Buckets are daily for a week, weekly for a month and monthly for a year.
    Goal counts are cumulative (goals created on or before the bucket start);
    journal counts are per bucket.
    """
    start, end = get_date_range(timeline, today)
    goals = (
        db.query(Goal.status, Goal.progress_percentage, Goal.created_at)
        .filter(Goal.user_id == user_id, Goal.created_at >= _start_of_day(start))
        .all()
    )
    entry_dates = [
        row[0]
        for row in db.query(JournalEntry.entry_date)
        .filter(
            JournalEntry.user_id == user_id,
            JournalEntry.entry_date >= start,
            JournalEntry.entry_date <= end,
        )
        .all()
    ]

    points = []
    current = start
    while current <= end:
        following = _step(current, timeline)
        so_far = [g for g in goals if g.created_at.date() <= current]
        avg_progress = round(sum(g.progress_percentage or 0 for g in so_far) / len(so_far)) if so_far else 0
        points.append(
            {
                "date": current,
                "completedGoals": sum(1 for g in so_far if g.status == "completed"),
                "activeGoals": sum(1 for g in so_far if g.status == "active"),
                "journalEntries": sum(1 for d in entry_dates if current <= d < following),
                "avgProgress": avg_progress,
            }
        )
        current = following
    return points


def get_journal_heatmap(db: Session, user_id: UUID, timeline: str, today: Optional[date] = None) -> Dict:
    """One cell per day in the window with the entry count and whether any entry mentions a goal."""
    start, end = get_date_range(timeline, today)
    entries = (
        db.query(JournalEntry.id, JournalEntry.entry_date)
        .filter(
            JournalEntry.user_id == user_id,
            JournalEntry.entry_date >= start,
            JournalEntry.entry_date <= end,
        )
        .all()
    )
    counts = Counter(e.entry_date for e in entries)
    mentioned_ids = {
        row[0]
        for row in db.query(JournalGoalMention.journal_entry_id)
        .filter(JournalGoalMention.journal_entry_id.in_([e.id for e in entries]))
        .all()
    } if entries else set()
    days_with_mentions = {e.entry_date for e in entries if e.id in mentioned_ids}

    cells = []
    current = start
    while current <= end:
        cells.append(
            {"date": current, "count": counts.get(current, 0), "hasGoalMention": current in days_with_mentions}
        )
        current += timedelta(days=1)

    return {
        "data": cells,
        "totalEntries": len(entries),
        "daysWithEntries": len(counts),
        "maxCount": max(counts.values()) if counts else 0,
    }


def get_goal_activity_heatmap(db: Session, user_id: UUID, timeline: str, today: Optional[date] = None) -> Dict:
    """Dates on which each active goal was mentioned in a journal entry."""
    start, end = get_date_range(timeline, today)
    goals = (
        db.query(Goal)
        .filter(Goal.user_id == user_id, Goal.status == "active")
        .order_by(Goal.created_at.asc())
        .all()
    )
    rows = (
        db.query(JournalGoalMention.goal_id, JournalEntry.entry_date)
        .join(JournalEntry, JournalEntry.id == JournalGoalMention.journal_entry_id)
        .filter(
            JournalEntry.user_id == user_id,
            JournalEntry.entry_date >= start,
            JournalEntry.entry_date <= end,
        )
        .all()
    )
    activity: Dict[str, set] = {str(g.id): set() for g in goals}
    for goal_id, entry_date in rows:
        if str(goal_id) in activity:
            activity[str(goal_id)].add(entry_date)

    return {
        "goals": [
            {"id": g.id, "title": g.title, "color": GOAL_COLORS[i % len(GOAL_COLORS)]}
            for i, g in enumerate(goals)
        ],
        "activityByGoal": {gid: sorted(d.isoformat() for d in dates) for gid, dates in activity.items()},
        "dateRange": {"start": start, "end": end},
    }


def get_deadline_goals(db: Session, user_id: UUID, timeline: str, today: Optional[date] = None) -> List[Goal]:
    """Short-term goals due within the current calendar week, month or year."""
    start, end = get_calendar_range(timeline, today)
    return (
        db.query(Goal)
        .filter(
            Goal.user_id == user_id,
            Goal.type == SHORT_TERM,
            Goal.target_date >= start,
            Goal.target_date <= end,
        )
        .order_by(Goal.target_date.asc(), Goal.title.asc())
        .all()
    )
