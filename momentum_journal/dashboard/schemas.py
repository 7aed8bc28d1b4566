import datetime as _dt
from typing import Dict, List, Literal, Optional
from uuid import UUID

from momentum_journal.goals.schemas import BaseSchema, GoalStatus
from momentum_journal.journals.schemas import Mood

Timeline = Literal["week", "month", "year"]


class GoalsStats(BaseSchema):
    total: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    completion_rate: int
    average_progress: int


class JournalStats(BaseSchema):
    total: int
    by_mood: Dict[str, int]
    current_streak: int
    longest_streak: int
    avg_entries_per_week: float


class RecentActivityItem(BaseSchema):
    type: Literal["goal", "journal"]
    id: UUID
    title: str
    created_at: _dt.datetime
    updated_at: _dt.datetime
    status: Optional[GoalStatus] = None
    progress_percentage: Optional[int] = None
    mood: Optional[Mood] = None
    entry_date: Optional[_dt.date] = None


class DashboardStats(BaseSchema):
    goals: GoalsStats
    journals: JournalStats
    recent_activity: List[RecentActivityItem]


class ProgressDataPoint(BaseSchema):
    date: _dt.date
    completed_goals: int
    active_goals: int
    journal_entries: int
    avg_progress: int


class HeatMapCell(BaseSchema):
    date: _dt.date
    count: int
    has_goal_mention: bool


class JournalHeatMap(BaseSchema):
    data: List[HeatMapCell]
    total_entries: int
    days_with_entries: int
    max_count: int


class HeatMapGoal(BaseSchema):
    id: UUID
    title: str
    color: str


class DateRange(BaseSchema):
    start: _dt.date
    end: _dt.date


class GoalActivityHeatMap(BaseSchema):
    goals: List[HeatMapGoal]
    activity_by_goal: Dict[str, List[str]]
    date_range: DateRange
