# schemas.py
from typing import Any, List, Dict, Optional, Literal
from uuid import UUID
from datetime import date, datetime
from pydantic import BaseModel, Field, model_validator

from momentum_journal.goals.schemas import BaseSchema, GoalResponse
from momentum_journal.journals.schemas import JournalEntryBase

AnalysisType = Literal["on-demand", "weekly", "monthly"]
InsightTimeline = Literal["week", "month"]


class AIAnalysisBase(BaseSchema):
    id: UUID
    user_id: UUID
    analysis_type: AnalysisType
    period_start: Optional[date] = None
    journal_entries_analyzed: List[str] = []
    goals_analyzed: List[str] = []
    insights: Dict[str, Any]
    recommendations: Optional[Dict[str, Any]] = None
    progress_summary: Optional[Dict[str, Any]] = None
    tokens_used: Optional[int] = None
    created_at: datetime


class AIAnalysisCreate(BaseSchema):
    analysis_type: AnalysisType
    period_start: Optional[date] = None
    journal_entries_analyzed: List[str] = []
    goals_analyzed: List[str] = []
    insights: Dict[str, Any]
    recommendations: Optional[Dict[str, Any]] = None
    progress_summary: Optional[Dict[str, Any]] = None
    tokens_used: Optional[int] = None


class InsightsRequest(BaseSchema):
    timeline: Optional[InsightTimeline] = None
    analysis_type: Optional[Literal["weekly", "monthly"]] = None
    refresh: bool = False

    @model_validator(mode="after")
    def _resolve_timeline(self):
        if self.timeline is None:
            self.timeline = "month" if self.analysis_type == "monthly" else "week"
        return self


class AnalyzeGoalRequest(BaseSchema):
    goal_id: UUID


class AnalyzeJournalRequest(BaseSchema):
    journal_id: UUID


class InsightStats(BaseSchema):
    active_goals: int
    completed_goals: int
    journal_count: int
    current_streak: int
    avg_mood: Optional[str] = None


class InsightsResponse(BaseSchema):
    analysis: AIAnalysisBase
    cached: bool
    timeline: InsightTimeline
    period_start: date
    summary: Optional[str] = None
    key_achievements: Optional[List[Dict[str, Any]]] = None
    areas_for_improvement: Optional[List[Dict[str, Any]]] = None
    goal_progress_updates: Optional[List[Dict[str, Any]]] = None
    stats: Optional[InsightStats] = None


class GoalAnalysisResponse(BaseSchema):
    analysis: AIAnalysisBase
    goal: GoalResponse
    related_journals_count: int


class JournalAnalysisResponse(BaseSchema):
    analysis: AIAnalysisBase
    journal: JournalEntryBase


# Shapes the LLM is asked to return; missing keys fall back to these defaults
class InsightsBlock(BaseModel):
    sentiment: str = "neutral"
    patterns: List[str] = []
    key_themes: List[str] = []
    goal_alignment: Dict[str, float] = {}


class RecommendationsBlock(BaseModel):
    suggestions: List[str] = []
    action_items: List[str] = []
    focus_areas: List[str] = []


class JournalLLMResponse(BaseModel):
    insights: InsightsBlock = Field(default_factory=InsightsBlock)
    recommendations: RecommendationsBlock = Field(default_factory=RecommendationsBlock)
    tokens_used: int = 0


class GoalLLMResponse(JournalLLMResponse):
    progress_summary: Dict[str, Any] = {}


class PeriodLLMResponse(JournalLLMResponse):
    summary: str = "No summary available."
    key_achievements: List[Dict[str, Any]] = []
    areas_for_improvement: List[Dict[str, Any]] = []
    goal_progress_updates: List[Dict[str, Any]] = []
