import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, JSON, Text, UniqueConstraint, CheckConstraint, Uuid
from momentum_journal.core.database import Base


class AIAnalysis(Base):
    __tablename__ = "ai_analyses"
    __table_args__ = (
        # One cached insight per user, kind and period; on-demand rows leave period_start NULL
        UniqueConstraint("user_id", "analysis_type", "period_start", name="uq_ai_analysis_period"),
        CheckConstraint(
            "analysis_type IN ('on-demand', 'weekly', 'monthly')", name="chk_ai_analysis_type"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    analysis_type = Column(String, nullable=False)
    period_start = Column(Date, nullable=True)

    journal_entries_analyzed = Column(JSON, nullable=False, default=list)  # list[str]
    goals_analyzed = Column(JSON, nullable=False, default=list)  # list[str]
    insights = Column(JSON, nullable=False)
    recommendations = Column(JSON, nullable=True)
    progress_summary = Column(JSON, nullable=True)
    tokens_used = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class WeeklyInsight(Base):
    __tablename__ = "weekly_insights"
    __table_args__ = (UniqueConstraint("user_id", "week_start_date", name="uq_weekly_insight_week"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    week_start_date = Column(Date, nullable=False)
    week_end_date = Column(Date, nullable=False)

    summary = Column(Text, nullable=False)
    key_achievements = Column(JSON)
    areas_for_improvement = Column(JSON)
    goal_progress_updates = Column(JSON)
    ai_analysis_id = Column(Uuid(as_uuid=True), ForeignKey("ai_analyses.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
