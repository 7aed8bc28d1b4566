import datetime
from uuid import UUID, uuid4
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from momentum_journal.analysis.models import AIAnalysis, WeeklyInsight
from momentum_journal.analysis.schemas import AIAnalysisCreate


def get_period_analysis(
    db: Session, user_id: UUID, analysis_type: str, period_start: datetime.date
) -> Optional[AIAnalysis]:
    """
    Retrieves the cached analysis for a user, kind and period.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the user.
        analysis_type (str): "weekly" or "monthly".
        period_start (date): First day of the period.

    Returns:
        Optional[AIAnalysis]: The cached analysis or None.
    """
    return db.query(AIAnalysis).filter(
        AIAnalysis.user_id == user_id,
        AIAnalysis.analysis_type == analysis_type,
        AIAnalysis.period_start == period_start,
    ).first()


def upsert_period_analysis(db: Session, user_id: UUID, data: AIAnalysisCreate) -> AIAnalysis:
    """
    Inserts or overwrites the analysis stored for (user, kind, period).

    The unique constraint on that key is the idempotency guard: if another
    writer inserts the same key first, its row is re-read and overwritten so
    exactly one row per key remains. Changes are flushed, not committed; the
    caller commits once everything for the period is staged.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the user.
        data (AIAnalysisCreate): The generated analysis, including period_start.

    Returns:
        AIAnalysis: The staged row.
    """
    update_data = data.model_dump()
    existing = get_period_analysis(db, user_id, data.analysis_type, data.period_start)

    if existing is None:
        existing = AIAnalysis(id=uuid4(), user_id=user_id, **update_data)
        db.add(existing)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            existing = get_period_analysis(db, user_id, data.analysis_type, data.period_start)
            if existing is None:
                raise
            _overwrite(existing, update_data)
            db.flush()
    else:
        _overwrite(existing, update_data)
        db.flush()

    return existing


def _overwrite(row: AIAnalysis, update_data: Dict[str, Any]) -> None:
    for field, value in update_data.items():
        setattr(row, field, value)
    row.created_at = datetime.datetime.now(datetime.timezone.utc)


def create_analysis(db: Session, user_id: UUID, data: AIAnalysisCreate) -> AIAnalysis:
    """Stores an on-demand analysis; these are never de-duplicated."""
    analysis = AIAnalysis(id=uuid4(), user_id=user_id, **data.model_dump())
    db.add(analysis)
    db.commit()
    db.refresh(analysis)
    return analysis


def list_analyses(
    db: Session,
    user_id: UUID,
    *,
    analysis_type: Optional[str] = None,
    date_from: Optional[datetime.date] = None,
    date_to: Optional[datetime.date] = None,
    offset: int = 0,
    limit: int = 10,
) -> Tuple[List[AIAnalysis], int]:
    """
    Retrieves the user's analyses, newest first.

    Returns:
        Tuple[List[AIAnalysis], int]: The page of analyses and the total match count.
    """
    query = db.query(AIAnalysis).filter(AIAnalysis.user_id == user_id)
    if analysis_type:
        query = query.filter(AIAnalysis.analysis_type == analysis_type)
    if date_from:
        query = query.filter(AIAnalysis.created_at >= datetime.datetime.combine(date_from, datetime.time.min))
    if date_to:
        query = query.filter(AIAnalysis.created_at <= datetime.datetime.combine(date_to, datetime.time.max))
    total = query.count()
    items = query.order_by(AIAnalysis.created_at.desc()).offset(offset).limit(limit).all()
    return items, total


def upsert_weekly_insight(
    db: Session,
    user_id: UUID,
    week_start: datetime.date,
    summary: str,
    key_achievements: List[Dict[str, Any]],
    areas_for_improvement: List[Dict[str, Any]],
    goal_progress_updates: List[Dict[str, Any]],
    ai_analysis_id: UUID,
) -> WeeklyInsight:
    """Stages the weekly insight row for the week starting on `week_start`; the caller commits."""
    insight = db.query(WeeklyInsight).filter(
        WeeklyInsight.user_id == user_id,
        WeeklyInsight.week_start_date == week_start,
    ).first()
    if insight is None:
        insight = WeeklyInsight(id=uuid4(), user_id=user_id, week_start_date=week_start)
        db.add(insight)

    insight.week_end_date = week_start + datetime.timedelta(days=6)
    insight.summary = summary
    insight.key_achievements = key_achievements
    insight.areas_for_improvement = areas_for_improvement
    insight.goal_progress_updates = goal_progress_updates
    insight.ai_analysis_id = ai_analysis_id

    db.flush()
    return insight
