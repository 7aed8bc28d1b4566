from typing import List
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Security
from sqlalchemy.orm import Session

from momentum_journal.auth.service import get_current_user_id
from momentum_journal.core.database import get_db
from momentum_journal.core.responses import Envelope, ok
from momentum_journal.goals.schemas import GoalResponse
from momentum_journal.dashboard.schemas import (
    DashboardStats,
    GoalActivityHeatMap,
    JournalHeatMap,
    ProgressDataPoint,
    Timeline,
)
from momentum_journal.dashboard.db import (
    get_dashboard_stats,
    get_deadline_goals,
    get_goal_activity_heatmap,
    get_journal_heatmap,
    get_progress_over_time,
)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])
logger = logging.getLogger(__name__)

_RESPONSES = {
    401: {"description": "Unauthorized."},
    500: {"description": "Failed to compute dashboard data."},
}


@router.get(
    "/stats",
    response_model=Envelope[DashboardStats],
    summary="Dashboard statistics",
    description="""
                Goal and journal statistics for the timeline, including writing streaks,
                plus the most recently updated goals and entries.
                """,
    responses=_RESPONSES,
)
def read_dashboard_stats_route(
    timeline: Timeline = Query("week"),
    limit: int = Query(10, ge=1, le=50, description="Number of recent activity items."),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        return ok(DashboardStats.model_validate(get_dashboard_stats(db, user_id, timeline, limit)))
    except Exception as e:
        logger.error(f"Failed to compute dashboard stats for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard stats")


@router.get(
    "/progress",
    response_model=Envelope[List[ProgressDataPoint]],
    summary="Progress over time",
    description="Goal and journal activity bucketed by day (week), week (month) or month (year).",
    responses=_RESPONSES,
)
def read_progress_route(
    timeline: Timeline = Query("month"),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        points = get_progress_over_time(db, user_id, timeline)
        return ok([ProgressDataPoint.model_validate(p) for p in points])
    except Exception as e:
        logger.error(f"Failed to compute progress for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch progress data")


@router.get(
    "/heatmap",
    response_model=Envelope[JournalHeatMap],
    summary="Journal heat map",
    description="Daily journal entry counts across the timeline.",
    responses=_RESPONSES,
)
def read_journal_heatmap_route(
    timeline: Timeline = Query("month"),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        return ok(JournalHeatMap.model_validate(get_journal_heatmap(db, user_id, timeline)))
    except Exception as e:
        logger.error(f"Failed to compute journal heat map for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch heat map data")


@router.get(
    "/goal-heatmap",
    response_model=Envelope[GoalActivityHeatMap],
    summary="Goal activity heat map",
    description="Days on which each active goal was mentioned in a journal entry.",
    responses=_RESPONSES,
)
def read_goal_heatmap_route(
    timeline: Timeline = Query("week"),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        return ok(GoalActivityHeatMap.model_validate(get_goal_activity_heatmap(db, user_id, timeline)))
    except Exception as e:
        logger.error(f"Failed to compute goal heat map for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch goal heat map data")


@router.get(
    "/deadline-goals",
    response_model=Envelope[List[GoalResponse]],
    summary="Goals due this period",
    description="Short-term goals whose target date falls in the current week (Mon-Sun), month or year.",
    responses=_RESPONSES,
)
def read_deadline_goals_route(
    timeline: Timeline = Query("week"),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        goals = get_deadline_goals(db, user_id, timeline)
        return ok([GoalResponse.model_validate(g) for g in goals])
    except Exception as e:
        logger.error(f"Failed to fetch deadline goals for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch deadline goals")
