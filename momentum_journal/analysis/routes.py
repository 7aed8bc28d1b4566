from datetime import date
from typing import Callable, Optional
from uuid import UUID
import logging

from fastapi import APIRouter, Body, Depends, Query, Security
from sqlalchemy.orm import Session

from momentum_journal.analysis.ai_providers.base import AIService
from momentum_journal.analysis.db import list_analyses
from momentum_journal.analysis.schemas import (
    AIAnalysisBase,
    AnalysisType,
    AnalyzeGoalRequest,
    AnalyzeJournalRequest,
    GoalAnalysisResponse,
    InsightsRequest,
    InsightsResponse,
    InsightTimeline,
    JournalAnalysisResponse,
)
from momentum_journal.analysis.service import analyze_goal, analyze_journal, get_or_generate_insights
from momentum_journal.auth.service import get_current_user_id
from momentum_journal.core.database import get_db
from momentum_journal.core.dependency import get_ai_service, get_ai_service_factory
from momentum_journal.core.errors import AIServiceError, AppError
from momentum_journal.core.responses import Envelope, PaginatedEnvelope, PageParams, ok, paginated

router = APIRouter(prefix="/ai", tags=["AI"])
logger = logging.getLogger(__name__)

_AI_RESPONSES = {
    401: {"description": "Unauthorized - invalid or missing credentials."},
    429: {"description": "AI provider is rate limiting requests; retry later."},
    500: {"description": "AI processing failed."},
}


def _insights(
    db: Session, user_id: UUID, get_ai: Callable[[], AIService], timeline: str, refresh: bool
) -> InsightsResponse:
    try:
        result = get_or_generate_insights(db, user_id, get_ai, timeline, force_refresh=refresh)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Insights generation failed for user {user_id}: {e}")
        raise AIServiceError()
    return InsightsResponse.model_validate(result)


@router.get(
    "/insights",
    response_model=Envelope[InsightsResponse],
    summary="Get weekly or monthly insights",
    description="""
                Return the AI insight for the current week (starting Sunday) or month. A cached
                insight for the period is returned as-is unless `refresh` is set.
                """,
    responses={200: {"description": "Insight returned."}, **_AI_RESPONSES},
)
def read_insights_route(
    timeline: InsightTimeline = Query("week"),
    refresh: bool = Query(False, description="Regenerate even if an insight is cached."),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
    get_ai: Callable[[], AIService] = Depends(get_ai_service_factory),
):
    return ok(_insights(db, user_id, get_ai, timeline, refresh))


@router.post(
    "/insights",
    response_model=Envelope[InsightsResponse],
    summary="Generate weekly or monthly insights",
    description="""
                Same as GET, with options in the body. `analysisType` (weekly | monthly) is
                accepted in place of `timeline`.
                """,
    responses={200: {"description": "Insight returned."}, **_AI_RESPONSES},
)
def generate_insights_route(
    body: Optional[InsightsRequest] = Body(None),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
    get_ai: Callable[[], AIService] = Depends(get_ai_service_factory),
):
    body = body or InsightsRequest()
    return ok(_insights(db, user_id, get_ai, body.timeline, body.refresh))


@router.post(
    "/analyze-goal",
    response_model=Envelope[GoalAnalysisResponse],
    summary="Analyze one goal",
    description="Analyze a goal's progress using the journal entries that mention it.",
    responses={
        200: {"description": "Goal analyzed successfully."},
        404: {"description": "Goal not found."},
        **_AI_RESPONSES,
    },
)
def analyze_goal_route(
    body: AnalyzeGoalRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
    ai_service: AIService = Depends(get_ai_service),
):
    try:
        result = analyze_goal(db, user_id, ai_service, body.goal_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Goal analysis failed for goal {body.goal_id}, user {user_id}: {e}")
        raise AIServiceError()
    return ok(GoalAnalysisResponse.model_validate(result))


@router.post(
    "/analyze-journal",
    response_model=Envelope[JournalAnalysisResponse],
    summary="Analyze one journal entry",
    description="Analyze a journal entry's sentiment and themes against the user's goals.",
    responses={
        200: {"description": "Journal entry analyzed successfully."},
        404: {"description": "Journal entry not found."},
        **_AI_RESPONSES,
    },
)
def analyze_journal_route(
    body: AnalyzeJournalRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
    ai_service: AIService = Depends(get_ai_service),
):
    try:
        result = analyze_journal(db, user_id, ai_service, body.journal_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Journal analysis failed for journal {body.journal_id}, user {user_id}: {e}")
        raise AIServiceError()
    return ok(JournalAnalysisResponse.model_validate(result))


@router.get(
    "/analyses",
    response_model=PaginatedEnvelope[AIAnalysisBase],
    summary="List past analyses",
    description="Return the user's stored analyses, newest first.",
    responses={
        200: {"description": "Analyses returned."},
        401: {"description": "Unauthorized - invalid or missing credentials."},
    },
)
def read_analyses_route(
    type: Optional[AnalysisType] = Query(None),
    dateFrom: Optional[date] = Query(None),
    dateTo: Optional[date] = Query(None),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    items, total = list_analyses(
        db,
        user_id,
        analysis_type=type,
        date_from=dateFrom,
        date_to=dateTo,
        offset=page.offset,
        limit=page.page_size,
    )
    return paginated([AIAnalysisBase.model_validate(a) for a in items], page, total)
