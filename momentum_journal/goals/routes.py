from uuid import UUID
from typing import List, Literal, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Security, status
from sqlalchemy.orm import Session

from momentum_journal.auth.service import get_current_user_id
from momentum_journal.core.database import get_db
from momentum_journal.core.errors import AppError, NotFoundError
from momentum_journal.core.responses import Envelope, PaginatedEnvelope, PageParams, ok, paginated
from momentum_journal.goals.schemas import (
    GoalCreate,
    GoalUpdate,
    GoalResponse,
    GoalLinkRequest,
    GoalLinkInfo,
    GoalSortField,
    GoalStatus,
    GoalType,
    DeletedResponse,
)
from momentum_journal.goals.db import (
    create_goal,
    get_goal,
    update_goal,
    delete_goal,
    list_goals,
    get_active_long_term_goals,
    get_goal_categories,
    get_goal_link_info,
    link_goal,
    unlink_goal,
)

router = APIRouter(prefix="/goals", tags=["Goals"])
logger = logging.getLogger(__name__)


def _goal(goal) -> GoalResponse:
    return GoalResponse.model_validate(goal)


@router.get(
    "",
    response_model=PaginatedEnvelope[GoalResponse],
    summary="List user goals",
    description="Retrieve the authenticated user's goals with filtering, sorting and pagination.",
    responses={
        200: {"description": "Goals retrieved successfully."},
        400: {"description": "Invalid query parameters."},
        401: {"description": "Unauthorized."},
        500: {"description": "Failed to retrieve goals."},
    },
)
def read_user_goals_route(
    type: Optional[GoalType] = Query(None, description="long-term | short-term"),
    status_filter: Optional[GoalStatus] = Query(None, alias="status"),
    category: Optional[str] = Query(None, max_length=50),
    search: Optional[str] = Query(None, max_length=200, description="Matches title or description."),
    parentGoalId: Optional[UUID] = Query(None, description="Only children of this goal."),
    hasParent: Optional[bool] = Query(None, description="Only linked or only unlinked goals."),
    sortField: GoalSortField = Query("created_at"),
    sortDir: Literal["asc", "desc"] = Query("desc"),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        goals, total = list_goals(
            db,
            user_id,
            goal_type=type,
            status=status_filter,
            category=category,
            search=search,
            parent_goal_id=parentGoalId,
            has_parent=hasParent,
            sort_field=sortField,
            sort_dir=sortDir,
            offset=page.offset,
            limit=page.page_size,
        )
        return paginated([_goal(g) for g in goals], page, total)
    except Exception as e:
        logger.error(f"Failed to fetch goals for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve goals")


@router.post(
    "",
    response_model=Envelope[GoalResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a new goal",
    description="""
                Create a goal for the authenticated user. A short-term goal may name a long-term
                parent; a long-term goal is always stored without one.
                """,
    responses={
        201: {"description": "Goal created successfully."},
        400: {"description": "Validation or linking rule failed."},
        401: {"description": "Unauthorized."},
        404: {"description": "Parent goal not found."},
        500: {"description": "Goal creation failed."},
    },
)
def create_goal_route(
    goal: GoalCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        return ok(_goal(create_goal(db, goal, user_id)))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to create goal for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create goal")


@router.get(
    "/long-term",
    response_model=Envelope[List[GoalResponse]],
    summary="List active long-term goals",
    description="Active long-term goals ordered by title, for choosing a parent goal.",
    responses={
        200: {"description": "Long-term goals retrieved successfully."},
        401: {"description": "Unauthorized."},
    },
)
def read_long_term_goals_route(
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    return ok([_goal(g) for g in get_active_long_term_goals(db, user_id)])


@router.get(
    "/categories",
    response_model=Envelope[List[str]],
    summary="List goal categories",
    description="Distinct categories used across the user's goals.",
)
def read_goal_categories_route(
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    return ok(get_goal_categories(db, user_id))


@router.get(
    "/{goal_id}",
    response_model=Envelope[GoalResponse],
    summary="Get a specific goal",
    description="Retrieve a specific goal by its unique ID.",
    responses={
        200: {"description": "Goal retrieved successfully."},
        401: {"description": "Unauthorized."},
        404: {"description": "Goal not found."},
    },
)
def read_goal_route(
    goal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    goal = get_goal(db, goal_id, user_id)
    if goal is None:
        raise NotFoundError("Goal not found", code="GOAL_NOT_FOUND")
    return ok(_goal(goal))


@router.patch(
    "/{goal_id}",
    response_model=Envelope[GoalResponse],
    summary="Update an existing goal",
    description="""
                Partially update a goal. Changing a linked short-term goal to long-term is
                rejected with TYPE_CHANGE_BLOCKED_HAS_PARENT; unlink it first.
                """,
    responses={
        200: {"description": "Goal updated successfully."},
        400: {"description": "Validation or linking rule failed."},
        401: {"description": "Unauthorized."},
        404: {"description": "Goal not found."},
        500: {"description": "Failed to update goal."},
    },
)
def update_goal_route(
    goal_id: UUID,
    goal: GoalUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        updated = update_goal(db, goal_id, goal, user_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to update goal {goal_id} for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update goal")
    if updated is None:
        raise NotFoundError("Goal not found", code="GOAL_NOT_FOUND")
    return ok(_goal(updated))


@router.delete(
    "/{goal_id}",
    response_model=Envelope[DeletedResponse],
    summary="Delete a goal",
    description="Delete a specific goal by its ID. Linked children are unlinked.",
    responses={
        200: {"description": "Goal deleted successfully."},
        401: {"description": "Unauthorized."},
        404: {"description": "Goal not found."},
        500: {"description": "Failed to delete goal."},
    },
)
def delete_goal_route(
    goal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        deleted = delete_goal(db, goal_id, user_id)
    except Exception as e:
        logger.error(f"Failed to delete goal {goal_id} for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete goal")
    if deleted is None:
        raise NotFoundError("Goal not found", code="GOAL_NOT_FOUND")
    return ok(DeletedResponse(id=goal_id))


@router.get(
    "/{goal_id}/link",
    response_model=Envelope[GoalLinkInfo],
    summary="Get a goal's links",
    description="Return the goal with its parent goal and, for long-term goals, its child goals.",
    responses={
        200: {"description": "Link information retrieved successfully."},
        401: {"description": "Unauthorized."},
        404: {"description": "Goal not found."},
    },
)
def read_goal_link_route(
    goal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    goal, parent, children = get_goal_link_info(db, goal_id, user_id)
    return ok(
        GoalLinkInfo(
            goal=_goal(goal),
            parent_goal=_goal(parent) if parent else None,
            child_goals=[_goal(c) for c in children],
        )
    )


@router.post(
    "/{goal_id}/link",
    response_model=Envelope[GoalResponse],
    summary="Link a goal to a parent",
    description="""
                Link a short-term goal under a long-term parent goal. Re-linking to the same
                parent is rejected with GOAL_ALREADY_LINKED.
                """,
    responses={
        200: {"description": "Goal linked successfully."},
        400: {"description": "A linking rule rejected the request."},
        401: {"description": "Unauthorized."},
        404: {"description": "Goal or parent goal not found."},
    },
)
def link_goal_route(
    goal_id: UUID,
    body: GoalLinkRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    goal = link_goal(db, goal_id, body.parent_goal_id, user_id)
    logger.info(f"Linked goal {goal_id} to parent {body.parent_goal_id} for user {user_id}")
    return ok(_goal(goal))


@router.delete(
    "/{goal_id}/link",
    response_model=Envelope[GoalResponse],
    summary="Unlink a goal from its parent",
    description="Clear the parent reference of a goal.",
    responses={
        200: {"description": "Goal unlinked successfully."},
        401: {"description": "Unauthorized."},
        404: {"description": "Goal not found."},
    },
)
def unlink_goal_route(
    goal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    goal = unlink_goal(db, goal_id, user_id)
    logger.info(f"Unlinked goal {goal_id} for user {user_id}")
    return ok(_goal(goal))
