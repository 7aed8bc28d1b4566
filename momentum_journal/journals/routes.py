from datetime import date
from typing import List, Literal, Optional
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Security, status
from sqlalchemy.orm import Session

from momentum_journal.auth.service import get_current_user_id
from momentum_journal.core.database import get_db
from momentum_journal.core.errors import AppError, NotFoundError
from momentum_journal.core.responses import Envelope, PaginatedEnvelope, PageParams, ok, paginated
from momentum_journal.goals.schemas import DeletedResponse
from momentum_journal.journals.schemas import (
    JournalEntryCreate,
    JournalEntryUpdate,
    JournalEntryResponse,
    JournalGoalsRequest,
    JournalSortField,
    MentionedGoal,
    Mood,
)
from momentum_journal.journals.db import (
    create_journal,
    get_journal,
    list_journals,
    update_journal,
    delete_journal,
    get_mentioned_goals,
    get_journal_tags,
    set_journal_goals,
)

router = APIRouter(prefix="/journals", tags=["Journals"])
logger = logging.getLogger(__name__)


def _with_goals(db: Session, entries) -> List[JournalEntryResponse]:
    mentions = get_mentioned_goals(db, [e.id for e in entries])
    results = []
    for entry in entries:
        item = JournalEntryResponse.model_validate(entry)
        item.mentioned_goals = [MentionedGoal.model_validate(g) for g in mentions.get(entry.id, [])]
        results.append(item)
    return results


def _require_journal(db: Session, journal_id: UUID, user_id: UUID):
    journal = get_journal(db, journal_id, user_id)
    if journal is None:
        raise NotFoundError("Journal entry not found", code="JOURNAL_NOT_FOUND")
    return journal


@router.get(
    "",
    response_model=PaginatedEnvelope[JournalEntryResponse],
    summary="List journal entries",
    description="Retrieve the user's journal entries with filtering, sorting and pagination.",
    responses={
        200: {"description": "Journal entries retrieved successfully."},
        400: {"description": "Invalid query parameters."},
        401: {"description": "Unauthorized."},
        500: {"description": "Failed to retrieve journal entries."},
    },
)
def read_user_journals_route(
    mood: Optional[Mood] = Query(None),
    dateFrom: Optional[date] = Query(None, description="Inclusive lower bound (YYYY-MM-DD)."),
    dateTo: Optional[date] = Query(None, description="Inclusive upper bound (YYYY-MM-DD)."),
    search: Optional[str] = Query(None, max_length=200),
    goalId: Optional[UUID] = Query(None, description="Only entries linked to this goal."),
    tags: Optional[str] = Query(None, description="Comma-separated; matches any."),
    sortField: JournalSortField = Query("entry_date"),
    sortDir: Literal["asc", "desc"] = Query("desc"),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    try:
        entries, total = list_journals(
            db,
            user_id,
            mood=mood,
            date_from=dateFrom,
            date_to=dateTo,
            search=search,
            goal_id=goalId,
            tags=tag_list,
            sort_field=sortField,
            sort_dir=sortDir,
            offset=page.offset,
            limit=page.page_size,
        )
        return paginated(_with_goals(db, entries), page, total)
    except Exception as e:
        logger.error(f"Failed to fetch journals for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve journal entries")


@router.post(
    "",
    response_model=Envelope[JournalEntryResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a journal entry",
    description="Create a journal entry, optionally linked to some of the user's goals.",
    responses={
        201: {"description": "Journal entry created successfully."},
        400: {"description": "Validation failed."},
        401: {"description": "Unauthorized."},
        500: {"description": "Journal creation failed."},
    },
)
def create_journal_route(
    journal: JournalEntryCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        entry = create_journal(db, journal, user_id)
        return ok(_with_goals(db, [entry])[0])
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to create journal for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create journal entry")


@router.get(
    "/tags",
    response_model=Envelope[List[str]],
    summary="List journal tags",
    description="Distinct tags used across the user's journal entries.",
)
def read_journal_tags_route(
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    return ok(get_journal_tags(db, user_id))


@router.get(
    "/{journal_id}",
    response_model=Envelope[JournalEntryResponse],
    summary="Get a journal entry",
    description="Retrieve a single journal entry with its linked goals.",
    responses={
        200: {"description": "Journal entry retrieved successfully."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal entry not found."},
    },
)
def read_journal_route(
    journal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    journal = _require_journal(db, journal_id, user_id)
    return ok(_with_goals(db, [journal])[0])


@router.patch(
    "/{journal_id}",
    response_model=Envelope[JournalEntryResponse],
    summary="Update a journal entry",
    description="Partially update a journal entry. Passing goalIds replaces its goal links.",
    responses={
        200: {"description": "Journal entry updated successfully."},
        400: {"description": "Validation failed."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal entry not found."},
        500: {"description": "Failed to update journal entry."},
    },
)
def update_journal_route(
    journal_id: UUID,
    journal: JournalEntryUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        updated = update_journal(db, journal_id, journal, user_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to update journal {journal_id} for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update journal entry")
    if updated is None:
        raise NotFoundError("Journal entry not found", code="JOURNAL_NOT_FOUND")
    return ok(_with_goals(db, [updated])[0])


@router.delete(
    "/{journal_id}",
    response_model=Envelope[DeletedResponse],
    summary="Delete a journal entry",
    description="Delete a journal entry and its goal links.",
    responses={
        200: {"description": "Journal entry deleted successfully."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal entry not found."},
        500: {"description": "Failed to delete journal entry."},
    },
)
def delete_journal_route(
    journal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    try:
        deleted = delete_journal(db, journal_id, user_id)
    except Exception as e:
        logger.error(f"Failed to delete journal {journal_id} for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete journal entry")
    if deleted is None:
        raise NotFoundError("Journal entry not found", code="JOURNAL_NOT_FOUND")
    return ok(DeletedResponse(id=journal_id))


@router.get(
    "/{journal_id}/goals",
    response_model=Envelope[List[MentionedGoal]],
    summary="Get goals linked to a journal entry",
)
def read_journal_goals_route(
    journal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    _require_journal(db, journal_id, user_id)
    goals = get_mentioned_goals(db, [journal_id])[journal_id]
    return ok([MentionedGoal.model_validate(g) for g in goals])


@router.post(
    "/{journal_id}/goals",
    response_model=Envelope[List[MentionedGoal]],
    summary="Replace goals linked to a journal entry",
    description="Replace the set of goals linked to a journal entry. Every goal must belong to the user.",
    responses={
        200: {"description": "Goal links replaced successfully."},
        400: {"description": "One or more goals are not the user's."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal entry not found."},
    },
)
def replace_journal_goals_route(
    journal_id: UUID,
    body: JournalGoalsRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
):
    _require_journal(db, journal_id, user_id)
    goals = set_journal_goals(db, journal_id, body.goal_ids, user_id)
    return ok([MentionedGoal.model_validate(g) for g in goals])
