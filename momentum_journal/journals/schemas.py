from datetime import date, datetime
from typing import Optional, List, Literal
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from momentum_journal.goals.schemas import BaseSchema, GoalType, GoalStatus

Mood = Literal["great", "good", "neutral", "bad", "terrible"]
JournalSortField = Literal["entry_date", "created_at", "updated_at", "title"]

MAX_TAGS = 20
MAX_TAG_LENGTH = 50


def _check_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return tags
    cleaned = [t.strip() for t in tags if t and t.strip()]
    if len(cleaned) > MAX_TAGS:
        raise ValueError(f"At most {MAX_TAGS} tags are allowed")
    for tag in cleaned:
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
    # keep first occurrence order
    return list(dict.fromkeys(cleaned))


class MentionedGoal(BaseSchema):
    id: UUID
    title: str
    type: GoalType
    status: GoalStatus


class JournalEntryBase(BaseSchema):
    id: UUID
    user_id: UUID
    title: Optional[str] = None
    content: str
    entry_date: date
    mood: Optional[Mood] = None
    tags: List[str] = []
    created_at: datetime
    updated_at: datetime


class JournalEntryResponse(JournalEntryBase):
    mentioned_goals: List[MentionedGoal] = []


class JournalEntryCreate(BaseSchema):
    title: Optional[str] = Field(default=None, max_length=200)
    content: str = Field(min_length=1, max_length=50000)
    entry_date: Optional[date] = None
    mood: Optional[Mood] = None
    tags: List[str] = []
    goal_ids: List[UUID] = []

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, v):
        return _check_tags(v)


class JournalEntryUpdate(BaseSchema):
    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=50000)
    entry_date: Optional[date] = None
    mood: Optional[Mood] = None
    tags: Optional[List[str]] = None
    goal_ids: Optional[List[UUID]] = None

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, v):
        return _check_tags(v)

    @field_validator("content", mode="before")
    @classmethod
    def _content_not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @model_validator(mode="after")
    def _check_update(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class JournalGoalsRequest(BaseSchema):
    goal_ids: List[UUID]
