from datetime import date, datetime
from typing import Optional, List, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

GoalType = Literal["long-term", "short-term"]
GoalStatus = Literal["active", "completed", "paused", "abandoned"]
GoalSortField = Literal["title", "created_at", "updated_at", "target_date", "progress_percentage"]


class BaseSchema(BaseModel):
    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class GoalBase(BaseSchema):
    id: UUID
    user_id: UUID
    parent_goal_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    type: GoalType
    category: Optional[str] = None
    target_date: Optional[date] = None
    status: GoalStatus
    progress_percentage: int
    created_at: datetime
    updated_at: datetime


class GoalCreate(BaseSchema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    type: GoalType
    category: Optional[str] = Field(default=None, max_length=50)
    target_date: Optional[date] = None
    status: GoalStatus = "active"
    progress_percentage: int = Field(default=0, ge=0, le=100)
    parent_goal_id: Optional[UUID] = None


class GoalUpdate(BaseSchema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    type: Optional[GoalType] = None
    category: Optional[str] = Field(default=None, max_length=50)
    target_date: Optional[date] = None
    status: Optional[GoalStatus] = None
    progress_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    parent_goal_id: Optional[UUID] = None

    @field_validator("title", "type", "status", "progress_percentage", mode="before")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @model_validator(mode="after")
    def _check_update(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        if self.type == "long-term" and self.parent_goal_id is not None:
            raise ValueError("Long-term goals cannot have a parent goal")
        return self


class GoalResponse(GoalBase):
    pass


class GoalLinkRequest(BaseSchema):
    parent_goal_id: UUID


class GoalLinkInfo(BaseSchema):
    goal: GoalResponse
    parent_goal: Optional[GoalResponse] = None
    child_goals: List[GoalResponse] = []


class DeletedResponse(BaseSchema):
    id: UUID
