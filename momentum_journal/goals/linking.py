"""
Goal hierarchy rules.

A long-term goal never has a parent. A short-term goal has at most one parent,
which must be a long-term goal owned by the same user. The hierarchy is one
level deep, so rejecting a direct self-reference is enough to rule out cycles.

Every function here is pure: it takes snapshots of the goals involved and either
returns normally or raises `GoalLinkError`. The API layer and the ORM flush hooks
both call through this module so the two never disagree.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from momentum_journal.core.errors import GoalLinkError

LONG_TERM = "long-term"
SHORT_TERM = "short-term"

# Error codes
GOAL_NOT_FOUND = "GOAL_NOT_FOUND"
PARENT_NOT_FOUND = "PARENT_NOT_FOUND"
PARENT_NOT_LONG_TERM = "PARENT_NOT_LONG_TERM"
CHILD_NOT_SHORT_TERM = "CHILD_NOT_SHORT_TERM"
SELF_LINK_NOT_ALLOWED = "SELF_LINK_NOT_ALLOWED"
GOAL_HAS_CHILDREN = "GOAL_HAS_CHILDREN"
GOAL_ALREADY_LINKED = "GOAL_ALREADY_LINKED"
TYPE_CHANGE_BLOCKED = "TYPE_CHANGE_BLOCKED_HAS_PARENT"


@dataclass(frozen=True)
class GoalNode:
    """The slice of a goal row the linking rules look at."""

    id: UUID
    user_id: UUID
    type: str
    parent_goal_id: Optional[UUID] = None

    @classmethod
    def of(cls, goal) -> Optional["GoalNode"]:
        if goal is None:
            return None
        return cls(id=goal.id, user_id=goal.user_id, type=goal.type, parent_goal_id=goal.parent_goal_id)


def check_link(child: Optional[GoalNode], parent: Optional[GoalNode], child_has_children: bool) -> None:
    """
    Validates linking `child` under `parent`.

    `parent` must already be scoped to the requesting user; a parent owned by
    someone else is reported exactly like a missing one.

    Raises:
        GoalLinkError: On the first rule the proposed link breaks.
    """
    if child is None:
        raise GoalLinkError(GOAL_NOT_FOUND, "Goal not found")
    if parent is not None and child.id == parent.id:
        raise GoalLinkError(SELF_LINK_NOT_ALLOWED, "A goal cannot be linked to itself")
    # only long-term goals have children, so this must precede the type check
    if child_has_children:
        raise GoalLinkError(GOAL_HAS_CHILDREN, "A goal with linked children cannot become a child")
    if child.type != SHORT_TERM:
        raise GoalLinkError(CHILD_NOT_SHORT_TERM, "Only short-term goals can be linked to a parent")
    if parent is not None and child.parent_goal_id == parent.id:
        raise GoalLinkError(GOAL_ALREADY_LINKED, "Goal is already linked to this parent")
    if parent is None or parent.user_id != child.user_id:
        raise GoalLinkError(PARENT_NOT_FOUND, "Parent goal not found")
    if parent.type != LONG_TERM:
        raise GoalLinkError(PARENT_NOT_LONG_TERM, "Parent goal must be a long-term goal")


def check_unlink(child: Optional[GoalNode]) -> None:
    if child is None:
        raise GoalLinkError(GOAL_NOT_FOUND, "Goal not found")


def check_type_change(goal: GoalNode, new_type: str, has_children: bool = False) -> None:
    """
    Blocks type changes that would break the hierarchy: a linked short-term goal
    cannot become long-term, and a long-term goal with children cannot become
    short-term.
    """
    if new_type == goal.type:
        return
    if new_type == LONG_TERM and goal.parent_goal_id is not None:
        raise GoalLinkError(
            TYPE_CHANGE_BLOCKED,
            "Cannot change a linked goal to long-term. Unlink it from its parent first.",
        )
    if new_type == SHORT_TERM and has_children:
        raise GoalLinkError(GOAL_HAS_CHILDREN, "Unlink this goal's children before making it short-term")


def normalize_create(goal_type: str, parent_goal_id: Optional[UUID]) -> Optional[UUID]:
    """Returns the parent id a new goal should be stored with."""
    if goal_type == LONG_TERM:
        return None
    return parent_goal_id


def validate_parent_assignment(goal: GoalNode, parent: Optional[GoalNode]) -> None:
    """
    The row-level rule set checked on every insert and update.

    `parent` is the row referenced by `goal.parent_goal_id`, loaded without
    any ownership filter (None when the reference dangles).
    """
    if goal.parent_goal_id is None:
        return
    if goal.type == LONG_TERM:
        raise GoalLinkError(TYPE_CHANGE_BLOCKED, "Long-term goals cannot have a parent goal")
    if goal.parent_goal_id == goal.id:
        raise GoalLinkError(SELF_LINK_NOT_ALLOWED, "A goal cannot be linked to itself")
    if parent is None or parent.user_id != goal.user_id:
        raise GoalLinkError(PARENT_NOT_FOUND, "Parent goal not found")
    if parent.type != LONG_TERM:
        raise GoalLinkError(PARENT_NOT_LONG_TERM, "Parent goal must be a long-term goal")
