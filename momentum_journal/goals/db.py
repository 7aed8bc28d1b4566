from uuid import UUID, uuid4
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from momentum_journal.goals.models import Goal
from momentum_journal.journals.models import JournalGoalMention
from momentum_journal.goals.schemas import GoalCreate, GoalUpdate
from momentum_journal.goals.linking import (
    GoalNode,
    check_link,
    check_unlink,
    check_type_change,
    normalize_create,
    LONG_TERM,
)
from momentum_journal.core.errors import GoalLinkError, NotFoundError


def create_goal(db: Session, goal: GoalCreate, user_id: UUID) -> Goal:
    """
    Creates a new goal for the user.

    A short-term goal created with a parent goes through the same checks as an
    explicit link; a long-term goal always starts without a parent.

    Args:
        db (Session): SQLAlchemy session.
        goal (GoalCreate): Input data for the goal.
        user_id (UUID): ID of the user.

    Returns:
        Goal: The created goal object.
    """
    new_id = uuid4()
    parent_goal_id = normalize_create(goal.type, goal.parent_goal_id)
    if parent_goal_id is not None:
        child = GoalNode(id=new_id, user_id=user_id, type=goal.type)
        parent = GoalNode.of(get_goal(db, parent_goal_id, user_id))
        check_link(child, parent, child_has_children=False)

    new_goal = Goal(
        id=new_id,
        user_id=user_id,
        title=goal.title,
        description=goal.description,
        type=goal.type,
        category=goal.category,
        target_date=goal.target_date,
        status=goal.status,
        progress_percentage=goal.progress_percentage,
        parent_goal_id=parent_goal_id,
    )
    db.add(new_goal)
    db.commit()
    db.refresh(new_goal)
    return new_goal


def get_goal(db: Session, goal_id: UUID, user_id: UUID) -> Optional[Goal]:
    """
    Retrieves a goal by ID for the user.

    Args:
        db (Session): SQLAlchemy session.
        goal_id (UUID): ID of the goal.
        user_id (UUID): ID of the user.

    Returns:
        Optional[Goal]: The goal if found, else None.
    """
    return db.query(Goal).filter(
        Goal.id == goal_id,
        Goal.user_id == user_id
    ).first()


def has_children(db: Session, goal_id: UUID) -> bool:
    return db.query(Goal.id).filter(Goal.parent_goal_id == goal_id).first() is not None


def get_child_goals(db: Session, goal_id: UUID, user_id: UUID) -> List[Goal]:
    return (
        db.query(Goal)
        .filter(Goal.parent_goal_id == goal_id, Goal.user_id == user_id)
        .order_by(Goal.title.asc())
        .all()
    )


def list_goals(
    db: Session,
    user_id: UUID,
    *,
    goal_type: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    parent_goal_id: Optional[UUID] = None,
    has_parent: Optional[bool] = None,
    sort_field: str = "created_at",
    sort_dir: str = "desc",
    offset: int = 0,
    limit: int = 10,
) -> Tuple[List[Goal], int]:
    """
    Retrieves a filtered, sorted page of the user's goals.

    Args:
        db (Session): SQLAlchemy session.
        user_id (UUID): ID of the user.
        goal_type, status, category: Exact-match filters.
        search (str): Case-insensitive match on title or description.
        parent_goal_id (UUID): Only children of this goal.
        has_parent (bool): Only linked (True) or unlinked (False) goals.
        sort_field (str): Column to order by.
        sort_dir (str): "asc" or "desc".
        offset (int): Pagination offset.
        limit (int): Pagination limit.

    Returns:
        Tuple[List[Goal], int]: The page of goals and the total match count.
    """
    query = db.query(Goal).filter(Goal.user_id == user_id)

    if goal_type:
        query = query.filter(Goal.type == goal_type)
    if status:
        query = query.filter(Goal.status == status)
    if category:
        query = query.filter(Goal.category == category)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Goal.title.ilike(pattern), Goal.description.ilike(pattern)))
    if parent_goal_id:
        query = query.filter(Goal.parent_goal_id == parent_goal_id)
    if has_parent is True:
        query = query.filter(Goal.parent_goal_id.isnot(None))
    elif has_parent is False:
        query = query.filter(Goal.parent_goal_id.is_(None))

    total = query.count()
    column = getattr(Goal, sort_field)
    ordering = column.asc() if sort_dir == "asc" else column.desc()
    goals = query.order_by(ordering, Goal.id).offset(offset).limit(limit).all()
    return goals, total


def get_user_goals(db: Session, user_id: UUID) -> List[Goal]:
    return db.query(Goal).filter(Goal.user_id == user_id).order_by(Goal.created_at.desc()).all()


def get_active_long_term_goals(db: Session, user_id: UUID) -> List[Goal]:
    """Active long-term goals, ordered by title, for picking a parent."""
    return (
        db.query(Goal)
        .filter(Goal.user_id == user_id, Goal.type == LONG_TERM, Goal.status == "active")
        .order_by(Goal.title.asc())
        .all()
    )


def get_goal_categories(db: Session, user_id: UUID) -> List[str]:
    rows = (
        db.query(Goal.category)
        .filter(Goal.user_id == user_id, Goal.category.isnot(None))
        .distinct()
        .all()
    )
    return sorted(row[0] for row in rows if row[0])


def update_goal(db: Session, goal_id: UUID, updated_goal: GoalUpdate, user_id: UUID) -> Optional[Goal]:
    """
    Updates a specific goal for a user.

    Type changes and parent changes are validated before anything is written.

    Args:
        db (Session): SQLAlchemy session.
        goal_id (UUID): ID of the goal to update.
        updated_goal (GoalUpdate): Update payload.
        user_id (UUID): ID of the user.

    Returns:
        Optional[Goal]: Updated goal if successful, else None.
    """
    goal = get_goal(db, goal_id, user_id)
    if goal is None:
        return None

    update_data = updated_goal.model_dump(exclude_unset=True)
    node = GoalNode.of(goal)

    if "parent_goal_id" in update_data:
        new_parent_id = update_data["parent_goal_id"]
        if new_parent_id is not None and new_parent_id != goal.parent_goal_id:
            new_type = update_data.get("type", goal.type)
            child = GoalNode(id=goal.id, user_id=user_id, type=new_type, parent_goal_id=goal.parent_goal_id)
            parent = GoalNode.of(get_goal(db, new_parent_id, user_id))
            check_link(child, parent, has_children(db, goal.id))
        node = GoalNode(id=goal.id, user_id=user_id, type=goal.type, parent_goal_id=new_parent_id)

    if "type" in update_data and update_data["type"]:
        check_type_change(node, update_data["type"], has_children(db, goal.id))

    for field, value in update_data.items():
        setattr(goal, field, value)
    db.commit()
    db.refresh(goal)
    return goal


def link_goal(db: Session, goal_id: UUID, parent_goal_id: UUID, user_id: UUID) -> Goal:
    """
    Links a short-term goal under a long-term parent.

    Raises:
        GoalLinkError: If any hierarchy rule rejects the link.
    """
    goal = get_goal(db, goal_id, user_id)
    parent = get_goal(db, parent_goal_id, user_id)
    check_link(
        GoalNode.of(goal),
        GoalNode.of(parent),
        has_children(db, goal_id) if goal is not None else False,
    )
    goal.parent_goal_id = parent_goal_id
    db.commit()
    db.refresh(goal)
    return goal


def unlink_goal(db: Session, goal_id: UUID, user_id: UUID) -> Goal:
    """Clears a goal's parent reference; unlinking an unlinked goal is a no-op."""
    goal = get_goal(db, goal_id, user_id)
    check_unlink(GoalNode.of(goal))
    goal.parent_goal_id = None
    db.commit()
    db.refresh(goal)
    return goal


def get_goal_link_info(db: Session, goal_id: UUID, user_id: UUID) -> Tuple[Goal, Optional[Goal], List[Goal]]:
    goal = get_goal(db, goal_id, user_id)
    if goal is None:
        raise GoalLinkError("GOAL_NOT_FOUND", "Goal not found")
    parent = get_goal(db, goal.parent_goal_id, user_id) if goal.parent_goal_id else None
    children = get_child_goals(db, goal.id, user_id) if goal.type == LONG_TERM else []
    return goal, parent, children


def delete_goal(db: Session, goal_id: UUID, user_id: UUID) -> Optional[Goal]:
    """
    Deletes a single goal by ID for the user.

    Children of a deleted long-term goal are unlinked rather than removed, and
    journal mentions of the goal are dropped.

    Args:
        db (Session): SQLAlchemy session.
        goal_id (UUID): ID of the goal.
        user_id (UUID): ID of the user.

    Returns:
        Optional[Goal]: Deleted goal or None.
    """
    goal = get_goal(db, goal_id, user_id)
    if goal:
        db.query(Goal).filter(Goal.parent_goal_id == goal_id).update(
            {Goal.parent_goal_id: None}, synchronize_session=False
        )
        db.query(JournalGoalMention).filter(JournalGoalMention.goal_id == goal_id).delete(
            synchronize_session=False
        )
        db.delete(goal)
        db.commit()
        return goal
    return None


def require_goal(db: Session, goal_id: UUID, user_id: UUID) -> Goal:
    goal = get_goal(db, goal_id, user_id)
    if goal is None:
        raise NotFoundError("Goal not found", code="GOAL_NOT_FOUND")
    return goal
