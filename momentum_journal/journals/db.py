from datetime import date
from uuid import UUID, uuid4
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from momentum_journal.core.errors import ValidationError
from momentum_journal.goals.models import Goal
from momentum_journal.journals.models import JournalEntry, JournalGoalMention
from momentum_journal.journals.schemas import JournalEntryCreate, JournalEntryUpdate


def _verify_goal_ownership(db: Session, goal_ids: Sequence[UUID], user_id: UUID) -> List[UUID]:
    """Returns the de-duplicated ids, or raises if any goal is not the user's."""
    unique_ids = list(dict.fromkeys(goal_ids))
    if not unique_ids:
        return []
    owned = {
        row[0]
        for row in db.query(Goal.id).filter(Goal.user_id == user_id, Goal.id.in_(unique_ids)).all()
    }
    if len(owned) != len(unique_ids):
        raise ValidationError("One or more goals not found or not owned by user", code="INVALID_GOAL_IDS")
    return unique_ids


def _replace_mentions(db: Session, journal_id: UUID, goal_ids: Sequence[UUID]) -> None:
    db.query(JournalGoalMention).filter(JournalGoalMention.journal_entry_id == journal_id).delete(
        synchronize_session=False
    )
    for goal_id in goal_ids:
        db.add(
            JournalGoalMention(
                id=uuid4(),
                journal_entry_id=journal_id,
                goal_id=goal_id,
                mentioned_explicitly=True,
            )
        )


def create_journal(db: Session, journal: JournalEntryCreate, user_id: UUID) -> JournalEntry:
    """
    Creates a new journal entry for the user.

    Args:
        db (Session): SQLAlchemy session.
        journal (JournalEntryCreate): The journal content and metadata.
        user_id (UUID): ID of the user creating the entry.

    Returns:
        JournalEntry: The newly created journal entry.
    """
    goal_ids = _verify_goal_ownership(db, journal.goal_ids, user_id)
    new_entry = JournalEntry(
        id=uuid4(),
        user_id=user_id,
        title=journal.title,
        content=journal.content,
        entry_date=journal.entry_date or date.today(),
        mood=journal.mood,
        tags=journal.tags,
    )
    db.add(new_entry)
    db.flush()
    _replace_mentions(db, new_entry.id, goal_ids)
    db.commit()
    db.refresh(new_entry)
    return new_entry


def get_journal(db: Session, journal_id: UUID, user_id: UUID) -> Optional[JournalEntry]:
    """
    Retrieves a single journal entry by ID for a specific user.

    Args:
        db (Session): SQLAlchemy session.
        journal_id (UUID): ID of the journal entry.
        user_id (UUID): ID of the user.

    Returns:
        Optional[JournalEntry]: The journal entry if found, otherwise None.
    """
    return db.query(JournalEntry).filter(
        JournalEntry.id == journal_id,
        JournalEntry.user_id == user_id
    ).first()


def list_journals(
    db: Session,
    user_id: UUID,
    *,
    mood: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    goal_id: Optional[UUID] = None,
    tags: Optional[List[str]] = None,
    sort_field: str = "entry_date",
    sort_dir: str = "desc",
    offset: int = 0,
    limit: int = 10,
) -> Tuple[List[JournalEntry], int]:
    """
    Retrieves a filtered, sorted page of the user's journal entries.

    `tags` matches entries sharing at least one tag with the given list.

    Returns:
        Tuple[List[JournalEntry], int]: The page of entries and the total match count.
    """
    query = db.query(JournalEntry).filter(JournalEntry.user_id == user_id)

    if mood:
        query = query.filter(JournalEntry.mood == mood)
    if date_from:
        query = query.filter(JournalEntry.entry_date >= date_from)
    if date_to:
        query = query.filter(JournalEntry.entry_date <= date_to)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(JournalEntry.title.ilike(pattern), JournalEntry.content.ilike(pattern)))
    if goal_id:
        mentioned = db.query(JournalGoalMention.journal_entry_id).filter(JournalGoalMention.goal_id == goal_id)
        query = query.filter(JournalEntry.id.in_(mentioned))
    if tags:
        # JSON arrays have no portable overlap operator, so match in Python
        wanted = set(tags)
        candidates = query.with_entities(JournalEntry.id, JournalEntry.tags).all()
        matching = [row.id for row in candidates if wanted.intersection(row.tags or [])]
        query = query.filter(JournalEntry.id.in_(matching))

    total = query.count()
    column = getattr(JournalEntry, sort_field)
    ordering = column.asc() if sort_dir == "asc" else column.desc()
    entries = query.order_by(ordering, JournalEntry.created_at.desc()).offset(offset).limit(limit).all()
    return entries, total


def get_journals_between(db: Session, user_id: UUID, start: date, end: date) -> List[JournalEntry]:
    """Entries whose entry_date falls in [start, end], newest first."""
    return (
        db.query(JournalEntry)
        .filter(
            JournalEntry.user_id == user_id,
            JournalEntry.entry_date >= start,
            JournalEntry.entry_date <= end,
        )
        .order_by(JournalEntry.entry_date.desc(), JournalEntry.created_at.desc())
        .all()
    )


def get_journals_for_goal(db: Session, goal_id: UUID, user_id: UUID, limit: int = 20) -> List[JournalEntry]:
    """Most recent entries that mention the goal."""
    return (
        db.query(JournalEntry)
        .join(JournalGoalMention, JournalGoalMention.journal_entry_id == JournalEntry.id)
        .filter(JournalGoalMention.goal_id == goal_id, JournalEntry.user_id == user_id)
        .order_by(JournalEntry.entry_date.desc())
        .limit(limit)
        .all()
    )


def get_mentioned_goals(db: Session, journal_ids: Sequence[UUID]) -> Dict[UUID, List[Goal]]:
    """Maps each journal id to the goals it mentions."""
    result: Dict[UUID, List[Goal]] = {jid: [] for jid in journal_ids}
    if not journal_ids:
        return result
    rows = (
        db.query(JournalGoalMention.journal_entry_id, Goal)
        .join(Goal, Goal.id == JournalGoalMention.goal_id)
        .filter(JournalGoalMention.journal_entry_id.in_(list(journal_ids)))
        .order_by(Goal.title.asc())
        .all()
    )
    for journal_id, goal in rows:
        result.setdefault(journal_id, []).append(goal)
    return result


def get_journal_tags(db: Session, user_id: UUID) -> List[str]:
    rows = db.query(JournalEntry.tags).filter(JournalEntry.user_id == user_id).all()
    tags = set()
    for (entry_tags,) in rows:
        tags.update(entry_tags or [])
    return sorted(tags)


def update_journal(
    db: Session, journal_id: UUID, updated_data: JournalEntryUpdate, user_id: UUID
) -> Optional[JournalEntry]:
    """
    Updates an existing journal entry if it belongs to the user.

    When `goal_ids` is present the entry's goal links are replaced.

    Args:
        db (Session): SQLAlchemy session.
        journal_id (UUID): ID of the journal entry to update.
        updated_data (JournalEntryUpdate): Fields to update.
        user_id (UUID): ID of the user.

    Returns:
        Optional[JournalEntry]: The updated journal entry or None if not found.
    """
    journal = get_journal(db, journal_id, user_id)
    if not journal:
        return None

    update_data = updated_data.model_dump(exclude_unset=True)
    goal_ids = update_data.pop("goal_ids", None)
    if goal_ids is not None:
        goal_ids = _verify_goal_ownership(db, goal_ids, user_id)

    for field, value in update_data.items():
        if field == "tags" and value is None:
            value = []
        if field == "entry_date" and value is None:
            continue
        setattr(journal, field, value)
    if goal_ids is not None:
        _replace_mentions(db, journal.id, goal_ids)

    db.commit()
    db.refresh(journal)
    return journal


def set_journal_goals(db: Session, journal_id: UUID, goal_ids: Sequence[UUID], user_id: UUID) -> List[Goal]:
    """Replaces the goals linked to a journal entry and returns the new set."""
    owned = _verify_goal_ownership(db, goal_ids, user_id)
    _replace_mentions(db, journal_id, owned)
    db.commit()
    return get_mentioned_goals(db, [journal_id])[journal_id]


def delete_journal(db: Session, journal_id: UUID, user_id: UUID) -> Optional[JournalEntry]:
    """
    Deletes a specific journal entry and its goal mentions.

    Args:
        db (Session): SQLAlchemy session.
        journal_id (UUID): ID of the journal entry.
        user_id (UUID): ID of the user.

    Returns:
        Optional[JournalEntry]: The deleted journal entry or None if not found.
    """
    journal = get_journal(db, journal_id, user_id)
    if journal:
        db.query(JournalGoalMention).filter(JournalGoalMention.journal_entry_id == journal_id).delete(
            synchronize_session=False
        )
        db.delete(journal)
        db.commit()
        return journal
    return None
