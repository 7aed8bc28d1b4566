import uuid
from datetime import date, datetime, timezone
from sqlalchemy import Column, String, Text, Boolean, Date, DateTime, ForeignKey, JSON, UniqueConstraint, Uuid
from momentum_journal.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), index=True, nullable=False)

    title = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)
    entry_date = Column(Date, nullable=False, default=date.today, index=True)
    mood = Column(String, nullable=True)  # great, good, neutral, bad, terrible
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class JournalGoalMention(Base):
    __tablename__ = "journal_goal_mentions"
    __table_args__ = (UniqueConstraint("journal_entry_id", "goal_id", name="uq_journal_goal_mention"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    journal_entry_id = Column(
        Uuid(as_uuid=True), ForeignKey("journal_entries.id", ondelete="CASCADE"), index=True, nullable=False
    )
    goal_id = Column(Uuid(as_uuid=True), ForeignKey("goals.id", ondelete="CASCADE"), index=True, nullable=False)
    mentioned_explicitly = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
