import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, CheckConstraint, Uuid, event, select

from momentum_journal.core.database import Base
from momentum_journal.goals.linking import GoalNode, validate_parent_assignment


def _utcnow():
    return datetime.now(timezone.utc)


class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (
        CheckConstraint("type IN ('long-term', 'short-term')", name="chk_goal_type"),
        CheckConstraint(
            "status IN ('active', 'completed', 'paused', 'abandoned')", name="chk_goal_status"
        ),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100", name="chk_goal_progress"
        ),
        CheckConstraint("type = 'short-term' OR parent_goal_id IS NULL", name="chk_parent_goal_type"),
        CheckConstraint("parent_goal_id IS NULL OR parent_goal_id <> id", name="chk_parent_goal_not_self"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), index=True, nullable=False)
    parent_goal_id = Column(
        Uuid(as_uuid=True), ForeignKey("goals.id", ondelete="SET NULL"), index=True, nullable=True
    )

    title = Column(String(200), nullable=False)
    description = Column(String(2000), nullable=True)
    type = Column(String, nullable=False, index=True)
    category = Column(String(50), nullable=True)
    target_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="active", index=True)
    progress_percentage = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


@event.listens_for(Goal, "before_insert")
@event.listens_for(Goal, "before_update")
def _validate_parent_link(mapper, connection, target: Goal):
    """Re-checks the hierarchy rules on every flush, independent of the API layer."""
    if target.parent_goal_id is None:
        return
    parent = connection.execute(
        select(Goal.id, Goal.user_id, Goal.type, Goal.parent_goal_id).where(Goal.id == target.parent_goal_id)
    ).first()
    validate_parent_assignment(GoalNode.of(target), GoalNode.of(parent))
