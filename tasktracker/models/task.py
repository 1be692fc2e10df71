from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, Enum
from sqlalchemy.orm import relationship
from tasktracker.database import Base, utcnow
from tasktracker.models.user import User
from tasktracker.models.team import Team
from tasktracker.models.comment import Comment
from tasktracker.models.attachment import Attachment

TASK_STATUSES = ("open", "in_progress", "completed")
TASK_PRIORITIES = ("low", "medium", "high")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    status = Column(Enum(*TASK_STATUSES, name="task_status", native_enum=False), default="open", nullable=False, index=True)
    priority = Column(Enum(*TASK_PRIORITIES, name="task_priority", native_enum=False), default="medium", nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    # bumped on every UPDATE; a stale write raises StaleDataError
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    creator = relationship(User, foreign_keys=[created_by_id])
    assignee = relationship(User, foreign_keys=[assigned_to_id])
    team = relationship(Team)
    comments = relationship(
        Comment,
        cascade="all, delete-orphan",
        order_by=[Comment.created_at, Comment.id],
    )
    attachments = relationship(
        Attachment,
        cascade="all, delete-orphan",
        order_by=[Attachment.created_at.desc(), Attachment.id.desc()],
    )
