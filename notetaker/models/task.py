"""
Task model - action items tracked independently of their transcript.
"""
import enum
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index

from notetaker.models.base import Base, utcnow


class TaskStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(Base):

    __tablename__ = 'tasks'

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=TaskStatus.TODO.value, index=True)
    priority = Column(String(20), nullable=False, default=TaskPriority.MEDIUM.value)
    assignee = Column(String(255), nullable=True, index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    meeting_id = Column(Integer, ForeignKey("notetaker_sessions.id"), nullable=True, index=True)
    transcript_id = Column(Integer, ForeignKey("transcripts.id"), nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_tasks_meeting_status", "meeting_id", "status"),
        Index("ix_tasks_assignee_status", "assignee", "status"),
    )

    def set_status(self, status: str) -> None:
        """Change status keeping completed_at in step with it."""
        self.status = status
        self.completed_at = utcnow() if status == TaskStatus.COMPLETED.value else None

    def __repr__(self):
        return f"<Task(id={self.id}, title='{self.title}', status='{self.status}')>"
