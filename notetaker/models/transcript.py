"""
Transcript model - artifacts produced for one notetaker session.
"""
import enum
from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, ForeignKey, Index

from notetaker.models.base import Base, utcnow


class TranscriptStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


class MediaType(str, enum.Enum):
    TRANSCRIPT = "transcript"
    AUDIO = "audio"
    VIDEO = "video"
    SUMMARY = "summary"
    ACTION_ITEMS = "action_items"


class Transcript(Base):
    """Transcript text, recordings, summary and action items for a session."""

    __tablename__ = 'transcripts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    notetaker_id = Column(String(255), nullable=False, unique=True, index=True)
    session_id = Column(Integer, ForeignKey("notetaker_sessions.id"), nullable=False, index=True)
    transcript_text = Column(Text, nullable=True)
    transcript_url = Column(Text, nullable=True)
    audio_url = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    summary_text = Column(Text, nullable=True)
    summary_url = Column(Text, nullable=True)
    action_items = Column(JSON, nullable=False, default=list)
    action_items_url = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)  # seconds
    participants = Column(JSON, nullable=False, default=list)
    status = Column(String(50), nullable=False, default=TranscriptStatus.PROCESSING.value, index=True)
    # append-only: {type, url, filename?, size?, downloadedAt}
    media_files = Column(JSON, nullable=False, default=list)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_transcripts_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return f"<Transcript(id={self.id}, notetaker_id='{self.notetaker_id}', status='{self.status}')>"
