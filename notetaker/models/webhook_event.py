"""
Webhook event audit trail - every incoming vendor webhook is recorded before processing.
"""
from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, JSON, Index

from notetaker.models.base import Base, utcnow


class WebhookEvent(Base):
    """Append-only record of a vendor webhook delivery."""

    __tablename__ = 'webhook_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    notetaker_id = Column(String(255), nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    processed = Column(Boolean, nullable=False, default=False, index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_webhook_events_processed_created", "processed", "created_at"),
    )

    def __repr__(self):
        return f"<WebhookEvent(event_id='{self.event_id}', event_type='{self.event_type}', processed={self.processed})>"
