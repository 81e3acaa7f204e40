"""
Database models package.
Import all models here for easy access and metadata registration.
"""
from notetaker.models.base import Base, utcnow
from notetaker.models.notetaker_session import (
    NotetakerSession,
    SessionState,
    MeetingState,
    TERMINAL_STATES,
    KNOWN_STATES,
    KNOWN_MEETING_STATES,
)
from notetaker.models.transcript import Transcript, TranscriptStatus, MediaType
from notetaker.models.webhook_event import WebhookEvent
from notetaker.models.task import Task, TaskStatus, TaskPriority

__all__ = [
    'Base',
    'utcnow',
    'NotetakerSession',
    'SessionState',
    'MeetingState',
    'TERMINAL_STATES',
    'KNOWN_STATES',
    'KNOWN_MEETING_STATES',
    'Transcript',
    'TranscriptStatus',
    'MediaType',
    'WebhookEvent',
    'Task',
    'TaskStatus',
    'TaskPriority',
]
