"""
Notetaker session model - one row per vendor notetaker bot.
"""
import enum
from sqlalchemy import Column, String, Integer, DateTime, JSON, Index

from notetaker.models.base import Base, utcnow


class SessionState(str, enum.Enum):
    """Primary lifecycle state reported by the vendor."""
    SCHEDULED = "scheduled"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ATTENDING = "attending"
    WAITING_FOR_ENTRY = "waiting_for_entry"
    DISCONNECTED = "disconnected"
    FAILED_ENTRY = "failed_entry"
    FAILED = "failed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class MeetingState(str, enum.Enum):
    """Secondary, vendor-defined meeting state."""
    DISPATCHED = "dispatched"
    RECORDING_ACTIVE = "recording_active"
    WAITING_FOR_ENTRY = "waiting_for_entry"
    ENTRY_DENIED = "entry_denied"
    NO_RESPONSE = "no_response"
    KICKED = "kicked"
    NO_PARTICIPANTS = "no_participants"
    NO_MEETING_ACTIVITY = "no_meeting_activity"
    BAD_MEETING_CODE = "bad_meeting_code"
    API_REQUEST = "api_request"
    INTERNAL_ERROR = "internal_error"
    MEETING_COMPLETE = "meeting_complete"
    MEETING_ENDED = "meeting_ended"


TERMINAL_STATES = frozenset({
    SessionState.COMPLETED.value,
    SessionState.CANCELLED.value,
    SessionState.FAILED.value,
    SessionState.FAILED_ENTRY.value,
})

KNOWN_STATES = frozenset(state.value for state in SessionState)
KNOWN_MEETING_STATES = frozenset(state.value for state in MeetingState)


def default_meeting_settings() -> dict:
    return {
        "audioRecording": True,
        "videoRecording": False,
        "transcription": True,
        "summary": False,
        "actionItems": False,
    }


class NotetakerSession(Base):
    """Local record of one notetaker's lifecycle for one meeting."""

    __tablename__ = 'notetaker_sessions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    notetaker_id = Column(String(255), nullable=False, unique=True, index=True)
    meeting_link = Column(String(2048), nullable=False)
    meeting_provider = Column(String(100), nullable=False, default="Unknown")
    name = Column(String(255), nullable=False, default="Nylas Notetaker")
    join_time = Column(Integer, nullable=True)  # epoch seconds
    state = Column(String(50), nullable=False, default=SessionState.SCHEDULED.value, index=True)
    meeting_state = Column(String(50), nullable=True)
    meeting_settings = Column(JSON, nullable=False, default=default_meeting_settings)
    grant_id = Column(String(255), nullable=True)
    calendar_id = Column(String(255), nullable=True)
    event_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_notetaker_sessions_state_created", "state", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def __repr__(self):
        return f"<NotetakerSession(id={self.id}, notetaker_id='{self.notetaker_id}', state='{self.state}')>"
