"""
Pydantic models for request/response validation and webhook payloads.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """API model serialized with camelCase keys, populated from ORM rows."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================
# NOTETAKER SESSIONS
# ============================================

class InviteRequest(CamelModel):
    """Invite a notetaker into a meeting."""
    meeting_link: str = Field(..., min_length=1)
    join_time: Optional[int] = Field(None, description="Epoch seconds; join immediately when omitted")
    name: Optional[str] = None


class SessionOut(CamelModel):
    id: int
    notetaker_id: str
    meeting_link: str
    meeting_provider: str
    name: str
    join_time: Optional[int] = None
    state: str
    meeting_state: Optional[str] = None
    meeting_settings: Dict[str, Any] = Field(default_factory=dict)
    grant_id: Optional[str] = None
    calendar_id: Optional[str] = None
    event_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MediaFile(CamelModel):
    type: str
    url: str
    filename: Optional[str] = None
    size: Optional[int] = None
    downloaded_at: Optional[str] = None


class TranscriptOut(CamelModel):
    id: int
    notetaker_id: str
    session_id: int
    transcript_text: Optional[str] = None
    transcript_url: Optional[str] = None
    audio_url: Optional[str] = None
    video_url: Optional[str] = None
    summary_text: Optional[str] = None
    summary_url: Optional[str] = None
    action_items: List[str] = Field(default_factory=list)
    action_items_url: Optional[str] = None
    duration: Optional[int] = None
    participants: List[Any] = Field(default_factory=list)
    status: str
    media_files: List[MediaFile] = Field(default_factory=list)
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============================================
# TASKS
# ============================================

TaskStatusLiteral = Literal["todo", "in-progress", "completed"]
TaskPriorityLiteral = Literal["low", "medium", "high"]


class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    status: TaskStatusLiteral = "todo"
    priority: TaskPriorityLiteral = "medium"
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None
    meeting_id: Optional[int] = None
    transcript_id: Optional[int] = None


class TaskUpdate(CamelModel):
    """Partial update; only fields present in the request are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[TaskStatusLiteral] = None
    priority: Optional[TaskPriorityLiteral] = None
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None


class TaskOut(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None
    meeting_id: Optional[int] = None
    transcript_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ============================================
# AI PROCESSING
# ============================================

class SummaryResult(CamelModel):
    summary: str = ""
    success: bool
    error: Optional[str] = None


class ActionItemsResult(CamelModel):
    action_items: List[str] = Field(default_factory=list)
    success: bool
    error: Optional[str] = None


class TranscriptProcessingResult(CamelModel):
    transcript_id: str
    summary: SummaryResult
    action_items: ActionItemsResult
    processed_at: datetime


class ManualProcessingRequest(CamelModel):
    transcript_id: int
    process_summary: bool = True
    process_action_items: bool = True


class ManualProcessingResponse(CamelModel):
    success: bool
    transcript_id: int
    summary: Optional[str] = None
    action_items: Optional[List[str]] = None
    error: Optional[str] = None


class AITestRequest(CamelModel):
    text: str = "Alice: We need to send the grant report by Friday.\n\nBob: I will draft it tomorrow."


class HealthCheck(BaseModel):
    """Health check response."""
    status: str
    database: str
    sse_subscribers: int
    timestamp: str


# ============================================
# WEBHOOK PAYLOADS
# ============================================

class WebhookEnvelope(BaseModel):
    """Outer vendor envelope: {id, type, data: {object: {...}}}."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def object(self) -> Dict[str, Any]:
        obj = self.data.get("object")
        return obj if isinstance(obj, dict) else {}

    @property
    def notetaker_id(self) -> Optional[str]:
        return self.object.get("id")


class NotetakerObject(BaseModel):
    """Fields shared by every notetaker.* payload object."""
    model_config = ConfigDict(extra="allow")

    id: str
    grant_id: Optional[str] = None
    calendar_id: Optional[str] = None
    event: Optional[Dict[str, Any]] = None
    state: Optional[str] = None

    @property
    def event_id(self) -> Optional[str]:
        return (self.event or {}).get("event_id")


class NotetakerCreated(NotetakerObject):
    event_type: Literal["notetaker.created"] = "notetaker.created"


class NotetakerUpdated(NotetakerObject):
    event_type: Literal["notetaker.updated"] = "notetaker.updated"


class NotetakerMeetingState(NotetakerObject):
    event_type: Literal["notetaker.meeting_state"] = "notetaker.meeting_state"
    meeting_state: Optional[str] = None


class NotetakerDeleted(NotetakerObject):
    event_type: Literal["notetaker.deleted"] = "notetaker.deleted"


class NotetakerMedia(NotetakerObject):
    """Media payload in either the flat or the v3 ``media`` object shape."""
    event_type: Literal["notetaker.media"] = "notetaker.media"
    media: Optional[Dict[str, Any]] = None
    media_type: Optional[str] = None
    media_url: Optional[str] = None
    transcript: Optional[Any] = None
    recording_duration: Optional[Union[int, str]] = None


class UnknownEvent(BaseModel):
    """Any event type this service does not model; carries the raw data blob."""
    event_type: str
    notetaker_id: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def transcript(self) -> Any:
        obj = self.raw.get("object") or {}
        return obj.get("transcript") or self.raw.get("transcript")


WebhookPayload = Union[
    NotetakerCreated,
    NotetakerUpdated,
    NotetakerMeetingState,
    NotetakerDeleted,
    NotetakerMedia,
    UnknownEvent,
]

EVENT_MODELS = {
    "notetaker.created": NotetakerCreated,
    "notetaker.updated": NotetakerUpdated,
    "notetaker.meeting_state": NotetakerMeetingState,
    "notetaker.deleted": NotetakerDeleted,
    "notetaker.media": NotetakerMedia,
}


def parse_webhook_payload(event_type: str, data: Dict[str, Any]) -> WebhookPayload:
    """
    Narrow a raw ``data`` blob to the payload model for its event type.

    Args:
        event_type: Envelope ``type`` value
        data: Envelope ``data`` value

    Returns:
        Typed payload; ``UnknownEvent`` for unmodelled types

    Raises:
        pydantic.ValidationError: If a known event's object is malformed
    """
    obj = data.get("object") if isinstance(data, dict) else None
    obj = obj if isinstance(obj, dict) else {}

    model = EVENT_MODELS.get(event_type)
    if model is None:
        return UnknownEvent(event_type=event_type, notetaker_id=obj.get("id"), raw=data or {})

    fields = dict(obj)
    fields.pop("event_type", None)
    if model is NotetakerMedia and fields.get("transcript") is None and data.get("transcript") is not None:
        fields["transcript"] = data["transcript"]
    return model(**fields)
