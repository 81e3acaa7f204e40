"""
Notetaker session lifecycle driven by vendor webhooks and user actions.

Transitions are not validated against a table: the vendor payload is trusted
and the last write wins. Unknown states and overwrites of terminal states are
logged and applied. Callers commit; clients are notified once they do.
"""
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.logging_config import get_logger
from notetaker.models import (
    NotetakerSession,
    SessionState,
    MeetingState,
    KNOWN_STATES,
    KNOWN_MEETING_STATES,
    TERMINAL_STATES,
)
from notetaker.schemas import (
    NotetakerCreated,
    NotetakerDeleted,
    NotetakerMeetingState,
    NotetakerObject,
    NotetakerUpdated,
)
from notetaker.services.notifier import SESSION_UPDATE, EventBroadcaster

logger = get_logger(__name__)

PROVIDER_HOSTS = {
    "zoom.us": "Zoom",
    "meet.google.com": "Google Meet",
    "teams.microsoft.com": "Microsoft Teams",
    "teams.live.com": "Microsoft Teams",
}


def detect_meeting_provider(meeting_link: str) -> str:
    """Provider display name derived from the meeting link host."""
    host = (urlparse(meeting_link).hostname or "").lower()
    for suffix, provider in PROVIDER_HOSTS.items():
        if host == suffix or host.endswith("." + suffix):
            return provider
    return "Unknown"


async def get_session_by_notetaker_id(db: AsyncSession, notetaker_id: str) -> Optional[NotetakerSession]:
    result = await db.execute(
        select(NotetakerSession).where(NotetakerSession.notetaker_id == notetaker_id)
    )
    return result.scalar_one_or_none()


def _set_state(session: NotetakerSession, new_state: Optional[str]) -> None:
    if new_state is None:
        logger.warning("webhook_state_missing", notetaker_id=session.notetaker_id)
        return
    if new_state not in KNOWN_STATES:
        logger.warning("unknown_notetaker_state", notetaker_id=session.notetaker_id, state=new_state)
    if session.state in TERMINAL_STATES and new_state != session.state:
        logger.warning(
            "terminal_state_overwritten",
            notetaker_id=session.notetaker_id,
            old_state=session.state,
            new_state=new_state,
        )
    session.state = new_state


def _backfill_metadata(session: NotetakerSession, payload: NotetakerObject) -> None:
    if payload.grant_id:
        session.grant_id = payload.grant_id
    if payload.calendar_id:
        session.calendar_id = payload.calendar_id
    if payload.event_id:
        session.event_id = payload.event_id


def _notify(db: AsyncSession, broadcaster: Optional[EventBroadcaster], session: NotetakerSession) -> None:
    if broadcaster is None:
        return
    broadcaster.emit_after_commit(db, SESSION_UPDATE, {
        "notetakerId": session.notetaker_id,
        "sessionId": session.id,
        "state": session.state,
        "meetingState": session.meeting_state,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


async def _load(db: AsyncSession, notetaker_id: str, event_type: str) -> Optional[NotetakerSession]:
    session = await get_session_by_notetaker_id(db, notetaker_id)
    if session is None:
        logger.warning("session_not_found", notetaker_id=notetaker_id, event_type=event_type)
    return session


async def apply_created(db: AsyncSession, payload: NotetakerCreated,
                        broadcaster: Optional[EventBroadcaster] = None) -> Optional[NotetakerSession]:
    """notetaker.created: reset an existing session to scheduled. Never creates one."""
    session = await _load(db, payload.id, payload.event_type)
    if session is None:
        return None
    _set_state(session, SessionState.SCHEDULED.value)
    await db.flush()
    _notify(db, broadcaster, session)
    return session


async def apply_updated(db: AsyncSession, payload: NotetakerUpdated,
                        broadcaster: Optional[EventBroadcaster] = None) -> Optional[NotetakerSession]:
    """notetaker.updated: overwrite state verbatim and backfill vendor ids."""
    session = await _load(db, payload.id, payload.event_type)
    if session is None:
        return None
    _set_state(session, payload.state)
    _backfill_metadata(session, payload)
    await db.flush()
    logger.info("session_state_updated", notetaker_id=session.notetaker_id, state=session.state)
    _notify(db, broadcaster, session)
    return session


async def apply_meeting_state(db: AsyncSession, payload: NotetakerMeetingState,
                              broadcaster: Optional[EventBroadcaster] = None) -> Optional[NotetakerSession]:
    """notetaker.meeting_state: overwrite state and meeting state, backfill vendor ids."""
    session = await _load(db, payload.id, payload.event_type)
    if session is None:
        return None
    _set_state(session, payload.state)
    if payload.meeting_state and payload.meeting_state not in KNOWN_MEETING_STATES:
        logger.warning(
            "unknown_meeting_state",
            notetaker_id=session.notetaker_id,
            meeting_state=payload.meeting_state,
        )
    session.meeting_state = payload.meeting_state
    _backfill_metadata(session, payload)
    await db.flush()
    logger.info(
        "session_meeting_state_updated",
        notetaker_id=session.notetaker_id,
        state=session.state,
        meeting_state=session.meeting_state,
    )
    _notify(db, broadcaster, session)
    return session


async def apply_deleted(db: AsyncSession, payload: NotetakerDeleted,
                        broadcaster: Optional[EventBroadcaster] = None) -> Optional[NotetakerSession]:
    """notetaker.deleted: mark the session cancelled."""
    session = await _load(db, payload.id, payload.event_type)
    if session is None:
        return None
    _set_state(session, SessionState.CANCELLED.value)
    await db.flush()
    _notify(db, broadcaster, session)
    return session


async def mark_cancelled(db: AsyncSession, session: NotetakerSession,
                         broadcaster: Optional[EventBroadcaster] = None) -> NotetakerSession:
    """Local half of a user cancel, after the vendor delete succeeded."""
    session.state = SessionState.CANCELLED.value
    await db.flush()
    _notify(db, broadcaster, session)
    return session


async def mark_left(db: AsyncSession, session: NotetakerSession,
                    broadcaster: Optional[EventBroadcaster] = None) -> NotetakerSession:
    """Local half of a user remove, after the vendor leave call succeeded."""
    session.state = SessionState.DISCONNECTED.value
    session.meeting_state = MeetingState.API_REQUEST.value
    await db.flush()
    _notify(db, broadcaster, session)
    return session
