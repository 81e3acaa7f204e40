"""
Notetaker sessions and transcripts.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.api.dependencies import get_broadcaster, get_nylas_service
from notetaker.db import get_session
from notetaker.logging_config import get_logger
from notetaker.models import NotetakerSession, Transcript, TranscriptStatus, SessionState
from notetaker.schemas import InviteRequest, SessionOut, TranscriptOut
from notetaker.services import session_state
from notetaker.services.notifier import EventBroadcaster
from notetaker.services.nylas_service import NylasService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/notetaker", tags=["notetaker"])

SUPPORTED_PROVIDERS = ("zoom.us", "meet.google.com", "teams.microsoft.com")
LIST_LIMIT = 100


def session_to_dict(session: NotetakerSession) -> Dict[str, Any]:
    return SessionOut.model_validate(session).model_dump(by_alias=True, mode="json")


def transcript_to_dict(transcript: Transcript) -> Dict[str, Any]:
    return TranscriptOut.model_validate(transcript).model_dump(by_alias=True, mode="json")


def meeting_settings_from_vendor(vendor_settings: Dict[str, Any]) -> Dict[str, Any]:
    """Vendor snake_case meeting settings to the stored camelCase shape."""
    vendor_settings = vendor_settings or {}
    stored = {
        "audioRecording": vendor_settings.get("audio_recording", True),
        "videoRecording": vendor_settings.get("video_recording", False),
        "transcription": vendor_settings.get("transcription", True),
        "summary": vendor_settings.get("summary", False),
        "actionItems": vendor_settings.get("action_items", False),
    }
    summary_instructions = (vendor_settings.get("summary_settings") or {}).get("custom_instructions")
    if summary_instructions:
        stored["summaryInstructions"] = summary_instructions
    action_items_instructions = (vendor_settings.get("action_items_settings") or {}).get("custom_instructions")
    if action_items_instructions:
        stored["actionItemsInstructions"] = action_items_instructions
    return stored


async def _get_session_or_404(db: AsyncSession, session_id: int) -> NotetakerSession:
    session = await db.get(NotetakerSession, session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


# ============================================
# SESSIONS
# ============================================

@router.post("/invite", status_code=status.HTTP_201_CREATED)
async def invite_notetaker(
    request: InviteRequest,
    db: AsyncSession = Depends(get_session),
    nylas: NylasService = Depends(get_nylas_service),
):
    """Invite a notetaker, then record its session and an empty transcript."""
    if not any(provider in request.meeting_link for provider in SUPPORTED_PROVIDERS):
        return JSONResponse(
            {
                "success": False,
                "error": "Invalid meeting link. Must be a Zoom, Google Meet, or Microsoft Teams link.",
            },
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    notetaker = await nylas.invite_notetaker(
        meeting_link=request.meeting_link,
        join_time=request.join_time,
        name=request.name,
    )

    meeting_link = notetaker.get("meeting_link") or request.meeting_link
    session = NotetakerSession(
        notetaker_id=notetaker["id"],
        meeting_link=meeting_link,
        meeting_provider=notetaker.get("meeting_provider") or session_state.detect_meeting_provider(meeting_link),
        name=notetaker.get("name") or request.name or "Nylas Notetaker",
        join_time=notetaker.get("join_time") or request.join_time,
        state=notetaker.get("state") or SessionState.SCHEDULED.value,
        meeting_settings=meeting_settings_from_vendor(notetaker.get("meeting_settings")),
    )
    db.add(session)
    await db.flush()

    db.add(Transcript(
        notetaker_id=session.notetaker_id,
        session_id=session.id,
        status=TranscriptStatus.PROCESSING.value,
        action_items=[],
        participants=[],
        media_files=[],
    ))
    await db.commit()
    await db.refresh(session)
    logger.info("notetaker_invited", notetaker_id=session.notetaker_id, session_id=session.id)

    return {"success": True, "data": {"session": session_to_dict(session), "notetaker": notetaker}}


@router.get("/sessions")
async def list_sessions(db: AsyncSession = Depends(get_session)):
    result = await db.execute(
        select(NotetakerSession)
        .order_by(NotetakerSession.created_at.desc(), NotetakerSession.id.desc())
        .limit(LIST_LIMIT)
    )
    return {"success": True, "data": [session_to_dict(s) for s in result.scalars().all()]}


@router.get("/sessions/{session_id}")
async def get_session_detail(session_id: int, db: AsyncSession = Depends(get_session)):
    session = await _get_session_or_404(db, session_id)
    return {"success": True, "data": session_to_dict(session)}


@router.delete("/sessions/{session_id}/cancel")
async def cancel_notetaker(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    nylas: NylasService = Depends(get_nylas_service),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Cancel with Nylas first; the local state only changes if that succeeds."""
    session = await _get_session_or_404(db, session_id)
    await nylas.cancel_notetaker(session.notetaker_id)
    await session_state.mark_cancelled(db, session, broadcaster)
    await db.commit()
    return {"success": True, "message": "Notetaker cancelled successfully", "data": session_to_dict(session)}


@router.post("/sessions/{session_id}/leave")
async def remove_notetaker(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    nylas: NylasService = Depends(get_nylas_service),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Ask the notetaker to leave its meeting."""
    session = await _get_session_or_404(db, session_id)
    await nylas.remove_notetaker(session.notetaker_id)
    await session_state.mark_left(db, session, broadcaster)
    await db.commit()
    return {"success": True, "message": "Notetaker removed from meeting", "data": session_to_dict(session)}


# ============================================
# TRANSCRIPTS
# ============================================

@router.get("/transcripts")
async def list_transcripts(db: AsyncSession = Depends(get_session)):
    result = await db.execute(
        select(Transcript).order_by(Transcript.created_at.desc(), Transcript.id.desc()).limit(LIST_LIMIT)
    )
    return {"success": True, "data": [transcript_to_dict(t) for t in result.scalars().all()]}


@router.get("/transcripts/notetaker/{notetaker_id}")
async def get_transcript_by_notetaker(notetaker_id: str, db: AsyncSession = Depends(get_session)):
    result = await db.execute(select(Transcript).where(Transcript.notetaker_id == notetaker_id))
    transcript = result.scalar_one_or_none()
    if transcript is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transcript not found")
    return {"success": True, "data": transcript_to_dict(transcript)}


@router.get("/transcripts/{transcript_id}")
async def get_transcript(transcript_id: int, db: AsyncSession = Depends(get_session)):
    transcript = await db.get(Transcript, transcript_id)
    if transcript is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transcript not found")
    return {"success": True, "data": transcript_to_dict(transcript)}
