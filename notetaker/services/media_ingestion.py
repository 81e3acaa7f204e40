"""
Media ingestion: attach transcript, recording, summary and action-item
artifacts from notetaker.media webhooks to the session's Transcript.
"""
import json
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.exceptions import ConfigurationError
from notetaker.logging_config import get_logger
from notetaker.models import Transcript, TranscriptStatus, MediaType
from notetaker.monitoring import media_downloads_total, record_error
from notetaker.schemas import NotetakerMedia
from notetaker.services.notifier import TRANSCRIPT_UPDATE, EventBroadcaster
from notetaker.services.nylas_service import NylasService
from notetaker.services.session_state import get_session_by_notetaker_id

logger = get_logger(__name__)

# Keys of the v3 ``media`` object and the artifact type each one carries
MEDIA_OBJECT_KEYS = {
    "transcript": MediaType.TRANSCRIPT.value,
    "recording": MediaType.AUDIO.value,
    "video_recording": MediaType.VIDEO.value,
    "summary": MediaType.SUMMARY.value,
    "action_items": MediaType.ACTION_ITEMS.value,
}

MEDIA_TYPE_ALIASES = {
    "recording": MediaType.AUDIO.value,
    "video_recording": MediaType.VIDEO.value,
}

KNOWN_MEDIA_TYPES = frozenset(t.value for t in MediaType)

EMBEDDED = "embedded"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _join_segments(segments: List[Any]) -> str:
    lines = []
    for segment in segments:
        if isinstance(segment, dict):
            lines.append(f"{segment.get('speaker', 'Unknown')}: {segment.get('text', '')}")
        else:
            lines.append(str(segment))
    return "\n\n".join(lines)


def flatten_transcript(content: Any) -> str:
    """
    Turn a downloaded or embedded transcript into plain text.

    Structured transcripts (``{"transcript": [{"speaker", "text"}]}`` or a bare
    segment list) become ``"speaker: text"`` paragraphs. Plain text is kept
    as is; other JSON is pretty-printed.
    """
    if isinstance(content, str):
        try:
            parsed = json.loads(content)
        except ValueError:
            return content
        if isinstance(parsed, str):
            return parsed
        return flatten_transcript(parsed)

    if isinstance(content, list):
        return _join_segments(content)

    if isinstance(content, dict):
        segments = content.get("transcript")
        if isinstance(segments, list):
            return _join_segments(segments)
        if isinstance(segments, str):
            return segments
        logger.warning("unexpected_transcript_format", keys=sorted(content.keys()))

    return json.dumps(content, indent=2)


def parse_action_items_text(content: str) -> List[str]:
    """JSON array first, otherwise one item per non-empty line."""
    try:
        parsed = json.loads(content)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return [str(item).strip() for item in parsed if str(item).strip()]
    return [line.strip() for line in content.splitlines() if line.strip()]


def collect_artifacts(payload: NotetakerMedia) -> List[Tuple[str, Any]]:
    """
    Normalize every supported payload shape into ``(media_type, value)`` pairs.

    ``value`` is a URL string, or the embedded object for inline transcripts.
    """
    artifacts: List[Tuple[str, Any]] = []

    if payload.media_type and payload.media_url:
        media_type = MEDIA_TYPE_ALIASES.get(payload.media_type, payload.media_type)
        artifacts.append((media_type, payload.media_url))

    for key, media_type in MEDIA_OBJECT_KEYS.items():
        value = (payload.media or {}).get(key)
        if value:
            artifacts.append((media_type, value))

    has_transcript = any(media_type == MediaType.TRANSCRIPT.value for media_type, _ in artifacts)
    if payload.transcript and not has_transcript:
        artifacts.append((MediaType.TRANSCRIPT.value, payload.transcript))

    return artifacts


def _recording_duration(payload: NotetakerMedia) -> Optional[int]:
    raw = payload.recording_duration
    if raw is None:
        raw = (payload.media or {}).get("recording_duration")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("invalid_recording_duration", value=raw)
        return None


class MediaIngestionService:
    """Stores media artifacts; a failing artifact marks the transcript partial."""

    def __init__(self, nylas_service: Optional[NylasService], broadcaster: Optional[EventBroadcaster] = None):
        self.nylas = nylas_service
        self.broadcaster = broadcaster

    async def _download(self, url: str) -> str:
        if self.nylas is None:
            raise ConfigurationError("Nylas API key not configured")
        return await self.nylas.download_text_file(url)

    async def _find_or_create_transcript(self, db: AsyncSession, notetaker_id: str) -> Optional[Transcript]:
        result = await db.execute(select(Transcript).where(Transcript.notetaker_id == notetaker_id))
        transcript = result.scalar_one_or_none()
        if transcript:
            return transcript

        session = await get_session_by_notetaker_id(db, notetaker_id)
        if session is None:
            logger.error("media_without_session", notetaker_id=notetaker_id)
            return None

        transcript = Transcript(
            notetaker_id=notetaker_id,
            session_id=session.id,
            status=TranscriptStatus.PROCESSING.value,
            action_items=[],
            participants=[],
            media_files=[],
        )
        db.add(transcript)
        await db.flush()
        logger.info("transcript_created", notetaker_id=notetaker_id, transcript_id=transcript.id)
        return transcript

    @staticmethod
    def _append_media_file(transcript: Transcript, media_type: str, url: str) -> None:
        # Reassign so the JSON column is flagged dirty
        transcript.media_files = list(transcript.media_files or []) + [
            {"type": media_type, "url": url, "downloadedAt": _now_iso()}
        ]

    async def _ingest_artifact(self, transcript: Transcript, media_type: str, value: Any) -> None:
        url = value if isinstance(value, str) else EMBEDDED

        if media_type == MediaType.TRANSCRIPT.value:
            content = await self._download(value) if isinstance(value, str) else value
            transcript.transcript_text = flatten_transcript(content)
            if isinstance(value, str):
                transcript.transcript_url = value

        elif media_type == MediaType.SUMMARY.value:
            content = await self._download(value) if isinstance(value, str) else value
            transcript.summary_text = content if isinstance(content, str) else json.dumps(content)
            if isinstance(value, str):
                transcript.summary_url = value

        elif media_type == MediaType.ACTION_ITEMS.value:
            if isinstance(value, list):
                items = [str(item).strip() for item in value if str(item).strip()]
            else:
                items = parse_action_items_text(await self._download(value) if isinstance(value, str) else json.dumps(value))
            transcript.action_items = items
            if isinstance(value, str):
                transcript.action_items_url = value

        elif media_type == MediaType.AUDIO.value:
            transcript.audio_url = url

        elif media_type == MediaType.VIDEO.value:
            transcript.video_url = url

        self._append_media_file(transcript, media_type, url)

    async def ingest(self, db: AsyncSession, payload: NotetakerMedia) -> Optional[Transcript]:
        """
        Apply one media event to the Transcript for its notetaker.

        Args:
            db: Database session (caller commits)
            payload: notetaker.media payload

        Returns:
            The updated transcript, or None when no session exists
        """
        notetaker_id = payload.id
        transcript = await self._find_or_create_transcript(db, notetaker_id)
        if transcript is None:
            return None

        media_state = payload.state
        if media_state == "processing":
            logger.info("media_processing", notetaker_id=notetaker_id, status=transcript.status)
            return transcript
        if media_state in ("error", "deleted"):
            transcript.status = TranscriptStatus.FAILED.value
            transcript.error_message = (
                "Nylas encountered an error while processing the recording"
                if media_state == "error" else "Media was deleted"
            )
            await db.flush()
            logger.error("media_unavailable", notetaker_id=notetaker_id, media_state=media_state)
            self._notify(db, transcript)
            return transcript

        errors: List[str] = []
        for media_type, value in collect_artifacts(payload):
            if media_type not in KNOWN_MEDIA_TYPES:
                logger.warning("unknown_media_type", notetaker_id=notetaker_id, media_type=media_type)
                continue
            try:
                await self._ingest_artifact(transcript, media_type, value)
                media_downloads_total.labels(media_type=media_type, status="success").inc()
                logger.info("media_ingested", notetaker_id=notetaker_id, media_type=media_type)
            except Exception as e:
                errors.append(f"Failed to download {media_type}: {e}")
                media_downloads_total.labels(media_type=media_type, status="error").inc()
                record_error(type(e).__name__, "media_ingestion")
                logger.error("media_ingestion_failed", notetaker_id=notetaker_id, media_type=media_type, error=str(e))

        duration = _recording_duration(payload)
        if duration is not None:
            transcript.duration = duration

        if errors:
            transcript.status = TranscriptStatus.PARTIAL.value
            transcript.error_message = "; ".join(errors)
        elif transcript.transcript_text and transcript.status != TranscriptStatus.PARTIAL.value:
            transcript.status = TranscriptStatus.COMPLETED.value

        await db.flush()
        self._notify(db, transcript)
        return transcript

    def _notify(self, db: AsyncSession, transcript: Transcript) -> None:
        if self.broadcaster is None:
            return
        self.broadcaster.emit_after_commit(db, TRANSCRIPT_UPDATE, {
            "notetakerId": transcript.notetaker_id,
            "sessionId": transcript.session_id,
            "transcriptId": transcript.id,
            "status": transcript.status,
            "hasTranscript": bool(transcript.transcript_text),
            "hasSummary": bool(transcript.summary_text),
            "hasActionItems": bool(transcript.action_items),
            "timestamp": _now_iso(),
        })
