"""
Durable intake and dispatch of vendor webhook events.

Every delivery is recorded in ``webhook_events`` and committed before any
handler runs. Handler failures are written back to that row and never
propagate, so the vendor always receives a success response. Failed events
are not retried automatically.
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.logging_config import get_logger, LogContext
from notetaker.models import WebhookEvent
from notetaker.monitoring import webhook_events_total, record_error
from notetaker.schemas import (
    NotetakerCreated,
    NotetakerDeleted,
    NotetakerMedia,
    NotetakerMeetingState,
    NotetakerUpdated,
    UnknownEvent,
    WebhookEnvelope,
    WebhookPayload,
    parse_webhook_payload,
)
from notetaker.services import session_state
from notetaker.services.media_ingestion import MediaIngestionService
from notetaker.services.notifier import EventBroadcaster
from notetaker.services.nylas_service import NylasService

logger = get_logger(__name__)


class WebhookDispatcher:
    """Records webhook events and routes each one to exactly one handler."""

    def __init__(self, nylas_service: Optional[NylasService] = None,
                 broadcaster: Optional[EventBroadcaster] = None,
                 media_ingestion: Optional[MediaIngestionService] = None):
        self.broadcaster = broadcaster
        self.media_ingestion = media_ingestion or MediaIngestionService(nylas_service, broadcaster)

    async def _get_event(self, db: AsyncSession, event_id: str) -> Optional[WebhookEvent]:
        result = await db.execute(select(WebhookEvent).where(WebhookEvent.event_id == event_id))
        return result.scalar_one_or_none()

    async def record_event(self, db: AsyncSession, envelope: WebhookEnvelope) -> WebhookEvent:
        """
        Insert the event row if absent and commit it.

        A concurrent insert of the same ``event_id`` loses on the unique index;
        the loser re-reads the winner's row instead of failing.
        """
        event = await self._get_event(db, envelope.id)
        if event is not None:
            logger.info("webhook_event_redelivered", event_id=envelope.id, processed=event.processed)
            return event

        event = WebhookEvent(
            event_id=envelope.id,
            event_type=envelope.type,
            notetaker_id=envelope.notetaker_id,
            payload=envelope.model_dump(mode="json"),
            processed=False,
            retry_count=0,
        )
        db.add(event)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            event = await self._get_event(db, envelope.id)
            if event is None:
                raise
            logger.info("webhook_event_insert_raced", event_id=envelope.id)
        return event

    async def receive(self, db: AsyncSession, envelope: WebhookEnvelope) -> WebhookEvent:
        """
        Persist then dispatch one webhook delivery.

        Args:
            db: Database session
            envelope: Parsed ``{id, type, data}`` envelope

        Returns:
            The event row, with ``processed``/``error_message`` reflecting the outcome
        """
        event = await self.record_event(db, envelope)
        if event.processed:
            webhook_events_total.labels(event_type=envelope.type, status="duplicate").inc()
            return event

        with LogContext(event_id=envelope.id, event_type=envelope.type, notetaker_id=envelope.notetaker_id):
            try:
                await self.dispatch(db, envelope.type, envelope.data)
            except Exception as e:
                await db.rollback()
                await db.refresh(event)
                event.error_message = f"{type(e).__name__}: {e}"
                event.retry_count = (event.retry_count or 0) + 1
                await db.commit()
                webhook_events_total.labels(event_type=envelope.type, status="error").inc()
                record_error(type(e).__name__, "webhook_dispatcher")
                logger.error("webhook_processing_failed", error=str(e), retry_count=event.retry_count, exc_info=True)
                return event

            event.processed = True
            event.processed_at = datetime.now(timezone.utc)
            event.error_message = None
            await db.commit()
            webhook_events_total.labels(event_type=envelope.type, status="processed").inc()
            logger.info("webhook_processed")
        return event

    async def dispatch(self, db: AsyncSession, event_type: str, data: dict) -> None:
        """
        Route one event to its handler.

        A payload without a notetaker id is a logged no-op. Raises whatever
        the handler raises, including ValidationError for malformed objects.
        """
        obj = (data or {}).get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict) or not obj.get("id"):
            logger.warning("webhook_missing_notetaker_id", event_type=event_type)
            return

        try:
            payload: WebhookPayload = parse_webhook_payload(event_type, data)
        except ValidationError:
            logger.error("webhook_payload_invalid", event_type=event_type)
            raise

        if isinstance(payload, NotetakerCreated):
            await session_state.apply_created(db, payload, self.broadcaster)
        elif isinstance(payload, NotetakerUpdated):
            await session_state.apply_updated(db, payload, self.broadcaster)
        elif isinstance(payload, NotetakerMeetingState):
            await session_state.apply_meeting_state(db, payload, self.broadcaster)
        elif isinstance(payload, NotetakerDeleted):
            await session_state.apply_deleted(db, payload, self.broadcaster)
        elif isinstance(payload, NotetakerMedia):
            await self.media_ingestion.ingest(db, payload)
        elif isinstance(payload, UnknownEvent):
            await self._handle_unknown(db, payload)

    async def _handle_unknown(self, db: AsyncSession, payload: UnknownEvent) -> None:
        logger.info("webhook_type_unhandled", event_type=payload.event_type)
        if payload.transcript is None:
            return
        logger.info("webhook_unhandled_with_transcript", event_type=payload.event_type)
        obj = dict(payload.raw.get("object") or {})
        obj.pop("event_type", None)
        obj.setdefault("transcript", payload.transcript)
        # Treat as available media regardless of the object's lifecycle state
        obj["state"] = "available"
        await self.media_ingestion.ingest(db, NotetakerMedia(**obj))
