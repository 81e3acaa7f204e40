"""
Vendor webhook endpoints.
"""
import json

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.api.dependencies import get_webhook_dispatcher
from notetaker.config import settings
from notetaker.db import get_session
from notetaker.logging_config import get_logger
from notetaker.monitoring import webhook_events_total, record_error
from notetaker.schemas import WebhookEnvelope
from notetaker.services.webhook_dispatcher import WebhookDispatcher
from notetaker.services.webhook_verifier import SIGNATURE_HEADER, verify_signature

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


# ============================================
# CHALLENGE HANDSHAKE
# ============================================

@router.get("/nylas")
async def webhook_challenge(request: Request):
    """Echo the ``challenge`` query parameter so Nylas can verify the endpoint."""
    challenge = request.query_params.get("challenge")
    if not challenge:
        return PlainTextResponse("Missing challenge parameter", status_code=status.HTTP_400_BAD_REQUEST)
    logger.info("webhook_challenge_received")
    return PlainTextResponse(challenge)


# ============================================
# NOTIFICATIONS
# ============================================

@router.post("/nylas")
async def receive_webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
):
    """
    Receive a Nylas notification.

    Only a failed signature check is rejected (401). Everything else,
    including processing failures, is answered with 200 so Nylas does not
    retry.
    """
    body = await request.body()

    if not verify_signature(
        body,
        request.headers.get(SIGNATURE_HEADER),
        settings.nylas_webhook_secret,
        skip_verification=settings.skip_webhook_verification,
    ):
        webhook_events_total.labels(event_type="unknown", status="rejected").inc()
        return JSONResponse({"error": "Invalid signature"}, status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        envelope = WebhookEnvelope.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        webhook_events_total.labels(event_type="unknown", status="malformed").inc()
        logger.error("webhook_body_invalid", error=str(e))
        return {"received": True}

    try:
        await dispatcher.receive(db, envelope)
    except Exception as e:
        await db.rollback()
        record_error(type(e).__name__, "webhook_route")
        logger.error("webhook_intake_failed", event_id=envelope.id, error=str(e), exc_info=True)
        return {"received": True, "error": str(e)}

    return {"received": True}
