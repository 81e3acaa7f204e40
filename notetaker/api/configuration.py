"""
Webhook setup and configuration status endpoints.
"""
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from notetaker.config import settings
from notetaker.exceptions import NotetakerException
from notetaker.logging_config import get_logger
from notetaker.services.webhook_manager import WebhookManager

logger = get_logger(__name__)

router = APIRouter(prefix="/api/setup", tags=["setup"])

INCOMPLETE = "Webhook configuration is incomplete"


def _get_manager() -> WebhookManager:
    manager = WebhookManager.from_settings(settings)
    if manager is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INCOMPLETE)
    return manager


@router.get("/status")
async def setup_status():
    """Report configuration and the webhook currently registered for our URL."""
    has_api_key = bool(settings.nylas_api_key)
    has_webhook_url = bool(settings.webhook_base_url)
    configured = has_api_key and has_webhook_url

    webhook = None
    manager = WebhookManager.from_settings(settings)
    if manager is not None:
        try:
            current = await manager.find_existing_webhook()
        except NotetakerException as e:
            logger.warning("webhook_lookup_failed", error=str(e))
            current = None
        if current:
            webhook = {
                "id": current.get("id"),
                "status": current.get("status"),
                "triggers": current.get("trigger_types"),
                "createdAt": current.get("created_at"),
                "updatedAt": current.get("updated_at"),
            }

    instructions = None
    if not configured:
        steps = []
        if not has_api_key:
            steps.append("Set NYLAS_API_KEY in your .env file")
        if not has_webhook_url:
            steps.append("Set WEBHOOK_BASE_URL in your .env file (must be HTTPS)")
        steps.append("Restart the server to automatically register webhooks")
        steps.append("Or call POST /api/setup/webhook to register manually")
        instructions = {"message": INCOMPLETE, "steps": steps}

    return {
        "success": True,
        "data": {
            "configured": configured,
            "configuration": {
                "hasApiKey": has_api_key,
                "hasWebhookUrl": has_webhook_url,
                "hasWebhookSecret": bool(settings.nylas_webhook_secret),
                "webhookUrl": settings.webhook_url,
            },
            "webhook": webhook,
            "instructions": instructions,
        },
    }


@router.post("/webhook")
async def register_webhook():
    manager = WebhookManager.from_settings(settings)
    if manager is None:
        return JSONResponse(
            {
                "success": False,
                "error": INCOMPLETE,
                "message": "Please set NYLAS_API_KEY and an HTTPS WEBHOOK_BASE_URL in your .env file",
            },
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    if not await manager.register_webhook():
        return JSONResponse(
            {"success": False, "error": "Failed to register webhook"},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )
    return {"success": True, "message": "Webhook registered successfully"}


@router.get("/webhooks")
async def list_webhooks():
    webhooks = await _get_manager().list_webhooks()
    return {"success": True, "data": webhooks, "count": len(webhooks)}


@router.get("/webhooks/{webhook_id}")
async def get_webhook(webhook_id: str):
    webhook = await _get_manager().nylas.get_webhook(webhook_id)
    return {"success": True, "data": webhook}


@router.delete("/webhooks/{webhook_id}")
async def delete_webhook(webhook_id: str):
    await _get_manager().nylas.delete_webhook(webhook_id)
    return {"success": True, "message": "Webhook deleted successfully"}


@router.post("/webhooks/{webhook_id}/rotate-secret")
async def rotate_webhook_secret(webhook_id: str):
    secret = await _get_manager().nylas.rotate_webhook_secret(webhook_id)
    return {
        "success": True,
        "message": "Webhook secret rotated successfully",
        "data": {"webhookSecret": secret},
        "warning": "Update NYLAS_WEBHOOK_SECRET in your .env file with the new secret",
    }
