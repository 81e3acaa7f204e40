"""
Registers this application's webhook endpoint with Nylas.
"""
from typing import Any, Dict, List, Optional

from notetaker.exceptions import NotetakerException, NylasAuthError, NylasBadRequestError
from notetaker.logging_config import get_logger
from notetaker.services.nylas_service import NylasService

logger = get_logger(__name__)

NOTETAKER_TRIGGERS = [
    "notetaker.created",
    "notetaker.updated",
    "notetaker.meeting_state",
    "notetaker.media",
    "notetaker.deleted",
]

WEBHOOK_DESCRIPTION = "Notetaker Events Webhook (Auto-registered)"


class WebhookManager:
    """Create-or-update of the notetaker webhook subscription."""

    def __init__(self, nylas_service: NylasService, webhook_url: str, notification_email: Optional[str] = None):
        self.nylas = nylas_service
        self.webhook_url = webhook_url
        self.notification_email = notification_email

    @classmethod
    def from_settings(cls, settings, nylas_service: Optional[NylasService] = None) -> Optional["WebhookManager"]:
        """
        Build a manager from configuration.

        Returns:
            Manager, or None when the API key or an HTTPS base URL is missing
        """
        if not settings.nylas_api_key:
            logger.warning("webhook_registration_skipped", reason="NYLAS_API_KEY not set")
            return None
        if not settings.webhook_url:
            logger.warning("webhook_registration_skipped", reason="WEBHOOK_BASE_URL not set")
            return None
        if not settings.webhook_url.startswith("https://"):
            logger.warning(
                "webhook_registration_skipped",
                reason="WEBHOOK_BASE_URL must use HTTPS",
                webhook_url=settings.webhook_url,
            )
            return None

        nylas_service = nylas_service or NylasService(
            api_key=settings.nylas_api_key,
            api_uri=settings.nylas_api_uri,
            timeout=settings.http_timeout_seconds,
        )
        return cls(nylas_service, settings.webhook_url, settings.webhook_notification_email)

    def _request_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "trigger_types": list(NOTETAKER_TRIGGERS),
            "webhook_url": self.webhook_url,
            "description": WEBHOOK_DESCRIPTION,
        }
        if self.notification_email:
            body["notification_email_addresses"] = [self.notification_email]
        return body

    async def find_existing_webhook(self) -> Optional[Dict[str, Any]]:
        webhooks = await self.nylas.list_webhooks()
        for webhook in webhooks:
            if webhook.get("webhook_url") == self.webhook_url:
                return webhook
        return None

    async def register_webhook(self) -> bool:
        """
        Update the webhook for our URL, or create it.

        Failures are logged and reported through the return value so the
        server keeps starting without a subscription.

        Returns:
            True if the subscription is in place
        """
        logger.info("registering_webhook", webhook_url=self.webhook_url)
        try:
            existing = await self.find_existing_webhook()
            if existing:
                await self.nylas.update_webhook(existing["id"], self._request_body())
                logger.info("webhook_updated", webhook_id=existing["id"], triggers=NOTETAKER_TRIGGERS)
            else:
                created = await self.nylas.create_webhook(self._request_body())
                logger.info("webhook_created", webhook_id=(created or {}).get("id"), triggers=NOTETAKER_TRIGGERS)
            return True
        except NylasAuthError as e:
            logger.error("webhook_registration_failed", error=str(e), hint="check NYLAS_API_KEY")
        except NylasBadRequestError as e:
            logger.error(
                "webhook_registration_failed",
                error=str(e),
                hint="webhook URL must be public HTTPS",
                webhook_url=self.webhook_url,
            )
        except NotetakerException as e:
            logger.error("webhook_registration_failed", error=str(e))
        return False

    async def list_webhooks(self) -> List[Dict[str, Any]]:
        return await self.nylas.list_webhooks()
