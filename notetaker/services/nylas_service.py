"""
Service for interacting with the Nylas Notetaker v3 API.
"""
import json
import httpx
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
import logging

from aiolimiter import AsyncLimiter

from notetaker.exceptions import (
    NylasAPIError,
    NylasAuthError,
    NylasBadRequestError,
    NylasNotFoundError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


DEFAULT_MEETING_SETTINGS = {
    "audio_recording": True,
    "video_recording": False,
    "transcription": True,
    "summary": False,
    "action_items": False,
}

# Hosts trusted with the API key on artifact downloads
NYLAS_DOMAINS = ("nylas.com",)


class NylasService:
    """Service to manage notetakers, artifact downloads and webhooks on Nylas."""

    def __init__(
        self,
        api_key: str,
        api_uri: str = "https://api.us.nylas.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limiter: Optional[AsyncLimiter] = None,
    ):
        """
        Initialize the Nylas client.

        Args:
            api_key: Nylas API key (Bearer token)
            api_uri: Regional API base URI
            timeout: Timeout in seconds for every request
            transport: Optional httpx transport (tests use httpx.MockTransport)
            limiter: Optional rate limiter shared across calls
        """
        self.api_key = api_key
        self.api_uri = api_uri.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.limiter = limiter

    def _headers(self, json_body: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _is_nylas_url(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        if host == urlparse(self.api_uri).hostname:
            return True
        return any(host == domain or host.endswith("." + domain) for domain in NYLAS_DOMAINS)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):
                return error.get("message") or json.dumps(error)
            return data.get("message") or error or response.reason_phrase
        return response.reason_phrase

    def _handle_error(self, response: httpx.Response) -> NylasAPIError:
        """
        Map a failed Nylas response onto the exception taxonomy.

        Args:
            response: Non-2xx response

        Returns:
            Exception instance for the caller to raise
        """
        status = response.status_code
        message = self._error_message(response)

        if status == 401:
            return NylasAuthError(f"Nylas authentication failed: {message}")
        if status == 400:
            return NylasBadRequestError(f"Invalid request: {message}")
        if status == 404:
            return NylasNotFoundError(f"Resource not found: {message}")
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                f"Rate limit exceeded: {message}",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                platform="nylas",
            )
        return NylasAPIError(f"Nylas API error ({status}): {message}", status_code=status)

    async def _request(self, method: str, url: str, operation: str, **kwargs) -> httpx.Response:
        """Send one request, raising the mapped exception on failure."""
        try:
            async with self._client() as client:
                if self.limiter:
                    async with self.limiter:
                        response = await client.request(method, url, **kwargs)
                else:
                    response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Error {operation}: {str(e)}")
            raise NylasAPIError(f"Nylas service error: {str(e)}")

        if response.is_error:
            error = self._handle_error(response)
            logger.error(f"Error {operation}: {response.status_code} - {error}")
            raise error
        return response

    @staticmethod
    def _data(response: httpx.Response) -> Any:
        if not response.content:
            return None
        body = response.json()
        return body.get("data") if isinstance(body, dict) else body

    # ------------------------------------------------------------------
    # Notetakers
    # ------------------------------------------------------------------

    async def invite_notetaker(
        self,
        meeting_link: str,
        join_time: Optional[int] = None,
        name: Optional[str] = None,
        meeting_settings: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Invite a standalone notetaker (no grant required) to a meeting.

        Args:
            meeting_link: Zoom, Google Meet or Teams URL
            join_time: Epoch seconds; joins immediately when omitted
            name: Display name of the bot
            meeting_settings: Vendor meeting settings, snake_case

        Returns:
            Notetaker resource as returned by Nylas
        """
        body: Dict[str, Any] = {
            "meeting_link": meeting_link,
            "name": name or "Nylas Notetaker",
            "meeting_settings": meeting_settings or dict(DEFAULT_MEETING_SETTINGS),
        }
        if join_time:
            body["join_time"] = join_time

        response = await self._request(
            "POST", f"{self.api_uri}/v3/notetakers", "inviting notetaker",
            headers=self._headers(json_body=True), json=body,
        )
        notetaker = self._data(response)
        logger.info(f"Invited notetaker {notetaker.get('id')} to {meeting_link}")
        return notetaker

    async def list_notetakers(self) -> List[Dict[str, Any]]:
        """Get the list of scheduled notetakers."""
        response = await self._request(
            "GET", f"{self.api_uri}/v3/notetakers", "listing notetakers",
            headers=self._headers(),
        )
        return self._data(response) or []

    async def get_notetaker(self, notetaker_id: str) -> Dict[str, Any]:
        """Get a specific notetaker."""
        response = await self._request(
            "GET", f"{self.api_uri}/v3/notetakers/{notetaker_id}", "getting notetaker",
            headers=self._headers(),
        )
        return self._data(response)

    async def cancel_notetaker(self, notetaker_id: str) -> None:
        """Cancel a scheduled notetaker."""
        await self._request(
            "DELETE", f"{self.api_uri}/v3/notetakers/{notetaker_id}", "cancelling notetaker",
            headers=self._headers(),
        )
        logger.info(f"Cancelled notetaker {notetaker_id}")

    async def remove_notetaker(self, notetaker_id: str) -> None:
        """Make a notetaker leave the meeting it is attending."""
        await self._request(
            "PATCH", f"{self.api_uri}/v3/notetakers/{notetaker_id}", "removing notetaker",
            headers=self._headers(json_body=True), json={"state": "leave"},
        )
        logger.info(f"Notetaker {notetaker_id} asked to leave")

    async def download_text_file(self, file_url: str) -> str:
        """
        Download a text artifact (transcript, summary, action items).

        JSON responses are returned re-serialized so callers always get text.

        Args:
            file_url: Artifact URL from a media webhook

        Returns:
            Artifact content as a string
        """
        # Artifact links are pre-signed; the API key only goes to Nylas hosts
        headers = {"Authorization": f"Bearer {self.api_key}"} if self._is_nylas_url(file_url) else {}
        response = await self._request("GET", file_url, "downloading text file", headers=headers)
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            return json.dumps(response.json())
        return response.text

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def list_webhooks(self) -> List[Dict[str, Any]]:
        response = await self._request(
            "GET", f"{self.api_uri}/v3/webhooks", "listing webhooks",
            headers=self._headers(),
        )
        return self._data(response) or []

    async def get_webhook(self, webhook_id: str) -> Dict[str, Any]:
        response = await self._request(
            "GET", f"{self.api_uri}/v3/webhooks/{webhook_id}", "getting webhook",
            headers=self._headers(),
        )
        return self._data(response)

    async def create_webhook(self, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request(
            "POST", f"{self.api_uri}/v3/webhooks", "creating webhook",
            headers=self._headers(json_body=True), json=body,
        )
        return self._data(response)

    async def update_webhook(self, webhook_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request(
            "PUT", f"{self.api_uri}/v3/webhooks/{webhook_id}", "updating webhook",
            headers=self._headers(json_body=True), json=body,
        )
        return self._data(response)

    async def delete_webhook(self, webhook_id: str) -> None:
        await self._request(
            "DELETE", f"{self.api_uri}/v3/webhooks/{webhook_id}", "deleting webhook",
            headers=self._headers(),
        )
        logger.info(f"Webhook {webhook_id} deleted")

    async def rotate_webhook_secret(self, webhook_id: str) -> Optional[str]:
        """
        Rotate the signing secret of a webhook.

        Returns:
            The new secret; NYLAS_WEBHOOK_SECRET must be updated to match
        """
        response = await self._request(
            "POST", f"{self.api_uri}/v3/webhooks/rotate-secret/{webhook_id}", "rotating webhook secret",
            headers=self._headers(),
        )
        data = self._data(response) or {}
        logger.warning("Webhook secret rotated; update NYLAS_WEBHOOK_SECRET to the new value")
        return data.get("webhook_secret")
