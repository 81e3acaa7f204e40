"""
Tests for the Nylas API client and webhook registration.
"""
import json
from types import SimpleNamespace

import httpx
import pytest

from notetaker.exceptions import (
    NylasAPIError,
    NylasAuthError,
    NylasBadRequestError,
    NylasNotFoundError,
    RateLimitError,
)
from notetaker.services.webhook_manager import NOTETAKER_TRIGGERS, WebhookManager

WEBHOOK_URL = "https://notetaker.example.com/api/webhooks/nylas"


def status_handler(status_code, **headers):
    def handler(request):
        return httpx.Response(
            status_code, json={"error": {"message": "vendor message"}}, headers=headers
        )
    return handler


@pytest.mark.unit
class TestNylasService:
    """Test requests and error mapping."""

    @pytest.mark.asyncio
    async def test_invite_notetaker(self, make_nylas_service):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"id": "nt-123", "state": "scheduled"}})

        notetaker = await make_nylas_service(handler).invite_notetaker(
            "https://zoom.us/j/123", join_time=1735689600, name="Bot"
        )

        assert notetaker == {"id": "nt-123", "state": "scheduled"}
        assert captured["method"] == "POST"
        assert captured["path"] == "/v3/notetakers"
        assert captured["auth"] == "Bearer test-nylas-key"
        assert captured["body"]["meeting_link"] == "https://zoom.us/j/123"
        assert captured["body"]["join_time"] == 1735689600
        assert captured["body"]["meeting_settings"]["transcription"] is True

    @pytest.mark.asyncio
    async def test_remove_notetaker_sends_leave(self, make_nylas_service):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {}})

        await make_nylas_service(handler).remove_notetaker("nt-123")

        assert captured == {"method": "PATCH", "body": {"state": "leave"}}

    @pytest.mark.parametrize("status_code,error_class", [
        (400, NylasBadRequestError),
        (401, NylasAuthError),
        (404, NylasNotFoundError),
        (500, NylasAPIError),
    ])
    @pytest.mark.asyncio
    async def test_error_mapping(self, make_nylas_service, status_code, error_class):
        with pytest.raises(error_class) as exc_info:
            await make_nylas_service(status_handler(status_code)).get_notetaker("nt-123")

        assert "vendor message" in str(exc_info.value)
        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self, make_nylas_service):
        with pytest.raises(RateLimitError) as exc_info:
            await make_nylas_service(status_handler(429, **{"Retry-After": "30"})).list_notetakers()

        assert exc_info.value.retry_after == 30

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, make_nylas_service):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NylasAPIError) as exc_info:
            await make_nylas_service(handler).cancel_notetaker("nt-123")

        assert "Nylas service error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_download_json_returned_as_text(self, make_nylas_service):
        def handler(request):
            return httpx.Response(200, json={"transcript": []})

        content = await make_nylas_service(handler).download_text_file("https://storage.test/t.json")

        assert json.loads(content) == {"transcript": []}

    @pytest.mark.asyncio
    async def test_api_key_only_sent_to_nylas_hosts(self, make_nylas_service):
        """Test that artifact links on other hosts never receive the API key."""
        seen = {}

        def handler(request):
            seen[request.url.host] = request.headers.get("Authorization")
            return httpx.Response(200, text="Alice: Hello")

        nylas = make_nylas_service(handler)
        await nylas.download_text_file("https://attacker.example/t.txt")
        await nylas.download_text_file("https://api.nylas.test/v3/files/t.txt")
        await nylas.download_text_file("https://storage.us.nylas.com/t.txt")

        assert seen["attacker.example"] is None
        assert seen["api.nylas.test"] == "Bearer test-nylas-key"
        assert seen["storage.us.nylas.com"] == "Bearer test-nylas-key"

    @pytest.mark.asyncio
    async def test_rotate_webhook_secret(self, make_nylas_service):
        def handler(request):
            assert request.url.path == "/v3/webhooks/rotate-secret/wh-1"
            return httpx.Response(200, json={"data": {"id": "wh-1", "webhook_secret": "new-secret"}})

        assert await make_nylas_service(handler).rotate_webhook_secret("wh-1") == "new-secret"


@pytest.mark.unit
class TestWebhookManager:
    """Test create-or-update of the webhook subscription."""

    def test_from_settings_requires_https(self):
        settings = SimpleNamespace(nylas_api_key="key", webhook_url="http://localhost:4000/api/webhooks/nylas")
        assert WebhookManager.from_settings(settings) is None

    def test_from_settings_requires_api_key(self):
        settings = SimpleNamespace(nylas_api_key=None, webhook_url=WEBHOOK_URL)
        assert WebhookManager.from_settings(settings) is None

    @pytest.mark.asyncio
    async def test_creates_webhook_when_absent(self, make_nylas_service):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.method == "GET":
                return httpx.Response(200, json={"data": [{"id": "wh-other", "webhook_url": "https://other"}]})
            body = json.loads(request.content)
            assert body["trigger_types"] == NOTETAKER_TRIGGERS
            assert body["webhook_url"] == WEBHOOK_URL
            return httpx.Response(200, json={"data": {"id": "wh-new"}})

        manager = WebhookManager(make_nylas_service(handler), WEBHOOK_URL)

        assert await manager.register_webhook() is True
        assert calls == [("GET", "/v3/webhooks"), ("POST", "/v3/webhooks")]

    @pytest.mark.asyncio
    async def test_updates_existing_webhook(self, make_nylas_service):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.method == "GET":
                return httpx.Response(200, json={"data": [{"id": "wh-1", "webhook_url": WEBHOOK_URL}]})
            return httpx.Response(200, json={"data": {"id": "wh-1"}})

        manager = WebhookManager(make_nylas_service(handler), WEBHOOK_URL, "ops@example.com")

        assert await manager.register_webhook() is True
        assert calls == [("GET", "/v3/webhooks"), ("PUT", "/v3/webhooks/wh-1")]

    @pytest.mark.asyncio
    async def test_auth_failure_reported_not_raised(self, make_nylas_service):
        manager = WebhookManager(make_nylas_service(status_handler(401)), WEBHOOK_URL)
        assert await manager.register_webhook() is False
