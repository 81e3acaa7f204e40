"""
Tests for media artifact ingestion.
"""
import json

import httpx
import pytest

from notetaker.schemas import NotetakerMedia
from notetaker.services.media_ingestion import (
    MediaIngestionService,
    collect_artifacts,
    flatten_transcript,
    parse_action_items_text,
)
from notetaker.services.notifier import TRANSCRIPT_UPDATE

TRANSCRIPT_URL = "https://storage.test/transcript.json"
ACTION_ITEMS_URL = "https://storage.test/action_items.txt"
SUMMARY_URL = "https://storage.test/summary.txt"

STRUCTURED_TRANSCRIPT = {
    "transcript": [
        {"speaker": "Alice", "text": "Let's ship on Friday."},
        {"speaker": "Bob", "text": "I'll update the changelog."},
    ]
}


def storage_handler(routes):
    """MockTransport handler serving fixed responses by URL path."""
    def handler(request):
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": {"message": "not found"}})
        if callable(route):
            return route(request)
        if isinstance(route, (dict, list)):
            return httpx.Response(200, json=route)
        return httpx.Response(200, text=route)
    return handler


def media(state="available", **fields):
    return NotetakerMedia(id="nt-123", state=state, **fields)


@pytest.mark.unit
class TestFlattenTranscript:

    def test_structured_segments(self):
        assert flatten_transcript(STRUCTURED_TRANSCRIPT) == (
            "Alice: Let's ship on Friday.\n\nBob: I'll update the changelog."
        )

    def test_structured_json_string(self):
        text = flatten_transcript(json.dumps(STRUCTURED_TRANSCRIPT))
        assert text.startswith("Alice: Let's ship on Friday.")

    def test_missing_speaker(self):
        assert flatten_transcript([{"text": "hello"}]) == "Unknown: hello"

    def test_plain_text_kept(self):
        assert flatten_transcript("just some words") == "just some words"

    def test_unexpected_json_pretty_printed(self):
        assert flatten_transcript({"words": []}) == json.dumps({"words": []}, indent=2)


@pytest.mark.unit
class TestParseActionItemsText:

    def test_json_array(self):
        assert parse_action_items_text('["Send report", " ", "Book room"]') == ["Send report", "Book room"]

    def test_one_item_per_line(self):
        assert parse_action_items_text("Send report\n\nBook room\n") == ["Send report", "Book room"]


@pytest.mark.unit
class TestCollectArtifacts:

    def test_flat_shape(self):
        artifacts = collect_artifacts(media(media_type="recording", media_url="https://storage.test/a.mp3"))
        assert artifacts == [("audio", "https://storage.test/a.mp3")]

    def test_v3_media_object(self):
        artifacts = collect_artifacts(media(media={
            "transcript": TRANSCRIPT_URL,
            "recording": "https://storage.test/a.mp3",
            "video_recording": "https://storage.test/v.mp4",
            "recording_duration": 300,
        }))
        assert artifacts == [
            ("transcript", TRANSCRIPT_URL),
            ("audio", "https://storage.test/a.mp3"),
            ("video", "https://storage.test/v.mp4"),
        ]

    def test_embedded_transcript_only_without_transcript_url(self):
        payload = media(media={"transcript": TRANSCRIPT_URL}, transcript=[{"speaker": "A", "text": "b"}])
        assert collect_artifacts(payload) == [("transcript", TRANSCRIPT_URL)]


@pytest.mark.unit
class TestMediaIngestion:
    """Test applying media events to a transcript."""

    @pytest.mark.asyncio
    async def test_transcript_download_completes_transcript(self, test_db_session, make_session, make_nylas_service):
        await make_session(with_transcript=True)
        nylas = make_nylas_service(storage_handler({"/transcript.json": STRUCTURED_TRANSCRIPT}))
        service = MediaIngestionService(nylas)

        transcript = await service.ingest(
            test_db_session, media(media_type="transcript", media_url=TRANSCRIPT_URL)
        )

        assert transcript.transcript_text == "Alice: Let's ship on Friday.\n\nBob: I'll update the changelog."
        assert transcript.transcript_url == TRANSCRIPT_URL
        assert transcript.status == "completed"
        assert len(transcript.media_files) == 1
        assert transcript.media_files[0]["type"] == "transcript"
        assert transcript.media_files[0]["url"] == TRANSCRIPT_URL
        assert "downloadedAt" in transcript.media_files[0]

    @pytest.mark.asyncio
    async def test_transcript_created_when_missing(self, test_db_session, make_session, make_nylas_service):
        session = await make_session(with_transcript=False)
        nylas = make_nylas_service(storage_handler({"/transcript.json": "Alice: Hello"}))

        transcript = await MediaIngestionService(nylas).ingest(
            test_db_session, media(media_type="transcript", media_url=TRANSCRIPT_URL)
        )

        assert transcript.id is not None
        assert transcript.session_id == session.id
        assert transcript.transcript_text == "Alice: Hello"

    @pytest.mark.asyncio
    async def test_no_session_no_transcript(self, test_db_session, make_nylas_service):
        nylas = make_nylas_service(storage_handler({}))

        result = await MediaIngestionService(nylas).ingest(
            test_db_session, media(media_type="transcript", media_url=TRANSCRIPT_URL)
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_failed_action_items_download_marks_partial(
        self, test_db_session, make_session, make_nylas_service
    ):
        await make_session(with_transcript=True)

        def server_error(request):
            return httpx.Response(500, json={"error": {"message": "storage unavailable"}})

        nylas = make_nylas_service(storage_handler({"/action_items.txt": server_error}))

        transcript = await MediaIngestionService(nylas).ingest(
            test_db_session, media(media_type="action_items", media_url=ACTION_ITEMS_URL)
        )

        assert transcript.status == "partial"
        assert transcript.error_message.startswith("Failed to download action_items:")
        assert transcript.action_items == []
        assert transcript.media_files == []

    @pytest.mark.asyncio
    async def test_partial_is_kept_after_later_success(self, test_db_session, make_session, make_nylas_service):
        await make_session(with_transcript=True)
        nylas = make_nylas_service(storage_handler({"/transcript.json": "Alice: Hello"}))
        service = MediaIngestionService(nylas)

        await service.ingest(test_db_session, media(media_type="summary", media_url=SUMMARY_URL))
        transcript = await service.ingest(
            test_db_session, media(media_type="transcript", media_url=TRANSCRIPT_URL)
        )

        assert transcript.transcript_text == "Alice: Hello"
        assert transcript.status == "partial"

    @pytest.mark.asyncio
    async def test_mixed_payload_keeps_successful_artifacts(
        self, test_db_session, make_session, make_nylas_service
    ):
        await make_session(with_transcript=True)
        nylas = make_nylas_service(storage_handler({"/transcript.json": "Alice: Hello"}))

        transcript = await MediaIngestionService(nylas).ingest(test_db_session, media(media={
            "transcript": TRANSCRIPT_URL,
            "summary": SUMMARY_URL,
            "recording": "https://storage.test/a.mp3",
            "recording_duration": "300",
        }))

        assert transcript.transcript_text == "Alice: Hello"
        assert transcript.audio_url == "https://storage.test/a.mp3"
        assert transcript.duration == 300
        assert transcript.status == "partial"
        assert "Failed to download summary" in transcript.error_message
        assert [f["type"] for f in transcript.media_files] == ["transcript", "audio"]

    @pytest.mark.asyncio
    async def test_action_items_downloaded(self, test_db_session, make_session, make_nylas_service):
        await make_session(with_transcript=True)
        nylas = make_nylas_service(storage_handler({
            "/action_items.txt": "Send report (Maria - 2025-03-14)\nBook room",
        }))

        transcript = await MediaIngestionService(nylas).ingest(
            test_db_session, media(media_type="action_items", media_url=ACTION_ITEMS_URL)
        )

        assert transcript.action_items == ["Send report (Maria - 2025-03-14)", "Book room"]
        assert transcript.action_items_url == ACTION_ITEMS_URL

    @pytest.mark.asyncio
    async def test_redelivered_media_is_appended_again(self, test_db_session, make_session, make_nylas_service):
        await make_session(with_transcript=True)
        nylas = make_nylas_service(storage_handler({"/transcript.json": "Alice: Hello"}))
        service = MediaIngestionService(nylas)
        payload = media(media_type="transcript", media_url=TRANSCRIPT_URL)

        await service.ingest(test_db_session, payload)
        transcript = await service.ingest(test_db_session, payload)

        assert len(transcript.media_files) == 2

    @pytest.mark.asyncio
    async def test_processing_state_does_not_change_status(
        self, test_db_session, make_session, make_nylas_service
    ):
        await make_session(with_transcript=True)
        nylas = make_nylas_service(storage_handler({"/transcript.json": "Alice: Hello"}))
        service = MediaIngestionService(nylas)

        await service.ingest(test_db_session, media(media_type="transcript", media_url=TRANSCRIPT_URL))
        transcript = await service.ingest(test_db_session, media(state="processing"))

        assert transcript.status == "completed"

    @pytest.mark.asyncio
    async def test_error_state_marks_failed(self, test_db_session, make_session, make_nylas_service):
        await make_session(with_transcript=True)

        transcript = await MediaIngestionService(make_nylas_service(storage_handler({}))).ingest(
            test_db_session, media(state="error")
        )

        assert transcript.status == "failed"
        assert transcript.error_message

    @pytest.mark.asyncio
    async def test_missing_nylas_client_marks_partial(self, test_db_session, make_session):
        await make_session(with_transcript=True)

        transcript = await MediaIngestionService(None).ingest(
            test_db_session, media(media_type="transcript", media_url=TRANSCRIPT_URL)
        )

        assert transcript.status == "partial"
        assert "Failed to download transcript" in transcript.error_message

    @pytest.mark.asyncio
    async def test_update_is_broadcast(self, test_db_session, make_session, make_nylas_service, broadcaster):
        await make_session(with_transcript=True)
        nylas = make_nylas_service(storage_handler({"/transcript.json": "Alice: Hello"}))
        service = MediaIngestionService(nylas, broadcaster)

        async with broadcaster.subscribe() as subscription:
            await service.ingest(test_db_session, media(media_type="transcript", media_url=TRANSCRIPT_URL))
            await test_db_session.commit()
            message = await subscription.get(timeout=1)

        assert message["type"] == TRANSCRIPT_UPDATE
        assert message["data"]["status"] == "completed"
        assert message["data"]["hasTranscript"] is True
