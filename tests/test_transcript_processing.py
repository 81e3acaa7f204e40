"""
Tests for storing AI output on transcripts.
"""
import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy import select

from notetaker.models import Task, Transcript
from notetaker.schemas import ActionItemsResult, SummaryResult, TranscriptProcessingResult
from notetaker.services.transcript_processing import TranscriptProcessingService


def processing_result(summary="Meeting summary", items=("Bob will draft the report (Bob - 2025-03-14)",),
                      summary_ok=True, items_ok=True):
    return TranscriptProcessingResult(
        transcript_id="1",
        summary=SummaryResult(summary=summary if summary_ok else "", success=summary_ok,
                              error=None if summary_ok else "Summary generation failed"),
        action_items=ActionItemsResult(action_items=list(items) if items_ok else [], success=items_ok,
                                       error=None if items_ok else "Action items extraction failed"),
        processed_at="2025-03-14T09:00:00Z",
    )


async def stored_transcript(db, make_session, text="Alice: Hello\n\nBob: I will draft the report."):
    await make_session(with_transcript=True)
    result = await db.execute(select(Transcript).where(Transcript.notetaker_id == "nt-123"))
    transcript = result.scalar_one()
    transcript.transcript_text = text
    await db.commit()
    return transcript


@pytest.mark.unit
class TestTranscriptProcessingService:

    @pytest.mark.asyncio
    async def test_stores_summary_items_and_tasks(self, test_db_session, make_session):
        transcript = await stored_transcript(test_db_session, make_session)
        ai_agents = AsyncMock()
        ai_agents.process_transcript.return_value = processing_result()
        service = TranscriptProcessingService(ai_agents)

        result = await service.process_transcript_with_ai(test_db_session, transcript.id)

        assert result.summary.success is True
        assert transcript.summary_text == "Meeting summary"
        assert transcript.action_items == ["Bob will draft the report (Bob - 2025-03-14)"]
        tasks = (await test_db_session.execute(select(Task))).scalars().all()
        assert len(tasks) == 1
        assert tasks[0].assignee == "Bob"
        assert tasks[0].transcript_id == transcript.id

    @pytest.mark.asyncio
    async def test_already_processed_makes_no_call(self, test_db_session, make_session):
        transcript = await stored_transcript(test_db_session, make_session)
        transcript.summary_text = "Existing summary"
        transcript.action_items = ["Existing item"]
        await test_db_session.commit()
        ai_agents = AsyncMock()
        service = TranscriptProcessingService(ai_agents)

        result = await service.process_transcript_with_ai(test_db_session, transcript.id)

        ai_agents.process_transcript.assert_not_called()
        assert result.summary.summary == "Existing summary"
        assert result.action_items.action_items == ["Existing item"]

    @pytest.mark.asyncio
    async def test_transcript_without_text_is_skipped(self, test_db_session, make_session):
        transcript = await stored_transcript(test_db_session, make_session, text="   ")
        ai_agents = AsyncMock()

        result = await TranscriptProcessingService(ai_agents).process_transcript_with_ai(
            test_db_session, transcript.id
        )

        assert result is None
        ai_agents.process_transcript.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_summary_keeps_action_items(self, test_db_session, make_session):
        transcript = await stored_transcript(test_db_session, make_session)
        ai_agents = AsyncMock()
        ai_agents.process_transcript.return_value = processing_result(summary_ok=False)

        await TranscriptProcessingService(ai_agents).process_transcript_with_ai(test_db_session, transcript.id)

        assert transcript.summary_text is None
        assert len(transcript.action_items) == 1

    @pytest.mark.asyncio
    async def test_reprocess_clears_then_regenerates(self, test_db_session, make_session):
        transcript = await stored_transcript(test_db_session, make_session)
        transcript.summary_text = "Old summary"
        transcript.action_items = ["Old item"]
        await test_db_session.commit()
        ai_agents = AsyncMock()
        ai_agents.process_transcript.return_value = processing_result(summary="New summary")

        await TranscriptProcessingService(ai_agents).reprocess_transcript(test_db_session, transcript.id)

        ai_agents.process_transcript.assert_awaited_once()
        assert transcript.summary_text == "New summary"

    @pytest.mark.asyncio
    async def test_single_agent(self, test_db_session, make_session):
        transcript = await stored_transcript(test_db_session, make_session)
        ai_agents = AsyncMock()
        ai_agents.generate_summary.return_value = SummaryResult(summary="Only a summary", success=True)

        outcome = await TranscriptProcessingService(ai_agents).process_with_specific_agent(
            test_db_session, transcript.id, "summary"
        )

        assert outcome["success"] is True
        assert transcript.summary_text == "Only a summary"
        ai_agents.extract_action_items.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_agent_agent_failure_is_reported(self, test_db_session, make_session):
        transcript = await stored_transcript(test_db_session, make_session)
        ai_agents = AsyncMock()
        ai_agents.extract_action_items.return_value = ActionItemsResult(
            action_items=[], success=False, error="Invalid OpenAI API key"
        )

        outcome = await TranscriptProcessingService(ai_agents).process_with_specific_agent(
            test_db_session, transcript.id, "actionItems"
        )

        assert outcome == {"success": False, "result": [], "error": "Invalid OpenAI API key"}
        assert transcript.action_items == []

    @pytest.mark.asyncio
    async def test_single_agent_storage_failure_is_recorded(self, test_db_session, make_session):
        """Test that a failure while saving tasks is returned and written to the transcript."""
        transcript = await stored_transcript(test_db_session, make_session)
        ai_agents = AsyncMock()
        ai_agents.extract_action_items.return_value = ActionItemsResult(
            action_items=["Bob will draft the report"], success=True
        )

        with patch(
            "notetaker.services.transcript_processing.create_tasks_from_action_items",
            AsyncMock(side_effect=RuntimeError("database is locked")),
        ):
            outcome = await TranscriptProcessingService(ai_agents).process_with_specific_agent(
                test_db_session, transcript.id, "actionItems"
            )

        stored = await test_db_session.get(Transcript, transcript.id)
        assert outcome["success"] is False
        assert "database is locked" in outcome["error"]
        assert stored.error_message == "AI processing failed: database is locked"
        tasks = (await test_db_session.execute(select(Task))).scalars().all()
        assert tasks == []
