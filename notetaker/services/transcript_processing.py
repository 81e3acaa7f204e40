"""
Glue between stored transcripts and the AI agents.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.logging_config import get_logger
from notetaker.models import Transcript
from notetaker.monitoring import record_error
from notetaker.schemas import ActionItemsResult, SummaryResult, TranscriptProcessingResult
from notetaker.services.ai_agents import AIAgentsService
from notetaker.services.notifier import EventBroadcaster
from notetaker.services.task_service import create_tasks_from_action_items

logger = get_logger(__name__)

AgentType = Literal["summary", "actionItems"]


class TranscriptProcessingService:
    """Runs the agents over a transcript and persists what they produce."""

    def __init__(self, ai_agents: AIAgentsService, broadcaster: Optional[EventBroadcaster] = None):
        self.ai_agents = ai_agents
        self.broadcaster = broadcaster

    async def _load_with_text(self, db: AsyncSession, transcript_id: int) -> Optional[Transcript]:
        transcript = await db.get(Transcript, transcript_id)
        if transcript is None:
            logger.error("transcript_not_found", transcript_id=transcript_id)
            return None
        if not transcript.transcript_text or not transcript.transcript_text.strip():
            logger.warning("transcript_has_no_text", transcript_id=transcript_id)
            return None
        return transcript

    def _notify(self, transcript: Transcript) -> None:
        if self.broadcaster is None:
            return
        self.broadcaster.emit_transcript_update({
            "notetakerId": transcript.notetaker_id,
            "sessionId": transcript.session_id,
            "transcriptId": transcript.id,
            "status": transcript.status,
            "hasTranscript": bool(transcript.transcript_text),
            "hasSummary": bool(transcript.summary_text),
            "hasActionItems": bool(transcript.action_items),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def process_transcript_with_ai(self, db: AsyncSession,
                                         transcript_id: int) -> Optional[TranscriptProcessingResult]:
        """
        Generate and store summary and action items for one transcript.

        Already-processed transcripts are returned from storage without any
        AI call.

        Returns:
            Processing result, or None if the transcript is missing, has no
            text, or processing failed unexpectedly
        """
        transcript = await self._load_with_text(db, transcript_id)
        if transcript is None:
            return None

        if transcript.summary_text and transcript.action_items:
            logger.info("transcript_already_processed", transcript_id=transcript_id)
            return TranscriptProcessingResult(
                transcript_id=str(transcript_id),
                summary=SummaryResult(summary=transcript.summary_text, success=True),
                action_items=ActionItemsResult(action_items=list(transcript.action_items), success=True),
                processed_at=datetime.now(timezone.utc),
            )

        try:
            result = await self.ai_agents.process_transcript(transcript.transcript_text, transcript_id)

            if result.summary.success and result.summary.summary:
                transcript.summary_text = result.summary.summary
            else:
                logger.error("summary_not_generated", transcript_id=transcript_id, error=result.summary.error)

            items = result.action_items.action_items if result.action_items.success else []
            if result.action_items.error:
                logger.warning("action_items_not_extracted", transcript_id=transcript_id,
                               error=result.action_items.error)
            transcript.action_items = list(items)

            if items:
                await create_tasks_from_action_items(db, transcript, items)
            await db.commit()
        except Exception as e:
            await db.rollback()
            record_error(type(e).__name__, "transcript_processing")
            logger.error("ai_processing_failed", transcript_id=transcript_id, error=str(e), exc_info=True)
            transcript = await db.get(Transcript, transcript_id)
            if transcript is not None:
                transcript.error_message = f"AI processing failed: {e}"
                await db.commit()
            return None

        logger.info(
            "transcript_ai_content_saved",
            transcript_id=transcript_id,
            has_summary=bool(transcript.summary_text),
            action_items_count=len(transcript.action_items or []),
        )
        self._notify(transcript)
        return result

    async def reprocess_transcript(self, db: AsyncSession,
                                   transcript_id: int) -> Optional[TranscriptProcessingResult]:
        """Clear summary and action items in one commit, then process again."""
        transcript = await self._load_with_text(db, transcript_id)
        if transcript is None:
            return None

        transcript.summary_text = None
        transcript.action_items = []
        await db.commit()
        logger.info("transcript_ai_content_cleared", transcript_id=transcript_id)

        return await self.process_transcript_with_ai(db, transcript_id)

    async def process_with_specific_agent(self, db: AsyncSession, transcript_id: int,
                                          agent: AgentType) -> Dict[str, Any]:
        """
        Run only one agent.

        Returns:
            ``{"success", "result"?, "error"?}``
        """
        transcript = await self._load_with_text(db, transcript_id)
        if transcript is None:
            return {"success": False, "error": "Transcript not found or has no text content"}

        try:
            if agent == "summary":
                outcome = await self.ai_agents.generate_summary(transcript.transcript_text)
                if outcome.success:
                    transcript.summary_text = outcome.summary
                result: Any = outcome.summary
            else:
                outcome = await self.ai_agents.extract_action_items(transcript.transcript_text)
                if outcome.success:
                    transcript.action_items = list(outcome.action_items)
                    if outcome.action_items:
                        await create_tasks_from_action_items(db, transcript, outcome.action_items)
                result = outcome.action_items
            if outcome.success:
                await db.commit()
        except Exception as e:
            await db.rollback()
            record_error(type(e).__name__, "transcript_processing")
            logger.error("ai_agent_run_failed", transcript_id=transcript_id, agent=agent, error=str(e), exc_info=True)
            transcript = await db.get(Transcript, transcript_id)
            if transcript is not None:
                transcript.error_message = f"AI processing failed: {e}"
                await db.commit()
            return {"success": False, "error": f"AI processing failed: {e}"}

        if outcome.success:
            self._notify(transcript)
        return {"success": outcome.success, "result": result, "error": outcome.error}
