"""
AI-powered transcript processing endpoints.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.api.dependencies import (
    get_ai_agents_service,
    get_transcript_processing_service,
)
from notetaker.db import get_session
from notetaker.logging_config import get_logger
from notetaker.models import Transcript
from notetaker.schemas import AITestRequest, ManualProcessingRequest, ManualProcessingResponse
from notetaker.services.ai_agents import AIAgentsService
from notetaker.services.transcript_processing import TranscriptProcessingService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _failure(transcript_id, error: str, status_code: int) -> JSONResponse:
    body = ManualProcessingResponse(success=False, transcript_id=transcript_id, error=error)
    return JSONResponse(body.model_dump(by_alias=True, exclude_none=True), status_code=status_code)


@router.post("/process-transcript")
async def process_transcript(
    request: ManualProcessingRequest,
    db: AsyncSession = Depends(get_session),
    processing: TranscriptProcessingService = Depends(get_transcript_processing_service),
):
    """Run the requested agents now and store whatever succeeds."""
    transcript = await db.get(Transcript, request.transcript_id)
    if transcript is None:
        return _failure(request.transcript_id, "Transcript not found", status.HTTP_404_NOT_FOUND)
    if not transcript.transcript_text or not transcript.transcript_text.strip():
        return _failure(request.transcript_id, "Transcript has no text content to process",
                        status.HTTP_400_BAD_REQUEST)

    response = ManualProcessingResponse(success=True, transcript_id=transcript.id)
    errors = []

    if request.process_summary:
        outcome = await processing.process_with_specific_agent(db, transcript.id, "summary")
        if outcome["success"]:
            response.summary = outcome["result"]
        else:
            errors.append(outcome["error"])

    if request.process_action_items:
        outcome = await processing.process_with_specific_agent(db, transcript.id, "actionItems")
        if outcome["success"]:
            response.action_items = outcome["result"]
        else:
            errors.append(outcome["error"])

    if errors:
        response.error = "; ".join(e for e in errors if e)
        response.success = response.summary is not None or response.action_items is not None
    return response.model_dump(by_alias=True, exclude_none=True)


@router.post("/reprocess-transcript")
async def reprocess_transcript(
    request: ManualProcessingRequest,
    db: AsyncSession = Depends(get_session),
    processing: TranscriptProcessingService = Depends(get_transcript_processing_service),
):
    """Clear stored AI output and generate it again."""
    result = await processing.reprocess_transcript(db, request.transcript_id)
    if result is None:
        return _failure(request.transcript_id, "Failed to reprocess transcript", status.HTTP_400_BAD_REQUEST)

    return {
        "success": result.summary.success or result.action_items.success,
        "transcriptId": request.transcript_id,
        "summary": result.summary.model_dump(by_alias=True),
        "actionItems": result.action_items.model_dump(by_alias=True),
        "processedAt": result.processed_at.isoformat(),
    }


@router.get("/status/{transcript_id}")
async def processing_status(transcript_id: int, db: AsyncSession = Depends(get_session)):
    transcript = await db.get(Transcript, transcript_id)
    if transcript is None:
        return JSONResponse({"success": False, "error": "Transcript not found"},
                            status_code=status.HTTP_404_NOT_FOUND)
    return {
        "success": True,
        "transcriptId": transcript.id,
        "hasTranscriptText": bool(transcript.transcript_text),
        "hasSummary": bool(transcript.summary_text),
        "hasActionItems": bool(transcript.action_items),
        "status": transcript.status,
        "errorMessage": transcript.error_message,
        "createdAt": transcript.created_at.isoformat() if transcript.created_at else None,
        "updatedAt": transcript.updated_at.isoformat() if transcript.updated_at else None,
    }


@router.post("/test")
async def test_agents(
    request: AITestRequest,
    ai_agents: AIAgentsService = Depends(get_ai_agents_service),
):
    """Run both agents on sample text without touching storage."""
    if not request.text.strip():
        return JSONResponse({"success": False, "error": "Text content is required for testing"},
                            status_code=status.HTTP_400_BAD_REQUEST)

    result = await ai_agents.process_transcript(request.text, transcript_id="test")
    preview = request.text[:200] + ("..." if len(request.text) > 200 else "")
    return {
        "success": True,
        "results": {
            "summary": result.summary.model_dump(by_alias=True),
            "actionItems": result.action_items.model_dump(by_alias=True),
        },
        "testText": preview,
    }
