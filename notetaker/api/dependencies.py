"""
FastAPI dependencies shared by the routers.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from notetaker.config import settings
from notetaker.rate_limiters import rate_limiters
from notetaker.services.ai_agents import AIAgentsService
from notetaker.services.notifier import EventBroadcaster
from notetaker.services.nylas_service import NylasService
from notetaker.services.transcript_processing import TranscriptProcessingService
from notetaker.services.webhook_dispatcher import WebhookDispatcher


def get_broadcaster(request: Request) -> EventBroadcaster:
    """The app-wide broadcaster created in the lifespan handler."""
    return request.app.state.broadcaster


def get_optional_nylas_service() -> Optional[NylasService]:
    if not settings.is_nylas_configured:
        return None
    return NylasService(
        api_key=settings.nylas_api_key,
        api_uri=settings.nylas_api_uri,
        timeout=settings.http_timeout_seconds,
        limiter=rate_limiters.nylas_limiter,
    )


def get_nylas_service(
    nylas: Optional[NylasService] = Depends(get_optional_nylas_service),
) -> NylasService:
    """
    Raises:
        HTTPException: 503 if NYLAS_API_KEY is not set
    """
    if nylas is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Nylas not configured. Please set NYLAS_API_KEY in .env file",
        )
    return nylas


def get_ai_agents_service() -> AIAgentsService:
    """
    Raises:
        HTTPException: 503 if OPENAI_API_KEY is not set
    """
    if not settings.is_openai_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="OpenAI not configured. Please set OPENAI_API_KEY in .env file",
        )
    return AIAgentsService.from_settings(settings, limiter=rate_limiters.openai_limiter)


def get_transcript_processing_service(
    ai_agents: AIAgentsService = Depends(get_ai_agents_service),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> TranscriptProcessingService:
    return TranscriptProcessingService(ai_agents, broadcaster)


def get_webhook_dispatcher(
    nylas: Optional[NylasService] = Depends(get_optional_nylas_service),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> WebhookDispatcher:
    return WebhookDispatcher(nylas, broadcaster)
