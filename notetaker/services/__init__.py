"""
Service layer: vendor client, webhook processing, AI agents, tasks and
real-time notifications.
"""
from notetaker.services.ai_agents import AIAgentsService, parse_action_items_response
from notetaker.services.action_items import ParsedActionItem, parse_action_item
from notetaker.services.media_ingestion import MediaIngestionService
from notetaker.services.notifier import EventBroadcaster, Subscription, format_sse
from notetaker.services.nylas_service import NylasService
from notetaker.services.transcript_processing import TranscriptProcessingService
from notetaker.services.webhook_dispatcher import WebhookDispatcher
from notetaker.services.webhook_manager import WebhookManager
from notetaker.services.webhook_verifier import verify_signature

__all__ = [
    "AIAgentsService",
    "parse_action_items_response",
    "ParsedActionItem",
    "parse_action_item",
    "MediaIngestionService",
    "EventBroadcaster",
    "Subscription",
    "format_sse",
    "NylasService",
    "TranscriptProcessingService",
    "WebhookDispatcher",
    "WebhookManager",
    "verify_signature",
]
