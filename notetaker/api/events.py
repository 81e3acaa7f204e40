"""
Server-Sent Events stream of session and transcript changes.
"""
import asyncio
import time
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import StreamingResponse

from notetaker.api.dependencies import get_broadcaster
from notetaker.services.notifier import CONNECTED, EventBroadcaster, format_sse

router = APIRouter(prefix="/api/sse", tags=["sse"])

_started_at = time.monotonic()

# How often the stream checks for a closed client while idle
DISCONNECT_POLL_SECONDS = 1.0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def session_event_stream(
    broadcaster: EventBroadcaster,
    request: Optional[Request] = None,
    poll_interval: float = DISCONNECT_POLL_SECONDS,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one client until it disconnects.

    Leaving the generator, whether by disconnect, error or cancellation,
    exits the subscription and stops its heartbeat.
    """
    async with broadcaster.subscribe() as subscription:
        yield format_sse({"type": CONNECTED, "message": "SSE connection established"})
        while True:
            if request is not None and await request.is_disconnected():
                break
            try:
                message = await subscription.get(timeout=poll_interval)
            except asyncio.TimeoutError:
                continue
            yield format_sse(message)


@router.get("/sessions")
async def session_updates(request: Request, broadcaster: EventBroadcaster = Depends(get_broadcaster)):
    return StreamingResponse(
        session_event_stream(broadcaster, request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/status")
async def sse_status(broadcaster: EventBroadcaster = Depends(get_broadcaster)):
    return {
        "success": True,
        "data": {
            "activeConnections": broadcaster.subscriber_count,
            "uptime": round(time.monotonic() - _started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.post("/test")
async def send_test_update(
    payload: Optional[Dict[str, Any]] = Body(None),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Emit a fake session update to every connected client."""
    data = {
        "notetakerId": f"test-{int(time.time() * 1000)}",
        "state": "attending",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **(payload or {}),
    }
    delivered = broadcaster.emit_session_update(data)
    return {"success": True, "message": "Test update sent", "data": data, "activeConnections": delivered}
