"""
Process-wide broadcast of session and transcript changes to SSE clients.
"""
import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional, Set

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from notetaker.logging_config import get_logger
from notetaker.monitoring import sse_subscribers

logger = get_logger(__name__)

CONNECTED = "connected"
SESSION_UPDATE = "session_update"
TRANSCRIPT_UPDATE = "transcript_update"
HEARTBEAT = "heartbeat"

# Session.info key holding messages waiting for their transaction to commit
PENDING_MESSAGES = "pending_sse_messages"


def format_sse(message: Dict[str, Any]) -> str:
    """Frame one message as a Server-Sent Events data line."""
    return f"data: {json.dumps(message, default=str)}\n\n"


@event.listens_for(Session, "after_commit")
def _emit_pending(session: Session) -> None:
    for broadcaster, kind, data in session.info.pop(PENDING_MESSAGES, []):
        broadcaster.emit(kind, data)


@event.listens_for(Session, "after_soft_rollback")
def _discard_pending(session: Session, previous_transaction) -> None:
    dropped = session.info.pop(PENDING_MESSAGES, None)
    if dropped:
        logger.info("sse_updates_discarded_on_rollback", count=len(dropped))


class Subscription:
    """One connected client: its own bounded queue plus a heartbeat task."""

    def __init__(self, heartbeat_interval: float, max_queued: int = 100):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queued)
        self.heartbeat_interval = heartbeat_interval
        self.heartbeat_task: Optional[asyncio.Task] = None
        self.heartbeats_sent = 0
        self.dropped = 0

    def put(self, message: Dict[str, Any]) -> bool:
        """Queue a message; a full queue (stalled client) drops it."""
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("sse_message_dropped", kind=message.get("type"), dropped=self.dropped)
            return False
        return True

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self.heartbeats_sent += 1
            self.put({
                "type": HEARTBEAT,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })

    def start(self) -> None:
        self.heartbeat_task = asyncio.create_task(self._heartbeat())

    async def stop(self) -> None:
        if self.heartbeat_task and not self.heartbeat_task.done():
            self.heartbeat_task.cancel()
            try:
                await self.heartbeat_task
            except asyncio.CancelledError:
                pass

    async def get(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Next message; raises asyncio.TimeoutError if none arrives in time."""
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)


class EventBroadcaster:
    """
    Fan-out channel created once per app and injected where needed.

    Subscribers only see messages emitted after they subscribed.
    """

    def __init__(self, heartbeat_interval: float = 30.0, max_queued: int = 100):
        self.heartbeat_interval = heartbeat_interval
        self.max_queued = max_queued
        self._subscriptions: Set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def emit(self, kind: str, data: Optional[Dict[str, Any]] = None) -> int:
        """
        Queue a message for every current subscriber.

        Returns:
            Number of subscribers the message was delivered to
        """
        message: Dict[str, Any] = {"type": kind}
        if data is not None:
            message["data"] = data
        delivered = sum(1 for subscription in list(self._subscriptions) if subscription.put(message))
        logger.debug("sse_event_emitted", kind=kind, subscribers=len(self._subscriptions), delivered=delivered)
        return delivered

    def emit_session_update(self, data: Dict[str, Any]) -> int:
        return self.emit(SESSION_UPDATE, data)

    def emit_transcript_update(self, data: Dict[str, Any]) -> int:
        return self.emit(TRANSCRIPT_UPDATE, data)

    def emit_after_commit(self, db: AsyncSession, kind: str, data: Dict[str, Any]) -> None:
        """
        Hold a message on the database session until its transaction commits.

        A rollback discards it, so clients never hear about unsaved changes.
        """
        db.info.setdefault(PENDING_MESSAGES, []).append((self, kind, data))

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[Subscription]:
        """
        Register a subscriber for the duration of the block.

        The queue is unregistered and the heartbeat cancelled on every exit
        path, including client disconnects and task cancellation.
        """
        subscription = Subscription(self.heartbeat_interval, self.max_queued)
        self._subscriptions.add(subscription)
        sse_subscribers.set(len(self._subscriptions))
        subscription.start()
        logger.info("sse_client_connected", subscribers=len(self._subscriptions))
        try:
            yield subscription
        finally:
            self._subscriptions.discard(subscription)
            sse_subscribers.set(len(self._subscriptions))
            await subscription.stop()
            logger.info("sse_client_disconnected", subscribers=len(self._subscriptions))
