"""
Pytest configuration and fixtures.
"""
import os

# Settings are read at import time; point them at an in-memory database
# and leave every vendor unconfigured before the package is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["NYLAS_API_KEY"] = ""
os.environ["NYLAS_WEBHOOK_SECRET"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["WEBHOOK_BASE_URL"] = ""
os.environ["SKIP_WEBHOOK_VERIFICATION"] = "false"

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from notetaker.models import Base, NotetakerSession, Transcript, TranscriptStatus
from notetaker.services.ai_agents import AIAgentsService
from notetaker.services.notifier import EventBroadcaster
from notetaker.services.nylas_service import NylasService


NYLAS_API_URI = "https://api.nylas.test"


# ============================================
# DATABASE FIXTURES
# ============================================

@pytest.fixture(scope="function")
async def test_engine():
    """Create a test database engine using in-memory SQLite."""
    # One shared connection so every session sees the same in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def test_db_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# ============================================
# SERVICE FIXTURES
# ============================================

@pytest.fixture
def broadcaster():
    """Broadcaster whose heartbeat never fires during a test."""
    return EventBroadcaster(heartbeat_interval=60)


@pytest.fixture
def make_nylas_service():
    """Factory for a NylasService backed by an httpx.MockTransport handler."""
    def _make(handler):
        return NylasService(
            api_key="test-nylas-key",
            api_uri=NYLAS_API_URI,
            timeout=5,
            transport=httpx.MockTransport(handler),
        )
    return _make


@pytest.fixture
def make_ai_agents():
    """Factory for an AIAgentsService with instant retries."""
    def _make(handler, **overrides):
        options = {
            "api_key": "test-openai-key",
            "timeout": 5,
            "max_retries": 3,
            "retry_delay": 0,
            "operation_timeout": 10,
            "transport": httpx.MockTransport(handler),
        }
        options.update(overrides)
        return AIAgentsService(**options)
    return _make


# ============================================
# DATA FIXTURES
# ============================================

@pytest.fixture
def make_session(test_db_session):
    """Insert a notetaker session (and optionally its transcript)."""
    async def _make(notetaker_id="nt-123", state="scheduled", with_transcript=False, **fields):
        session = NotetakerSession(
            notetaker_id=notetaker_id,
            meeting_link=fields.pop("meeting_link", "https://zoom.us/j/123456789"),
            meeting_provider=fields.pop("meeting_provider", "Zoom"),
            name=fields.pop("name", "Nylas Notetaker"),
            state=state,
            **fields,
        )
        test_db_session.add(session)
        await test_db_session.flush()

        if with_transcript:
            test_db_session.add(Transcript(
                notetaker_id=notetaker_id,
                session_id=session.id,
                status=TranscriptStatus.PROCESSING.value,
                action_items=[],
                participants=[],
                media_files=[],
            ))
        await test_db_session.commit()
        return session
    return _make


@pytest.fixture
def sample_transcript_text():
    return (
        "Alice: Thanks everyone for joining. We need the grant report by Friday.\n\n"
        "Bob: I will draft the grant report tomorrow and send it to Maria.\n\n"
        "Maria: I'll review it and schedule a follow-up call with the funder."
    )


# ============================================
# TEST CLIENT FIXTURES
# ============================================

@pytest.fixture(scope="function")
async def api_client(test_db_session, broadcaster):
    """Async client bound to the app with the test database session injected."""
    # Import app after the environment is prepared
    from main import app
    from notetaker.db import get_session

    async def _get_session():
        yield test_db_session

    app.dependency_overrides[get_session] = _get_session
    # Lifespan does not run under ASGITransport
    app.state.broadcaster = broadcaster

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
