"""
Notetaker Hub - Application Entry Point

Initializes the FastAPI app, configures middleware and error handling,
and includes all routers. Run with: python main.py
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text

from notetaker import __version__
from notetaker.api import router
from notetaker.config import settings
from notetaker.db import close_db, create_tables, get_db_session
from notetaker.exceptions import APIError
from notetaker.logging_config import get_logger, setup_logging
from notetaker.monitoring import get_metrics, record_error
from notetaker.schemas import HealthCheck
from notetaker.services.notifier import EventBroadcaster
from notetaker.services.webhook_manager import WebhookManager

setup_logging(settings.debug)
logger = get_logger(__name__)


# ============================================
# LIFESPAN CONTEXT MANAGER
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    # Startup
    await create_tables()
    app.state.broadcaster = EventBroadcaster(
        heartbeat_interval=settings.heartbeat_interval_seconds,
        max_queued=settings.sse_queue_size,
    )

    logger.info(
        "server_starting",
        version=__version__,
        environment="development" if settings.debug else "production",
        nylas_configured=settings.is_nylas_configured,
        openai_configured=settings.is_openai_configured,
        webhook_verification=bool(settings.nylas_webhook_secret) and not settings.skip_webhook_verification,
        cors_origins=settings.cors_origins_list,
    )

    manager = WebhookManager.from_settings(settings)
    if manager is not None:
        await manager.register_webhook()

    yield

    # Shutdown
    await close_db()
    logger.info("server_stopped")


# ============================================
# CREATE FASTAPI APP
# ============================================

app = FastAPI(
    title="Notetaker Hub",
    description="Meeting notetakers, transcripts, AI summaries and action items",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)


# ============================================
# MIDDLEWARE CONFIGURATION
# ============================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)


# ============================================
# ERROR HANDLING
# ============================================

PASSTHROUGH_STATUSES = {400, 401, 404, 429}


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    """Vendor failures reach callers as ``{success: false, error}``."""
    status_code = exc.status_code if exc.status_code in PASSTHROUGH_STATUSES else 502
    record_error(type(exc).__name__, exc.platform or "api")
    logger.error("vendor_api_error", path=request.url.path, status_code=exc.status_code, error=str(exc))
    return JSONResponse({"success": False, "error": str(exc)}, status_code=status_code)


# ============================================
# HEALTH AND METRICS
# ============================================

@app.get("/health", response_model=HealthCheck)
async def health_check(request: Request):
    """Health check endpoint for monitoring."""
    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.warning("health_check_database_unavailable", error=str(e))
        db_status = "disconnected"

    broadcaster = getattr(request.app.state, "broadcaster", None)
    return HealthCheck(
        status="healthy" if db_status == "connected" else "degraded",
        database=db_status,
        sse_subscribers=broadcaster.subscriber_count if broadcaster else 0,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


# ============================================
# INCLUDE ROUTERS
# ============================================

app.include_router(router)


# ============================================
# RUN APPLICATION
# ============================================

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info"
    )
