"""
Database engine configuration.
"""
from sqlalchemy.ext.asyncio import create_async_engine

from notetaker.config import settings


def _engine_options(database_url: str) -> dict:
    # SQLite (tests, local dev) uses a single-connection pool without sizing knobs
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,   # Recycle connections after 1 hour
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)
