"""
Declarative base shared by all models.
"""
from datetime import datetime, timezone
from sqlalchemy.orm import declarative_base

# Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current time used for column defaults."""
    return datetime.now(timezone.utc)
