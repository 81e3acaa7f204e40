#!/usr/bin/env python3
"""
Database initialization script.
Run this to create the required database tables.
"""
import asyncio
import sys

from notetaker.config import settings
from notetaker.db import create_tables, drop_tables, close_db
from notetaker.logging_config import get_logger, setup_logging
from notetaker.models import Base

logger = get_logger(__name__)


async def init_db():
    """Initialize database tables."""
    logger.info("creating_tables", tables=sorted(Base.metadata.tables))
    try:
        await create_tables()
        logger.info("tables_created")
    finally:
        await close_db()


async def reset_db():
    """Drop and recreate all tables. WARNING: This deletes all data!"""
    logger.warning("reset_requested", tables=sorted(Base.metadata.tables))

    response = input("This will DELETE ALL DATA. Continue? (yes/no): ")
    if response.lower() != "yes":
        logger.info("reset_cancelled")
        return

    try:
        await drop_tables()
        logger.info("tables_dropped")
        await create_tables()
        logger.info("tables_created")
    finally:
        await close_db()


if __name__ == "__main__":
    setup_logging(settings.debug)
    if len(sys.argv) > 1 and sys.argv[1] == "--reset":
        asyncio.run(reset_db())
    else:
        asyncio.run(init_db())
