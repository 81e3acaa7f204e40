"""
Database package - engine and session management.
"""
from notetaker.db.engine import engine
from notetaker.db.session import (
    async_session_maker,
    get_db_session,
    get_session,
    create_tables,
    drop_tables,
    close_db
)

__all__ = [
    'engine',
    'async_session_maker',
    'get_db_session',
    'get_session',
    'create_tables',
    'drop_tables',
    'close_db'
]
