"""Database module for tgclaude session persistence."""

from src.db.connection import (
    async_init_db,
    close_async_db,
    create_async_db_engine,
    create_session_factory,
    get_database_url,
)
from src.db.models import Base, ConversationSession

__all__ = [
    # Models
    "Base",
    "ConversationSession",
    # Connection
    "get_database_url",
    "create_async_db_engine",
    "create_session_factory",
    "async_init_db",
    "close_async_db",
]
