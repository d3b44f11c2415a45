"""Database connection management for tgclaude.

Provides asynchronous database access using SQLAlchemy with aiosqlite.
The engine is built from configuration at startup by the runner rather
than at import time, so tests can point the store at a temporary file.

Usage:
    from src.db.connection import (
        async_init_db,
        create_async_db_engine,
        create_session_factory,
        get_database_url,
    )

    engine = create_async_db_engine(get_database_url("~/data/sessions.db"))
    await async_init_db(engine)
    session_factory = create_session_factory(engine)
"""

import os
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.db.models import Base


def get_database_url(db_path: str | None = None) -> str:
    """Resolve the database URL.

    Precedence:
    1. DATABASE_URL (canonical)
    2. db_path argument (converted to a sqlite URL unless it already is one)
    3. sqlite:///<data dir>/sessions.db

    Args:
        db_path: Optional filesystem path or sqlite URL from configuration.

    Returns:
        Synchronous-style SQLAlchemy URL string.
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    if db_path:
        if db_path.startswith("sqlite:"):
            return db_path
        path = Path(db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path}"

    from src.utils.paths import get_default_db_path

    default_path = get_default_db_path()
    default_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{default_path}"


def get_async_database_url(url: str) -> str:
    """Convert sqlite:/// to sqlite+aiosqlite:/// for async support."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def create_async_db_engine(url: str, echo: bool | None = None) -> AsyncEngine:
    """Create the async engine, enabling WAL for SQLite.

    Args:
        url: Database URL (sync or async form).
        echo: SQL echo flag. Defaults to the SQL_ECHO env var.

    Returns:
        Configured AsyncEngine.
    """
    async_url = get_async_database_url(url)
    if echo is None:
        echo = os.environ.get("SQL_ECHO", "").lower() == "true"

    engine = create_async_engine(async_url, echo=echo)

    if async_url.startswith("sqlite"):

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            """Configure SQLite pragmas for concurrent readers and one writer."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the async session factory bound to an engine."""
    return async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def async_init_db(engine: AsyncEngine) -> None:
    """Create all database tables asynchronously.

    Safe to call multiple times - will not recreate existing tables.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_async_db(engine: AsyncEngine) -> None:
    """Close the async engine and dispose of its connection pool."""
    await engine.dispose()
