"""Root-level pytest fixtures for all tests.

Provides shared fixtures including:
- Session store on a file-based SQLite database
- Scripted fake agent channel (tests/helpers/fakes.py)
- Recording fakes for the chat surface, voice services, and task intake
"""

from collections.abc import AsyncIterator

import pytest

from src.db.connection import (
    async_init_db,
    close_async_db,
    create_async_db_engine,
    create_session_factory,
)
from src.services.session_store import SessionStore
from tests.helpers.fakes import (
    FakeAgentChannel,
    FakeOutbound,
    FakeTaskIntake,
    FakeVoice,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def session_store(tmp_path) -> AsyncIterator[SessionStore]:
    """SessionStore backed by a temporary SQLite file."""
    engine = create_async_db_engine(f"sqlite:///{tmp_path / 'sessions.db'}")
    await async_init_db(engine)
    try:
        yield SessionStore(create_session_factory(engine))
    finally:
        await close_async_db(engine)


# ============================================================================
# Collaborator Fakes
# ============================================================================


@pytest.fixture
def agent() -> FakeAgentChannel:
    return FakeAgentChannel()


@pytest.fixture
def outbound() -> FakeOutbound:
    return FakeOutbound()


@pytest.fixture
def voice() -> FakeVoice:
    return FakeVoice()


@pytest.fixture
def task_intake() -> FakeTaskIntake:
    return FakeTaskIntake()
