"""Tests for the in-process bridge runner."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.cli.config import TgClaudeConfig
from src.cli.runner import BridgeRunner, open_session_store
from src.errors import ConfigurationError
from src.orchestrator.conversation import ConversationOrchestrator
from src.services.notification_service import NotificationService
from src.services.session_store import SessionRecord
from src.services.telegram_poller import TelegramPoller


@pytest.fixture
def config(tmp_path) -> TgClaudeConfig:
    return TgClaudeConfig(
        telegram={"bot_token": "123:abc", "user_id": 1001},
        workspace={"path": str(tmp_path / "work")},
        database={"path": str(tmp_path / "sessions.db")},
        tasks={"inbox_dir": str(tmp_path / "inbox")},
        agent={"exchange_timeout_seconds": 900},
    )


async def _poll_forever():
    await asyncio.Event().wait()


@pytest.fixture
def no_signals(monkeypatch):
    monkeypatch.setattr(BridgeRunner, "_install_signal_handlers", lambda self: None)


def test_requires_bot_credentials():
    with pytest.raises(ConfigurationError):
        BridgeRunner(TgClaudeConfig())


@pytest.mark.asyncio
async def test_open_session_store_round_trip(config):
    async with open_session_store(config) as store:
        await store.save(SessionRecord.new("777", "/work"))

    async with open_session_store(config) as store:
        record = await store.get("777")

    assert record.working_context == "/work"


class TestBridgeRunner:
    """Tests for BridgeRunner wiring and shutdown."""

    @pytest.mark.asyncio
    async def test_builds_components(self, config):
        async with BridgeRunner(config) as runner:
            assert isinstance(runner.orchestrator, ConversationOrchestrator)
            assert isinstance(runner.poller, TelegramPoller)
            assert isinstance(runner.notifications, NotificationService)
            assert runner.store is not None
            assert await runner.store.get("missing") is None

    @pytest.mark.asyncio
    async def test_stop_request_shuts_down_cleanly(self, config, no_signals):
        async with BridgeRunner(config) as runner:
            runner.notifications = AsyncMock(spec=NotificationService)
            runner.poller = AsyncMock(spec=TelegramPoller)
            runner.poller.run.side_effect = _poll_forever

            asyncio.get_running_loop().call_later(0.02, runner.request_stop)
            await asyncio.wait_for(runner.run_until_stopped(), timeout=2)

        runner.notifications.notify_startup.assert_awaited_once()
        runner.notifications.notify_shutdown.assert_awaited_once()
        runner.notifications.notify_error.assert_not_awaited()
        runner.poller.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_polling_crash_is_reported(self, config, no_signals):
        async with BridgeRunner(config) as runner:
            runner.notifications = AsyncMock(spec=NotificationService)
            runner.poller = AsyncMock(spec=TelegramPoller)
            runner.poller.run.side_effect = RuntimeError("poll loop died")

            await asyncio.wait_for(runner.run_until_stopped(), timeout=2)

        runner.notifications.notify_error.assert_awaited_once_with("poll loop died")
        runner.notifications.notify_shutdown.assert_awaited_once()
