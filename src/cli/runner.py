"""In-process bridge runner.

Builds every component from configuration and runs the Telegram bridge
until SIGINT/SIGTERM. Also provides `open_session_store` for the CLI's
session admin commands, which need the database but not the bot.
"""

import asyncio
import logging
import signal
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from src.cli.config import TgClaudeConfig
from src.db.connection import (
    async_init_db,
    close_async_db,
    create_async_db_engine,
    create_session_factory,
    get_database_url,
)
from src.orchestrator.agent.client import ClaudeAgentChannel
from src.orchestrator.agent.system_prompt import SoulLoader
from src.orchestrator.conversation import ConversationOrchestrator
from src.orchestrator.stream_renderer import StreamRenderer
from src.services.notification_service import NotificationService
from src.services.session_store import SessionStore
from src.services.task_intake import FileTaskInbox
from src.services.telegram_client import TelegramClient
from src.services.telegram_poller import TelegramPoller
from src.services.voice_service import VoiceService

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5.0


def _database_url(config: TgClaudeConfig) -> str:
    return config.database.url or get_database_url(config.database_path)


@asynccontextmanager
async def open_session_store(config: TgClaudeConfig) -> AsyncIterator[SessionStore]:
    """Yield a SessionStore over the configured database, closing it after."""
    engine = create_async_db_engine(_database_url(config))
    try:
        await async_init_db(engine)
        yield SessionStore(create_session_factory(engine))
    finally:
        await close_async_db(engine)


class BridgeRunner:
    """Owns the bridge's components for one process lifetime.

    Usage:
        async with BridgeRunner(config) as runner:
            await runner.run_until_stopped()
    """

    def __init__(self, config: TgClaudeConfig) -> None:
        """Initialize with a loaded config.

        Args:
            config: Loaded configuration. Bot credentials must be present.
        """
        config.require_bot_credentials()
        self._config = config
        self._stop = asyncio.Event()
        self._engine = None
        self.store: SessionStore | None = None
        self.telegram: TelegramClient | None = None
        self.voice: VoiceService | None = None
        self.orchestrator: ConversationOrchestrator | None = None
        self.poller: TelegramPoller | None = None
        self.notifications: NotificationService | None = None

    async def __aenter__(self) -> "BridgeRunner":
        """Initialize the database and build all components."""
        cfg = self._config
        self._engine = create_async_db_engine(_database_url(cfg))
        await async_init_db(self._engine)
        self.store = SessionStore(create_session_factory(self._engine))

        self.telegram = TelegramClient(
            cfg.telegram.bot_token,
            api_base=cfg.telegram.api_base,
            request_timeout=cfg.telegram.request_timeout_seconds,
        )
        self.voice = VoiceService(
            whisper_url=cfg.voice.whisper_url,
            chatterbox_url=cfg.voice.chatterbox_url,
            voice_name=cfg.voice.voice_name,
            ffmpeg_binary=cfg.voice.ffmpeg_binary,
        )
        agent = ClaudeAgentChannel(
            model=cfg.agent.model,
            max_turns=cfg.agent.max_turns,
            permission_mode=cfg.agent.permission_mode,
            context_window=cfg.agent.context_window,
            soul=SoulLoader(cfg.agent.soul_path),
        )
        self.orchestrator = ConversationOrchestrator(
            store=self.store,
            agent=agent,
            outbound=self.telegram,
            voice=self.voice,
            task_intake=FileTaskInbox(cfg.task_inbox_dir),
            working_context=cfg.workspace.path,
            renderer=StreamRenderer(
                self.telegram, exchange_timeout=cfg.agent.exchange_timeout_seconds
            ),
        )
        user_id = cfg.telegram.user_id
        assert user_id is not None
        self.poller = TelegramPoller(
            self.telegram,
            self.orchestrator,
            authorized_user_id=user_id,
            poll_timeout=cfg.telegram.poll_timeout_seconds,
        )
        self.notifications = NotificationService(
            self.telegram,
            self.store,
            fallback_conversation_id=str(user_id),
            workspace_path=cfg.workspace.path,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close HTTP clients and the database."""
        if self.voice is not None:
            await self.voice.aclose()
        if self.telegram is not None:
            await self.telegram.aclose()
        if self._engine is not None:
            await close_async_db(self._engine)

    def request_stop(self) -> None:
        """Ask run_until_stopped() to shut down."""
        logger.info("Shutdown requested")
        self._stop.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handler for %s unavailable", sig)

    async def run_until_stopped(self) -> None:
        """Poll for messages until a stop is requested, then shut down."""
        assert self.poller is not None and self.notifications is not None
        self._install_signal_handlers()

        await self.notifications.notify_startup()
        logger.info("Bridge started (workspace %s)", self._config.workspace.path)

        poll_task = asyncio.create_task(self.poller.run())
        stop_task = asyncio.create_task(self._stop.wait())
        done, _ = await asyncio.wait(
            {poll_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if poll_task in done and poll_task.exception() is not None:
            logger.error("Polling stopped unexpectedly", exc_info=poll_task.exception())
            await self.notifications.notify_error(str(poll_task.exception()))

        try:
            await asyncio.wait_for(self.notifications.notify_shutdown(), timeout=SHUTDOWN_TIMEOUT)
        except TimeoutError:
            logger.warning("Shutdown notification timed out after %ss", SHUTDOWN_TIMEOUT)

        await self.poller.stop(timeout=SHUTDOWN_TIMEOUT)
        for task in (poll_task, stop_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(poll_task, stop_task, return_exceptions=True)
        logger.info("Bridge stopped")
