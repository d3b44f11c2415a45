"""Inbound Telegram transport.

Long-polls `getUpdates`, drops updates from anyone but the authorized
user, normalizes the rest into InboundMessage, and dispatches each as its
own task. The orchestrator's lanes serialize turns per conversation, so
conversations proceed concurrently while each chat sees its messages
handled in arrival order.

A turn that fails with a transient error before its agent exchange opens
is retried with backoff. A turn that still fails, or fails after the
exchange opened, is logged and reported to the chat as an error notice.
"""

import asyncio
import logging
from typing import Any

from src.errors import BridgeError
from src.orchestrator.conversation import ConversationOrchestrator
from src.orchestrator.models import InboundMessage, PhotoVariant, VoiceNote
from src.services.message_formatter import format_error
from src.services.telegram_client import TelegramClient
from src.utils.retry import (
    DEFAULT_MAX_ATTEMPTS,
    backoff_delay,
    is_retryable_error,
    retry_async,
)

logger = logging.getLogger(__name__)


def is_retryable_turn_error(error: BaseException) -> bool:
    """Transient failures are retried unless an agent exchange already ran."""
    if getattr(error, "exchange_started", False):
        return False
    return is_retryable_error(error)


def parse_update(update: dict[str, Any]) -> InboundMessage | None:
    """Convert a raw update into an InboundMessage.

    Returns None for updates that carry no usable message (edits,
    service messages, messages without a sender).
    """
    message = update.get("message")
    if not message:
        return None
    sender = message.get("from") or {}
    chat = message.get("chat") or {}
    if "id" not in sender or "id" not in chat:
        return None

    photo = tuple(
        PhotoVariant(
            file_id=p["file_id"],
            width=int(p.get("width", 0)),
            height=int(p.get("height", 0)),
            file_size=p.get("file_size"),
        )
        for p in message.get("photo") or []
    )
    voice_raw = message.get("voice")
    voice = (
        VoiceNote(
            file_id=voice_raw["file_id"],
            duration=int(voice_raw.get("duration", 0)),
            mime_type=voice_raw.get("mime_type"),
        )
        if voice_raw
        else None
    )

    if message.get("text") is None and not photo and voice is None:
        return None

    return InboundMessage(
        conversation_id=str(chat["id"]),
        user_id=int(sender["id"]),
        message_id=message.get("message_id"),
        text=message.get("text"),
        caption=message.get("caption"),
        photo=photo,
        voice=voice,
    )


class TelegramPoller:
    """Long-polling loop feeding the orchestrator.

    Args:
        client: Telegram API client.
        orchestrator: Conversation orchestrator receiving messages.
        authorized_user_id: The only user whose messages are handled.
        poll_timeout: Server-side long-poll timeout in seconds.
        max_attempts: Attempts per turn for transient failures.
    """

    def __init__(
        self,
        client: TelegramClient,
        orchestrator: ConversationOrchestrator,
        authorized_user_id: int,
        poll_timeout: int = 30,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._client = client
        self._orchestrator = orchestrator
        self._authorized_user_id = authorized_user_id
        self._poll_timeout = poll_timeout
        self._max_attempts = max_attempts
        self._offset: int | None = None
        self._stopping = asyncio.Event()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        """Number of turns currently being handled."""
        return len(self._tasks)

    def is_authorized(self, message: InboundMessage) -> bool:
        return message.user_id == self._authorized_user_id

    async def run(self) -> None:
        """Poll until stop() is called."""
        logger.info("Polling for updates (user %s)", self._authorized_user_id)
        failures = 0
        while not self._stopping.is_set():
            try:
                updates = await self._client.get_updates(
                    offset=self._offset, timeout=self._poll_timeout
                )
            except BridgeError as e:
                delay = min(backoff_delay(failures, base_delay=1.0), 60.0)
                failures += 1
                logger.warning("getUpdates failed, retrying in %.1fs: %s", delay, e)
                await self._sleep(delay)
                continue
            failures = 0
            for update in updates:
                self.handle_update(update)

    def handle_update(self, update: dict[str, Any]) -> asyncio.Task[None] | None:
        """Advance the offset and dispatch the update's message, if any."""
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            self._offset = max(self._offset or 0, update_id + 1)

        message = parse_update(update)
        if message is None:
            return None
        if not self.is_authorized(message):
            logger.info("Ignoring message from unauthorized user %s", message.user_id)
            return None

        task = asyncio.create_task(self.process(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def process(self, message: InboundMessage) -> None:
        """Run one turn with retries, reporting a final failure to the chat."""
        try:
            await retry_async(
                lambda: self._orchestrator.dispatch(message),
                max_attempts=self._max_attempts,
                is_retryable=is_retryable_turn_error,
                description=f"Turn for {message.conversation_id}",
            )
        except Exception as e:
            logger.error("Turn for %s failed", message.conversation_id, exc_info=True)
            reason = e.message if isinstance(e, BridgeError) else str(e) or type(e).__name__
            try:
                await self._client.send_message(message.conversation_id, format_error(reason))
            except BridgeError as send_error:
                logger.warning("Could not deliver error notice: %s", send_error)

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except TimeoutError:
            pass

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop polling and wait for in-flight turns.

        Args:
            timeout: Seconds to wait for in-flight turns before cancelling them.
        """
        self._stopping.set()
        if not self._tasks:
            return
        pending = set(self._tasks)
        logger.info("Waiting for %d in-flight turn(s)", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %d turn(s) after %ss", len(still_running), timeout)
