"""Service lifecycle notifications.

Startup, shutdown, and service-error notices go to the most recently
active conversation, falling back to the authorized user's private chat.
Delivery is best-effort: failures are logged, never raised.
"""

import logging

from src.errors import BridgeError
from src.orchestrator.protocol import OutboundChannel
from src.services.message_formatter import NotificationKind, format_notification
from src.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends lifecycle notices to the operator."""

    def __init__(
        self,
        outbound: OutboundChannel,
        store: SessionStore,
        fallback_conversation_id: str | None,
        workspace_path: str | None = None,
    ) -> None:
        self._outbound = outbound
        self._store = store
        self._fallback = fallback_conversation_id
        self._workspace_path = workspace_path

    async def _target(self) -> str | None:
        try:
            last = await self._store.get_last_active_conversation_id()
        except BridgeError as e:
            logger.warning("Could not look up last active conversation: %s", e)
            last = None
        return last or self._fallback

    async def _send(self, kind: NotificationKind, message: str | None = None) -> bool:
        target = await self._target()
        if not target:
            logger.info("No notification target for %s notice", kind)
            return False
        try:
            await self._outbound.send_message(target, format_notification(kind, message))
        except BridgeError as e:
            logger.warning("Failed to send %s notification: %s", kind, e)
            return False
        return True

    async def notify_startup(self) -> bool:
        detail = f"Workspace: {self._workspace_path}" if self._workspace_path else None
        return await self._send("startup", detail)

    async def notify_shutdown(self) -> bool:
        return await self._send("shutdown")

    async def notify_error(self, error: str) -> bool:
        return await self._send("error", error)
