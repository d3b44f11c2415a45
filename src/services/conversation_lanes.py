"""Per-conversation serialization lanes.

Each conversation gets one lane holding an asyncio.Lock. A turn acquires
its conversation's lock for its whole duration, so at most one turn (and
therefore at most one bound agent exchange) runs per conversation at a
time, while turns for different conversations proceed concurrently.

Example:
    lanes = ConversationLaneManager()
    async with lanes.hold("12345"):
        await handle_turn(message)
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class ConversationLane:
    """Serialization state for one conversation.

    Attributes:
        conversation_id: External chat identifier.
        created_at: When the lane was created.
        lock: Async lock serializing turns for this conversation.
        waiting: Number of turns queued behind the lock, including the active one.
        turns_completed: Count of turns that released the lock.
    """

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        self.created_at = datetime.now(timezone.utc)
        self.lock = asyncio.Lock()
        self.waiting = 0
        self.turns_completed = 0

    @property
    def is_busy(self) -> bool:
        """True while a turn holds the lock."""
        return self.lock.locked()


class ConversationLaneManager:
    """Manages per-conversation lanes.

    Safe for single-process usage (one asyncio loop). Idle lanes are
    dropped once no turn holds or awaits them.
    """

    def __init__(self) -> None:
        self._lanes: dict[str, ConversationLane] = {}

    def get_lane(self, conversation_id: str) -> ConversationLane | None:
        """Get a lane without auto-creating. Returns None if not found."""
        return self._lanes.get(conversation_id)

    def get_or_create_lane(self, conversation_id: str) -> ConversationLane:
        """Get an existing lane or create a new one."""
        lane = self._lanes.get(conversation_id)
        if lane is None:
            lane = ConversationLane(conversation_id)
            self._lanes[conversation_id] = lane
            logger.debug("Created conversation lane: %s", conversation_id)
        return lane

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[ConversationLane]:
        """Hold a conversation's lane for the duration of a turn.

        Args:
            conversation_id: Chat identifier.

        Yields:
            The held ConversationLane.
        """
        lane = self.get_or_create_lane(conversation_id)
        lane.waiting += 1
        try:
            async with lane.lock:
                try:
                    yield lane
                finally:
                    lane.turns_completed += 1
        finally:
            lane.waiting -= 1
            if lane.waiting == 0 and self._lanes.get(conversation_id) is lane:
                del self._lanes[conversation_id]

    def list_busy(self) -> list[str]:
        """List conversation ids with a turn in progress."""
        return [cid for cid, lane in self._lanes.items() if lane.is_busy]
