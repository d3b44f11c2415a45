"""Conversations awaiting an explicit "continue" after a context warning.

Owned by the orchestrator and passed in by reference, so separate
orchestrator instances never share membership.
"""

import logging

logger = logging.getLogger(__name__)

CONTINUATION_KEYWORD = "continue"


def contains_continuation_keyword(text: str | None) -> bool:
    """Case-insensitive substring test for the continuation keyword.

    Note: a plain substring match, so "discontinue" or "continued" also
    match.
    """
    if not text:
        return False
    return CONTINUATION_KEYWORD in text.lower()


class PendingContinuations:
    """Set of conversation ids awaiting continuation confirmation."""

    def __init__(self) -> None:
        self._pending: set[str] = set()

    def add(self, conversation_id: str) -> None:
        """Mark a conversation as awaiting confirmation."""
        self._pending.add(conversation_id)
        logger.info("Conversation %s awaiting continuation confirmation", conversation_id)

    def discard(self, conversation_id: str) -> bool:
        """Remove a conversation. Returns True if it was pending."""
        if conversation_id in self._pending:
            self._pending.remove(conversation_id)
            return True
        return False

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def snapshot(self) -> frozenset[str]:
        """Return an immutable copy of current membership."""
        return frozenset(self._pending)
