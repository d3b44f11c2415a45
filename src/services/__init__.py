"""Service layer for tgclaude.

Provides session persistence, per-conversation serialization, and the
Telegram, voice, and task intake adapters used by the orchestrator.
"""

from src.services.conversation_lanes import ConversationLane, ConversationLaneManager
from src.services.pending_continuations import (
    CONTINUATION_KEYWORD,
    PendingContinuations,
    contains_continuation_keyword,
)
from src.services.session_store import SessionRecord, SessionStore

__all__ = [
    "SessionStore",
    "SessionRecord",
    "ConversationLane",
    "ConversationLaneManager",
    "PendingContinuations",
    "CONTINUATION_KEYWORD",
    "contains_continuation_keyword",
]
