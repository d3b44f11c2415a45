"""Handoff between agent sessions.

A handoff asks the bound agent session for a summary of its progress,
replaces the conversation's session record with an unbound one (same
working context, zero usage), and shows the summary to the user. The next
exchange then starts a fresh agent session, seeded with the summary.
"""

import logging

from src.orchestrator.protocol import AgentChannel, OutboundChannel
from src.services.message_formatter import format_handoff
from src.services.session_store import SessionRecord, SessionStore

logger = logging.getLogger(__name__)


def build_seed_prompt(summary: str) -> str:
    """Prompt that opens a fresh session from a handoff summary."""
    return (
        f"Previous session handoff:\n\n{summary}\n\n"
        "Please acknowledge this context and let me know you're ready to continue."
    )


class HandoffCoordinator:
    """Summarizes a bound session and resets the conversation's record."""

    def __init__(
        self,
        agent: AgentChannel,
        store: SessionStore,
        outbound: OutboundChannel,
    ) -> None:
        self._agent = agent
        self._store = store
        self._outbound = outbound

    async def summarize_and_reset(
        self,
        conversation_id: str,
        agent_session_id: str,
        working_context: str,
        project_path: str | None = None,
    ) -> str:
        """Summarize the bound session, then reset the conversation's record.

        The summary is requested before anything is deleted, so a failed
        summary leaves the record untouched.

        Args:
            conversation_id: Conversation to reset.
            agent_session_id: Currently bound agent session.
            working_context: Working context carried into the new record.
            project_path: Project focus carried into the new record.

        Returns:
            The handoff summary.

        Raises:
            SummaryError: If the agent cannot produce a summary.
            PersistenceError: If the reset cannot be stored.
        """
        logger.info(
            "Starting handoff for conversation %s (session %s)",
            conversation_id,
            agent_session_id,
        )
        summary = await self._agent.summarize(agent_session_id, working_context)

        await self._store.delete(conversation_id)
        fresh = SessionRecord.new(conversation_id, working_context).with_changes(
            project_path=project_path
        )
        await self._store.save(fresh)

        await self._outbound.send_message(conversation_id, format_handoff(summary))
        logger.info("Handoff complete for conversation %s", conversation_id)
        return summary
