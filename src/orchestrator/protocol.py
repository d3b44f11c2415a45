"""Collaborator protocols consumed by the orchestration layer.

Defines the interfaces the orchestrator calls without knowing which
backend is active. Production implementations live in
src/orchestrator/agent/client.py and src/services/; tests substitute
scripted fakes.
"""

from collections.abc import AsyncIterator, Sequence
from typing import Protocol

from src.orchestrator.agent.events import AgentEvent
from src.orchestrator.models import ImageAttachment


class AgentChannel(Protocol):
    """Runs agent exchanges."""

    def open(
        self,
        prompt: str,
        working_context: str,
        resume_id: str | None = None,
        attachments: Sequence[ImageAttachment] | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """Start one exchange and return its lazy event sequence.

        The sequence is finite, non-restartable, and terminated by exactly
        one ResultEvent or ErrorEvent.
        """
        ...

    async def summarize(self, session_id: str, working_context: str) -> str:
        """Request a handoff summary for a bound session.

        Raises:
            SummaryError: If the summary cannot be produced.
        """
        ...


class OutboundChannel(Protocol):
    """Chat surface operations."""

    async def send_message(
        self,
        conversation_id: str,
        text: str,
        reply_to_message_id: int | None = None,
    ) -> int:
        """Send a message and return its id.

        Raises:
            TransportError: If the send fails.
        """
        ...

    async def edit_message(self, conversation_id: str, message_id: int, text: str) -> None:
        """Replace a sent message's text.

        Raises:
            TransportError: If the edit fails.
        """
        ...

    async def send_typing(self, conversation_id: str) -> None:
        """Show the typing indicator."""
        ...

    async def send_recording_voice(self, conversation_id: str) -> None:
        """Show the recording-voice indicator."""
        ...

    async def send_voice(
        self,
        conversation_id: str,
        audio: bytes,
        reply_to_message_id: int | None = None,
    ) -> int:
        """Send an OGG/Opus voice note and return its id."""
        ...

    async def get_file_bytes(self, file_id: str) -> bytes:
        """Download an attachment."""
        ...


class VoiceChannel(Protocol):
    """Speech services."""

    async def transcribe(self, audio: bytes) -> str:
        """Speech to text.

        Raises:
            TranscriptionError: On failure.
        """
        ...

    async def synthesize(self, text: str) -> bytes:
        """Text to OGG/Opus speech.

        Raises:
            SynthesisError: On failure.
        """
        ...


class TaskIntake(Protocol):
    """Receives out-of-band task briefs."""

    async def submit_task_brief(self, brief: str, conversation_id: str) -> str:
        """Accept a brief and return its identifier."""
        ...
