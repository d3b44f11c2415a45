"""Incremental rendering of an agent exchange into chat messages.

Text fragments accumulate in a buffer. The buffer is flushed once it grows
past FLUSH_THRESHOLD characters or a fragment contains a paragraph break.
The first flush of a message sends it; later flushes edit that same
message in place. A tool call flushes, then starts a new message for the
text that follows it.

Edit and typing failures are best-effort: logged and discarded here so the
rest of the exchange still renders.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from src.errors import TransportError
from src.orchestrator.agent.events import (
    AgentEvent,
    ErrorEvent,
    ResultEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
    enforce_terminal_contract,
)
from src.orchestrator.models import RenderOutcome
from src.orchestrator.protocol import OutboundChannel
from src.services.message_formatter import format_error, format_tool_call

logger = logging.getLogger(__name__)

FLUSH_THRESHOLD = 100
PARAGRAPH_BREAK = "\n\n"


class _RenderState:
    """Per-exchange mutable buffer and message pointer."""

    def __init__(self) -> None:
        self.buffer = ""
        self.message_id: int | None = None
        self.full_text: list[str] = []
        self.session_id: str | None = None


class StreamRenderer:
    """Renders one exchange's event sequence to a conversation.

    Usage:
        renderer = StreamRenderer(telegram)
        outcome = await renderer.render(chat_id, agent.open(prompt, cwd))
    """

    def __init__(
        self,
        outbound: OutboundChannel,
        exchange_timeout: float | None = None,
    ) -> None:
        """Initialize the renderer.

        Args:
            outbound: Chat surface to send and edit messages on.
            exchange_timeout: Seconds an exchange may take to reach its
                terminal event. None disables the limit.
        """
        self._outbound = outbound
        self._exchange_timeout = exchange_timeout

    async def render(
        self,
        conversation_id: str,
        events: AsyncIterator[AgentEvent],
        reply_to_message_id: int | None = None,
    ) -> RenderOutcome:
        """Consume an exchange and render it.

        Args:
            conversation_id: Target conversation.
            events: The exchange's event sequence.
            reply_to_message_id: Inbound message that text replies attach to.

        Returns:
            RenderOutcome with usage and session id on success, or
            failed=True after an error or timeout.

        Raises:
            TransportError: If a send (not an edit) fails.
            TerminalContractError: If the sequence breaks its terminal contract.
        """
        state = _RenderState()
        outcome = RenderOutcome()
        checked = enforce_terminal_contract(events)
        deadline = asyncio.timeout(self._exchange_timeout)

        try:
            async with deadline:
                async for event in checked:
                    await self._handle_event(
                        conversation_id, event, state, outcome, reply_to_message_id
                    )
        except TimeoutError:
            if not deadline.expired():
                raise
            logger.warning(
                "Exchange for %s timed out after %ss", conversation_id, self._exchange_timeout
            )
            outcome = RenderOutcome(
                full_text="".join(state.full_text),
                failed=True,
                error=f"Agent did not finish within {self._exchange_timeout:g} seconds",
            )
            await self._outbound.send_message(conversation_id, format_error(outcome.error))
        finally:
            await checked.aclose()
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        outcome.full_text = "".join(state.full_text)
        return outcome

    async def _handle_event(
        self,
        conversation_id: str,
        event: AgentEvent,
        state: _RenderState,
        outcome: RenderOutcome,
        reply_to_message_id: int | None,
    ) -> None:
        if isinstance(event, TextEvent):
            if event.session_id:
                state.session_id = event.session_id
            if not event.content:
                return
            state.buffer += event.content
            state.full_text.append(event.content)
            if len(state.buffer) > FLUSH_THRESHOLD or PARAGRAPH_BREAK in event.content:
                await self._flush(conversation_id, state, reply_to_message_id)

        elif isinstance(event, ToolCallEvent):
            if event.session_id:
                state.session_id = event.session_id
            await self._flush(conversation_id, state, reply_to_message_id)
            state.buffer = ""
            state.message_id = None
            await self._outbound.send_message(conversation_id, format_tool_call(event.tool_call))
            await self._typing(conversation_id)

        elif isinstance(event, ToolResultEvent):
            await self._typing(conversation_id)

        elif isinstance(event, ResultEvent):
            await self._flush(conversation_id, state, reply_to_message_id)
            outcome.usage = event.usage
            outcome.session_id = event.session_id or state.session_id
            outcome.cost_usd = event.cost_usd

        elif isinstance(event, ErrorEvent):
            logger.warning("Exchange for %s failed: %s", conversation_id, event.message)
            outcome.failed = True
            outcome.error = event.message
            await self._outbound.send_message(conversation_id, format_error(event.message))

    async def _flush(
        self,
        conversation_id: str,
        state: _RenderState,
        reply_to_message_id: int | None,
    ) -> None:
        """Send or edit the current message with the buffered text."""
        if not state.buffer.strip():
            return
        if state.message_id is None:
            state.message_id = await self._outbound.send_message(
                conversation_id, state.buffer, reply_to_message_id=reply_to_message_id
            )
            return
        try:
            await self._outbound.edit_message(conversation_id, state.message_id, state.buffer)
        except TransportError as e:
            logger.warning("Edit of message %s failed (best-effort): %s", state.message_id, e)

    async def _typing(self, conversation_id: str) -> None:
        try:
            await self._outbound.send_typing(conversation_id)
        except TransportError as e:
            logger.debug("Typing indicator failed: %s", e)
