"""Agent channel backed by the Claude Agent SDK.

Each call to `ClaudeAgentChannel.open` runs one exchange on a fresh
ClaudeSDKClient, resuming the given agent session when a resume id is
supplied. SDK messages are translated into the typed events of
src/orchestrator/agent/events.py:

- SystemMessage(init) -> TextEvent("") carrying the bound session id
- AssistantMessage TextBlock -> TextEvent
- AssistantMessage ToolUseBlock -> ToolCallEvent
- UserMessage ToolResultBlock -> ToolResultEvent
- ResultMessage -> ResultEvent (or ErrorEvent when is_error)

Any exception raised by the SDK before the terminal event ends the sequence
with an ErrorEvent; a disconnect failure after it is only logged. Callers
always observe exactly one terminal event.
"""

import base64
import logging
import os
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ClaudeSDKClient,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)

from src.errors import SummaryError
from src.orchestrator.agent.events import (
    AgentEvent,
    ErrorEvent,
    ResultEvent,
    TextEvent,
    ToolCall,
    ToolCallEvent,
    ToolResultEvent,
    Usage,
)
from src.orchestrator.agent.system_prompt import SoulLoader, compose_prompt
from src.orchestrator.models import ImageAttachment

# Default model resolution:
# 1) AGENT_MODEL
# 2) ANTHROPIC_MODEL
# 3) None, letting the SDK pick its default
DEFAULT_MODEL = os.environ.get("AGENT_MODEL") or os.environ.get("ANTHROPIC_MODEL")

DEFAULT_CONTEXT_WINDOW = 200_000

HANDOFF_SUMMARY_PROMPT = (
    "Please provide a comprehensive handoff summary of our current session. "
    "Include:\n"
    "1. What we were working on\n"
    "2. Key decisions made\n"
    "3. Current state of the work\n"
    "4. Immediate next steps\n"
    "5. Any important context the next session should know\n\n"
    "Format this as a clear, structured summary that can be used to continue "
    "this work in a new session."
)

EMPTY_SUMMARY = "No summary generated."

logger = logging.getLogger(__name__)


def _usage_from_result(message: ResultMessage, context_window: int) -> Usage | None:
    """Build Usage from a ResultMessage's raw usage dict."""
    raw = message.usage
    if not raw:
        return None
    return Usage(
        input_tokens=int(raw.get("input_tokens") or 0),
        output_tokens=int(raw.get("output_tokens") or 0),
        context_window=context_window,
        cache_read_tokens=int(raw.get("cache_read_input_tokens") or 0),
        cache_write_tokens=int(raw.get("cache_creation_input_tokens") or 0),
    )


def _tool_result_text(block: ToolResultBlock) -> str:
    """Flatten a tool result's content into plain text."""
    content = block.content
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text":
            parts.append(str(item.get("text", "")))
    return "\n".join(parts)


async def _image_message_stream(
    prompt: str,
    attachments: Sequence[ImageAttachment],
) -> AsyncIterator[dict[str, Any]]:
    """Yield a single streamed user message with image content blocks."""
    content: list[dict[str, Any]] = [
        {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": attachment.media_type,
                "data": base64.b64encode(attachment.data).decode("ascii"),
            },
        }
        for attachment in attachments
    ]
    content.append({"type": "text", "text": prompt})
    yield {
        "type": "user",
        "message": {"role": "user", "content": content},
        "parent_tool_use_id": None,
    }


class ClaudeAgentChannel:
    """Runs agent exchanges through the Claude Agent SDK.

    Usage:
        channel = ClaudeAgentChannel(max_turns=50)
        async for event in channel.open("Hello", "/home/me/Workspace"):
            ...
    """

    def __init__(
        self,
        model: str | None = None,
        max_turns: int = 50,
        permission_mode: str = "bypassPermissions",
        context_window: int = DEFAULT_CONTEXT_WINDOW,
        soul: SoulLoader | None = None,
    ) -> None:
        """Initialize the channel.

        Args:
            model: Claude model ID. Defaults to AGENT_MODEL (or ANTHROPIC_MODEL)
                env var, else the SDK default.
            max_turns: Maximum agent turns per exchange.
            permission_mode: SDK permission mode for tool use.
            context_window: Token budget used to compute usage percentages.
            soul: Persona loader; its text is prepended to fresh exchanges.
        """
        self._model = model or DEFAULT_MODEL
        self._max_turns = max_turns
        self._permission_mode = permission_mode
        self._context_window = context_window
        self._soul = soul

    @property
    def context_window(self) -> int:
        """Token budget used for usage percentages."""
        return self._context_window

    def _create_options(
        self,
        working_context: str,
        resume_id: str | None,
        max_turns: int | None = None,
    ) -> ClaudeAgentOptions:
        """Create ClaudeAgentOptions for one exchange."""
        return ClaudeAgentOptions(
            model=self._model,
            cwd=working_context,
            resume=resume_id or None,
            permission_mode=self._permission_mode,  # type: ignore[arg-type]
            max_turns=max_turns if max_turns is not None else self._max_turns,
        )

    async def open(
        self,
        prompt: str,
        working_context: str,
        resume_id: str | None = None,
        attachments: Sequence[ImageAttachment] | None = None,
    ) -> AsyncGenerator[AgentEvent, None]:
        """Run one exchange and yield its events.

        Args:
            prompt: User prompt.
            working_context: Workspace directory the agent operates in.
            resume_id: Bound agent session to resume, if any.
            attachments: Images sent alongside the prompt.

        Yields:
            AgentEvent instances, ending with one ResultEvent or ErrorEvent.
        """
        if not resume_id and self._soul is not None:
            prompt = compose_prompt(self._soul.load(), prompt)

        options = self._create_options(working_context, resume_id)
        async for event in self._run(prompt, options, attachments):
            yield event

    async def _run(
        self,
        prompt: str,
        options: ClaudeAgentOptions,
        attachments: Sequence[ImageAttachment] | None = None,
    ) -> AsyncGenerator[AgentEvent, None]:
        """Drive a ClaudeSDKClient and translate its messages."""
        session_id: str | None = options.resume
        pending_tools: dict[str, ToolCall] = {}
        terminated = False

        try:
            async with ClaudeSDKClient(options) as client:
                if attachments:
                    await client.query(_image_message_stream(prompt, attachments))
                else:
                    await client.query(prompt)

                async for message in client.receive_response():
                    if isinstance(message, SystemMessage):
                        if message.subtype == "init":
                            session_id = message.data.get("session_id") or session_id
                            logger.debug("Agent session bound: %s", session_id)
                            yield TextEvent(content="", session_id=session_id)

                    elif isinstance(message, AssistantMessage):
                        for block in message.content:
                            if isinstance(block, TextBlock):
                                yield TextEvent(content=block.text, session_id=session_id)
                            elif isinstance(block, ToolUseBlock):
                                tool_call = ToolCall(name=block.name, input=dict(block.input))
                                pending_tools[block.id] = tool_call
                                yield ToolCallEvent(tool_call=tool_call, session_id=session_id)

                    elif isinstance(message, UserMessage):
                        if isinstance(message.content, str):
                            continue
                        for block in message.content:
                            if isinstance(block, ToolResultBlock):
                                called = pending_tools.pop(
                                    block.tool_use_id, ToolCall(name="unknown")
                                )
                                yield ToolResultEvent(
                                    tool_call=ToolCall(
                                        name=called.name,
                                        input=called.input,
                                        result=_tool_result_text(block),
                                    ),
                                    session_id=session_id,
                                )

                    elif isinstance(message, ResultMessage):
                        terminated = True
                        if message.is_error:
                            yield ErrorEvent(message=str(message.result or "Agent exchange failed"))
                        else:
                            yield ResultEvent(
                                usage=_usage_from_result(message, self._context_window),
                                session_id=message.session_id or session_id,
                                cost_usd=message.total_cost_usd,
                            )
                        return

            yield ErrorEvent(message="Agent exchange ended without a result")

        except Exception as e:
            if terminated:
                logger.warning("Agent client teardown failed after result: %s", e)
                return
            logger.error("Agent exchange error", exc_info=True)
            yield ErrorEvent(message=str(e) or type(e).__name__)

    async def summarize(self, session_id: str, working_context: str) -> str:
        """Ask the bound session for a handoff summary.

        Args:
            session_id: Agent session to summarize.
            working_context: Workspace directory of the session.

        Returns:
            Summary text, or a placeholder when the agent produced none.

        Raises:
            SummaryError: If the summary exchange fails.
        """
        options = self._create_options(working_context, session_id, max_turns=1)
        parts: list[str] = []
        async with aclosing(self._run(HANDOFF_SUMMARY_PROMPT, options)) as events:
            async for event in events:
                if isinstance(event, TextEvent):
                    parts.append(event.content)
                elif isinstance(event, ErrorEvent):
                    raise SummaryError(session_id, event.message)

        summary = "".join(parts).strip()
        logger.info("Handoff summary generated for session %s (%d chars)", session_id, len(summary))
        return summary or EMPTY_SUMMARY


__all__ = [
    "ClaudeAgentChannel",
    "DEFAULT_CONTEXT_WINDOW",
    "EMPTY_SUMMARY",
    "HANDOFF_SUMMARY_PROMPT",
]
