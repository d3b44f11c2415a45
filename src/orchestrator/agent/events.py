"""Typed events produced by one agent exchange.

An exchange is a finite, non-restartable async sequence of these events,
terminated by exactly one ResultEvent or ErrorEvent. Nothing follows the
terminal event; `enforce_terminal_contract` checks that at runtime.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation made by the agent.

    Attributes:
        name: Tool name (e.g. "Bash", "Read").
        input: Tool input arguments.
        result: Tool output text, set only on ToolResultEvent.
    """

    name: str
    input: dict[str, Any] = field(default_factory=dict)
    result: str | None = None


@dataclass(frozen=True)
class Usage:
    """Token accounting reported on the terminal result."""

    input_tokens: int
    output_tokens: int
    context_window: int
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0

    @property
    def percent(self) -> float:
        """Context consumption as a percentage of the window."""
        if self.context_window <= 0:
            return 0.0
        return (self.input_tokens + self.output_tokens) / self.context_window * 100


@dataclass(frozen=True)
class TextEvent:
    """Incremental output fragment. May carry the bound session id."""

    content: str
    session_id: str | None = None


@dataclass(frozen=True)
class ToolCallEvent:
    """Agent is invoking a side-effecting tool."""

    tool_call: ToolCall
    session_id: str | None = None


@dataclass(frozen=True)
class ToolResultEvent:
    """A tool finished. Informational only."""

    tool_call: ToolCall
    session_id: str | None = None


@dataclass(frozen=True)
class ResultEvent:
    """Terminal success event."""

    usage: Usage | None = None
    session_id: str | None = None
    cost_usd: float | None = None


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal failure event."""

    message: str


AgentEvent = Union[TextEvent, ToolCallEvent, ToolResultEvent, ResultEvent, ErrorEvent]

TERMINAL_EVENTS = (ResultEvent, ErrorEvent)


def is_terminal(event: AgentEvent) -> bool:
    """True for ResultEvent and ErrorEvent."""
    return isinstance(event, TERMINAL_EVENTS)


class TerminalContractError(RuntimeError):
    """An exchange emitted events after its terminal event, or none at all."""


async def enforce_terminal_contract(
    events: AsyncIterator[AgentEvent],
) -> AsyncIterator[AgentEvent]:
    """Pass events through, failing if anything follows the terminal event.

    Also fails if the sequence ends without a terminal event.

    Raises:
        TerminalContractError: On a contract violation.
    """
    terminated = False
    async for event in events:
        if terminated:
            raise TerminalContractError(
                f"Event {type(event).__name__} emitted after terminal event"
            )
        terminated = is_terminal(event)
        yield event
    if not terminated:
        raise TerminalContractError("Exchange ended without a terminal event")
