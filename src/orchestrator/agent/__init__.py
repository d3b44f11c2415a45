"""Agent channel package.

Modules:
    events: typed AgentEvent union and the terminal-event contract
    client: ClaudeAgentChannel over the Claude Agent SDK
    system_prompt: persona ("soul") loading and prompt composition

Exports the event types only; import ClaudeAgentChannel from
src.orchestrator.agent.client.
"""

from src.orchestrator.agent.events import (
    AgentEvent,
    ErrorEvent,
    ResultEvent,
    TerminalContractError,
    TextEvent,
    ToolCall,
    ToolCallEvent,
    ToolResultEvent,
    Usage,
    enforce_terminal_contract,
    is_terminal,
)

__all__ = [
    "AgentEvent",
    "TextEvent",
    "ToolCallEvent",
    "ToolResultEvent",
    "ResultEvent",
    "ErrorEvent",
    "ToolCall",
    "Usage",
    "TerminalContractError",
    "enforce_terminal_contract",
    "is_terminal",
]
