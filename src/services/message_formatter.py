"""User-visible message formatting.

Translates agent tool calls, usage, and lifecycle events into the short
chat messages the bot sends. All functions are pure.
"""

import json
from typing import Any, Literal

from src.orchestrator.agent.events import ToolCall, Usage

TELEGRAM_MESSAGE_LIMIT = 4096

TOOL_EMOJIS: dict[str, str] = {
    "Read": "📖",
    "Write": "✏️",
    "Edit": "📝",
    "Bash": "💻",
    "Glob": "🔍",
    "Grep": "🔎",
    "WebFetch": "🌐",
    "WebSearch": "🔎",
    "Task": "📋",
    "TodoWrite": "✅",
    "AskUserQuestion": "❓",
    "NotebookEdit": "📓",
}
DEFAULT_TOOL_EMOJI = "🔧"

# (input key, label, max length or None)
_COMMON_INPUTS: tuple[tuple[str, str, int | None], ...] = (
    ("file_path", "File", None),
    ("command", "Command", 100),
    ("pattern", "Pattern", None),
    ("path", "Path", None),
    ("query", "Query", 100),
    ("url", "URL", None),
    ("prompt", "Prompt", 80),
)

NotificationKind = Literal["startup", "shutdown", "error"]


def get_tool_emoji(tool_name: str) -> str:
    return TOOL_EMOJIS.get(tool_name, DEFAULT_TOOL_EMOJI)


def truncate(text: str, max_length: int) -> str:
    """Shorten text to max_length, ending with "..." when cut."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _format_tool_input(tool_input: dict[str, Any]) -> str:
    lines: list[str] = []
    for key, label, limit in _COMMON_INPUTS:
        value = tool_input.get(key)
        if not value:
            continue
        text = str(value)
        lines.append(f"   {label}: {truncate(text, limit) if limit else text}")

    if not lines:
        for key, value in list(tool_input.items())[:3]:
            value_str = value if isinstance(value, str) else json.dumps(value, default=str)
            lines.append(f"   {key}: {truncate(value_str, 80)}")

    return "\n".join(lines)


def format_tool_call(tool_call: ToolCall) -> str:
    """Format a tool invocation notice.

    Example:
        >>> format_tool_call(ToolCall("Bash", {"command": "ls"}))
        '💻 Tool: Bash\\n   Command: ls'
    """
    emoji = get_tool_emoji(tool_call.name)
    return f"{emoji} Tool: {tool_call.name}\n{_format_tool_input(tool_call.input)}"


def format_tool_result(tool_call: ToolCall) -> str:
    """Format a tool result preview."""
    emoji = get_tool_emoji(tool_call.name)
    result = tool_call.result or "(no output)"
    if "\n" in result:
        lines = result.split("\n")
        preview = "\n".join(lines[:3])
        summary = f"({len(lines)} lines)\n{truncate(preview, 200)}"
    else:
        summary = truncate(result, 300)
    return f"{emoji} {tool_call.name} result:\n   {summary}"


def format_usage(usage: Usage, cost_usd: float | None = None) -> str:
    """Format token usage statistics."""
    lines = [
        "📊 Usage:",
        f"   Input: {usage.input_tokens:,} tokens",
        f"   Output: {usage.output_tokens:,} tokens",
        f"   Cache: {usage.cache_read_tokens:,} read, {usage.cache_write_tokens:,} write",
        f"   Context: ~{round(usage.percent)}%",
    ]
    if cost_usd is not None:
        lines.append(f"   Cost: ${cost_usd:.4f}")
    return "\n".join(lines)


def format_context_warning(usage_percent: float) -> str:
    return (
        f"⚠️ Context limit approaching ({usage_percent:.0f}% used).\n\n"
        "Would you like to start a continuation? I'll summarize our progress "
        "so we can continue in a fresh session."
    )


def format_auto_handoff(usage_percent: float) -> str:
    return f"🔄 Auto-handoff: Context at {usage_percent:.1f}%. Generating summary and continuing..."


def format_handoff(summary: str) -> str:
    return (
        f"📋 **Session Handoff**\n\n{summary}\n\n---\n"
        "✅ Continuation ready. You can continue where you left off."
    )


def format_error(error: str) -> str:
    return f"❌ Error: {error}"


def format_notification(kind: NotificationKind, message: str | None = None) -> str:
    """Format a service lifecycle notification."""
    if kind == "startup":
        return f"🟢 Telegram-Claude service started.\n{message or 'Ready to receive messages.'}"
    if kind == "shutdown":
        return f"🔴 Telegram-Claude service stopping.\n{message or 'Goodbye!'}"
    return f"⚠️ Service Error:\n{message or 'An unexpected error occurred.'}"


def fit_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> str:
    """Truncate text to the chat message size limit."""
    return truncate(text, limit)
