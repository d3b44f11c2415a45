"""Typed domain exceptions for the bridge.

Each adapter wraps its library failures (httpx, SQLAlchemy,
subprocess and file errors) into one of these classes so the orchestration layer
can decide, per class, whether a failure aborts the turn, is surfaced to
the user, or is logged and discarded.

Usage:
    # In an adapter
    try:
        response = await client.post(url, json=payload)
    except httpx.HTTPError as exc:
        raise TransportError("sendMessage", str(exc)) from exc

    # In the orchestrator
    try:
        await telegram.edit_message(chat_id, message_id, text)
    except TransportError as e:
        logger.warning("Edit failed (best-effort): %s", e)
"""


class BridgeError(Exception):
    """Base exception for all bridge errors.

    Attributes:
        exchange_started: Set when the failure happened after an agent
            exchange was opened, so retrying the turn would replay it.
    """

    exchange_started: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(BridgeError):
    """An outbound chat API call (send, edit, typing, file fetch) failed."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Telegram {operation} failed: {reason}")
        self.operation = operation
        self.reason = reason


class TranscriptionError(BridgeError):
    """Speech-to-text failed. Aborts the current turn."""


class SynthesisError(BridgeError):
    """Text-to-speech failed. Logged; the turn completes without audio."""


class SummaryError(BridgeError):
    """A handoff summary could not be produced for a bound session."""

    def __init__(self, agent_session_id: str, reason: str) -> None:
        super().__init__(f"Failed to generate handoff: {reason}")
        self.agent_session_id = agent_session_id
        self.reason = reason


class PersistenceError(BridgeError):
    """A session store read or write failed."""

    def __init__(self, operation: str, conversation_id: str | None, reason: str) -> None:
        target = f" for conversation {conversation_id}" if conversation_id else ""
        super().__init__(f"Session store {operation} failed{target}: {reason}")
        self.operation = operation
        self.conversation_id = conversation_id
        self.reason = reason


class ConfigurationError(BridgeError):
    """Configuration is missing or invalid at startup."""
