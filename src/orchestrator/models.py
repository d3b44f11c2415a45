"""Data models shared by the orchestration layer.

Inbound messages arrive from the Telegram poller already normalized into
InboundMessage; the orchestrator never sees raw update JSON.
"""

from dataclasses import dataclass, field

from src.orchestrator.agent.events import Usage


@dataclass(frozen=True)
class PhotoVariant:
    """One resolution of an attached photo, as Telegram sends it."""

    file_id: str
    width: int = 0
    height: int = 0
    file_size: int | None = None


@dataclass(frozen=True)
class VoiceNote:
    """An attached voice recording."""

    file_id: str
    duration: int = 0
    mime_type: str | None = None


@dataclass(frozen=True)
class ImageAttachment:
    """Image bytes handed to the agent."""

    data: bytes
    media_type: str = "image/jpeg"


@dataclass(frozen=True)
class InboundMessage:
    """A normalized inbound chat message.

    Attributes:
        conversation_id: Chat identifier (string form of the chat id).
        user_id: Sender identifier.
        message_id: Telegram message id, used as the reply target.
        text: Message text, if any.
        caption: Attachment caption, if any.
        photo: Photo variants ordered smallest to largest.
        voice: Voice recording, if any.
    """

    conversation_id: str
    user_id: int
    message_id: int | None = None
    text: str | None = None
    caption: str | None = None
    photo: tuple[PhotoVariant, ...] = field(default_factory=tuple)
    voice: VoiceNote | None = None

    @property
    def largest_photo(self) -> PhotoVariant | None:
        """The last (largest) photo variant, if any."""
        return self.photo[-1] if self.photo else None

    def preview(self, limit: int = 50) -> str:
        """Short description for log lines."""
        if self.text:
            return self.text[:limit]
        if self.voice is not None:
            return "[voice]"
        if self.photo:
            return "[photo]"
        return "[empty]"


@dataclass
class RenderOutcome:
    """What the stream renderer learned from one exchange.

    Attributes:
        usage: Usage from the terminal result, None on error or absence.
        session_id: Session id bound during the exchange, returned only
            on a successful terminal result.
        full_text: All text fragments concatenated.
        failed: True if the exchange ended in an error or timed out.
        error: Error message when failed.
        cost_usd: Reported exchange cost, if any.
    """

    usage: Usage | None = None
    session_id: str | None = None
    full_text: str = ""
    failed: bool = False
    error: str | None = None
    cost_usd: float | None = None
