"""SQLAlchemy ORM models for the tgclaude session database.

Defines the per-conversation session record that binds a chat to an
agent session. Uses SQLAlchemy 2.0 style with Mapped and mapped_column.
"""

from datetime import UTC, datetime

from sqlalchemy import Float, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ConversationSession(Base):
    """Chat-to-agent-session binding.

    One row per chat surface. The agent session id is empty until the
    first exchange reports one, and is cleared again on handoff.

    Attributes:
        conversation_id: External chat identifier (primary key).
        agent_session_id: Bound agent session id, "" when unbound.
        project_path: Optional project the conversation is focused on.
        working_context: Directory handed to the agent as its cwd.
        last_active_at: ISO8601 timestamp of the last inbound/outbound activity.
        context_usage_percent: Last measured context consumption (may exceed 100).
    """

    __tablename__ = "conversation_sessions"
    __table_args__ = (
        Index("idx_conversation_sessions_last_active", "last_active_at"),
    )

    conversation_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    agent_session_id: Mapped[str] = mapped_column(
        String(128), nullable=False, default=""
    )
    project_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    working_context: Mapped[str] = mapped_column(String(1024), nullable=False)
    last_active_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    context_usage_percent: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationSession(conversation_id={self.conversation_id!r}, "
            f"agent_session_id={self.agent_session_id!r})>"
        )
