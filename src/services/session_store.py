"""Session store for chat-to-agent-session bindings.

Thin async layer over the conversation_sessions table. Every read and
write is a single short transaction; callers never hold a store
transaction across an agent or Telegram await. Storage failures are
wrapped in PersistenceError and propagate to the turn's caller.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import ConversationSession, utc_now_iso
from src.errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionRecord:
    """Snapshot of one conversation's session state.

    Attributes:
        conversation_id: External chat identifier.
        agent_session_id: Bound agent session id, "" when unbound.
        working_context: Directory the agent runs in.
        last_active_at: ISO8601 timestamp of last activity.
        context_usage_percent: Last measured context consumption.
        project_path: Optional project focus.
    """

    conversation_id: str
    agent_session_id: str
    working_context: str
    last_active_at: str
    context_usage_percent: float = 0.0
    project_path: str | None = None

    @classmethod
    def new(cls, conversation_id: str, working_context: str) -> "SessionRecord":
        """Create an unbound record with zero usage."""
        return cls(
            conversation_id=conversation_id,
            agent_session_id="",
            working_context=working_context,
            last_active_at=utc_now_iso(),
            context_usage_percent=0.0,
        )

    def with_changes(self, **changes: Any) -> "SessionRecord":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @property
    def is_bound(self) -> bool:
        """True when an agent session id is attached."""
        return bool(self.agent_session_id)


def _to_record(row: ConversationSession) -> SessionRecord:
    return SessionRecord(
        conversation_id=row.conversation_id,
        agent_session_id=row.agent_session_id or "",
        working_context=row.working_context,
        last_active_at=row.last_active_at,
        context_usage_percent=float(row.context_usage_percent or 0.0),
        project_path=row.project_path,
    )


class SessionStore:
    """CRUD operations for conversation session records.

    Args:
        session_factory: Async SQLAlchemy session factory.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, conversation_id: str) -> SessionRecord | None:
        """Fetch the record for a conversation.

        Args:
            conversation_id: Chat identifier.

        Returns:
            The SessionRecord, or None if absent.

        Raises:
            PersistenceError: If the read fails.
        """
        try:
            async with self._session_factory() as db:
                row = await db.get(ConversationSession, conversation_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError("get", conversation_id, str(e)) from e

    async def save(self, record: SessionRecord) -> None:
        """Upsert a record by conversation id.

        Raises:
            PersistenceError: If the write fails.
        """
        try:
            async with self._session_factory() as db:
                await db.merge(
                    ConversationSession(
                        conversation_id=record.conversation_id,
                        agent_session_id=record.agent_session_id,
                        project_path=record.project_path,
                        working_context=record.working_context,
                        last_active_at=record.last_active_at,
                        context_usage_percent=record.context_usage_percent,
                    )
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError("save", record.conversation_id, str(e)) from e

    async def delete(self, conversation_id: str) -> None:
        """Delete a record. Idempotent; missing records are not an error.

        Raises:
            PersistenceError: If the delete fails.
        """
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    delete(ConversationSession).where(
                        ConversationSession.conversation_id == conversation_id
                    )
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError("delete", conversation_id, str(e)) from e
        if result.rowcount:
            logger.info("Deleted session record for conversation %s", conversation_id)

    async def update_usage(self, conversation_id: str, percent: float) -> None:
        """Partially update the context usage of an existing record."""
        await self._update(
            "update_usage",
            conversation_id,
            context_usage_percent=percent,
            last_active_at=utc_now_iso(),
        )

    async def touch(self, conversation_id: str) -> None:
        """Refresh last_active_at on an existing record."""
        await self._update("touch", conversation_id, last_active_at=utc_now_iso())

    async def _update(self, operation: str, conversation_id: str, **values: Any) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(ConversationSession)
                    .where(ConversationSession.conversation_id == conversation_id)
                    .values(**values)
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(operation, conversation_id, str(e)) from e

    async def get_last_active_conversation_id(self) -> str | None:
        """Return the most recently active conversation id, if any."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(ConversationSession.conversation_id)
                    .order_by(ConversationSession.last_active_at.desc())
                    .limit(1)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError("get_last_active", None, str(e)) from e

    async def list_all(self) -> list[SessionRecord]:
        """List every record, most recently active first."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(ConversationSession).order_by(
                        ConversationSession.last_active_at.desc()
                    )
                )
                return [_to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError("list", None, str(e)) from e
