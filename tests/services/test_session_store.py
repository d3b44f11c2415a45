"""Tests for SessionStore against a temporary SQLite database."""

import pytest
from sqlalchemy.exc import OperationalError

from src.errors import PersistenceError
from src.services.session_store import SessionRecord, SessionStore


def _record(cid="chat-1", session="", usage=0.0, last_active="2000-01-01T00:00:00+00:00"):
    return SessionRecord(
        conversation_id=cid,
        agent_session_id=session,
        working_context="/work",
        last_active_at=last_active,
        context_usage_percent=usage,
    )


class TestSessionRecord:
    def test_new_is_unbound_with_zero_usage(self):
        record = SessionRecord.new("chat-1", "/work")

        assert record.agent_session_id == ""
        assert record.context_usage_percent == 0.0
        assert record.is_bound is False
        assert record.last_active_at

    def test_with_changes_returns_copy(self):
        record = SessionRecord.new("chat-1", "/work")

        bound = record.with_changes(agent_session_id="sess-1")

        assert bound.is_bound
        assert record.agent_session_id == ""


class TestCrud:
    """get / save / delete round trips."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, session_store):
        assert await session_store.get("nope") is None

    @pytest.mark.asyncio
    async def test_save_then_get(self, session_store):
        record = _record(session="sess-1", usage=12.5).with_changes(project_path="/work/app")

        await session_store.save(record)

        assert await session_store.get("chat-1") == record

    @pytest.mark.asyncio
    async def test_save_overwrites(self, session_store):
        await session_store.save(_record(session="sess-1", usage=40.0))
        await session_store.save(_record(session="sess-2", usage=1.0))

        record = await session_store.get("chat-1")
        assert record.agent_session_id == "sess-2"
        assert record.context_usage_percent == 1.0

    @pytest.mark.asyncio
    async def test_delete(self, session_store):
        await session_store.save(_record())

        await session_store.delete("chat-1")

        assert await session_store.get("chat-1") is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_idempotent(self, session_store):
        await session_store.delete("never-existed")
        await session_store.delete("never-existed")


class TestPartialUpdates:
    @pytest.mark.asyncio
    async def test_update_usage_keeps_other_fields(self, session_store):
        await session_store.save(_record(session="sess-1"))

        await session_store.update_usage("chat-1", 63.2)

        record = await session_store.get("chat-1")
        assert record.context_usage_percent == 63.2
        assert record.agent_session_id == "sess-1"
        assert record.last_active_at > "2000-01-01T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_update_usage_on_missing_record_is_noop(self, session_store):
        await session_store.update_usage("ghost", 10.0)

        assert await session_store.get("ghost") is None

    @pytest.mark.asyncio
    async def test_touch_refreshes_last_active(self, session_store):
        await session_store.save(_record())

        await session_store.touch("chat-1")

        record = await session_store.get("chat-1")
        assert record.last_active_at > "2000-01-01T00:00:00+00:00"


class TestQueries:
    @pytest.mark.asyncio
    async def test_last_active_conversation(self, session_store):
        await session_store.save(_record("older", last_active="2026-01-01T00:00:00+00:00"))
        await session_store.save(_record("newer", last_active="2026-03-01T00:00:00+00:00"))

        assert await session_store.get_last_active_conversation_id() == "newer"

    @pytest.mark.asyncio
    async def test_last_active_on_empty_store(self, session_store):
        assert await session_store.get_last_active_conversation_id() is None

    @pytest.mark.asyncio
    async def test_list_all_most_recent_first(self, session_store):
        await session_store.save(_record("a", last_active="2026-01-01T00:00:00+00:00"))
        await session_store.save(_record("b", last_active="2026-02-01T00:00:00+00:00"))

        records = await session_store.list_all()

        assert [r.conversation_id for r in records] == ["b", "a"]


class _BrokenSession:
    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    async def __aexit__(self, *exc):
        return False


class TestFailures:
    """Storage errors surface as PersistenceError."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "operation,call",
        [
            ("get", lambda s: s.get("chat-1")),
            ("save", lambda s: s.save(_record())),
            ("delete", lambda s: s.delete("chat-1")),
            ("update_usage", lambda s: s.update_usage("chat-1", 5.0)),
            ("touch", lambda s: s.touch("chat-1")),
        ],
    )
    async def test_wrapped(self, operation, call):
        store = SessionStore(lambda: _BrokenSession())

        with pytest.raises(PersistenceError) as exc_info:
            await call(store)

        assert exc_info.value.operation == operation
        assert exc_info.value.conversation_id == "chat-1"
        assert "disk I/O error" in exc_info.value.reason
