"""Tests for HandoffCoordinator and the seed prompt."""

import pytest

from src.errors import SummaryError
from src.orchestrator.handoff import HandoffCoordinator, build_seed_prompt
from src.services.session_store import SessionRecord
from tests.helpers import FakeAgentChannel


async def _bound_record(store, usage=65.0, project_path=None):
    record = SessionRecord.new("chat-1", "/work").with_changes(
        agent_session_id="sess-old",
        context_usage_percent=usage,
        project_path=project_path,
    )
    await store.save(record)
    return record


class TestBuildSeedPrompt:
    def test_embeds_summary(self):
        prompt = build_seed_prompt("Refactored the parser.")

        assert prompt.startswith("Previous session handoff:\n\nRefactored the parser.\n\n")
        assert prompt.endswith("let me know you're ready to continue.")


class TestSummarizeAndReset:
    """Tests for HandoffCoordinator.summarize_and_reset()."""

    @pytest.mark.asyncio
    async def test_resets_record_and_shows_summary(self, session_store, outbound):
        """The record is replaced by an unbound one with the same working context."""
        await _bound_record(session_store)
        agent = FakeAgentChannel(summary="Halfway through the migration.")
        coordinator = HandoffCoordinator(agent, session_store, outbound)

        summary = await coordinator.summarize_and_reset("chat-1", "sess-old", "/work")

        assert summary == "Halfway through the migration."
        assert agent.summarize_calls == [("sess-old", "/work")]
        record = await session_store.get("chat-1")
        assert record.agent_session_id == ""
        assert record.context_usage_percent == 0.0
        assert record.working_context == "/work"
        assert len(outbound.sends) == 1
        assert "📋 **Session Handoff**" in outbound.sends[0].text
        assert "Halfway through the migration." in outbound.sends[0].text

    @pytest.mark.asyncio
    async def test_project_path_is_carried_over(self, session_store, outbound):
        await _bound_record(session_store, project_path="/work/app")
        coordinator = HandoffCoordinator(FakeAgentChannel(), session_store, outbound)

        await coordinator.summarize_and_reset(
            "chat-1", "sess-old", "/work", project_path="/work/app"
        )

        record = await session_store.get("chat-1")
        assert record.project_path == "/work/app"

    @pytest.mark.asyncio
    async def test_summary_failure_leaves_record_untouched(self, session_store, outbound):
        """Nothing is deleted when the summary cannot be produced."""
        await _bound_record(session_store, usage=72.0)
        agent = FakeAgentChannel(summary_error="session expired")
        coordinator = HandoffCoordinator(agent, session_store, outbound)

        with pytest.raises(SummaryError) as exc_info:
            await coordinator.summarize_and_reset("chat-1", "sess-old", "/work")

        assert exc_info.value.agent_session_id == "sess-old"
        record = await session_store.get("chat-1")
        assert record.agent_session_id == "sess-old"
        assert record.context_usage_percent == 72.0
        assert outbound.sends == []
