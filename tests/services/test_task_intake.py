"""Tests for the file-backed task inbox."""

import json

import pytest

from src.services.task_intake import FileTaskInbox, TaskBrief


class TestFileTaskInbox:
    @pytest.mark.asyncio
    async def test_submit_writes_json_file(self, tmp_path):
        inbox = FileTaskInbox(tmp_path / "inbox")

        task_id = await inbox.submit_task_brief("TASK: update the changelog", "777")

        path = tmp_path / "inbox" / f"{task_id}.json"
        assert path.exists()
        stored = json.loads(path.read_text())
        assert stored["task_id"] == task_id
        assert stored["conversation_id"] == "777"
        assert stored["brief"] == "TASK: update the changelog"
        assert stored["status"] == "pending"
        assert len(task_id) == 12

    @pytest.mark.asyncio
    async def test_list_pending_oldest_first(self, tmp_path):
        inbox = FileTaskInbox(tmp_path)
        first = await inbox.submit_task_brief("TASK: one", "777")
        second = await inbox.submit_task_brief("Brief: two", "777")

        pending = inbox.list_pending()

        assert [t.task_id for t in pending] == [first, second]

    @pytest.mark.asyncio
    async def test_list_pending_skips_other_statuses(self, tmp_path):
        inbox = FileTaskInbox(tmp_path)
        done = TaskBrief(task_id="done1", conversation_id="777", brief="TASK: old", status="done")
        (tmp_path / "done1.json").write_text(done.model_dump_json())
        task_id = await inbox.submit_task_brief("TASK: new", "777")

        assert [t.task_id for t in inbox.list_pending()] == [task_id]

    def test_missing_inbox_is_empty(self, tmp_path):
        assert FileTaskInbox(tmp_path / "absent").list_pending() == []
