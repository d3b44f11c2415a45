"""Task brief intake.

Messages starting with `TASK:` or `Brief:` are not sent to the agent.
They are written as JSON files into an inbox directory, where an external
worker picks them up.
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class TaskBrief(BaseModel):
    """A submitted task brief as stored in the inbox."""

    task_id: str
    conversation_id: str
    brief: str
    status: str = "pending"
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FileTaskInbox:
    """Writes task briefs into an inbox directory, one file per brief.

    Args:
        inbox_dir: Directory receiving `<task_id>.json` files.
    """

    def __init__(self, inbox_dir: str | Path) -> None:
        self._inbox_dir = Path(inbox_dir).expanduser()

    @property
    def inbox_dir(self) -> Path:
        return self._inbox_dir

    async def submit_task_brief(self, brief: str, conversation_id: str) -> str:
        """Store a brief and return its task id."""
        task = TaskBrief(
            task_id=uuid.uuid4().hex[:12],
            conversation_id=conversation_id,
            brief=brief,
        )
        self._inbox_dir.mkdir(parents=True, exist_ok=True)
        path = self._inbox_dir / f"{task.task_id}.json"
        path.write_text(task.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Task brief %s queued at %s: %s", task.task_id, path, brief[:50])
        return task.task_id

    def list_pending(self) -> list[TaskBrief]:
        """Load every brief still marked pending, oldest first."""
        if not self._inbox_dir.exists():
            return []
        tasks = [
            TaskBrief.model_validate_json(p.read_text(encoding="utf-8"))
            for p in self._inbox_dir.glob("*.json")
        ]
        return sorted(
            (t for t in tasks if t.status == "pending"),
            key=lambda t: t.submitted_at,
        )
