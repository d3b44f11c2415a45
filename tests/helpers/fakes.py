"""Scripted and recording fakes for orchestrator tests."""

import itertools
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.errors import SummaryError, SynthesisError, TranscriptionError, TransportError
from src.orchestrator.agent.events import AgentEvent, ResultEvent, TextEvent, Usage
from src.orchestrator.models import ImageAttachment


def result(
    session_id: str | None = "sess-1",
    input_tokens: int = 100,
    output_tokens: int = 100,
    context_window: int = 10_000,
) -> ResultEvent:
    """Build a successful terminal event with the given usage."""
    return ResultEvent(
        usage=Usage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            context_window=context_window,
        ),
        session_id=session_id,
    )


def collect(events: list[Any]) -> AsyncIterator[Any]:
    """Wrap a list as an async generator."""

    async def _gen():
        for event in events:
            yield event

    return _gen()


@dataclass
class OpenCall:
    """One recorded AgentChannel.open() call."""

    prompt: str
    working_context: str
    resume_id: str | None
    attachments: Sequence[ImageAttachment] | None


class FakeAgentChannel:
    """Agent channel that replays scripted exchanges in order."""

    def __init__(
        self,
        exchanges: list[list[AgentEvent]] | None = None,
        summary: str = "We were testing.",
        summary_error: str | None = None,
    ) -> None:
        self.exchanges = list(exchanges or [])
        self.summary = summary
        self.summary_error = summary_error
        self.open_calls: list[OpenCall] = []
        self.summarize_calls: list[tuple[str, str]] = []

    def script(self, *events: AgentEvent) -> None:
        self.exchanges.append(list(events))

    async def open(
        self,
        prompt: str,
        working_context: str,
        resume_id: str | None = None,
        attachments: Sequence[ImageAttachment] | None = None,
    ) -> AsyncIterator[AgentEvent]:
        self.open_calls.append(OpenCall(prompt, working_context, resume_id, attachments))
        events = self.exchanges.pop(0) if self.exchanges else [TextEvent("ok"), result()]
        for event in events:
            yield event

    async def summarize(self, session_id: str, working_context: str) -> str:
        self.summarize_calls.append((session_id, working_context))
        if self.summary_error:
            raise SummaryError(session_id, self.summary_error)
        return self.summary


@dataclass
class Sent:
    """One recorded outbound operation."""

    kind: str
    conversation_id: str
    text: str = ""
    message_id: int | None = None
    reply_to: int | None = None


class FakeOutbound:
    """Chat surface that records every call."""

    def __init__(self, fail_edits: bool = False, files: dict[str, bytes] | None = None) -> None:
        self.calls: list[Sent] = []
        self.fail_edits = fail_edits
        self.fail_sends = False
        self.files = files or {}
        self._ids = itertools.count(1000)

    @property
    def sends(self) -> list[Sent]:
        return [c for c in self.calls if c.kind == "send"]

    @property
    def edits(self) -> list[Sent]:
        return [c for c in self.calls if c.kind == "edit"]

    @property
    def sent_texts(self) -> list[str]:
        return [c.text for c in self.sends]

    @property
    def voices(self) -> list[Sent]:
        return [c for c in self.calls if c.kind == "voice"]

    def kinds(self) -> list[str]:
        return [c.kind for c in self.calls]

    async def send_message(
        self,
        conversation_id: str,
        text: str,
        reply_to_message_id: int | None = None,
    ) -> int:
        if self.fail_sends:
            raise TransportError("sendMessage", "network down")
        message_id = next(self._ids)
        self.calls.append(Sent("send", conversation_id, text, message_id, reply_to_message_id))
        return message_id

    async def edit_message(self, conversation_id: str, message_id: int, text: str) -> None:
        if self.fail_edits:
            raise TransportError("editMessageText", "Too Many Requests")
        self.calls.append(Sent("edit", conversation_id, text, message_id))

    async def send_typing(self, conversation_id: str) -> None:
        self.calls.append(Sent("typing", conversation_id))

    async def send_recording_voice(self, conversation_id: str) -> None:
        self.calls.append(Sent("record_voice", conversation_id))

    async def send_voice(
        self,
        conversation_id: str,
        audio: bytes,
        reply_to_message_id: int | None = None,
    ) -> int:
        message_id = next(self._ids)
        self.calls.append(
            Sent("voice", conversation_id, f"<{len(audio)} bytes>", message_id, reply_to_message_id)
        )
        return message_id

    async def get_file_bytes(self, file_id: str) -> bytes:
        self.calls.append(Sent("download", "", file_id))
        return self.files.get(file_id, b"file:" + file_id.encode())


class FakeVoice:
    """Speech services with configurable results."""

    def __init__(
        self,
        transcript: str = "transcribed words",
        transcribe_error: str | None = None,
        synthesize_error: str | None = None,
    ) -> None:
        self.transcript = transcript
        self.transcribe_error = transcribe_error
        self.synthesize_error = synthesize_error
        self.synthesized: list[str] = []

    async def transcribe(self, audio: bytes) -> str:
        if self.transcribe_error:
            raise TranscriptionError(self.transcribe_error)
        return self.transcript

    async def synthesize(self, text: str) -> bytes:
        self.synthesized.append(text)
        if self.synthesize_error:
            raise SynthesisError(self.synthesize_error)
        return b"OggS-audio"


@dataclass
class FakeTaskIntake:
    """Task intake that records submitted briefs."""

    briefs: list[tuple[str, str]] = field(default_factory=list)

    async def submit_task_brief(self, brief: str, conversation_id: str) -> str:
        self.briefs.append((brief, conversation_id))
        return f"task-{len(self.briefs)}"
