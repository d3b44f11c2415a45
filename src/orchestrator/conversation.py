"""Conversation orchestrator.

Routes each inbound message through one of four paths:

1. Reset command: drop the session record.
2. Pending continuation + "continue": hand off to a fresh agent session.
3. Task brief (TASK: / Brief:): forward to task intake.
4. Normal turn: transcribe voice, attach images, run an agent exchange,
   persist the bound session id, then apply the context policy.

Turns are serialized per conversation through ConversationLaneManager;
different conversations run concurrently.
"""

import logging
from collections.abc import AsyncIterator

from src.db.models import utc_now_iso
from src.errors import BridgeError, SummaryError, SynthesisError, TranscriptionError, TransportError
from src.orchestrator.agent.events import AgentEvent
from src.orchestrator.context_policy import ContextState, classify
from src.orchestrator.handoff import HandoffCoordinator, build_seed_prompt
from src.orchestrator.models import ImageAttachment, InboundMessage, RenderOutcome
from src.orchestrator.protocol import AgentChannel, OutboundChannel, TaskIntake, VoiceChannel
from src.orchestrator.stream_renderer import StreamRenderer
from src.services.conversation_lanes import ConversationLaneManager
from src.services.message_formatter import (
    format_auto_handoff,
    format_context_warning,
    format_error,
    format_usage,
)
from src.services.pending_continuations import (
    PendingContinuations,
    contains_continuation_keyword,
)
from src.services.session_store import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

RESET_COMMAND = "/restart_claude"
TASK_BRIEF_PREFIXES = ("TASK:", "Brief:")
DEFAULT_IMAGE_PROMPT = "Please analyze this image."

RESET_ACK = "Session cleared. Next message starts a fresh Claude session."
TASK_BRIEF_ACK = "🤖 **Autonomous Mode Activated**\n\nSubmitting task brief..."
TRANSCRIPTION_FAILED = "Could not transcribe voice message. Is whisper.cpp running?"
NO_ACTIVE_SESSION = "No active session to continue."
GENERATING_SUMMARY = "📋 Generating handoff summary..."
CONTEXT_RESET = "✅ Context reset. Continuing with fresh session..."


class ConversationOrchestrator:
    """Per-conversation state machine driving agent exchanges.

    Usage:
        orchestrator = ConversationOrchestrator(
            store=store, agent=agent, outbound=telegram, voice=voice,
            task_intake=inbox, working_context="/home/me/Workspace",
        )
        await orchestrator.dispatch(message)
    """

    def __init__(
        self,
        store: SessionStore,
        agent: AgentChannel,
        outbound: OutboundChannel,
        voice: VoiceChannel,
        task_intake: TaskIntake,
        working_context: str,
        renderer: StreamRenderer | None = None,
        handoff: HandoffCoordinator | None = None,
        pending: PendingContinuations | None = None,
        lanes: ConversationLaneManager | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Session store.
            agent: Agent channel.
            outbound: Chat surface.
            voice: Speech services.
            task_intake: Receiver for task briefs.
            working_context: Working context given to new sessions.
            renderer: Stream renderer. Built from outbound when omitted.
            handoff: Handoff coordinator. Built from agent/store/outbound when omitted.
            pending: Conversations awaiting continuation. A private set when omitted.
            lanes: Per-conversation serialization. A private manager when omitted.
        """
        self._store = store
        self._agent = agent
        self._outbound = outbound
        self._voice = voice
        self._task_intake = task_intake
        self._working_context = working_context
        self._renderer = renderer or StreamRenderer(outbound)
        self._handoff = handoff or HandoffCoordinator(agent, store, outbound)
        self.pending = pending if pending is not None else PendingContinuations()
        self.lanes = lanes if lanes is not None else ConversationLaneManager()

    async def dispatch(self, message: InboundMessage) -> None:
        """Handle a message once no other turn for its conversation is running."""
        async with self.lanes.hold(message.conversation_id):
            await self.handle_message(message)

    async def handle_message(self, message: InboundMessage) -> None:
        """Handle one inbound message to completion.

        Callers must serialize calls per conversation; use dispatch() for that.

        Raises:
            PersistenceError: If the session store fails.
            TransportError: If a required send fails.
        """
        cid = message.conversation_id
        text = message.text
        logger.info("Handling message for %s: %s", cid, message.preview())

        if text is not None and text.strip() == RESET_COMMAND:
            await self.reset_session(cid)
            return

        if cid in self.pending and contains_continuation_keyword(text):
            self.pending.discard(cid)
            await self.handle_continuation(cid, reply_to_message_id=message.message_id)
            return

        if text is not None and text.startswith(TASK_BRIEF_PREFIXES):
            await self._outbound.send_message(cid, TASK_BRIEF_ACK)
            task_id = await self._task_intake.submit_task_brief(text, cid)
            logger.info("Task brief from %s submitted as %s", cid, task_id)
            return

        await self._handle_turn(message)

    async def reset_session(self, conversation_id: str) -> None:
        """Drop the conversation's session record and acknowledge."""
        await self._store.delete(conversation_id)
        self.pending.discard(conversation_id)
        await self._outbound.send_message(conversation_id, RESET_ACK)

    async def handle_continuation(
        self,
        conversation_id: str,
        reply_to_message_id: int | None = None,
    ) -> RenderOutcome | None:
        """Hand the bound session off to a fresh one seeded with its summary.

        Returns:
            Outcome of the seeded exchange, or None when nothing ran.
        """
        self.pending.discard(conversation_id)
        record = await self._store.get(conversation_id)
        if record is None or not record.is_bound:
            await self._outbound.send_message(conversation_id, NO_ACTIVE_SESSION)
            return None

        await self._outbound.send_message(conversation_id, GENERATING_SUMMARY)
        summary = await self._summarize_and_reset(record)
        if summary is None:
            return None

        fresh = await self._store.get(conversation_id)
        if fresh is None:
            fresh = SessionRecord.new(conversation_id, record.working_context)
        return await self._run_exchange(
            fresh,
            build_seed_prompt(summary),
            reply_to_message_id=reply_to_message_id,
        )

    async def _handle_turn(self, message: InboundMessage) -> None:
        cid = message.conversation_id
        await self._typing(cid)
        record = await self._get_or_create_session(cid)

        transcript: str | None = None
        if message.voice is not None:
            audio = await self._outbound.get_file_bytes(message.voice.file_id)
            try:
                transcript = await self._voice.transcribe(audio)
            except TranscriptionError as e:
                logger.warning("Voice transcription failed for %s: %s", cid, e)
                transcript = None
            if not transcript:
                await self._outbound.send_message(cid, TRANSCRIPTION_FAILED)
                return

        attachments: list[ImageAttachment] = []
        largest = message.largest_photo
        if largest is not None:
            data = await self._outbound.get_file_bytes(largest.file_id)
            attachments.append(ImageAttachment(data=data, media_type="image/jpeg"))

        prompt = transcript or message.text or message.caption or DEFAULT_IMAGE_PROMPT
        await self._run_exchange(
            record,
            prompt,
            attachments=attachments,
            reply_to_message_id=message.message_id,
            respond_with_voice=message.voice is not None,
        )

    async def _get_or_create_session(self, conversation_id: str) -> SessionRecord:
        existing = await self._store.get(conversation_id)
        if existing is not None:
            await self._store.touch(conversation_id)
            return existing
        record = SessionRecord.new(conversation_id, self._working_context)
        await self._store.save(record)
        logger.info("Created session record for conversation %s", conversation_id)
        return record

    async def _run_exchange(
        self,
        record: SessionRecord,
        prompt: str,
        attachments: list[ImageAttachment] | None = None,
        reply_to_message_id: int | None = None,
        respond_with_voice: bool = False,
    ) -> RenderOutcome:
        """Open an exchange, render it, and apply its result."""
        cid = record.conversation_id
        events = self._agent.open(
            prompt,
            record.working_context,
            resume_id=record.agent_session_id or None,
            attachments=attachments or None,
        )
        try:
            return await self._apply_exchange(
                record, events, reply_to_message_id, respond_with_voice
            )
        except BridgeError as e:
            e.exchange_started = True
            raise

    async def _apply_exchange(
        self,
        record: SessionRecord,
        events: AsyncIterator[AgentEvent],
        reply_to_message_id: int | None,
        respond_with_voice: bool,
    ) -> RenderOutcome:
        cid = record.conversation_id
        outcome = await self._renderer.render(cid, events, reply_to_message_id=reply_to_message_id)
        if outcome.failed:
            return outcome

        if respond_with_voice and outcome.full_text.strip():
            await self._send_voice_reply(cid, outcome.full_text.strip(), reply_to_message_id)

        if outcome.session_id:
            current = await self._store.get(cid) or record
            await self._store.save(
                current.with_changes(
                    agent_session_id=outcome.session_id,
                    last_active_at=utc_now_iso(),
                )
            )

        if outcome.usage is not None:
            logger.debug("%s", format_usage(outcome.usage, outcome.cost_usd))
            await self._apply_context_policy(cid, outcome.usage.percent)

        return outcome

    async def _apply_context_policy(self, conversation_id: str, usage_percent: float) -> None:
        await self._store.update_usage(conversation_id, usage_percent)
        state = classify(usage_percent)
        if state is ContextState.NORMAL:
            return

        if state is ContextState.WARN_CONTINUE:
            await self._outbound.send_message(
                conversation_id, format_context_warning(usage_percent)
            )
            self.pending.add(conversation_id)
            return

        logger.info(
            "Auto-handoff triggered for %s at %.1f%% context usage",
            conversation_id,
            usage_percent,
        )
        await self._outbound.send_message(conversation_id, format_auto_handoff(usage_percent))
        record = await self._store.get(conversation_id)
        if record is None or not record.is_bound:
            logger.warning("Auto-handoff skipped for %s: no bound session", conversation_id)
            return
        if await self._summarize_and_reset(record) is not None:
            await self._outbound.send_message(conversation_id, CONTEXT_RESET)

    async def _summarize_and_reset(self, record: SessionRecord) -> str | None:
        """Run the handoff, reporting a failed summary to the user.

        A completed handoff supersedes any pending continuation warning.
        """
        try:
            summary = await self._handoff.summarize_and_reset(
                record.conversation_id,
                record.agent_session_id,
                record.working_context,
                project_path=record.project_path,
            )
        except SummaryError as e:
            logger.error("Handoff failed for %s: %s", record.conversation_id, e)
            await self._outbound.send_message(record.conversation_id, format_error(e.message))
            return None
        self.pending.discard(record.conversation_id)
        return summary

    async def _send_voice_reply(
        self,
        conversation_id: str,
        text: str,
        reply_to_message_id: int | None,
    ) -> None:
        try:
            await self._outbound.send_recording_voice(conversation_id)
        except TransportError as e:
            logger.debug("Record-voice indicator failed: %s", e)
        try:
            audio = await self._voice.synthesize(text)
            await self._outbound.send_voice(
                conversation_id, audio, reply_to_message_id=reply_to_message_id
            )
        except (SynthesisError, TransportError) as e:
            logger.warning("Voice reply skipped for %s: %s", conversation_id, e)

    async def _typing(self, conversation_id: str) -> None:
        try:
            await self._outbound.send_typing(conversation_id)
        except TransportError as e:
            logger.debug("Typing indicator failed: %s", e)
