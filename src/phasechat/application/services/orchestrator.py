"""Conversation orchestrator: one turn of the memory/windowing engine."""

import asyncio
import logging

from phasechat.application.services.conversation_locks import ConversationLocks
from phasechat.domain.entities import (
    ChatMessage,
    Conversation,
    ConversationHistory,
    Event,
    EventType,
    ModelReply,
    Phase,
    PromptPayload,
    Role,
    TurnResult,
)
from phasechat.domain.exceptions import (
    GenerationError,
    InvalidInputError,
    NotFoundError,
    PendingMessageError,
)
from phasechat.domain.repositories import (
    ConversationRepository,
    SubjectContextRepository,
)
from phasechat.domain.services import (
    EventNotifier,
    ModelGateway,
    PromptAssembler,
    current_phase_number,
    is_phase_end,
)

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I'm listening."


class ConversationOrchestrator:
    """Coordinates a conversation turn.

    Each turn runs PhaseDetector -> PromptAssembler -> ModelGateway ->
    ConversationRepository while holding the conversation's lock, so that
    appends and phase-boundary counting follow submission order.

    Commit points of a turn:
    - the user message is appended before the model is called;
    - the assistant reply and the phase (if any) are appended together
      after the model answered.
    A failed or cancelled model call therefore leaves only the user
    message, which the next turn reuses instead of appending it again.

    NEW_REPLY is dispatched after the lock is released, so a slow
    notifier does not hold up the next turn of the same conversation.
    """

    def __init__(
        self,
        conversation_repository: ConversationRepository,
        subject_context_repository: SubjectContextRepository,
        model_gateway: ModelGateway,
        notifier: EventNotifier | None = None,
        *,
        prompt_assembler: PromptAssembler | None = None,
        generation_timeout: float | None = None,
        locks: ConversationLocks | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            conversation_repository: Message/phase store.
            subject_context_repository: Background context lookup.
            model_gateway: Model call.
            notifier: Receives a NEW_REPLY event after each successful turn.
            prompt_assembler: Prompt builder (default 10-message window).
            generation_timeout: Seconds to wait for the gateway, None to wait
                indefinitely.
            locks: Per-conversation lock registry.
        """
        self._conversation_repository = conversation_repository
        self._subject_context_repository = subject_context_repository
        self._model_gateway = model_gateway
        self._notifier = notifier
        self._prompt_assembler = prompt_assembler or PromptAssembler()
        self._generation_timeout = generation_timeout
        self._locks = locks or ConversationLocks()

    async def handle_turn(
        self,
        owner_id: str,
        subject_id: str,
        message_text: str,
    ) -> TurnResult:
        """Process one user message.

        Args:
            owner_id: Conversation owner.
            subject_id: Subject the conversation is about.
            message_text: The user's message.

        Returns:
            The recorded reply and the phase completed by this turn, if any.

        Raises:
            InvalidInputError: Blank identifiers or message.
            PendingMessageError: A different message while an earlier one is
                still unanswered.
            NotFoundError: The subject does not exist.
            GenerationError: The model call failed (user message is kept).
            InvalidStateError: Phase sequence violation.
            StorageError: Persistence failure.
        """
        owner_id, subject_id = self._validate_ids(owner_id, subject_id)
        text = (message_text or "").strip()
        if not text:
            raise InvalidInputError("message must not be empty")

        async with self._locks.hold(owner_id, subject_id):
            subject_context = await self._subject_context_repository.get_context(
                subject_id
            )
            conversation = await self._conversation_repository.get_or_create(
                owner_id, subject_id
            )

            pending = await self._find_pending_message(conversation)
            if pending is None:
                await self._conversation_repository.append_message(
                    conversation, Role.USER, text
                )
            elif pending.content == text:
                logger.info(
                    "Retrying unanswered message #%d of %s",
                    pending.position,
                    conversation.ref,
                )
            else:
                raise PendingMessageError(
                    f"Conversation {conversation.ref} has an unanswered message; "
                    "retry it before sending a new one"
                )

            result = await self._complete_turn(conversation, subject_context, text)

        await self._notify(result)
        return result

    async def retry_turn(self, owner_id: str, subject_id: str) -> TurnResult:
        """Re-run generation for the unanswered user message.

        Raises:
            InvalidInputError: Blank identifiers or nothing to retry.
            NotFoundError: The subject or conversation does not exist.
            GenerationError: The model call failed again.
        """
        owner_id, subject_id = self._validate_ids(owner_id, subject_id)

        async with self._locks.hold(owner_id, subject_id):
            subject_context = await self._subject_context_repository.get_context(
                subject_id
            )
            conversation = await self._conversation_repository.find(
                owner_id, subject_id
            )
            if conversation is None:
                raise NotFoundError("conversation", f"{owner_id}:{subject_id}")

            pending = await self._find_pending_message(conversation)
            if pending is None:
                raise InvalidInputError(
                    f"Conversation {conversation.ref} has no unanswered message"
                )
            result = await self._complete_turn(
                conversation, subject_context, pending.content
            )

        await self._notify(result)
        return result

    async def get_history(self, owner_id: str, subject_id: str) -> ConversationHistory:
        """Read-only projection of a conversation.

        Returns:
            Messages and phases; both empty if the conversation does not exist.
        """
        owner_id, subject_id = self._validate_ids(owner_id, subject_id)
        try:
            return await self._conversation_repository.read(owner_id, subject_id)
        except NotFoundError:
            return ConversationHistory()

    async def clear_history(self, owner_id: str, subject_id: str) -> None:
        """Delete a conversation with all its messages and phases."""
        owner_id, subject_id = self._validate_ids(owner_id, subject_id)
        async with self._locks.hold(owner_id, subject_id):
            cleared = await self._conversation_repository.clear(owner_id, subject_id)
        if not cleared:
            logger.debug("Nothing to clear for %s:%s", owner_id, subject_id)

    async def _complete_turn(
        self,
        conversation: Conversation,
        subject_context: str | None,
        user_text: str,
    ) -> TurnResult:
        """Generate and record the reply for the last user message."""
        message_count = await self._conversation_repository.count_messages(
            conversation
        )
        phase_end = is_phase_end(message_count)
        phase_number = current_phase_number(message_count)

        recent_messages = await self._conversation_repository.find_recent_messages(
            conversation, self._prompt_assembler.window_size
        )
        phases = await self._conversation_repository.find_phases(conversation)
        request_summary = phase_end and self._can_record_phase(
            phases, phase_number, conversation
        )

        payload = self._prompt_assembler.assemble(
            subject_context=subject_context,
            phases=phases,
            recent_messages=recent_messages,
            new_user_message=user_text,
            is_phase_end=request_summary,
            phase_number=phase_number,
        )
        model_reply = await self._generate(payload, conversation)

        reply_text = model_reply.reply.strip() or FALLBACK_REPLY
        summary = self._summary_to_record(
            model_reply, request_summary, phase_number, conversation
        )
        reply_message, phase = await self._conversation_repository.record_reply(
            conversation,
            reply_text,
            phase_number=phase_number if summary is not None else None,
            summary=summary,
        )
        if phase is not None:
            logger.info("Phase %d complete for %s", phase.phase_number, conversation.ref)

        return TurnResult(
            conversation=conversation,
            reply=reply_text,
            reply_message=reply_message,
            phase_completed=phase,
            is_phase_end=phase_end,
            phase_number=phase_number,
        )

    async def _generate(
        self, payload: PromptPayload, conversation: Conversation
    ) -> ModelReply:
        """Call the gateway, mapping a timeout to GenerationError."""
        try:
            return await asyncio.wait_for(
                self._model_gateway.generate(payload),
                timeout=self._generation_timeout,
            )
        except TimeoutError as e:
            logger.warning(
                "Model call timed out after %ss for %s",
                self._generation_timeout,
                conversation.ref,
            )
            raise GenerationError(
                f"Model call timed out after {self._generation_timeout}s"
            ) from e
        except GenerationError as e:
            logger.warning("Turn failed for %s: %s", conversation.ref, e)
            raise

    def _can_record_phase(
        self,
        phases: list[Phase],
        phase_number: int,
        conversation: Conversation,
    ) -> bool:
        """Whether phase ``phase_number`` would follow the recorded phases."""
        if len(phases) == phase_number - 1:
            return True
        # An earlier boundary was left without a summary
        logger.warning(
            "Phase %d of %s not recorded: %d of %d earlier phases exist",
            phase_number,
            conversation.ref,
            len(phases),
            phase_number - 1,
        )
        return False

    def _summary_to_record(
        self,
        model_reply: ModelReply,
        request_summary: bool,
        phase_number: int,
        conversation: Conversation,
    ) -> str | None:
        """Decide whether this turn records a phase.

        Returns:
            The summary to record, or None.
        """
        if not request_summary:
            return None
        if not model_reply.has_summary():
            logger.warning(
                "No summary for phase %d of %s; phase is not recorded",
                phase_number,
                conversation.ref,
            )
            return None
        assert model_reply.summary is not None
        return model_reply.summary.strip()

    async def _find_pending_message(
        self, conversation: Conversation
    ) -> ChatMessage | None:
        """Last message if it is a USER message still waiting for a reply."""
        last = await self._conversation_repository.find_recent_messages(
            conversation, 1
        )
        if last and last[-1].role is Role.USER:
            return last[-1]
        return None

    async def _notify(self, result: TurnResult) -> None:
        """Emit NEW_REPLY; notification failures never fail the turn."""
        if self._notifier is None:
            return

        phase = result.phase_completed
        event = Event(
            type=EventType.NEW_REPLY,
            payload={
                "conversation_ref": result.conversation.ref,
                "conversation_id": result.conversation.id,
                "owner_id": result.conversation.owner_id,
                "subject_id": result.conversation.subject_id,
                "reply_text": result.reply,
                "phase_completed": phase.to_dict() if phase else None,
                "timestamp": result.reply_message.timestamp.isoformat(),
            },
        )
        try:
            await self._notifier.dispatch(event)
        except Exception:
            logger.exception(
                "Failed to notify new reply for %s", result.conversation.ref
            )

    @staticmethod
    def _validate_ids(owner_id: str, subject_id: str) -> tuple[str, str]:
        owner = (owner_id or "").strip()
        subject = (subject_id or "").strip()
        if not owner:
            raise InvalidInputError("owner_id is required")
        if not subject:
            raise InvalidInputError("subject_id is required")
        return owner, subject
