"""Shared fixtures for application service tests."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from phasechat.domain.entities import (
    ChatMessage,
    Conversation,
    ConversationHistory,
    ModelReply,
    Phase,
    PromptPayload,
    Role,
)
from phasechat.domain.exceptions import InvalidStateError, NotFoundError


class InMemoryConversationRepository:
    """ConversationRepository kept in dicts.

    Every call yields to the event loop once, so unserialized callers
    interleave the way they would against a real database.
    """

    def __init__(self) -> None:
        self._next_id = 1
        self.conversations: dict[tuple[str, str], Conversation] = {}
        self.messages: dict[int, list[ChatMessage]] = {}
        self.phases: dict[int, list[Phase]] = {}

    async def get_or_create(self, owner_id: str, subject_id: str) -> Conversation:
        await asyncio.sleep(0)
        key = (owner_id, subject_id)
        if key not in self.conversations:
            conversation = Conversation(
                id=self._next_id,
                owner_id=owner_id,
                subject_id=subject_id,
                created_at=datetime.now(timezone.utc),
            )
            self._next_id += 1
            self.conversations[key] = conversation
            self.messages[conversation.id] = []
            self.phases[conversation.id] = []
        return self.conversations[key]

    async def find(self, owner_id: str, subject_id: str) -> Conversation | None:
        await asyncio.sleep(0)
        return self.conversations.get((owner_id, subject_id))

    async def read(self, owner_id: str, subject_id: str) -> ConversationHistory:
        await asyncio.sleep(0)
        conversation = self.conversations.get((owner_id, subject_id))
        if conversation is None:
            raise NotFoundError("conversation", f"{owner_id}:{subject_id}")
        return ConversationHistory(
            messages=list(self.messages[conversation.id]),
            phases=list(self.phases[conversation.id]),
            conversation=conversation,
        )

    async def append_message(
        self, conversation: Conversation, role: Role, content: str
    ) -> ChatMessage:
        await asyncio.sleep(0)
        return self._add_message(conversation, role, content)

    async def append_phase(
        self, conversation: Conversation, phase_number: int, summary: str
    ) -> Phase:
        await asyncio.sleep(0)
        return self._add_phase(conversation, phase_number, summary)

    async def record_reply(
        self,
        conversation: Conversation,
        content: str,
        phase_number: int | None = None,
        summary: str | None = None,
    ) -> tuple[ChatMessage, Phase | None]:
        await asyncio.sleep(0)
        self._ensure_exists(conversation)
        phase = None
        if phase_number is not None and summary is not None:
            phase = self._check_phase(conversation, phase_number, summary)
        message = self._add_message(conversation, Role.ASSISTANT, content)
        if phase is not None:
            self.phases[conversation.id].append(phase)
        return message, phase

    async def count_messages(self, conversation: Conversation) -> int:
        await asyncio.sleep(0)
        return len(self.messages.get(conversation.id, []))

    async def find_recent_messages(
        self, conversation: Conversation, limit: int
    ) -> list[ChatMessage]:
        await asyncio.sleep(0)
        if limit <= 0:
            return []
        return list(self.messages.get(conversation.id, [])[-limit:])

    async def find_phases(self, conversation: Conversation) -> list[Phase]:
        await asyncio.sleep(0)
        return list(self.phases.get(conversation.id, []))

    async def clear(self, owner_id: str, subject_id: str) -> bool:
        await asyncio.sleep(0)
        conversation = self.conversations.pop((owner_id, subject_id), None)
        if conversation is None:
            return False
        del self.messages[conversation.id]
        del self.phases[conversation.id]
        return True

    def _ensure_exists(self, conversation: Conversation) -> None:
        if conversation.id not in self.messages:
            raise NotFoundError("conversation", conversation.ref)

    def _add_message(
        self, conversation: Conversation, role: Role, content: str
    ) -> ChatMessage:
        self._ensure_exists(conversation)
        log = self.messages[conversation.id]
        message = ChatMessage(
            role=role,
            content=content,
            timestamp=datetime.now(timezone.utc),
            position=len(log),
        )
        log.append(message)
        return message

    def _check_phase(
        self, conversation: Conversation, phase_number: int, summary: str
    ) -> Phase:
        self._ensure_exists(conversation)
        expected = len(self.phases[conversation.id]) + 1
        if phase_number != expected:
            raise InvalidStateError(
                f"Phase {phase_number} out of sequence (expected {expected})"
            )
        return Phase(
            phase_number=phase_number,
            summary=summary,
            created_at=datetime.now(timezone.utc),
        )

    def _add_phase(
        self, conversation: Conversation, phase_number: int, summary: str
    ) -> Phase:
        phase = self._check_phase(conversation, phase_number, summary)
        self.phases[conversation.id].append(phase)
        return phase


class InMemorySubjectContextRepository:
    """SubjectContextRepository backed by a dict."""

    def __init__(self, contexts: dict[str, str | None] | None = None) -> None:
        self.contexts = dict(contexts or {})

    async def get_context(self, subject_id: str) -> str | None:
        if subject_id not in self.contexts:
            raise NotFoundError("subject", subject_id)
        return self.contexts[subject_id]


def summarizing_reply(payload: PromptPayload) -> ModelReply:
    """Well-behaved model: always summarizes when asked to."""
    summary = f"summary of phase {payload.phase_number}" if payload.is_phase_end else None
    return ModelReply(reply=f"reply in phase {payload.phase_number}", summary=summary)


@pytest.fixture
def conversation_repository() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture
def subject_context_repository() -> InMemorySubjectContextRepository:
    return InMemorySubjectContextRepository(
        {"R1": "Armed robbery at the central bank.", "R2": None}
    )


@pytest.fixture
def model_gateway() -> AsyncMock:
    gateway = AsyncMock()
    gateway.generate = AsyncMock(side_effect=summarizing_reply)
    return gateway


@pytest.fixture
def notifier() -> AsyncMock:
    notifier = AsyncMock()
    notifier.dispatch = AsyncMock()
    return notifier


@pytest.fixture
def reply_for() -> Callable[[PromptPayload], ModelReply]:
    """The default gateway behaviour, for tests that swap it out and back."""
    return summarizing_reply
