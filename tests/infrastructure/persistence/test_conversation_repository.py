"""Tests for SQLiteConversationRepository."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import pytest
from sqlalchemy.exc import OperationalError

from phasechat.domain.entities import Conversation, Role
from phasechat.domain.exceptions import (
    InvalidStateError,
    NotFoundError,
    StorageError,
)
from phasechat.infrastructure.persistence import DatabaseError, DatabaseManager
from phasechat.infrastructure.persistence.conversation_repository import (
    SQLiteConversationRepository,
)


@pytest.fixture
async def db_manager() -> AsyncGenerator[DatabaseManager, None]:
    """Create an in-memory database manager."""
    manager = DatabaseManager(":memory:")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def repository(db_manager: DatabaseManager) -> SQLiteConversationRepository:
    """Create a repository instance."""
    return SQLiteConversationRepository(db_manager.get_session)


@pytest.fixture
async def conversation(repository: SQLiteConversationRepository) -> Conversation:
    return await repository.get_or_create("U1", "R1")


async def fill(
    repository: SQLiteConversationRepository,
    conversation: Conversation,
    count: int,
) -> None:
    for i in range(count):
        role = Role.USER if i % 2 == 0 else Role.ASSISTANT
        await repository.append_message(conversation, role, f"message {i}")


class TestGetOrCreate:
    """Tests for get_or_create and find."""

    async def test_creates_empty_conversation(
        self, repository: SQLiteConversationRepository
    ) -> None:
        conversation = await repository.get_or_create("U1", "R1")

        assert conversation.owner_id == "U1"
        assert conversation.subject_id == "R1"
        assert await repository.count_messages(conversation) == 0
        assert await repository.find_phases(conversation) == []

    async def test_is_idempotent(
        self, repository: SQLiteConversationRepository
    ) -> None:
        first = await repository.get_or_create("U1", "R1")
        second = await repository.get_or_create("U1", "R1")

        assert first.id == second.id
        assert first == second

    async def test_keyed_by_owner_and_subject(
        self, repository: SQLiteConversationRepository
    ) -> None:
        a = await repository.get_or_create("U1", "R1")
        b = await repository.get_or_create("U2", "R1")
        c = await repository.get_or_create("U1", "R2")

        assert len({a.id, b.id, c.id}) == 3

    async def test_find_missing(self, repository: SQLiteConversationRepository) -> None:
        assert await repository.find("U1", "nope") is None

    async def test_created_at_is_utc(self, conversation: Conversation) -> None:
        assert conversation.created_at.tzinfo is not None


class TestAppendMessage:
    """Tests for append_message."""

    async def test_appends_in_order(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 4)

        history = await repository.read("U1", "R1")

        assert [m.content for m in history.messages] == [
            "message 0",
            "message 1",
            "message 2",
            "message 3",
        ]
        assert [m.position for m in history.messages] == [0, 1, 2, 3]
        assert [m.role for m in history.messages] == [
            Role.USER,
            Role.ASSISTANT,
            Role.USER,
            Role.ASSISTANT,
        ]

    async def test_returns_appended_message(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        message = await repository.append_message(conversation, Role.USER, "hello")

        assert message.role is Role.USER
        assert message.content == "hello"
        assert message.position == 0
        assert message.timestamp.tzinfo is not None

    async def test_missing_conversation(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await repository.clear("U1", "R1")

        with pytest.raises(NotFoundError):
            await repository.append_message(conversation, Role.USER, "hello")


class TestAppendPhase:
    """Tests for append_phase."""

    async def test_appends_in_sequence(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        first = await repository.append_phase(conversation, 1, "first block")
        second = await repository.append_phase(conversation, 2, "second block")

        phases = await repository.find_phases(conversation)

        assert [p.phase_number for p in phases] == [1, 2]
        assert first.summary == "first block"
        assert second.phase_number == 2

    async def test_rejects_gap(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        with pytest.raises(InvalidStateError):
            await repository.append_phase(conversation, 2, "skipped one")

        assert await repository.find_phases(conversation) == []

    async def test_rejects_duplicate(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await repository.append_phase(conversation, 1, "first block")

        with pytest.raises(InvalidStateError):
            await repository.append_phase(conversation, 1, "again")

    async def test_missing_conversation(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await repository.clear("U1", "R1")

        with pytest.raises(NotFoundError):
            await repository.append_phase(conversation, 1, "summary")


class TestRecordReply:
    """Tests for record_reply."""

    async def test_reply_without_phase(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await repository.append_message(conversation, Role.USER, "hello")

        message, phase = await repository.record_reply(conversation, "hi there")

        assert message.role is Role.ASSISTANT
        assert message.position == 1
        assert phase is None
        assert await repository.find_phases(conversation) == []

    async def test_reply_with_phase(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 9)

        message, phase = await repository.record_reply(
            conversation, "last reply", phase_number=1, summary="block summary"
        )

        assert message.position == 9
        assert phase is not None
        assert phase.phase_number == 1
        assert await repository.count_messages(conversation) == 10

    async def test_phase_violation_rolls_back_reply(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 9)

        with pytest.raises(InvalidStateError):
            await repository.record_reply(
                conversation, "last reply", phase_number=2, summary="bad number"
            )

        assert await repository.count_messages(conversation) == 9
        assert await repository.find_phases(conversation) == []


class TestReads:
    """Tests for count, recent window and read."""

    async def test_recent_messages_oldest_first(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 25)

        recent = await repository.find_recent_messages(conversation, 10)

        assert [m.position for m in recent] == list(range(15, 25))

    async def test_recent_messages_shorter_log(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 3)

        recent = await repository.find_recent_messages(conversation, 10)

        assert len(recent) == 3

    async def test_recent_messages_zero_limit(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 3)

        assert await repository.find_recent_messages(conversation, 0) == []

    async def test_read_missing(self, repository: SQLiteConversationRepository) -> None:
        with pytest.raises(NotFoundError):
            await repository.read("U1", "nope")

    async def test_read_returns_both_logs(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 10)
        await repository.append_phase(conversation, 1, "summary")

        history = await repository.read("U1", "R1")

        assert len(history.messages) == 10
        assert [p.phase_number for p in history.phases] == [1]
        assert history.conversation == conversation


class TestClear:
    """Tests for clear."""

    async def test_removes_everything(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 10)
        await repository.append_phase(conversation, 1, "summary")

        assert await repository.clear("U1", "R1") is True

        assert await repository.find("U1", "R1") is None
        with pytest.raises(NotFoundError):
            await repository.read("U1", "R1")

    async def test_does_not_touch_other_conversations(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        other = await repository.get_or_create("U2", "R1")
        await repository.append_message(other, Role.USER, "keep me")

        await repository.clear("U1", "R1")

        assert await repository.count_messages(other) == 1

    async def test_missing_conversation(
        self, repository: SQLiteConversationRepository
    ) -> None:
        assert await repository.clear("U1", "nope") is False

    async def test_recreated_conversation_starts_empty(
        self,
        repository: SQLiteConversationRepository,
        conversation: Conversation,
    ) -> None:
        await fill(repository, conversation, 4)
        await repository.clear("U1", "R1")

        fresh = await repository.get_or_create("U1", "R1")

        assert await repository.count_messages(fresh) == 0


class TestErrorTranslation:
    """Tests for SQLAlchemy error translation."""

    async def test_database_error_is_storage_error(self) -> None:
        @asynccontextmanager
        async def broken_session() -> AsyncGenerator[object, None]:
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
            yield  # pragma: no cover

        repository = SQLiteConversationRepository(broken_session)  # type: ignore[arg-type]

        with pytest.raises(DatabaseError) as exc_info:
            await repository.find("U1", "R1")
        assert isinstance(exc_info.value, StorageError)
