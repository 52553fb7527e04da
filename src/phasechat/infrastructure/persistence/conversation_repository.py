"""SQLite implementation of ConversationRepository."""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from phasechat.domain.entities import (
    ChatMessage,
    Conversation,
    ConversationHistory,
    Phase,
    Role,
    make_conversation_ref,
)
from phasechat.domain.exceptions import InvalidStateError, NotFoundError
from phasechat.infrastructure.persistence.datetime_utils import (
    normalize_to_utc,
    utc_now,
)
from phasechat.infrastructure.persistence.exceptions import DatabaseError
from phasechat.infrastructure.persistence.models import (
    ConversationMessageModel,
    ConversationModel,
    ConversationPhaseModel,
)

logger = logging.getLogger(__name__)


class SQLiteConversationRepository:
    """SQLite による会話リポジトリ実装

    メッセージはログ内の position（0 始まり）で順序付けされる。
    (conversation_id, position) と (conversation_id, phase_number) の
    一意制約により、並行書き込みによる重複や欠番は IntegrityError として検出し、
    InvalidStateError に変換する。
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """初期化

        Args:
            session_factory: 非同期セッション生成関数
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        """SQLAlchemy の例外をドメイン例外に変換するセッション"""
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError as e:
            logger.error("Conversation log constraint violated: %s", e)
            raise InvalidStateError(f"Conversation log constraint violated: {e}") from e
        except SQLAlchemyError as e:
            logger.error("Database error: %s", e)
            raise DatabaseError(str(e)) from e

    async def get_or_create(self, owner_id: str, subject_id: str) -> Conversation:
        """会話を取得し、存在しなければ作成する

        Args:
            owner_id: 所有者 ID
            subject_id: 対象 ID

        Returns:
            会話
        """
        existing = await self.find(owner_id, subject_id)
        if existing is not None:
            return existing

        try:
            async with self._session_factory() as session:
                model = ConversationModel(
                    owner_id=owner_id, subject_id=subject_id, created_at=utc_now()
                )
                session.add(model)
                await session.commit()
                logger.info(
                    "Created conversation %s",
                    make_conversation_ref(owner_id, subject_id),
                )
                return self._to_conversation(model)
        except IntegrityError:
            # 別のタスクが先に作成した
            logger.debug(
                "Conversation %s created concurrently",
                make_conversation_ref(owner_id, subject_id),
            )
        except SQLAlchemyError as e:
            logger.error("Database error: %s", e)
            raise DatabaseError(str(e)) from e

        created = await self.find(owner_id, subject_id)
        if created is None:
            raise DatabaseError(
                "Conversation vanished after concurrent creation: "
                f"{make_conversation_ref(owner_id, subject_id)}"
            )
        return created

    async def find(self, owner_id: str, subject_id: str) -> Conversation | None:
        """会話を検索する"""
        async with self._session() as session:
            model = await self._find_model(session, owner_id, subject_id)
            return self._to_conversation(model) if model else None

    async def read(self, owner_id: str, subject_id: str) -> ConversationHistory:
        """会話のメッセージとフェーズをすべて取得する

        Raises:
            NotFoundError: 会話が存在しない
        """
        async with self._session() as session:
            model = await self._find_model(session, owner_id, subject_id)
            if model is None:
                raise NotFoundError(
                    "conversation", make_conversation_ref(owner_id, subject_id)
                )
            assert model.id is not None

            message_result = await session.exec(
                select(ConversationMessageModel)
                .where(ConversationMessageModel.conversation_id == model.id)
                .order_by(ConversationMessageModel.position)  # type: ignore[arg-type]
            )
            phase_result = await session.exec(
                select(ConversationPhaseModel)
                .where(ConversationPhaseModel.conversation_id == model.id)
                .order_by(ConversationPhaseModel.phase_number)  # type: ignore[arg-type]
            )
            return ConversationHistory(
                messages=[self._to_message(m) for m in message_result.all()],
                phases=[self._to_phase(p) for p in phase_result.all()],
                conversation=self._to_conversation(model),
            )

    async def append_message(
        self,
        conversation: Conversation,
        role: Role,
        content: str,
    ) -> ChatMessage:
        """メッセージログの末尾にメッセージを追加する

        Raises:
            NotFoundError: 会話が既に削除されている
        """
        async with self._session() as session:
            await self._ensure_exists(session, conversation)
            message = await self._add_message(session, conversation, role, content)
            await session.commit()
            logger.debug(
                "Appended %s message #%d to %s",
                role.value,
                message.position,
                conversation.ref,
            )
            return self._to_message(message)

    async def append_phase(
        self,
        conversation: Conversation,
        phase_number: int,
        summary: str,
    ) -> Phase:
        """フェーズを追加する

        Raises:
            InvalidStateError: フェーズ番号が連番になっていない
            NotFoundError: 会話が既に削除されている
        """
        async with self._session() as session:
            await self._ensure_exists(session, conversation)
            phase = await self._add_phase(session, conversation, phase_number, summary)
            await session.commit()
            logger.info("Recorded phase %d for %s", phase_number, conversation.ref)
            return self._to_phase(phase)

    async def record_reply(
        self,
        conversation: Conversation,
        content: str,
        phase_number: int | None = None,
        summary: str | None = None,
    ) -> tuple[ChatMessage, Phase | None]:
        """アシスタントの返答と（あれば）フェーズを1トランザクションで追加する

        Raises:
            InvalidStateError: フェーズ番号が連番になっていない
            NotFoundError: 会話が既に削除されている
        """
        async with self._session() as session:
            await self._ensure_exists(session, conversation)
            message = await self._add_message(
                session, conversation, Role.ASSISTANT, content
            )
            phase: ConversationPhaseModel | None = None
            if phase_number is not None and summary is not None:
                phase = await self._add_phase(
                    session, conversation, phase_number, summary
                )
            await session.commit()

            if phase is not None:
                logger.info(
                    "Recorded phase %d for %s", phase.phase_number, conversation.ref
                )
            return self._to_message(message), (
                self._to_phase(phase) if phase is not None else None
            )

    async def count_messages(self, conversation: Conversation) -> int:
        """メッセージ数を取得する"""
        async with self._session() as session:
            return await self._count_messages(session, conversation.id)

    async def find_recent_messages(
        self,
        conversation: Conversation,
        limit: int,
    ) -> list[ChatMessage]:
        """直近のメッセージを取得する

        Returns:
            メッセージリスト（古い順）
        """
        if limit <= 0:
            return []
        async with self._session() as session:
            result = await session.exec(
                select(ConversationMessageModel)
                .where(ConversationMessageModel.conversation_id == conversation.id)
                .order_by(ConversationMessageModel.position.desc())  # type: ignore[attr-defined]
                .limit(limit)
            )
            # 新しい順で取得したので、反転して古い順にする
            return [self._to_message(m) for m in reversed(result.all())]

    async def find_phases(self, conversation: Conversation) -> list[Phase]:
        """フェーズをフェーズ番号順に取得する"""
        async with self._session() as session:
            result = await session.exec(
                select(ConversationPhaseModel)
                .where(ConversationPhaseModel.conversation_id == conversation.id)
                .order_by(ConversationPhaseModel.phase_number)  # type: ignore[arg-type]
            )
            return [self._to_phase(p) for p in result.all()]

    async def clear(self, owner_id: str, subject_id: str) -> bool:
        """会話とそのメッセージ・フェーズをまとめて削除する

        Returns:
            削除した場合 True、会話が存在しなかった場合 False
        """
        async with self._session() as session:
            model = await self._find_model(session, owner_id, subject_id)
            if model is None:
                return False

            await session.execute(
                delete(ConversationMessageModel).where(
                    ConversationMessageModel.conversation_id == model.id  # type: ignore[arg-type]
                )
            )
            await session.execute(
                delete(ConversationPhaseModel).where(
                    ConversationPhaseModel.conversation_id == model.id  # type: ignore[arg-type]
                )
            )
            await session.delete(model)
            await session.commit()
            logger.info(
                "Cleared conversation %s", make_conversation_ref(owner_id, subject_id)
            )
            return True

    async def _find_model(
        self,
        session: AsyncSession,
        owner_id: str,
        subject_id: str,
    ) -> ConversationModel | None:
        result = await session.exec(
            select(ConversationModel).where(
                ConversationModel.owner_id == owner_id,
                ConversationModel.subject_id == subject_id,
            )
        )
        return result.first()

    async def _ensure_exists(
        self, session: AsyncSession, conversation: Conversation
    ) -> None:
        """会話が削除されていないことを確認する"""
        model = await session.get(ConversationModel, conversation.id)
        if model is None:
            raise NotFoundError("conversation", conversation.ref)

    async def _count_messages(self, session: AsyncSession, conversation_id: int) -> int:
        result = await session.execute(
            select(func.count())
            .select_from(ConversationMessageModel)
            .where(ConversationMessageModel.conversation_id == conversation_id)
        )
        return result.scalar() or 0

    async def _count_phases(self, session: AsyncSession, conversation_id: int) -> int:
        result = await session.execute(
            select(func.count())
            .select_from(ConversationPhaseModel)
            .where(ConversationPhaseModel.conversation_id == conversation_id)
        )
        return result.scalar() or 0

    async def _add_message(
        self,
        session: AsyncSession,
        conversation: Conversation,
        role: Role,
        content: str,
    ) -> ConversationMessageModel:
        position = await self._count_messages(session, conversation.id)
        model = ConversationMessageModel(
            conversation_id=conversation.id,
            position=position,
            role=role.value,
            content=content,
            timestamp=utc_now(),
        )
        session.add(model)
        await session.flush()
        return model

    async def _add_phase(
        self,
        session: AsyncSession,
        conversation: Conversation,
        phase_number: int,
        summary: str,
    ) -> ConversationPhaseModel:
        expected = await self._count_phases(session, conversation.id) + 1
        if phase_number != expected:
            raise InvalidStateError(
                f"Phase {phase_number} out of sequence for {conversation.ref} "
                f"(expected {expected})"
            )
        model = ConversationPhaseModel(
            conversation_id=conversation.id,
            phase_number=phase_number,
            summary=summary,
            created_at=utc_now(),
        )
        session.add(model)
        await session.flush()
        return model

    def _to_conversation(self, model: ConversationModel) -> Conversation:
        """ConversationModel を Conversation エンティティに変換"""
        assert model.id is not None
        return Conversation(
            id=model.id,
            owner_id=model.owner_id,
            subject_id=model.subject_id,
            created_at=normalize_to_utc(model.created_at),
        )

    def _to_message(self, model: ConversationMessageModel) -> ChatMessage:
        """ConversationMessageModel を ChatMessage エンティティに変換"""
        return ChatMessage(
            role=Role(model.role),
            content=model.content,
            timestamp=normalize_to_utc(model.timestamp),
            position=model.position,
        )

    def _to_phase(self, model: ConversationPhaseModel) -> Phase:
        """ConversationPhaseModel を Phase エンティティに変換"""
        return Phase(
            phase_number=model.phase_number,
            summary=model.summary,
            created_at=normalize_to_utc(model.created_at),
        )
