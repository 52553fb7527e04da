"""SQLite implementation of SubjectContextRepository."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from phasechat.domain.exceptions import NotFoundError
from phasechat.infrastructure.persistence.datetime_utils import utc_now
from phasechat.infrastructure.persistence.exceptions import DatabaseError
from phasechat.infrastructure.persistence.models import SubjectModel


class SQLiteSubjectContextRepository:
    """SQLite による背景コンテキストリポジトリ実装

    会話エンジンは get_context のみを使用する。
    save_context は対象の登録・更新用（CLI やテストから利用）。
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

    async def get_context(self, subject_id: str) -> str | None:
        """対象の背景コンテキストを取得する

        Args:
            subject_id: 対象 ID

        Returns:
            背景コンテキスト（未設定の場合 None）

        Raises:
            NotFoundError: 対象が存在しない
        """
        try:
            async with self._session_factory() as session:
                result = await session.exec(
                    select(SubjectModel).where(SubjectModel.subject_id == subject_id)
                )
                model = result.first()
        except SQLAlchemyError as e:
            raise DatabaseError(str(e)) from e

        if model is None:
            raise NotFoundError("subject", subject_id)
        return model.chat_context

    async def save_context(self, subject_id: str, chat_context: str | None) -> None:
        """対象を登録する（upsert）

        Args:
            subject_id: 対象 ID
            chat_context: 背景コンテキスト
        """
        try:
            async with self._session_factory() as session:
                result = await session.exec(
                    select(SubjectModel).where(SubjectModel.subject_id == subject_id)
                )
                existing = result.first()

                if existing:
                    existing.chat_context = chat_context
                    existing.updated_at = utc_now()
                    session.add(existing)
                else:
                    session.add(
                        SubjectModel(
                            subject_id=subject_id,
                            chat_context=chat_context,
                            updated_at=utc_now(),
                        )
                    )

                await session.commit()
        except SQLAlchemyError as e:
            raise DatabaseError(str(e)) from e
