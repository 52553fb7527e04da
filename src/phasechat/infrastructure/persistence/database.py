"""Database management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from types import TracebackType
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Import models to register them with SQLModel metadata
from phasechat.infrastructure.persistence import models as _models  # noqa: F401

MEMORY_DATABASE = ":memory:"


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """データベース管理

    会話ログと対象を保存する SQLite データベースのエンジンとセッションを管理する。
    aiosqlite による非同期アクセスで、外部キー制約を有効にして接続する。

    async with で使うとテーブル作成と接続の破棄を自動で行う::

        async with DatabaseManager("data/phasechat.db") as db:
            repository = SQLiteConversationRepository(db.get_session)
    """

    def __init__(self, database_path: str) -> None:
        """初期化

        Args:
            database_path: SQLite データベースファイルのパス
                          ":memory:" を指定するとインメモリDBを使用
        """
        self._database_path = database_path
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def url(self) -> str:
        """aiosqlite 用の接続 URL"""
        return f"sqlite+aiosqlite:///{self._database_path}"

    def get_engine(self) -> AsyncEngine:
        """SQLAlchemy 非同期エンジンを取得する（遅延初期化）

        ファイル DB の場合は親ディレクトリを作成する。
        """
        if self._engine is None:
            if self._database_path != MEMORY_DATABASE:
                Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)

            self._engine = create_async_engine(self.url)
            event.listen(self._engine.sync_engine, "connect", _enable_foreign_keys)
            self._session_factory = async_sessionmaker(
                self._engine, class_=AsyncSession, expire_on_commit=False
            )
        return self._engine

    async def create_tables(self) -> None:
        """テーブルを作成する（既存のテーブルはそのまま）"""
        async with self.get_engine().begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """セッションを取得する

        リポジトリにはこのメソッドをセッションファクトリとして渡す。
        """
        self.get_engine()
        assert self._session_factory is not None
        async with self._session_factory() as session:
            yield session

    async def close(self) -> None:
        """エンジンを破棄し、接続を閉じる"""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None

    async def __aenter__(self) -> "DatabaseManager":
        await self.create_tables()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
