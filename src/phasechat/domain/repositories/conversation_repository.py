"""Conversation repository protocol."""

from typing import Protocol

from phasechat.domain.entities import (
    ChatMessage,
    Conversation,
    ConversationHistory,
    Phase,
    Role,
)


class ConversationRepository(Protocol):
    """会話リポジトリ

    メッセージログとフェーズ一覧はどちらも追記専用。
    変更系の操作は会話単位でアトミックに行う。
    """

    async def get_or_create(self, owner_id: str, subject_id: str) -> Conversation:
        """会話を取得し、存在しなければ空の会話を作成する

        同じ (owner_id, subject_id) に対しては常に同じ会話を返す。

        Args:
            owner_id: 所有者 ID
            subject_id: 対象 ID

        Returns:
            会話
        """
        ...

    async def find(self, owner_id: str, subject_id: str) -> Conversation | None:
        """会話を検索する

        Args:
            owner_id: 所有者 ID
            subject_id: 対象 ID

        Returns:
            見つかった会話、または None
        """
        ...

    async def read(self, owner_id: str, subject_id: str) -> ConversationHistory:
        """会話のメッセージとフェーズをすべて取得する

        Raises:
            NotFoundError: 会話が存在しない
        """
        ...

    async def append_message(
        self,
        conversation: Conversation,
        role: Role,
        content: str,
    ) -> ChatMessage:
        """メッセージログの末尾にメッセージを追加する

        Args:
            conversation: 対象の会話
            role: 発言者
            content: 本文

        Returns:
            追加されたメッセージ

        Raises:
            NotFoundError: 会話が既に削除されている
        """
        ...

    async def append_phase(
        self,
        conversation: Conversation,
        phase_number: int,
        summary: str,
    ) -> Phase:
        """フェーズを追加する

        Args:
            conversation: 対象の会話
            phase_number: フェーズ番号（現在のフェーズ数 + 1 であること）
            summary: 要約

        Returns:
            追加されたフェーズ

        Raises:
            InvalidStateError: フェーズ番号が連番になっていない
            NotFoundError: 会話が既に削除されている
        """
        ...

    async def record_reply(
        self,
        conversation: Conversation,
        content: str,
        phase_number: int | None = None,
        summary: str | None = None,
    ) -> tuple[ChatMessage, Phase | None]:
        """アシスタントの返答と（あれば）フェーズを1トランザクションで追加する

        Args:
            conversation: 対象の会話
            content: 返答本文
            phase_number: 記録するフェーズ番号
            summary: フェーズ要約（None の場合フェーズは記録しない）

        Returns:
            追加されたメッセージと、記録されたフェーズ（または None）

        Raises:
            InvalidStateError: フェーズ番号が連番になっていない
            NotFoundError: 会話が既に削除されている
        """
        ...

    async def count_messages(self, conversation: Conversation) -> int:
        """メッセージ数を取得する"""
        ...

    async def find_recent_messages(
        self,
        conversation: Conversation,
        limit: int,
    ) -> list[ChatMessage]:
        """直近のメッセージを取得する

        Returns:
            メッセージリスト（古い順）
        """
        ...

    async def find_phases(self, conversation: Conversation) -> list[Phase]:
        """フェーズをフェーズ番号順に取得する"""
        ...

    async def clear(self, owner_id: str, subject_id: str) -> bool:
        """会話とそのメッセージ・フェーズをまとめて削除する

        Returns:
            削除した場合 True、会話が存在しなかった場合 False
        """
        ...
