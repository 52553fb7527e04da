"""Subject context repository protocol."""

from typing import Protocol


class SubjectContextRepository(Protocol):
    """対象（サブジェクト）の背景コンテキストを提供するリポジトリ

    会話エンジンからは読み取り専用として扱う。
    """

    async def get_context(self, subject_id: str) -> str | None:
        """対象の背景コンテキストを取得する

        Args:
            subject_id: 対象 ID

        Returns:
            背景コンテキスト（未設定の場合 None）

        Raises:
            NotFoundError: 対象が存在しない
        """
        ...
