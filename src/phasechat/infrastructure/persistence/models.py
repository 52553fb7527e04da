"""SQLModel table definitions."""

from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class ConversationModel(SQLModel, table=True):
    """会話テーブル"""

    __tablename__ = "conversations"

    id: int | None = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    subject_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("owner_id", "subject_id", name="uq_conversation_owner_subject"),
    )


class ConversationMessageModel(SQLModel, table=True):
    """会話メッセージテーブル（追記専用）"""

    __tablename__ = "conversation_messages"

    id: int | None = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversations.id", index=True)
    position: int  # 0 始まりのログ内位置
    role: str  # "user" / "assistant"
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("conversation_id", "position", name="uq_message_position"),
    )


class ConversationPhaseModel(SQLModel, table=True):
    """フェーズ要約テーブル（追記専用）"""

    __tablename__ = "conversation_phases"

    id: int | None = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversations.id", index=True)
    phase_number: int
    summary: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("conversation_id", "phase_number", name="uq_phase_number"),
    )


class SubjectModel(SQLModel, table=True):
    """対象（背景コンテキスト）テーブル"""

    __tablename__ = "subjects"

    id: int | None = Field(default=None, primary_key=True)
    subject_id: str = Field(unique=True, index=True)
    chat_context: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
