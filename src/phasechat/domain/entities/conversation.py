"""Conversation, message and phase entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"

    @property
    def label(self) -> str:
        """Display label used when rendering transcripts."""
        return "User" if self is Role.USER else "Assistant"


@dataclass(frozen=True)
class ChatMessage:
    """One entry of a conversation's message log.

    Attributes:
        role: USER or ASSISTANT.
        content: Message text.
        timestamp: Server-assigned append time (UTC).
        position: Zero-based index in the message log.
    """

    role: Role
    content: str
    timestamp: datetime
    position: int


@dataclass(frozen=True)
class Phase:
    """Durable summary of one block of 10 messages.

    Attributes:
        phase_number: 1-based phase number.
        summary: Model-generated summary text.
        created_at: When the phase was recorded (UTC).
    """

    phase_number: int
    summary: str
    created_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Plain dict form for notifications and CLI output."""
        return {
            "phase_number": self.phase_number,
            "summary": self.summary,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Conversation:
    """Conversation identity.

    A conversation is unique per (owner_id, subject_id).

    Attributes:
        id: Storage identity.
        owner_id: Principal that owns the conversation.
        subject_id: Subject the conversation is anchored to.
        created_at: Creation time (UTC).
    """

    id: int
    owner_id: str
    subject_id: str
    created_at: datetime

    @property
    def ref(self) -> str:
        """Stable "{owner_id}:{subject_id}" reference for observers."""
        return make_conversation_ref(self.owner_id, self.subject_id)


@dataclass(frozen=True)
class ConversationHistory:
    """Read-only projection of a conversation's two logs."""

    messages: list[ChatMessage] = field(default_factory=list)
    phases: list[Phase] = field(default_factory=list)
    conversation: Conversation | None = None

    def is_empty(self) -> bool:
        return not self.messages and not self.phases

    def has_pending_message(self) -> bool:
        """Check whether the last message is a USER message with no reply."""
        return bool(self.messages) and self.messages[-1].role is Role.USER


def make_conversation_ref(owner_id: str, subject_id: str) -> str:
    """Build the conversation reference used in events.

    Args:
        owner_id: Owner ID.
        subject_id: Subject ID.

    Returns:
        "{owner_id}:{subject_id}"
    """
    return f"{owner_id}:{subject_id}"
