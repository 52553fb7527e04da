"""Domain entities."""

from phasechat.domain.entities.conversation import (
    ChatMessage,
    Conversation,
    ConversationHistory,
    Phase,
    Role,
    make_conversation_ref,
)
from phasechat.domain.entities.event import Event, EventType
from phasechat.domain.entities.prompt import ModelReply, PromptPayload
from phasechat.domain.entities.turn import TurnResult

__all__ = [
    "ChatMessage",
    "Conversation",
    "ConversationHistory",
    "Event",
    "EventType",
    "ModelReply",
    "Phase",
    "PromptPayload",
    "Role",
    "TurnResult",
    "make_conversation_ref",
]
