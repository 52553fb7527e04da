"""Application services."""

from phasechat.application.services.conversation_locks import ConversationLocks
from phasechat.application.services.orchestrator import (
    FALLBACK_REPLY,
    ConversationOrchestrator,
)

__all__ = [
    "FALLBACK_REPLY",
    "ConversationLocks",
    "ConversationOrchestrator",
]
