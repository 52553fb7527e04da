"""Domain repositories."""

from phasechat.domain.repositories.conversation_repository import (
    ConversationRepository,
)
from phasechat.domain.repositories.subject_context_repository import (
    SubjectContextRepository,
)

__all__ = [
    "ConversationRepository",
    "SubjectContextRepository",
]
