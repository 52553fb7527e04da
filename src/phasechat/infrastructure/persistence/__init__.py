"""Persistence infrastructure."""

from phasechat.infrastructure.persistence.conversation_repository import (
    SQLiteConversationRepository,
)
from phasechat.infrastructure.persistence.database import DatabaseManager
from phasechat.infrastructure.persistence.exceptions import (
    DatabaseError,
    PersistenceError,
)
from phasechat.infrastructure.persistence.models import (
    ConversationMessageModel,
    ConversationModel,
    ConversationPhaseModel,
    SubjectModel,
)
from phasechat.infrastructure.persistence.subject_context_repository import (
    SQLiteSubjectContextRepository,
)

__all__ = [
    "ConversationMessageModel",
    "ConversationModel",
    "ConversationPhaseModel",
    "DatabaseError",
    "DatabaseManager",
    "PersistenceError",
    "SQLiteConversationRepository",
    "SQLiteSubjectContextRepository",
    "SubjectModel",
]
