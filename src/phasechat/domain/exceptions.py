"""Domain exceptions."""


class PhaseChatError(Exception):
    """Base exception for conversation engine errors."""


class NotFoundError(PhaseChatError):
    """A subject or conversation does not exist."""

    def __init__(self, kind: str, key: str, message: str = "") -> None:
        """Initialize the error.

        Args:
            kind: What was looked up ("subject", "conversation", ...).
            key: Identifier that was not found.
            message: Optional error message.
        """
        self.kind = kind
        self.key = key
        super().__init__(message or f"{kind} not found: {key}")


class InvalidInputError(PhaseChatError):
    """Caller supplied an empty message or missing identifier."""


class PendingMessageError(InvalidInputError):
    """A new message was sent while the previous one is still unanswered."""


class GenerationError(PhaseChatError):
    """The model call failed, timed out, or returned nothing usable.

    The user message of the failed turn stays in the log so the turn
    can be retried.
    """


class InvalidStateError(PhaseChatError):
    """Phase sequence violation.

    Indicates a programming or concurrency bug; never swallowed.
    """


class StorageError(PhaseChatError):
    """Persistence layer unavailable or failed mid-operation."""
