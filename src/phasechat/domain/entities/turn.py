"""Turn result entity."""

from dataclasses import dataclass

from phasechat.domain.entities.conversation import ChatMessage, Conversation, Phase


@dataclass(frozen=True)
class TurnResult:
    """Outcome of a successful turn.

    Attributes:
        conversation: Conversation the turn belongs to.
        reply: Assistant reply text that was recorded.
        reply_message: The appended assistant message.
        phase_completed: Phase recorded by this turn, if any.
        is_phase_end: Whether the turn was a phase boundary.
        phase_number: Phase the turn belongs to.
    """

    conversation: Conversation
    reply: str
    reply_message: ChatMessage
    phase_completed: Phase | None
    is_phase_end: bool
    phase_number: int
