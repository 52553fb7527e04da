"""Prompt payload and model reply entities."""

from dataclasses import dataclass

REPLY_FIELD = "reply"
SUMMARY_FIELD = "phase_summary"

OUTPUT_FORMAT = f"""{{
  "{REPLY_FIELD}": "response text...",
  "{SUMMARY_FIELD}": "Summary text ONLY if requested, otherwise null"
}}"""


@dataclass(frozen=True)
class PromptPayload:
    """Assembled request for the model gateway.

    The three context bands are kept separate so that gateways and tests
    can inspect them; ``text`` joins them in their fixed order.

    Attributes:
        subject_context: Static background context of the subject.
        long_term_memory: Rendered phase summaries.
        short_term_memory: Rendered recent-message window.
        task_instructions: What the model must produce this turn.
        is_phase_end: Whether a phase summary is requested.
        phase_number: Phase the current turn belongs to.
        window_size: Number of messages in the short-term band.
    """

    subject_context: str
    long_term_memory: str
    short_term_memory: str
    task_instructions: str
    is_phase_end: bool
    phase_number: int
    window_size: int

    @property
    def text(self) -> str:
        """Full prompt text sent to the model."""
        return "\n\n".join(
            [
                "=== STATIC CONTEXT ===",
                self.subject_context,
                "=== PREVIOUS COMPLETED PHASES ===",
                self.long_term_memory,
                "=== RECENT MESSAGES (Current Phase) ===",
                self.short_term_memory,
                "TASK:",
                self.task_instructions,
                "OUTPUT JSON FORMAT:",
                OUTPUT_FORMAT,
            ]
        )


@dataclass(frozen=True)
class ModelReply:
    """Structured model output.

    Attributes:
        reply: Reply text shown to the user (may be empty).
        summary: Phase summary, None when not supplied.
        raw: The unparsed model output.
    """

    reply: str
    summary: str | None = None
    raw: str = ""

    def has_summary(self) -> bool:
        return bool(self.summary and self.summary.strip())
