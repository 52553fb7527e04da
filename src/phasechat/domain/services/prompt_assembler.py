"""Prompt assembly from subject context, long-term and short-term memory."""

from collections.abc import Sequence

from phasechat.domain.entities import ChatMessage, Phase, PromptPayload
from phasechat.domain.entities.prompt import SUMMARY_FIELD
from phasechat.domain.services.phase_detector import PHASE_SIZE

SHORT_TERM_WINDOW = PHASE_SIZE
NO_SUBJECT_CONTEXT = "No background context."
NO_PHASES = "Start of conversation (No phases yet)."
NO_RECENT_MESSAGES = "(No messages yet)"


def format_phase(phase: Phase) -> str:
    """Format a phase summary line.

    Args:
        phase: The phase to format.

    Returns:
        Formatted string like "[PHASE 1 SUMMARY]: summary text"
    """
    return f"[PHASE {phase.phase_number} SUMMARY]: {phase.summary}"


def format_long_term_memory(phases: Sequence[Phase]) -> str:
    """Format all phase summaries in phase order.

    Args:
        phases: Recorded phases.

    Returns:
        Summaries separated by blank lines, or a placeholder if empty.
    """
    if not phases:
        return NO_PHASES
    ordered = sorted(phases, key=lambda p: p.phase_number)
    return "\n\n".join(format_phase(phase) for phase in ordered)


def format_message(message: ChatMessage) -> str:
    """Format a message as "<Role>: <content>"."""
    return f"{message.role.label}: {message.content}"


def format_short_term_memory(messages: Sequence[ChatMessage]) -> str:
    """Format the recent-message window in chronological order.

    Args:
        messages: Recent messages, oldest first.

    Returns:
        One line per message, or a placeholder if empty.
    """
    if not messages:
        return NO_RECENT_MESSAGES
    return "\n".join(format_message(msg) for msg in messages)


def build_task_instructions(
    new_user_message: str,
    is_phase_end: bool,
    phase_number: int,
) -> str:
    """Build the task section of the prompt.

    Args:
        new_user_message: The message the model must answer.
        is_phase_end: Whether the turn closes a phase.
        phase_number: Phase the turn belongs to.

    Returns:
        Numbered task instructions.
    """
    lines = [
        f'1. Analyze the USER\'S MESSAGE ("{new_user_message}").',
        "2. Generate a tactical REPLY (1-2 sentences).",
    ]
    if is_phase_end:
        lines.append(
            f"3. CRITICAL: This is the end of Phase {phase_number}.\n"
            "   You MUST summarize the last 5 exchanges (the content in RECENT "
            f'MESSAGES) into the "{SUMMARY_FIELD}" field.\n'
            "   Focus on key decisions, emotional shifts, and the result of "
            "this block."
        )
    else:
        lines.append(
            f'3. "{SUMMARY_FIELD}" field should be NULL (do not summarize yet).'
        )
    return "\n".join(lines)


class PromptAssembler:
    """Builds the model prompt for one turn.

    The assembler only sees the slice of recent messages it is given and
    clamps it to the short-term window, so the prompt size is bounded
    independently of the conversation length.
    """

    def __init__(self, window_size: int = SHORT_TERM_WINDOW) -> None:
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1: {window_size}")
        self._window_size = window_size

    @property
    def window_size(self) -> int:
        return self._window_size

    def assemble(
        self,
        subject_context: str | None,
        phases: Sequence[Phase],
        recent_messages: Sequence[ChatMessage],
        new_user_message: str,
        is_phase_end: bool,
        phase_number: int,
    ) -> PromptPayload:
        """Assemble the prompt payload.

        Args:
            subject_context: Background context of the subject, if any.
            phases: All recorded phases (long-term memory).
            recent_messages: Most recent messages, oldest first.
            new_user_message: The message being answered.
            is_phase_end: Whether a phase summary must be requested.
            phase_number: Phase the turn belongs to.

        Returns:
            PromptPayload describing the request.
        """
        window = list(recent_messages)[-self._window_size :]
        if subject_context and subject_context.strip():
            context = subject_context
        else:
            context = NO_SUBJECT_CONTEXT

        return PromptPayload(
            subject_context=context,
            long_term_memory=format_long_term_memory(phases),
            short_term_memory=format_short_term_memory(window),
            task_instructions=build_task_instructions(
                new_user_message, is_phase_end, phase_number
            ),
            is_phase_end=is_phase_end,
            phase_number=phase_number,
            window_size=len(window),
        )
