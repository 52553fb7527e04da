"""Phase boundary detection.

A phase closes after every 5 complete exchanges (10 messages). The check
runs after the user message is appended and before the assistant reply,
so the boundary is seen at log lengths 9, 19, 29, ...
"""

import math

PHASE_SIZE = 10


def is_phase_end(message_count: int) -> bool:
    """Check whether the current turn closes a phase.

    Args:
        message_count: Log length after the user message was appended.

    Returns:
        True if the turn must request a phase summary.
    """
    return message_count % PHASE_SIZE == PHASE_SIZE - 1


def current_phase_number(message_count: int) -> int:
    """Phase the current turn belongs to.

    Args:
        message_count: Log length after the user message was appended.

    Returns:
        ceil(message_count / 10)
    """
    return math.ceil(message_count / PHASE_SIZE)


def phase_message_range(phase_number: int) -> range:
    """Log indices summarized by a phase.

    Args:
        phase_number: 1-based phase number.

    Returns:
        range over [(n-1)*10, n*10)

    Raises:
        ValueError: phase_number is not positive.
    """
    if phase_number < 1:
        raise ValueError(f"phase_number must be >= 1: {phase_number}")
    start = (phase_number - 1) * PHASE_SIZE
    return range(start, start + PHASE_SIZE)
