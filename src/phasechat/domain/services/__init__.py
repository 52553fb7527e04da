"""Domain services."""

from phasechat.domain.services.phase_detector import (
    PHASE_SIZE,
    current_phase_number,
    is_phase_end,
    phase_message_range,
)
from phasechat.domain.services.prompt_assembler import PromptAssembler
from phasechat.domain.services.protocols import EventNotifier, ModelGateway

__all__ = [
    "PHASE_SIZE",
    "EventNotifier",
    "ModelGateway",
    "PromptAssembler",
    "current_phase_number",
    "is_phase_end",
    "phase_message_range",
]
