"""LLM integration."""

from phasechat.infrastructure.llm.client import LLMClient
from phasechat.infrastructure.llm.exceptions import (
    LLMAuthenticationError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from phasechat.infrastructure.llm.gateway import LiteLLMModelGateway
from phasechat.infrastructure.llm.reply_parser import parse_model_reply

__all__ = [
    "LLMAuthenticationError",
    "LLMClient",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LiteLLMModelGateway",
    "parse_model_reply",
]
