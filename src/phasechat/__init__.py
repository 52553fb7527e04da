"""phasechat - phase-based conversation memory for LLM chats."""

__version__ = "0.1.0"
