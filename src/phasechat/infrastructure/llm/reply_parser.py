"""Defensive parsing of model output into reply + phase summary."""

import json
import logging
import re
from typing import Any

from phasechat.domain.entities import ModelReply
from phasechat.domain.entities.prompt import REPLY_FIELD, SUMMARY_FIELD

logger = logging.getLogger(__name__)

# Outermost {...} block; models often wrap JSON in prose or code fences
_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

_SUMMARY_ALIASES = (SUMMARY_FIELD, "summary")
_NULL_STRINGS = {"", "null", "none"}


def _clean_text(value: Any) -> str | None:
    """Return stripped text, or None for null-ish values."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _NULL_STRINGS:
        return None
    return text


def _extract_json_object(raw: str) -> dict[str, Any] | None:
    match = _JSON_OBJECT_PATTERN.search(raw)
    if not match:
        return None
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_model_reply(raw: str) -> ModelReply:
    """Parse raw model output.

    When the output contains a JSON object with a "reply" field, the reply
    and the optional summary are taken from it. Anything else falls back to
    using the whole output as the reply with no summary.

    Args:
        raw: Raw model output.

    Returns:
        Parsed reply. ``reply`` may be empty if the model returned nothing.
    """
    data = _extract_json_object(raw)
    if data is None or REPLY_FIELD not in data:
        if raw.strip():
            logger.warning("Model output is not structured, using it as reply")
        return ModelReply(reply=raw.strip(), summary=None, raw=raw)

    summary = None
    for key in _SUMMARY_ALIASES:
        summary = _clean_text(data.get(key))
        if summary:
            break

    return ModelReply(
        reply=_clean_text(data.get(REPLY_FIELD)) or "",
        summary=summary,
        raw=raw,
    )
