"""LiteLLM-based model gateway."""

import logging

from phasechat.config import PersonaConfig
from phasechat.domain.entities import ModelReply, PromptPayload
from phasechat.domain.entities.prompt import REPLY_FIELD, SUMMARY_FIELD
from phasechat.domain.exceptions import GenerationError
from phasechat.infrastructure.llm.client import LLMClient
from phasechat.infrastructure.llm.exceptions import LLMError
from phasechat.infrastructure.llm.reply_parser import parse_model_reply
from phasechat.infrastructure.llm.templates import create_jinja_env

logger = logging.getLogger(__name__)


class LiteLLMModelGateway:
    """LiteLLM-based ModelGateway implementation.

    Sends the assembled prompt as the user message under a persona system
    prompt, then parses the output into reply and phase summary.
    """

    def __init__(
        self,
        client: LLMClient,
        persona: PersonaConfig,
        *,
        debug_llm_messages: bool = False,
    ) -> None:
        """Initialize the gateway.

        Args:
            client: LLMClient instance.
            persona: Persona whose system prompt frames every request.
            debug_llm_messages: If True, log LLM messages at INFO level.
        """
        self._client = client
        self._persona = persona
        self._debug_llm_messages = debug_llm_messages
        self._template = create_jinja_env().get_template("system_prompt.j2")

    async def generate(self, payload: PromptPayload) -> ModelReply:
        """Generate a reply for the assembled prompt.

        Args:
            payload: Assembled prompt.

        Returns:
            Parsed model reply.

        Raises:
            GenerationError: If the LLM call fails.
        """
        messages = self.build_messages(payload)

        if self._should_log():
            self._log_messages(messages)

        try:
            response = await self._client.complete(messages)
        except LLMError as e:
            raise GenerationError(f"Model call failed: {e}") from e

        if self._should_log():
            self._log_response(response)

        reply = parse_model_reply(response)
        if payload.is_phase_end and not reply.has_summary():
            logger.warning(
                "Model returned no summary for phase %d", payload.phase_number
            )
        return reply

    def build_messages(self, payload: PromptPayload) -> list[dict[str, str]]:
        """Build OpenAI-format messages for a payload."""
        system_prompt = self._template.render(
            persona_system_prompt=self._persona.system_prompt,
            reply_field=REPLY_FIELD,
            summary_field=SUMMARY_FIELD,
            is_phase_end=payload.is_phase_end,
            phase_number=payload.phase_number,
        )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": payload.text},
        ]

    def _should_log(self) -> bool:
        """Check if logging should occur."""
        return self._debug_llm_messages or logger.isEnabledFor(logging.DEBUG)

    def _log_messages(self, messages: list[dict[str, str]]) -> None:
        """Log LLM request messages."""
        log_func = logger.info if self._debug_llm_messages else logger.debug
        log_func("=== LLM Request Messages ===")
        for i, msg in enumerate(messages):
            log_func("[%d] role=%s", i, msg.get("role", "unknown"))
            log_func("    content: %s", msg.get("content", ""))
        log_func("=== End of Messages ===")

    def _log_response(self, response: str) -> None:
        """Log LLM response."""
        log_func = logger.info if self._debug_llm_messages else logger.debug
        log_func("=== LLM Response ===")
        log_func("response: %s", response)
        log_func("=== End of Response ===")
