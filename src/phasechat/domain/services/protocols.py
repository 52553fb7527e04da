"""Domain service protocols."""

from typing import Protocol

from phasechat.domain.entities import Event, ModelReply, PromptPayload


class ModelGateway(Protocol):
    """Model call abstraction.

    Implementations must treat model output as untrusted text and fall
    back to using the whole output as the reply when it cannot be parsed.
    """

    async def generate(self, payload: PromptPayload) -> ModelReply:
        """Generate a reply (and optional phase summary).

        Args:
            payload: Assembled prompt.

        Returns:
            Parsed model reply.

        Raises:
            GenerationError: The call failed or timed out.
        """
        ...


class EventNotifier(Protocol):
    """Outbound notification channel (room-scoped pub/sub, sockets, ...)."""

    async def dispatch(self, event: Event) -> None:
        """Deliver an event to observers.

        Args:
            event: The event to deliver.
        """
        ...
