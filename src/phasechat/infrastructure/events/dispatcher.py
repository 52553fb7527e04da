"""Event dispatcher used as the outbound notification channel."""

import logging
from collections.abc import Awaitable, Callable

from phasechat.domain.entities.event import Event, EventType

logger = logging.getLogger(__name__)

# Handler type: async function that takes an Event and returns None
EventHandler = Callable[[Event], Awaitable[None]]


def event_handler(event_type: EventType) -> Callable[[EventHandler], EventHandler]:
    """Decorator for marking event handlers.

    Usage:
        @event_handler(EventType.NEW_REPLY)
        async def push_to_room(event: Event) -> None:
            ...

    Args:
        event_type: The event type this handler processes.

    Returns:
        Decorator function.
    """

    def decorator(func: EventHandler) -> EventHandler:
        func._event_type = event_type  # type: ignore[attr-defined]
        return func

    return decorator


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", str(handler))


class EventDispatcher:
    """Dispatches events to registered handlers.

    Handler failures are logged and never propagate to the caller, so a
    broken observer cannot fail a conversation turn.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = {}

    def register(self, event_type: EventType, handler: EventHandler) -> None:
        """Register a handler for an event type.

        Args:
            event_type: The event type to handle.
            handler: The handler function.
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(
            "Registered handler for %s: %s", event_type.value, _handler_name(handler)
        )

    def register_handler(self, handler: EventHandler) -> None:
        """Register a handler that was decorated with @event_handler.

        Raises:
            ValueError: If the handler doesn't have an _event_type attribute.
        """
        event_type = getattr(handler, "_event_type", None)
        if event_type is None:
            raise ValueError(
                f"Handler {_handler_name(handler)} has no _event_type attribute. "
                "Use the @event_handler decorator."
            )
        self.register(event_type, handler)

    async def dispatch(self, event: Event) -> None:
        """Dispatch an event to all registered handlers.

        Args:
            event: The event to dispatch.
        """
        handlers = list(self._handlers.get(event.type, []))
        if not handlers:
            logger.debug("No handler registered for event type: %s", event.type.value)
            return

        for handler in handlers:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Error in event handler %s for event %s",
                    _handler_name(handler),
                    event.type.value,
                )
