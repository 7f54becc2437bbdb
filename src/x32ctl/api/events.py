"""Subscription channels for session events.

Consumers register a handler on a channel and get back a callable that
removes it again. Handlers run synchronously in the emitting task.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class EventChannel(Generic[T]):
    """A named channel delivering one payload type to any number of handlers.

    Example:
        channel: EventChannel[int] = EventChannel("scene_loaded")
        unsubscribe = channel.subscribe(lambda index: print(index))
        channel.emit(4)
        unsubscribe()
    """

    def __init__(self, name: str) -> None:
        """Initialize the channel.

        Args:
            name: Channel name used in log messages.
        """
        self._name = name
        self._handlers: list[Callable[[T], None]] = []

    @property
    def name(self) -> str:
        """Return the channel name."""
        return self._name

    @property
    def handler_count(self) -> int:
        """Return the number of registered handlers."""
        return len(self._handlers)

    def subscribe(self, handler: Callable[[T], None]) -> Unsubscribe:
        """Register a handler.

        Args:
            handler: Called with each emitted payload.

        Returns:
            A callable that unregisters the handler (safe to call twice).
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, payload: T) -> None:
        """Deliver a payload to every handler.

        A failing handler is logged and does not stop delivery to the others.
        """
        for handler in list(self._handlers):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s event failed", self._name)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
