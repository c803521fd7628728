"""Observer-style event bus used as the engine's output channel."""

from __future__ import annotations

import logging
from typing import Any, Callable

log = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]


class EventBus:
    """Synchronous publish/subscribe by event name.

    Each sync service owns its own bus, so independent instances never
    see each other's events. Handlers run inline in ``emit``; a handler
    that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, name: str, handler: EventHandler) -> None:
        self._handlers.setdefault(name, []).append(handler)
        log.debug("Handler subscribed to %s", name)

    def unsubscribe(self, name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, name: str, event: Any) -> None:
        for handler in list(self._handlers.get(name, [])):
            try:
                handler(event)
            except Exception as exc:
                log.error("Handler error for %s: %s", name, exc, exc_info=True)
