"""Synchronous event bus used by the engine to announce game events."""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class EventBus:
    """
    Minimal publish/subscribe hub.

    Handlers are called in subscription order. A failing handler is logged
    and does not stop the remaining handlers or the engine.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable[[Dict[str, Any]], None]]] = defaultdict(list)

    def on(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """Subscribe; returns a function that unsubscribes."""
        self._handlers[event].append(handler)
        return lambda: self.off(event, handler)

    def once(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        def wrapper(payload):
            self.off(event, wrapper)
            handler(payload)

        self.on(event, wrapper)

    def off(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Dict[str, Any] = None) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload or {})
            except Exception:
                logger.exception(f"Event handler for '{event}' failed")
