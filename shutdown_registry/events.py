"""Event publication for drain passes."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, DefaultDict, List, Optional, Protocol

from .logging_utils import LOGGER_NAME

Handler = Callable[..., Any]


class RegistryEvent(str, Enum):
    STARTED = "started"
    ITEM_COMPLETED = "item_completed"
    ITEM_FAILED = "item_failed"
    FINISHED = "finished"


class EventSink(Protocol):
    """Anything that can receive ``publish(event, *payload)`` calls."""

    def publish(self, event: str, *payload: Any) -> None:
        ...


class EventBus:
    """Synchronous in-process publish/subscribe sink.

    Handlers for an event are called in subscription order. A handler that
    raises is logged and skipped; the remaining handlers still run.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        key = _event_key(event)
        self._handlers[key].append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(key, handler)

        return _unsubscribe

    def unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(_event_key(event))
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return

    def publish(self, event: str, *payload: Any) -> None:
        key = _event_key(event)
        for handler in list(self._handlers.get(key, ())):
            try:
                handler(*payload)
            except Exception:
                self.logger.exception("Handler %r for event '%s' raised", handler, key)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(_event_key(event), ()))


def _event_key(event: str) -> str:
    if isinstance(event, RegistryEvent):
        return event.value
    return str(event)


__all__ = ["EventBus", "EventSink", "Handler", "RegistryEvent"]
