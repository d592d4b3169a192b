"""EventBus — carries input, engine and lifecycle events inside the daemon.

Mouse clicks, engine notifications, toggles and shutdown are published
here so the input side never calls the desktop side directly.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Any, Callable

from keyhabit.core.events import Event, EventType

logger = logging.getLogger(__name__)

Handler = Callable[[Event], None]


class EventBus:
    """Synchronous pub/sub; handlers run in subscription order."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._handlers: dict[EventType, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def has_subscribers(self, event_type: EventType) -> bool:
        return bool(self._handlers.get(event_type))

    def emit(self, event_type: EventType, data: Any = None) -> Event:
        """Stamp *data* with the bus clock and publish it."""
        event = Event(event_type, data, self.clock())
        self.publish(event)
        return event

    def publish(self, event: Event) -> int:
        """Run every handler for ``event.type``; return how many succeeded.

        A failing handler is logged and skipped.
        """
        delivered = 0
        for handler in list(self._handlers.get(event.type, [])):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "%s handler %s failed",
                    event.type.name,
                    getattr(handler, "__qualname__", handler),
                )
        return delivered
