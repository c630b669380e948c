"""EventBus — fans session events out to listeners on the event loop."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .base import Event, EventType

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class EventBus:
    """Synchronous dispatch of session events.

    Listeners for a specific type run first, then wildcard listeners. A
    listener that raises is logged and skipped; delivery continues to the
    rest, so one broken consumer (a stats sink, a UI bridge) cannot stall the
    periodic loop that published the event.

    Usage::

        bus = EventBus()
        bus.subscribe(EventType.AD_DUCK_START, lambda e: print("ducking to", e.value))
        bus.subscribe(None, log_everything)
        bus.publish(Event(EventType.AD_DUCK_START, timestamp=12.5, value=0.1))
    """

    def __init__(self) -> None:
        self._listeners: dict[EventType | None, list[Listener]] = {}

    def subscribe(self, event_type: EventType | None, listener: Listener) -> None:
        """Register ``listener`` for ``event_type``; ``None`` means every type."""
        self._listeners.setdefault(event_type, []).append(listener)

    def publish(self, event: Event) -> None:
        targeted = self._listeners.get(event.type, [])
        wildcard = self._listeners.get(None, [])
        for listener in [*targeted, *wildcard]:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, event.type.name)
