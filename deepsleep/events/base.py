"""Session event types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class EventType(Enum):
    ATTACHED = auto()
    DETACHED = auto()
    SPIKE_SUPPRESSED = auto()
    AD_DUCK_START = auto()
    AD_DUCK_END = auto()
    TIMER_ARMED = auto()
    FADE_STARTED = auto()
    TIMER_EXPIRED = auto()
    TIMER_CANCELLED = auto()


@dataclass
class Event:
    type: EventType
    timestamp: float
    value: float = 0.0        # event-specific magnitude
    metadata: dict = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"Event({self.type.name}, value={self.value:.1f})"
