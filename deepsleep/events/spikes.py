"""SpikeMonitor — count discrete loudness spikes the compressor suppressed."""

from __future__ import annotations

import time
from collections.abc import Callable

from .base import Event, EventType


class SpikeMonitor:
    """Detects spikes as deep compressor gain reduction, with a refractory window.

    A sustained loud passage keeps the compressor reducing gain for a while;
    the refractory window makes one such passage count once rather than on
    every sample.

    Usage::

        monitor = SpikeMonitor(threshold_db=-6.0, refractory=0.5)
        for event in monitor.sample(graph.reduction, now=time.monotonic()):
            bus.publish(event)
    """

    def __init__(
        self,
        threshold_db: float = -6.0,
        refractory: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold_db = threshold_db
        self.refractory = refractory
        self.clock = clock
        self._count = 0
        self._last_spike = float("-inf")

    @property
    def count(self) -> int:
        """Spikes suppressed since construction."""
        return self._count

    def sample(self, reduction: float, now: float | None = None) -> list[Event]:
        """Examine one gain-reduction reading (dB) and return any spike event."""
        if now is None:
            now = self.clock()

        if reduction >= self.threshold_db:
            return []
        if now - self._last_spike < self.refractory:
            return []

        self._count += 1
        self._last_spike = now
        return [
            Event(
                EventType.SPIKE_SUPPRESSED,
                timestamp=now,
                value=reduction,
                metadata={"count": self._count},
            )
        ]
