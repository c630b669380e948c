"""AdDuckController — lower the volume while an interstitial ad plays."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from ..audio.graph import AudioGraph
from ..events.base import Event, EventType

logger = logging.getLogger(__name__)


class AdStateProbe(Protocol):
    def is_ad_playing(self) -> bool: ...


class AdDuckController:
    """Edge-triggered ducking driven by an ad-state probe.

    Entering an ad with ``ad_mute`` on glides the duck gain to ``duck_level``;
    leaving it (or turning ``ad_mute`` off) glides back to 1.0 while the
    session is enabled. Ramps are exponential with ``time_constant`` seconds
    so there is no click. Does nothing while the graph is detached.
    """

    def __init__(
        self,
        graph: AudioGraph,
        probe: AdStateProbe | None = None,
        *,
        duck_level: float = 0.1,
        time_constant: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.graph = graph
        self.probe = probe
        self.duck_level = duck_level
        self.time_constant = time_constant
        self.clock = clock

        self.ad_mute = True
        self.enabled = False
        self._ad_playing = False
        self._ducked = False

    @property
    def ducked(self) -> bool:
        return self._ducked

    def configure(self, ad_mute: bool, enabled: bool) -> list[Event]:
        """Take new settings flags and re-evaluate."""
        self.ad_mute = ad_mute
        self.enabled = enabled
        return self._evaluate()

    def check(self) -> list[Event]:
        """Poll the probe once."""
        if self.probe is None:
            return []
        return self.notify(self.probe.is_ad_playing())

    def notify(self, ad_playing: bool) -> list[Event]:
        """Push-style update of the ad state."""
        self._ad_playing = bool(ad_playing)
        return self._evaluate()

    def resync(self) -> list[Event]:
        """Re-assert the ducking decision after the duck gain was set elsewhere.

        The sleep timer writes the same gain stage; once it restores 1.0, a
        ducked ad has to be ducked again.
        """
        duck = self.graph.duck
        if self._ducked and duck is not None and duck.target != self.duck_level:
            self._ducked = False
        return self._evaluate()

    def reset(self) -> None:
        """Forget the ducked state (graph detached); the next ad ducks afresh."""
        if self._ducked and self.graph.duck is not None:
            self.graph.duck.set_value(1.0)
        self._ducked = False

    def _evaluate(self) -> list[Event]:
        duck = self.graph.duck
        if not self.graph.attached or duck is None:
            return []

        want = self._ad_playing and self.ad_mute
        if want and not self._ducked:
            duck.set_target(self.duck_level, self.time_constant)
            self._ducked = True
            logger.info("Ad detected, ducking to %.2f", self.duck_level)
            return [Event(EventType.AD_DUCK_START, timestamp=self.clock(), value=self.duck_level)]

        if not want and self._ducked and self.enabled:
            duck.set_target(1.0, self.time_constant)
            self._ducked = False
            logger.info("Ad finished, restoring volume")
            return [Event(EventType.AD_DUCK_END, timestamp=self.clock(), value=1.0)]

        return []
