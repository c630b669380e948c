"""GainStage — a gain node with click-free exponential ramps."""

from __future__ import annotations

import numpy as np


class GainStage:
    """Multiplies blocks by a gain that can jump or glide toward a target.

    ``set_target`` follows ``g(t) = target + (g0 - target) * exp(-t / tau)``
    sample by sample, so ducking and un-ducking never produce a step.
    """

    def __init__(self, value: float = 1.0, sample_rate: int = 44100):
        self.sample_rate = sample_rate
        self._value = float(value)
        self._target = float(value)
        self._time_constant = 0.0

    @property
    def value(self) -> float:
        """Gain at the end of the last processed block."""
        return self._value

    @property
    def target(self) -> float:
        return self._target

    def set_value(self, value: float) -> None:
        """Jump to ``value`` immediately, cancelling any ramp."""
        self._value = float(value)
        self._target = float(value)
        self._time_constant = 0.0

    def set_target(self, target: float, time_constant: float) -> None:
        """Approach ``target`` exponentially with time constant ``time_constant`` seconds."""
        if time_constant <= 0:
            self.set_value(target)
            return
        self._target = float(target)
        self._time_constant = float(time_constant)

    def envelope(self, n_frames: int) -> np.ndarray:
        """Per-sample gain for the next ``n_frames`` and advance the ramp."""
        if self._time_constant <= 0 or self._value == self._target:
            return np.full(n_frames, self._value)

        t = np.arange(1, n_frames + 1) / self.sample_rate
        env = self._target + (self._value - self._target) * np.exp(-t / self._time_constant)
        if n_frames > 0:
            self._value = float(env[-1])
        if abs(self._value - self._target) < 1e-5:
            self._value = self._target
        return env

    def process(self, block: np.ndarray) -> np.ndarray:
        return block * self.envelope(len(block))
