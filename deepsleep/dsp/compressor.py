"""Compressor — feed-forward dynamic range compressor with gain-reduction telemetry."""

from __future__ import annotations

import numpy as np

_FLOOR_DB = -200.0


def smooth_reduction(
    target: np.ndarray, state: float, attack_coeff: float, release_coeff: float
) -> tuple[np.ndarray, float]:
    """Branching one-pole smoother: attack while reduction deepens, release while it recovers."""
    out = []
    for t in target.tolist():
        c = attack_coeff if t < state else release_coeff
        state = c * state + (1 - c) * t
        out.append(state)
    return np.array(out), state


def gain_computer(
    level_db: np.ndarray, threshold: float, ratio: float, knee: float
) -> np.ndarray:
    """Static soft-knee curve. Returns gain reduction in dB (always <= 0)."""
    over = level_db - threshold
    out = level_db.copy()

    above = 2 * over > knee
    out[above] = threshold + over[above] / ratio

    if knee > 0:
        in_knee = np.abs(2 * over) <= knee
        out[in_knee] = level_db[in_knee] + (
            (1 / ratio - 1) * (over[in_knee] + knee / 2) ** 2 / (2 * knee)
        )

    return np.minimum(out - level_db, 0.0)


class Compressor:
    """Peak compressor that processes mono blocks incrementally.

    The static curve (threshold/ratio/knee) gives a target gain reduction per
    sample; that target is smoothed with a one-pole filter whose time constant
    is ``attack`` while reduction deepens and ``release`` while it recovers.
    Smoothing state carries across blocks.

    ``reduction`` reports the deepest gain reduction (dB, <= 0) applied during
    the last processed block, which is what the spike monitor samples.
    """

    def __init__(
        self,
        threshold: float = -24.0,
        ratio: float = 12.0,
        attack: float = 0.003,
        release: float = 0.25,
        knee: float = 30.0,
        sample_rate: int = 44100,
    ):
        self.sample_rate = sample_rate
        self.threshold = threshold
        self.ratio = ratio
        self.attack = attack
        self.release = release
        self.knee = knee
        self._state_db = 0.0
        self._reduction = 0.0

    @property
    def reduction(self) -> float:
        return self._reduction

    def set_params(
        self,
        threshold: float,
        ratio: float,
        attack: float,
        release: float,
        knee: float,
    ) -> None:
        self.threshold = threshold
        self.ratio = max(ratio, 1.0)
        self.attack = attack
        self.release = release
        self.knee = knee

    def _coefficient(self, time_constant: float) -> float:
        if time_constant <= 0:
            return 0.0
        return float(np.exp(-1.0 / (time_constant * self.sample_rate)))

    def process(self, block: np.ndarray) -> np.ndarray:
        """Compress a block, maintaining envelope state across calls."""
        if len(block) == 0:
            return block

        level_db = 20 * np.log10(np.maximum(np.abs(block), 1e-10))
        level_db = np.maximum(level_db, _FLOOR_DB)
        target = gain_computer(level_db, self.threshold, self.ratio, self.knee)

        smoothed, self._state_db = smooth_reduction(
            target,
            self._state_db,
            self._coefficient(self.attack),
            self._coefficient(self.release),
        )
        self._reduction = float(smoothed.min())

        return block * 10 ** (smoothed / 20)

    def reset(self) -> None:
        self._state_db = 0.0
        self._reduction = 0.0
