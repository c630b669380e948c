"""Pink noise generators for comfort noise.

Two interchangeable strategies sit behind one interface; the host picks one
with ``create_noise_generator``. Generators run continuously, audibility is
controlled only by the downstream noise gain.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from scipy.signal import lfilter

from ..errors import UnsupportedFeature


class PinkNoiseGenerator(ABC):
    """Produces a continuous 1/f noise signal, block by block."""

    def __init__(self, seed: int | None = None):
        self._rng = np.random.default_rng(seed)

    def white(self, n_frames: int) -> np.ndarray:
        return self._rng.uniform(-1.0, 1.0, n_frames)

    @abstractmethod
    def generate(self, n_frames: int) -> np.ndarray:
        """Generate ``n_frames`` of mono pink noise, roughly in [-1, 1]."""
        ...


class KelletPinkNoise(PinkNoiseGenerator):
    """Paul Kellet's refined pink filter: a bank of one-pole sections fed by white noise.

    Each section is run through ``lfilter`` with carried state, so the result
    is identical to the per-sample recurrence but vectorized per block.
    """

    POLES = np.array([0.99886, 0.99332, 0.96900, 0.86650, 0.55000, -0.7616])
    GAINS = np.array([0.0555179, 0.0750759, 0.1538520, 0.3104856, 0.5329522, -0.0168980])
    DIRECT = 0.5362
    DELAYED = 0.115926
    SCALE = 0.11

    def __init__(self, seed: int | None = None):
        super().__init__(seed)
        self._state = np.zeros(len(self.POLES))
        self._last_white = 0.0

    def generate(self, n_frames: int) -> np.ndarray:
        white = self.white(n_frames)
        if n_frames == 0:
            return white

        pink = white * self.DIRECT
        for i, (pole, gain) in enumerate(zip(self.POLES, self.GAINS)):
            y, _ = lfilter([gain], [1.0, -pole], white, zi=[pole * self._state[i]])
            self._state[i] = y[-1]
            pink += y

        # One-sample delayed white term
        delayed = np.empty(n_frames)
        delayed[0] = self._last_white
        delayed[1:] = white[:-1]
        pink += delayed * self.DELAYED
        self._last_white = float(white[-1])

        return pink * self.SCALE


class IIRPinkNoise(PinkNoiseGenerator):
    """White noise through a 4-pole/4-zero filter approximating a -3 dB/octave slope."""

    B = np.array([0.049922035, -0.095993537, 0.050612699, -0.004408786])
    A = np.array([1.0, -2.494956002, 2.017265875, -0.522189400])
    SCALE = 3.0

    def __init__(self, seed: int | None = None):
        super().__init__(seed)
        self._zi = np.zeros(len(self.A) - 1)

    def generate(self, n_frames: int) -> np.ndarray:
        white = self.white(n_frames)
        pink, self._zi = lfilter(self.B, self.A, white, zi=self._zi)
        return pink * self.SCALE


NOISE_BACKENDS: dict[str, type[PinkNoiseGenerator]] = {
    "kellet": KelletPinkNoise,
    "iir": IIRPinkNoise,
}


def create_noise_generator(kind: str, seed: int | None = None) -> PinkNoiseGenerator:
    """Instantiate the pink noise strategy named ``kind``.

    Raises UnsupportedFeature if no such backend exists on this host.
    """
    try:
        cls = NOISE_BACKENDS[kind]
    except KeyError:
        raise UnsupportedFeature(f"Pink noise backend {kind!r} is not supported") from None
    return cls(seed)
