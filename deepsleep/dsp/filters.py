"""ToneFilter — real-time streaming lowpass used for warmth."""

from __future__ import annotations

import numpy as np
from scipy.signal import lfilter


def lowpass_coefficients(
    cutoff: float, q: float, sample_rate: int
) -> tuple[np.ndarray, np.ndarray]:
    """Biquad lowpass coefficients (audio EQ cookbook), normalized so a[0] == 1."""
    cutoff = min(max(cutoff, 1.0), sample_rate / 2 * 0.999)
    w0 = 2 * np.pi * cutoff / sample_rate
    cos_w0 = np.cos(w0)
    alpha = np.sin(w0) / (2 * q)

    b = np.array([(1 - cos_w0) / 2, 1 - cos_w0, (1 - cos_w0) / 2])
    a = np.array([1 + alpha, -2 * cos_w0, 1 - alpha])
    return b / a[0], a / a[0]


class ToneFilter:
    """Causal biquad lowpass that processes blocks incrementally.

    Maintains filter state across calls so it can process real-time blocks,
    and keeps that state when retuned so cutoff changes don't click.

    Usage::

        tone = ToneFilter(cutoff=4400.0, q=0.7)
        for block in blocks:
            warmed = tone.process(block)
    """

    def __init__(
        self,
        cutoff: float = 8000.0,
        q: float = 0.7,
        sample_rate: int = 44100,
    ):
        self.sample_rate = sample_rate
        self.cutoff = cutoff
        self.q = q
        self._b, self._a = lowpass_coefficients(cutoff, q, sample_rate)
        self._zi = np.zeros(2)

    def set_params(self, cutoff: float, q: float) -> None:
        self.cutoff = cutoff
        self.q = q
        self._b, self._a = lowpass_coefficients(cutoff, q, self.sample_rate)

    def process(self, block: np.ndarray) -> np.ndarray:
        """Filter a block of samples, maintaining state across calls."""
        filtered, self._zi = lfilter(self._b, self._a, block, zi=self._zi)
        return filtered

    def reset(self) -> None:
        """Reset filter state."""
        self._zi = np.zeros(2)
