"""Media sources — live producers of mono audio blocks."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np
from scipy.io import wavfile


@runtime_checkable
class MediaSource(Protocol):
    """A live audio producer the graph can condition.

    ``playback_rate`` is mutable; 1.0 is normal speed.
    """

    playback_rate: float

    @property
    def ready(self) -> bool: ...

    def read(self, n_frames: int) -> np.ndarray: ...

    def pause(self) -> None: ...


class ArraySource:
    """Plays a numpy buffer, varispeed via linear interpolation.

    Changing ``playback_rate`` changes pitch like a record player; the source
    emits silence once the buffer is exhausted (or loops, if ``loop=True``).

    Usage::

        src = ArraySource(samples, sample_rate=44100)
        src.playback_rate = 0.9
        block = src.read(1024)
    """

    def __init__(self, samples: np.ndarray, sample_rate: int = 44100, loop: bool = False):
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim > 1:
            samples = samples.mean(axis=1)
        self.samples = samples
        self.sample_rate = sample_rate
        self.loop = loop
        self.playback_rate = 1.0
        self.paused = False
        self._position = 0.0

    @property
    def ready(self) -> bool:
        return len(self.samples) > 0

    @property
    def finished(self) -> bool:
        return not self.loop and self._position >= len(self.samples)

    def pause(self) -> None:
        self.paused = True

    def read(self, n_frames: int) -> np.ndarray:
        n = len(self.samples)
        if self.paused or n == 0 or self.finished:
            return np.zeros(n_frames)

        idx = self._position + np.arange(n_frames) * self.playback_rate
        self._position += n_frames * self.playback_rate
        if self.loop:
            idx = idx % n
            self._position %= n

        valid = idx <= n - 1
        out = np.zeros(n_frames)
        out[valid] = np.interp(idx[valid], np.arange(n), self.samples)
        return out


class WavFileSource(ArraySource):
    """ArraySource loaded from a WAV file (mixed down to mono, scaled to [-1, 1])."""

    def __init__(self, path: str, loop: bool = False):
        sample_rate, data = wavfile.read(path)
        if np.issubdtype(data.dtype, np.integer):
            data = data.astype(np.float64) / np.iinfo(data.dtype).max
        super().__init__(data, sample_rate=sample_rate, loop=loop)
        self.path = path
