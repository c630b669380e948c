"""AudioOutput — sounddevice OutputStream wrapper."""

from __future__ import annotations

import logging
from collections import deque

import numpy as np
import sounddevice as sd

from ..errors import ResourceUnavailable

logger = logging.getLogger(__name__)


class AudioOutput:
    """Wraps a sounddevice OutputStream with a simple write() interface.

    Uses a callback-based stream fed from a deque buffer, so all DSP runs on
    the event loop and the PortAudio thread only copies finished blocks.

    Usage::

        out = AudioOutput(sample_rate=44100, block_size=1024)
        await out.resume()
        out.write(audio_block)  # numpy float64 array
        ...
        out.close()
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        block_size: int = 1024,
        channels: int = 1,
        buffer_blocks: int = 8,
    ):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.channels = channels
        self.buffer_blocks = buffer_blocks
        self._buffer: deque[np.ndarray] = deque(maxlen=buffer_blocks)
        self._stream: sd.OutputStream | None = None

    @property
    def running(self) -> bool:
        return self._stream is not None and self._stream.active

    @property
    def queued(self) -> int:
        """Number of blocks waiting to be played."""
        return len(self._buffer)

    def _callback(
        self,
        outdata: np.ndarray,
        frames: int,
        time_info: object,
        status: sd.CallbackFlags,
    ) -> None:
        if self._buffer:
            block = self._buffer.popleft()
            n = min(len(block), frames)
            outdata[:n, :] = block[:n, None]
            if n < frames:
                outdata[n:, :] = 0.0
        else:
            outdata[:, :] = 0.0

    async def resume(self) -> None:
        """Open and start the stream if it isn't running.

        Raises ResourceUnavailable if the host refuses the audio device.
        """
        if self.running:
            return
        try:
            if self._stream is None:
                self._stream = sd.OutputStream(
                    samplerate=self.sample_rate,
                    blocksize=self.block_size,
                    channels=self.channels,
                    dtype="float32",
                    callback=self._callback,
                )
            self._stream.start()
        except sd.PortAudioError as e:
            self._stream = None
            raise ResourceUnavailable(f"Audio output unavailable: {e}") from e
        logger.info("Audio output started (%d Hz, %d frames/block)", self.sample_rate, self.block_size)

    def write(self, audio: np.ndarray) -> None:
        """Queue an audio block for playback."""
        self._buffer.append(audio.astype(np.float32))

    def close(self) -> None:
        """Stop and close the audio stream."""
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        self._buffer.clear()
