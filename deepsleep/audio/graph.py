"""AudioGraph — owns the conditioning chain and its attach/detach/bypass wiring."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Protocol

import numpy as np

from ..config import DeepSleepConfig
from ..dsp.compressor import Compressor
from ..dsp.filters import ToneFilter
from ..dsp.gain import GainStage
from ..dsp.mapper import DspParameters
from ..dsp.noise import PinkNoiseGenerator, create_noise_generator
from ..errors import ResourceUnavailable, SourceUnavailable, UnsupportedFeature
from .source import MediaSource

logger = logging.getLogger(__name__)

BYPASS_ROUTE = ("source", "output")
CHAIN_ROUTE = ("source", "compressor", "tone_filter", "duck", "volume", "output")


class GraphState(Enum):
    DETACHED = auto()
    ATTACHED = auto()


class OutputBackend(Protocol):
    """Where rendered blocks go. AudioOutput is the sounddevice implementation."""

    @property
    def queued(self) -> int: ...

    async def resume(self) -> None: ...

    def write(self, audio: np.ndarray) -> None: ...

    def close(self) -> None: ...


class ConditioningChain:
    """The fixed node set: compressor → tone filter → duck gain → volume gain."""

    def __init__(self, sample_rate: int):
        self.compressor = Compressor(sample_rate=sample_rate)
        self.tone_filter = ToneFilter(sample_rate=sample_rate)
        self.duck = GainStage(1.0, sample_rate)
        self.volume = GainStage(1.0, sample_rate)

    def process(self, block: np.ndarray) -> np.ndarray:
        block = self.compressor.process(block)
        block = self.tone_filter.process(block)
        block = self.duck.process(block)
        return self.volume.process(block)

    def reset(self) -> None:
        """Forget envelope and filter history (new media)."""
        self.compressor.reset()
        self.tone_filter.reset()


class AudioGraph:
    """Routes a MediaSource either through the conditioning chain or straight out.

    The chain is built lazily on the first successful ``attach`` and kept for
    the graph's lifetime, so ``detach``/``reattach`` only rewire. Comfort noise
    runs as a parallel branch (noise → noise gain → output) that bypasses the
    chain.

    Usage::

        graph = AudioGraph(AudioOutput(), config)
        await graph.attach(source)
        graph.update_parameters(map_settings(settings))
        graph.pump()  # called periodically to keep the output fed
        graph.detach()
    """

    def __init__(
        self,
        output: OutputBackend,
        config: DeepSleepConfig | None = None,
        source: MediaSource | None = None,
    ):
        self.config = config or DeepSleepConfig()
        self.output = output
        self.source = source
        self.state = GraphState.DETACHED
        self.params = DspParameters()
        self.chain: ConditioningChain | None = None
        self.noise: PinkNoiseGenerator | None = None
        self.noise_gain = GainStage(0.0, self.config.sample_rate)
        self._route = BYPASS_ROUTE
        self._attach_lock = asyncio.Lock()

    @property
    def attached(self) -> bool:
        return self.state is GraphState.ATTACHED

    @property
    def has_chain(self) -> bool:
        return self.chain is not None

    @property
    def route(self) -> tuple[str, ...]:
        """Current wiring from source to output, by node name."""
        return self._route

    @property
    def duck(self) -> GainStage | None:
        return self.chain.duck if self.chain else None

    @property
    def reduction(self) -> float:
        """Compressor gain reduction in dB (0.0 when no chain exists)."""
        return self.chain.compressor.reduction if self.chain else 0.0

    def _check_source(self) -> MediaSource:
        if self.source is None:
            raise SourceUnavailable("No media source bound")
        if not self.source.ready:
            raise SourceUnavailable("Media source is not ready")
        return self.source

    def _build_chain(self) -> None:
        self.chain = ConditioningChain(self.config.sample_rate)
        try:
            self.noise = create_noise_generator(
                self.config.noise_backend, self.config.noise_seed
            )
        except UnsupportedFeature as e:
            logger.warning("%s; comfort noise disabled", e)
            self.noise = None
        logger.debug("Conditioning chain built")

    async def attach(self, source: MediaSource | None = None) -> bool:
        """Route the source through the conditioning chain.

        Returns True once attached. Failures are logged and leave the graph
        in its previous state.
        """
        async with self._attach_lock:
            if source is not None and source is not self.source:
                if self.attached:
                    self._bypass()
                if self.chain is not None:
                    self.chain.reset()
                self.source = source
            if self.attached:
                return True

            try:
                self._check_source()
                await self.output.resume()
            except (SourceUnavailable, ResourceUnavailable) as e:
                logger.error("Attach failed: %s", e)
                return False

            if self.chain is None:
                self._build_chain()
            self._connect()
            logger.info("Audio processing attached")
            return True

    async def reattach(self) -> bool:
        """Reconnect the existing chain without rebuilding it."""
        if self.chain is None:
            return await self.attach()

        async with self._attach_lock:
            if self.attached:
                return True
            try:
                self._check_source()
                await self.output.resume()
            except (SourceUnavailable, ResourceUnavailable) as e:
                logger.error("Reattach failed: %s", e)
                return False
            self._connect()
            logger.info("Audio processing reattached")
            return True

    def _connect(self) -> None:
        self._route = CHAIN_ROUTE
        self.state = GraphState.ATTACHED
        self._push(self.params)

    def _bypass(self) -> None:
        self._route = BYPASS_ROUTE
        self.noise_gain.set_value(0.0)
        if self.source is not None:
            self.source.playback_rate = 1.0
        self.state = GraphState.DETACHED

    def detach(self) -> None:
        """Route the source straight to the output (true bypass)."""
        if not self.attached:
            return
        self._bypass()
        logger.info("Audio processing detached")

    def update_parameters(self, params: DspParameters) -> None:
        """Latch ``params`` and push them into whatever nodes exist."""
        self.params = params
        self._push(params)

    def _push(self, p: DspParameters) -> None:
        if self.chain is not None:
            self.chain.compressor.set_params(p.threshold, p.ratio, p.attack, p.release, p.knee)
            self.chain.tone_filter.set_params(p.cutoff_frequency, p.q)
            self.chain.volume.set_value(p.volume_gain)

        # Rate and comfort noise only apply while conditioning
        if self.attached:
            if self.source is not None:
                self.source.playback_rate = p.playback_rate
            self.noise_gain.set_value(p.noise_gain if self.noise is not None else 0.0)

        logger.debug("Applied parameters %s", p)

    def pause_playback(self) -> None:
        if self.source is not None:
            self.source.pause()

    def render(self, n_frames: int) -> np.ndarray:
        """Produce the next ``n_frames`` of output."""
        if self.source is not None and self.source.ready:
            block = self.source.read(n_frames)
        else:
            block = np.zeros(n_frames)

        if self.attached and self.chain is not None:
            block = self.chain.process(block)

        if self.noise is not None:
            # Generator always runs; the gain alone decides audibility
            block = block + self.noise_gain.process(self.noise.generate(n_frames))

        return block

    def pump(self) -> int:
        """Top up the output queue. Returns the number of blocks written."""
        written = 0
        while self.output.queued < self.config.buffer_blocks:
            self.output.write(self.render(self.config.block_size))
            written += 1
        return written
