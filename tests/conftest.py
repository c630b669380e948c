"""Shared fakes for the conditioning tests."""

import asyncio

import numpy as np
import pytest

from deepsleep.audio.graph import AudioGraph
from deepsleep.audio.source import ArraySource
from deepsleep.config import DeepSleepConfig
from deepsleep.errors import ResourceUnavailable

SAMPLE_RATE = 44100


class FakeOutput:
    """In-memory output backend; records blocks and resume calls."""

    def __init__(self, fail: bool = False, gate: asyncio.Event | None = None):
        self.fail = fail
        self.gate = gate
        self.blocks: list[np.ndarray] = []
        self.resume_calls = 0
        self.closed = False

    @property
    def queued(self) -> int:
        return len(self.blocks)

    async def resume(self) -> None:
        self.resume_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail:
            raise ResourceUnavailable("blocked by host policy")

    def write(self, audio: np.ndarray) -> None:
        self.blocks.append(audio)

    def drain(self) -> list[np.ndarray]:
        blocks, self.blocks = self.blocks, []
        return blocks

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdProbe:
    def __init__(self):
        self.ad_playing = False

    def is_ad_playing(self) -> bool:
        return self.ad_playing


async def instant_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


async def stalled_sleep(_seconds: float) -> None:
    await asyncio.Event().wait()


def tone(seconds: float = 2.0, amplitude: float = 0.1, freq: float = 440.0) -> np.ndarray:
    t = np.arange(int(seconds * SAMPLE_RATE)) / SAMPLE_RATE
    return amplitude * np.sin(2 * np.pi * freq * t)


@pytest.fixture
def config():
    return DeepSleepConfig(noise_seed=42)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return ArraySource(tone(), SAMPLE_RATE, loop=True)


@pytest.fixture
def output():
    return FakeOutput()


@pytest.fixture
def graph(output, config, source):
    return AudioGraph(output, config, source=source)
