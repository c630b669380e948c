#!/usr/bin/env python3
"""Render a synthetic spiky signal through the chain offline and plot the result.

Usage:
    python scripts/plot_conditioning.py                     # safety 70, warmth 60
    python scripts/plot_conditioning.py --safety 95 --warmth 80
"""

import argparse
import asyncio
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from deepsleep.audio.graph import AudioGraph
from deepsleep.audio.source import ArraySource
from deepsleep.config import DeepSleepConfig
from deepsleep.dsp.mapper import map_settings
from deepsleep.events.spikes import SpikeMonitor
from deepsleep.settings import Settings

DURATION = 10.0  # seconds


class OfflineOutput:
    """Output backend that never plays anything; blocks are pulled by render()."""

    queued = 0

    async def resume(self) -> None:
        pass

    def write(self, audio: np.ndarray) -> None:
        pass

    def close(self) -> None:
        pass


def make_signal(sample_rate: int) -> np.ndarray:
    """Quiet speech-like tone with loud bursts every ~1.5 s."""
    rng = np.random.default_rng(7)
    t = np.arange(int(DURATION * sample_rate)) / sample_rate
    quiet = 0.05 * np.sin(2 * np.pi * 220 * t) * (1 + 0.5 * np.sin(2 * np.pi * 3 * t))
    bursts = np.zeros_like(t)
    for start in np.arange(0.8, DURATION, 1.5):
        i0 = int(start * sample_rate)
        i1 = i0 + int(0.25 * sample_rate)
        bursts[i0:i1] = 0.9 * rng.uniform(-1, 1, i1 - i0)
    return quiet + bursts


async def render(settings: Settings, config: DeepSleepConfig):
    signal_in = make_signal(config.sample_rate)
    graph = AudioGraph(OfflineOutput(), config, source=ArraySource(signal_in, config.sample_rate))
    graph.update_parameters(map_settings(settings))
    await graph.attach()

    monitor = SpikeMonitor(config.spike_threshold_db, config.spike_refractory)
    blocks, reductions, spikes = [], [], []
    n_blocks = len(signal_in) // config.block_size
    for i in range(n_blocks):
        blocks.append(graph.render(config.block_size))
        now = (i + 1) * config.block_size / config.sample_rate
        reductions.append(graph.reduction)
        spikes.extend(e.timestamp for e in monitor.sample(graph.reduction, now=now))

    out = np.concatenate(blocks)
    return signal_in[: len(out)], out, np.array(reductions), spikes


def plot(signal_in, signal_out, reductions, spikes, config: DeepSleepConfig, title: str) -> str:
    os.makedirs("output", exist_ok=True)
    t = np.arange(len(signal_in)) / config.sample_rate
    tb = (np.arange(len(reductions)) + 1) * config.block_size / config.sample_rate

    fig, axes = plt.subplots(3, 1, figsize=(14, 9), sharex=True)
    fig.suptitle(title, fontsize=13, fontweight="bold")

    axes[0].plot(t, signal_in, color="gray", linewidth=0.4)
    axes[0].set_ylabel("Input")

    axes[1].plot(t, signal_out, color="tab:blue", linewidth=0.4)
    axes[1].set_ylabel("Output")

    axes[2].plot(tb, reductions, color="tab:red", linewidth=1.5)
    axes[2].axhline(config.spike_threshold_db, color="black", linestyle="--", linewidth=0.8)
    for s in spikes:
        axes[2].axvline(s, color="tab:green", alpha=0.5)
    axes[2].set_ylabel("Gain reduction (dB)")
    axes[2].set_xlabel("Time (s)")

    path = "output/conditioning.png"
    fig.tight_layout()
    fig.savefig(path, dpi=120)
    plt.close(fig)
    return path


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--safety", type=float, default=70)
    parser.add_argument("--warmth", type=float, default=60)
    args = parser.parse_args()

    config = DeepSleepConfig()
    settings = Settings(enabled=True, safety=args.safety, warmth=args.warmth).clamped()
    signal_in, signal_out, reductions, spikes = asyncio.run(render(settings, config))

    title = f"Conditioning — safety {settings.safety:.0f}, warmth {settings.warmth:.0f}"
    path = plot(signal_in, signal_out, reductions, spikes, config, title)
    print(f"  {len(spikes)} spikes suppressed")
    print(f"  Saved {path}")


if __name__ == "__main__":
    main()
