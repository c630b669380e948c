#!/usr/bin/env python3
"""Play a WAV file through a live conditioning session.

Usage:
    python scripts/run_session.py podcast.wav
    python scripts/run_session.py podcast.wav --preset deep --timer 30 --noise
"""

import argparse
import asyncio
import logging
import signal

from deepsleep.audio.graph import AudioGraph
from deepsleep.audio.output import AudioOutput
from deepsleep.audio.source import WavFileSource
from deepsleep.config import DeepSleepConfig
from deepsleep.events.base import Event
from deepsleep.session import ConditioningSession
from deepsleep.settings import PRESETS, Settings, apply_preset


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("wav", help="WAV file to play")
    parser.add_argument("--preset", choices=sorted(PRESETS), default="relax")
    parser.add_argument("--safety", type=float, help="0-100, overrides preset")
    parser.add_argument("--warmth", type=float, help="0-100, overrides preset")
    parser.add_argument("--speed", type=float, help="25-200 percent, overrides preset")
    parser.add_argument("--volume-db", type=float, default=0.0)
    parser.add_argument("--timer", type=int, default=0, help="sleep timer in minutes")
    parser.add_argument("--noise", action="store_true", help="enable comfort noise")
    parser.add_argument("--noise-backend", choices=["kellet", "iir"], default="kellet")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args()


def build_settings(args: argparse.Namespace) -> Settings:
    settings = apply_preset(Settings(enabled=True), args.preset)
    overrides = {
        "safety": args.safety,
        "warmth": args.warmth,
        "speed": args.speed,
    }
    data = settings.to_dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    data.update(volumeDb=args.volume_db, timerMinutes=args.timer, comfortNoise=args.noise)
    return Settings.from_dict(data)


async def main():
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    source = WavFileSource(args.wav)
    config = DeepSleepConfig(sample_rate=source.sample_rate, noise_backend=args.noise_backend)
    output = AudioOutput(
        sample_rate=config.sample_rate,
        block_size=config.block_size,
        channels=config.channels,
        buffer_blocks=config.buffer_blocks,
    )
    graph = AudioGraph(output, config, source=source)

    def print_stats(stats: dict[str, int]) -> None:
        print(f"  {stats['spikesSuppressed']} spikes suppressed", end="\r")

    session = ConditioningSession(graph, config, stats_sink=print_stats)

    def print_event(event: Event) -> None:
        print(f"  {event}")

    session.bus.subscribe(None, print_event)

    done = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, done.set)

    await session.start()
    await session.apply(build_settings(args))
    print(f"Playing {args.wav}. Press Ctrl+C to stop.\n")

    try:
        while not done.is_set() and not source.finished and not source.paused:
            await asyncio.sleep(0.5)
    finally:
        await session.stop()
        print(f"\nDone. {session.get_stats()['spikesSuppressed']} spikes suppressed.")


if __name__ == "__main__":
    asyncio.run(main())
