"""ParameterMapper — percentage-style settings to DSP units.

Every function clamps its input to the documented domain first, so the
mapping is total and the outputs always stay inside their documented bounds.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..settings import (
    SAFETY_RANGE,
    SPEED_RANGE,
    VOLUME_DB_RANGE,
    WARMTH_RANGE,
    Settings,
    clamp,
)

KNEE = 10.0          # dB
Q = 0.7
COMFORT_NOISE_GAIN = 0.02


@dataclass(frozen=True)
class DspParameters:
    """Bridge between Settings and the live audio graph."""
    threshold: float = -22.0     # dB
    ratio: float = 15.2          # x:1
    attack: float = 0.0022       # s
    release: float = 0.11        # s
    knee: float = KNEE
    cutoff_frequency: float = 4400.0
    q: float = Q
    noise_gain: float = 0.0
    volume_gain: float = 1.0
    playback_rate: float = 1.0


def threshold(safety: float) -> float:
    """-50 dB (safety 0) to -10 dB (safety 100)."""
    return -50 + 0.4 * clamp(safety, SAFETY_RANGE)


def ratio(safety: float) -> float:
    """4:1 (safety 0) to 20:1 (safety 100)."""
    return 4 + 0.16 * clamp(safety, SAFETY_RANGE)


def attack(safety: float) -> float:
    """5 ms (safety 0) down to 1 ms (safety 100)."""
    return 0.001 + 0.004 * (100 - clamp(safety, SAFETY_RANGE)) / 100


def release(safety: float) -> float:
    """250 ms (safety 0) down to 50 ms (safety 100)."""
    return 0.05 + 0.2 * (100 - clamp(safety, SAFETY_RANGE)) / 100


def cutoff_frequency(warmth: float) -> float:
    """8000 Hz (warmth 0) down to 2000 Hz (warmth 100)."""
    return 8000 - 60 * clamp(warmth, WARMTH_RANGE)


def playback_rate(speed: float) -> float:
    return clamp(speed, SPEED_RANGE) / 100


def linear_volume_gain(volume_db: float) -> float:
    return 10 ** (clamp(volume_db, VOLUME_DB_RANGE) / 20)


def noise_gain(comfort_noise: bool) -> float:
    return COMFORT_NOISE_GAIN if comfort_noise else 0.0


def map_settings(settings: Settings) -> DspParameters:
    """Derive the full DspParameters set from a Settings snapshot."""
    return DspParameters(
        threshold=threshold(settings.safety),
        ratio=ratio(settings.safety),
        attack=attack(settings.safety),
        release=release(settings.safety),
        knee=KNEE,
        cutoff_frequency=cutoff_frequency(settings.warmth),
        q=Q,
        noise_gain=noise_gain(settings.comfort_noise),
        volume_gain=linear_volume_gain(settings.volume_db),
        playback_rate=playback_rate(settings.speed),
    )
