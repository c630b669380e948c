"""DeepSleep configuration — dataclass-based config with sensible defaults."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class DeepSleepConfig:
    # Audio
    sample_rate: int = 44100
    block_size: int = 1024              # ~23ms at 44100 Hz
    channels: int = 1
    buffer_blocks: int = 8

    # Spike monitor
    spike_interval: float = 0.02        # 20ms sampling
    spike_threshold_db: float = -6.0    # gain reduction that counts as a spike
    spike_refractory: float = 0.5       # 500ms between recorded spikes

    # Ad ducking
    ad_poll_interval: float = 0.5
    duck_level: float = 0.1
    duck_time_constant: float = 0.1     # seconds, exponential approach

    # Sleep timer
    timer_tick: float = 1.0
    fade_window: float = 120.0          # fade starts when 2 minutes remain
    fade_steps: int = 60

    # Comfort noise
    noise_backend: str = "kellet"       # "kellet" or "iir"
    noise_seed: int | None = None
