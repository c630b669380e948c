"""Settings snapshot, presets, and the settings-store interface."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any, Protocol

SAFETY_RANGE = (0.0, 100.0)
WARMTH_RANGE = (0.0, 100.0)
SPEED_RANGE = (25.0, 200.0)
VOLUME_DB_RANGE = (-20.0, 20.0)

# (safety, warmth, speed)
PRESETS: dict[str, tuple[float, float, float]] = {
    "deep": (90, 85, 90),
    "zen": (80, 72, 95),
    "relax": (70, 60, 100),
}

# Keys used by the external settings store
_CAMEL_KEYS = {
    "volumeDb": "volume_db",
    "adMute": "ad_mute",
    "comfortNoise": "comfort_noise",
    "timerMinutes": "timer_minutes",
}


def clamp(value: float, bounds: tuple[float, float]) -> float:
    lo, hi = bounds
    return min(max(value, lo), hi)


@dataclass(frozen=True)
class Settings:
    """User-facing settings snapshot.

    Owned by the external settings store; the session only keeps a read copy
    which is replaced wholesale on every update.
    """
    enabled: bool = False
    safety: float = 70
    warmth: float = 60
    speed: float = 100            # percent
    volume_db: float = 0
    ad_mute: bool = True
    comfort_noise: bool = False
    timer_minutes: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Settings:
        """Build a snapshot from a store payload, filling gaps with defaults.

        Accepts both the store's camelCase keys and snake_case. Unknown keys
        (e.g. ``preset``) are ignored.
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name in known:
                values[name] = value
        return cls(**values).clamped()

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the store's camelCase keys."""
        reverse = {v: k for k, v in _CAMEL_KEYS.items()}
        return {reverse.get(f.name, f.name): getattr(self, f.name) for f in fields(self)}

    def clamped(self) -> Settings:
        """Return a copy with every field clamped into its documented domain."""
        return Settings(
            enabled=bool(self.enabled),
            safety=clamp(float(self.safety), SAFETY_RANGE),
            warmth=clamp(float(self.warmth), WARMTH_RANGE),
            speed=clamp(float(self.speed), SPEED_RANGE),
            volume_db=clamp(float(self.volume_db), VOLUME_DB_RANGE),
            ad_mute=bool(self.ad_mute),
            comfort_noise=bool(self.comfort_noise),
            timer_minutes=max(0, int(self.timer_minutes)),
        )


def apply_preset(settings: Settings, name: str) -> Settings:
    """Return ``settings`` with the named preset's safety/warmth/speed."""
    safety, warmth, speed = PRESETS[name]
    return replace(settings, safety=safety, warmth=warmth, speed=speed)


SettingsListener = Callable[[Settings], None]


class SettingsStore(Protocol):
    """External owner of the settings; pushes every change to listeners."""

    def get(self) -> Settings: ...

    def on_change(self, listener: SettingsListener) -> None: ...
