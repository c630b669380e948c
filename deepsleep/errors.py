"""Error kinds raised by the audio layer and recovered at the session boundary."""

from __future__ import annotations


class DeepSleepError(Exception):
    """Base class for all conditioning errors."""


class ResourceUnavailable(DeepSleepError):
    """The audio output backend could not be created or resumed."""


class SourceUnavailable(DeepSleepError):
    """No media source is bound, or it is not ready to produce audio."""


class UnsupportedFeature(DeepSleepError):
    """An optional backend (e.g. comfort noise) is not available on this host."""
