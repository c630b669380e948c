"""SleepTimerController — fade to silence and pause when the countdown ends."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from ..audio.graph import AudioGraph
from ..dsp.gain import GainStage
from ..events.base import Event, EventType
from .periodic import Sleep

logger = logging.getLogger(__name__)


class TimerPhase(Enum):
    IDLE = auto()
    ARMED = auto()
    FADING = auto()
    EXPIRED = auto()


@dataclass
class TimerState:
    end_time: float | None = None
    phase: TimerPhase = TimerPhase.IDLE


class SleepTimerController:
    """Countdown that fades the duck gain to zero and pauses playback.

    ``IDLE → ARMED → FADING → EXPIRED → IDLE``. The fade starts once
    ``fade_window`` seconds remain and is spread over the *remaining* time in
    ``fade_steps`` steps, so a late tick shortens the fade rather than
    overshooting the deadline.

    Usage::

        timer = SleepTimerController(graph)
        timer.apply(minutes=30, enabled=True)
        ...
        timer.tick()  # once a second, from inside the event loop
    """

    def __init__(
        self,
        graph: AudioGraph,
        *,
        fade_window: float = 120.0,
        fade_steps: int = 60,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.graph = graph
        self.fade_window = fade_window
        self.fade_steps = fade_steps
        self.clock = clock
        self._sleep = sleep
        self.state = TimerState()
        self._fade_task: asyncio.Task | None = None
        self._interrupted = False

    @property
    def phase(self) -> TimerPhase:
        return self.state.phase

    @property
    def fading(self) -> bool:
        """True while a fade task is in flight."""
        return self._fade_task is not None and not self._fade_task.done()

    def remaining(self, now: float | None = None) -> float | None:
        if self.state.end_time is None:
            return None
        if now is None:
            now = self.clock()
        return self.state.end_time - now

    def apply(self, minutes: int, enabled: bool) -> list[Event]:
        """(Re)arm for ``minutes``, or cancel when ``minutes`` is 0.

        Cancelling, or re-arming mid-fade, puts the duck gain back to 1.0
        while enabled.
        """
        self.cancel_fade()
        now = self.clock()
        was_fading = self.state.phase is TimerPhase.FADING

        if minutes > 0:
            if was_fading and enabled:
                self._restore_gain()
            self.state = TimerState(end_time=now + minutes * 60, phase=TimerPhase.ARMED)
            logger.info("Sleep timer armed for %d min", minutes)
            return [Event(EventType.TIMER_ARMED, timestamp=now, value=float(minutes))]

        was_active = self.state.phase is not TimerPhase.IDLE
        self.state = TimerState()
        if enabled:
            self._restore_gain()
        if was_active:
            logger.info("Sleep timer cancelled")
            return [Event(EventType.TIMER_CANCELLED, timestamp=now)]
        return []

    def tick(self) -> list[Event]:
        """Advance the state machine; call about once a second."""
        if self.state.phase not in (TimerPhase.ARMED, TimerPhase.FADING):
            return []

        now = self.clock()
        remaining = self.remaining(now)

        if remaining <= 0:
            return self._expire(now)

        if self.state.phase is TimerPhase.ARMED and remaining <= self.fade_window:
            self.state.phase = TimerPhase.FADING
            self._start_fade(remaining)
            logger.info("Sleep timer fading out over %.1fs", remaining)
            return [Event(EventType.FADE_STARTED, timestamp=now, value=remaining)]

        # A fade interrupted by detach picks up again over what is left
        if self._interrupted and self.graph.attached:
            self._interrupted = False
            self._start_fade(remaining)

        return []

    def _expire(self, now: float) -> list[Event]:
        self.cancel_fade()
        self.graph.pause_playback()
        self.state.phase = TimerPhase.EXPIRED
        logger.info("Sleep timer expired, playback paused")
        # Single shot: straight back to idle
        self.state = TimerState()
        return [Event(EventType.TIMER_EXPIRED, timestamp=now)]

    def _restore_gain(self) -> None:
        if self.graph.duck is not None:
            self.graph.duck.set_value(1.0)

    def _start_fade(self, duration: float) -> None:
        duck = self.graph.duck
        if duck is None:
            return
        self._fade_task = asyncio.get_running_loop().create_task(
            self._run_fade(duck, duck.value, duration), name="sleep-fade"
        )

    async def _run_fade(self, duck: GainStage, start_gain: float, duration: float) -> None:
        step_duration = duration / self.fade_steps
        for step in range(1, self.fade_steps + 1):
            await self._sleep(step_duration)
            duck.set_value(max(0.0, start_gain * (1 - step / self.fade_steps)))

    def cancel_fade(self) -> None:
        """Stop any in-flight fade; the gain stays where the fade left it."""
        if self._fade_task is not None:
            self._fade_task.cancel()
            self._fade_task = None
        self._interrupted = False

    def interrupt_fade(self) -> None:
        """Stop the fade because the graph detached; ``tick`` resumes it after reattach."""
        was_fading = self.fading
        self.cancel_fade()
        self._interrupted = was_fading and self.state.phase is TimerPhase.FADING
