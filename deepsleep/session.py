"""ConditioningSession — wires settings → mapper → graph, monitors, ducking and timer."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol

from .audio.graph import AudioGraph
from .audio.source import MediaSource
from .config import DeepSleepConfig
from .control.ducking import AdDuckController, AdStateProbe
from .control.periodic import PeriodicTask, Sleep
from .control.timer import SleepTimerController, TimerPhase
from .dsp.mapper import map_settings
from .events.base import Event, EventType
from .events.bus import EventBus
from .events.spikes import SpikeMonitor
from .settings import Settings, SettingsStore

logger = logging.getLogger(__name__)


class StatsSink(Protocol):
    def __call__(self, stats: dict[str, int]) -> None: ...


class ConditioningSession:
    """Orchestrates the full conditioning core for one media stream.

    Usage::

        graph = AudioGraph(AudioOutput(), config, source=WavFileSource("a.wav"))
        session = ConditioningSession(graph, config)
        await session.start()
        await session.apply(Settings(enabled=True, timer_minutes=30))
        ...
        await session.stop()
    """

    def __init__(
        self,
        graph: AudioGraph,
        config: DeepSleepConfig | None = None,
        *,
        ad_probe: AdStateProbe | None = None,
        stats_sink: StatsSink | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config or graph.config
        c = self.config
        self.graph = graph
        self.bus = bus or EventBus()
        self.clock = clock
        self.stats_sink = stats_sink

        self.spikes = SpikeMonitor(c.spike_threshold_db, c.spike_refractory, clock=clock)
        self.ducker = AdDuckController(
            graph,
            ad_probe,
            duck_level=c.duck_level,
            time_constant=c.duck_time_constant,
            clock=clock,
        )
        self.timer = SleepTimerController(
            graph,
            fade_window=c.fade_window,
            fade_steps=c.fade_steps,
            clock=clock,
            sleep=sleep,
        )

        block_period = c.block_size / c.sample_rate
        self._spike_task = PeriodicTask(c.spike_interval, self._sample_spikes, name="spike-monitor", sleep=sleep)
        self._tasks = [
            PeriodicTask(block_period / 2, graph.pump, name="render-pump", sleep=sleep),
            PeriodicTask(c.ad_poll_interval, self._poll_ads, name="ad-poller", sleep=sleep),
            PeriodicTask(c.timer_tick, self._tick_timer, name="sleep-timer", sleep=sleep),
        ]

        self.settings: Settings | None = None
        self._applying = False
        self._pending: Settings | None = None

        if stats_sink is not None:
            self.bus.subscribe(EventType.SPIKE_SUPPRESSED, lambda e: stats_sink(self.get_stats()))

    # -- settings -------------------------------------------------------

    async def apply(self, settings: Settings) -> None:
        """Apply a settings snapshot.

        Updates that arrive while an apply is in flight (e.g. one suspended
        in attach) are coalesced: only the latest is applied, afterwards.
        """
        if self._applying:
            self._pending = settings
            return

        self._applying = True
        try:
            next_settings: Settings | None = settings
            while next_settings is not None:
                await self._apply_one(next_settings.clamped())
                next_settings, self._pending = self._pending, None
        finally:
            self._applying = False

    async def _apply_one(self, new: Settings) -> None:
        old = self.settings
        self.settings = new
        was_enabled = old.enabled if old is not None else False

        self.graph.update_parameters(map_settings(new))

        if new.enabled and not was_enabled:
            await self.attach()
        elif not new.enabled and was_enabled:
            self.detach()

        self._publish(self.ducker.configure(new.ad_mute, new.enabled))

        if old is None or old.timer_minutes != new.timer_minutes:
            self._publish(self.timer.apply(new.timer_minutes, new.enabled))
            # The timer may have reset the shared duck gain under an ad
            self._publish(self.ducker.resync())

    def bind_store(self, store: SettingsStore) -> asyncio.Task:
        """Follow an external settings store. Must be called from the event loop."""
        loop = asyncio.get_running_loop()
        store.on_change(lambda settings: loop.create_task(self.apply(settings)))
        return loop.create_task(self.apply(store.get()))

    # -- attach / detach -----------------------------------------------

    async def attach(self, source: MediaSource | None = None) -> bool:
        """Start conditioning, optionally on a new media source.

        ATTACHED is published only when the graph was detached before.
        """
        was_attached = self.graph.attached
        if source is None and self.graph.has_chain:
            ok = await self.graph.reattach()
        else:
            ok = await self.graph.attach(source)
        if ok and not was_attached:
            self._spike_task_start()
            self._publish([Event(EventType.ATTACHED, timestamp=self.clock())])
            self._restore_duck()
        return ok

    def _restore_duck(self) -> None:
        # Outside a fade the duck gain belongs to the ducker alone
        if self.timer.phase is TimerPhase.FADING or self.graph.duck is None:
            return
        self.graph.duck.set_value(1.0)
        self._publish(self.ducker.resync())

    def detach(self) -> None:
        if not self.graph.attached:
            return
        self._spike_task.cancel()
        self.timer.interrupt_fade()
        self.ducker.reset()
        self.graph.detach()
        self._publish([Event(EventType.DETACHED, timestamp=self.clock())])

    def _spike_task_start(self) -> None:
        try:
            self._spike_task.start()
        except RuntimeError:
            logger.warning("No running event loop; spike monitor not started")

    # -- periodic work -------------------------------------------------

    def _sample_spikes(self) -> None:
        if not self.graph.attached:
            self._spike_task.cancel()
            return
        self._publish(self.spikes.sample(self.graph.reduction))

    def _poll_ads(self) -> None:
        self._publish(self.ducker.check())

    def _tick_timer(self) -> None:
        self._publish(self.timer.tick())

    def _publish(self, events: list[Event]) -> None:
        for event in events:
            self.bus.publish(event)

    # -- lifecycle -----------------------------------------------------

    def get_stats(self) -> dict[str, int]:
        return {"spikesSuppressed": self.spikes.count}

    async def start(self) -> None:
        """Start the render pump, ad poller and timer ticker."""
        for task in self._tasks:
            task.start()
        if self.graph.attached:
            self._spike_task_start()
        logger.info("Session running")

    async def stop(self) -> None:
        """Gracefully shut down all periodic work and the output."""
        self.timer.cancel_fade()
        await self._spike_task.stop()
        for task in self._tasks:
            await task.stop()
        self.graph.output.close()
        logger.info("Session stopped")
