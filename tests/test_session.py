"""Integration tests for ConditioningSession."""

import asyncio
from dataclasses import replace

import numpy as np

from conftest import SAMPLE_RATE, FakeAdProbe, FakeClock, FakeOutput, instant_sleep, stalled_sleep
from deepsleep.audio.graph import AudioGraph, GraphState
from deepsleep.audio.source import ArraySource
from deepsleep.config import DeepSleepConfig
from deepsleep.control.timer import TimerPhase
from deepsleep.events.base import EventType
from deepsleep.session import ConditioningSession
from deepsleep.settings import Settings

ON = Settings(enabled=True)
OFF = Settings(enabled=False)


def _session(graph, **kwargs):
    kwargs.setdefault("clock", FakeClock())
    return ConditioningSession(graph, **kwargs)


class TestApply:
    def test_enable_attaches(self, graph):
        session = _session(graph)
        asyncio.run(session.apply(ON))
        assert graph.state is GraphState.ATTACHED
        assert session.settings == ON.clamped()

    def test_disable_detaches(self, graph, source):
        session = _session(graph)

        async def scenario():
            await session.apply(replace(ON, speed=150))
            assert source.playback_rate == 1.5
            await session.apply(replace(OFF, speed=150))

        asyncio.run(scenario())
        assert graph.state is GraphState.DETACHED
        assert source.playback_rate == 1.0

    def test_reenable_reuses_chain(self, graph, output):
        session = _session(graph)

        async def scenario():
            await session.apply(ON)
            chain = graph.chain
            await session.apply(OFF)
            await session.apply(ON)
            return chain

        chain = asyncio.run(scenario())
        assert graph.chain is chain
        assert graph.attached

    def test_parameter_update_while_enabled(self, graph):
        session = _session(graph)

        async def scenario():
            await session.apply(ON)
            await session.apply(replace(ON, safety=100, warmth=100))

        asyncio.run(scenario())
        assert graph.chain.compressor.threshold == -10
        assert graph.chain.tone_filter.cutoff == 2000

    def test_repeated_identical_apply_is_idempotent(self, graph, output):
        clock = FakeClock()
        session = _session(graph, clock=clock)
        settings = replace(ON, timer_minutes=30)

        async def scenario():
            await session.apply(settings)
            end = session.timer.state.end_time
            clock.advance(10)
            await session.apply(settings)
            return end

        end = asyncio.run(scenario())
        assert session.timer.state.end_time == end
        assert output.resume_calls == 1
        assert graph.attached

    def test_out_of_range_settings_clamped(self, graph, source):
        session = _session(graph)
        asyncio.run(session.apply(replace(ON, speed=1000, safety=-5)))
        assert source.playback_rate == 2.0
        assert graph.chain.compressor.threshold == -50

    def test_updates_during_attach_are_coalesced(self, config, source):
        async def scenario():
            gate = asyncio.Event()
            output = FakeOutput(gate=gate)
            graph = AudioGraph(output, config, source=source)
            session = _session(graph)

            first = asyncio.create_task(session.apply(ON))
            await asyncio.sleep(0)
            await session.apply(replace(ON, warmth=10))
            await session.apply(replace(ON, warmth=90))
            gate.set()
            await first
            return graph, output, session

        graph, output, session = asyncio.run(scenario())
        assert output.resume_calls == 1
        assert session.settings.warmth == 90
        assert graph.chain.tone_filter.cutoff == 8000 - 60 * 90

    def test_timer_independent_of_enabled(self, graph):
        session = _session(graph)
        asyncio.run(session.apply(replace(OFF, timer_minutes=3)))
        assert session.timer.phase is TimerPhase.ARMED
        assert graph.state is GraphState.DETACHED

    def test_timer_cancel_restores_gain(self, graph):
        session = _session(graph, sleep=stalled_sleep)

        async def scenario():
            await session.apply(replace(ON, timer_minutes=3))
            await session.apply(replace(ON, timer_minutes=0))

        asyncio.run(scenario())
        assert session.timer.phase is TimerPhase.IDLE
        assert graph.duck.value == 1.0


class TestFailures:
    def test_missing_source_never_raises(self, output, config):
        session = _session(AudioGraph(output, config))
        asyncio.run(session.apply(ON))
        assert session.graph.state is GraphState.DETACHED

    def test_output_blocked_never_raises(self, config, source):
        session = _session(AudioGraph(FakeOutput(fail=True), config, source=source))
        asyncio.run(session.apply(ON))
        assert session.graph.state is GraphState.DETACHED
        session.detach()

    def test_attach_hook_with_new_source(self, output, config):
        session = _session(AudioGraph(output, config))
        new_source = ArraySource(np.ones(1000) * 0.1, SAMPLE_RATE)

        async def scenario():
            await session.apply(ON)
            return await session.attach(new_source)

        assert asyncio.run(scenario()) is True
        assert session.graph.source is new_source
        assert session.graph.attached


class TestStats:
    def test_get_stats_starts_at_zero(self, graph):
        assert _session(graph).get_stats() == {"spikesSuppressed": 0}

    def test_spikes_reach_sink(self, output):
        config = DeepSleepConfig(noise_seed=1)
        rng = np.random.default_rng(0)
        loud = ArraySource(rng.uniform(-0.9, 0.9, SAMPLE_RATE), SAMPLE_RATE, loop=True)
        graph = AudioGraph(output, config, source=loud)
        received = []
        session = ConditioningSession(graph, stats_sink=received.append)

        async def scenario():
            await session.apply(replace(ON, safety=100))
            await session.start()
            await asyncio.sleep(0.2)
            await session.stop()

        asyncio.run(scenario())
        assert session.get_stats()["spikesSuppressed"] >= 1
        assert received[-1] == session.get_stats()
        assert output.closed

    def test_spike_loop_halts_on_detach(self, graph):
        session = _session(graph)

        async def scenario():
            await session.apply(ON)
            running = session._spike_task.running
            await session.apply(OFF)
            return running, session._spike_task.running

        running, after = asyncio.run(scenario())
        assert running and not after

    def test_failing_sink_keeps_monitoring(self, graph):
        clock = FakeClock()

        def broken_sink(stats):
            raise ValueError("popup closed")

        session = _session(graph, clock=clock, stats_sink=broken_sink, sleep=instant_sleep)

        async def scenario():
            await session.apply(ON)
            graph.chain.compressor._reduction = -20.0
            for _ in range(5):
                clock.advance(1.0)
                await asyncio.sleep(0)
            running = session._spike_task.running
            await session.stop()
            return running

        assert asyncio.run(scenario())
        assert graph.attached
        assert session.get_stats()["spikesSuppressed"] >= 2


class TestEvents:
    def test_lifecycle_events_published(self, graph):
        session = _session(graph)
        seen = []
        session.bus.subscribe(None, lambda e: seen.append(e.type))

        async def scenario():
            await session.apply(replace(ON, timer_minutes=5))
            await session.apply(replace(OFF, timer_minutes=5))

        asyncio.run(scenario())
        assert seen == [EventType.ATTACHED, EventType.TIMER_ARMED, EventType.DETACHED]

    def test_ad_poll_ducks(self, graph):
        probe = FakeAdProbe()
        session = _session(graph, ad_probe=probe)

        async def scenario():
            await session.apply(ON)
            probe.ad_playing = True
            session._poll_ads()

        asyncio.run(scenario())
        assert graph.duck.target == session.config.duck_level

    def test_attach_when_attached_is_silent(self, graph):
        session = _session(graph)
        seen = []
        session.bus.subscribe(EventType.ATTACHED, lambda e: seen.append(e.type))

        async def scenario():
            await session.apply(ON)
            return await session.attach()

        assert asyncio.run(scenario()) is True
        assert seen == [EventType.ATTACHED]


class TestSharedDuckGain:
    def test_timer_cancel_during_ad_stays_ducked(self, graph):
        probe = FakeAdProbe()
        session = _session(graph, ad_probe=probe, sleep=stalled_sleep)

        async def scenario():
            await session.apply(replace(ON, timer_minutes=30))
            probe.ad_playing = True
            session._poll_ads()
            await session.apply(replace(ON, timer_minutes=0))
            for _ in range(3):
                session._poll_ads()

        asyncio.run(scenario())
        assert session.ducker.ducked
        assert graph.duck.target == session.config.duck_level

    def test_timer_cleared_while_disabled_restores_gain(self, graph):
        clock = FakeClock()
        session = _session(graph, clock=clock, sleep=stalled_sleep)

        async def scenario():
            await session.apply(replace(ON, timer_minutes=1))
            clock.advance(1.0)
            session._tick_timer()
            assert session.timer.phase is TimerPhase.FADING
            graph.duck.set_value(0.5)  # partway through the fade
            await session.apply(replace(OFF, timer_minutes=1))
            await session.apply(replace(OFF, timer_minutes=0))
            await session.apply(replace(ON, timer_minutes=0))

        asyncio.run(scenario())
        assert session.timer.phase is TimerPhase.IDLE
        assert graph.attached
        assert graph.duck.value == 1.0

    def test_reattach_mid_fade_keeps_faded_gain(self, graph):
        clock = FakeClock()
        session = _session(graph, clock=clock, sleep=stalled_sleep)

        async def scenario():
            await session.apply(replace(ON, timer_minutes=1))
            session._tick_timer()
            graph.duck.set_value(0.5)
            await session.apply(replace(OFF, timer_minutes=1))
            await session.apply(replace(ON, timer_minutes=1))
            session.timer.cancel_fade()

        asyncio.run(scenario())
        assert session.timer.phase is TimerPhase.FADING
        assert graph.duck.value == 0.5


class TestBindStore:
    def test_follows_store(self, graph):
        class Store:
            def __init__(self):
                self.listeners = []

            def get(self):
                return ON

            def on_change(self, listener):
                self.listeners.append(listener)

        store = Store()
        session = _session(graph)

        async def scenario():
            await session.bind_store(store)
            for listener in store.listeners:
                listener(OFF)
            await asyncio.sleep(0)
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert session.settings == OFF.clamped()
        assert graph.state is GraphState.DETACHED
