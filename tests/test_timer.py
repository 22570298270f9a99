"""Tests for the active timer state machine."""

import pytest

from jiratimetracker import clock as clock_module
from jiratimetracker.errors import TimerAlreadyRunningError
from jiratimetracker.models import Interval, TimerState, WorklogEntry
from jiratimetracker.segments import build_entries
from jiratimetracker.timer import TimerService

from .conftest import T0


@pytest.fixture
def timers(store, clock):
    return TimerService(store, clock)


class TestTimerService:
    """Tests for TimerService."""

    def test_create_persists_running_timer(self, timers, store):
        timer = timers.create("PROJ-1", "Writing docs")

        assert timer.is_running and not timer.is_paused
        assert timer.intervals == [Interval(T0)]
        assert store.get_active_timer() == timer
        assert timers.has_active_timer()

    def test_create_refuses_second_timer(self, timers):
        timers.create("PROJ-1")
        with pytest.raises(TimerAlreadyRunningError):
            timers.create("PROJ-2")

    def test_pause_resume_stop_round_trip(self, timers, clock, store):
        timers.create("PROJ-1")
        clock.advance(60)
        timers.pause()
        clock.advance(30)
        timers.resume()
        clock.advance(60)

        assert timers.elapsed_seconds() == 120
        stopped = timers.stop()

        assert stopped.intervals == [
            Interval(T0, T0 + 60_000),
            Interval(T0 + 90_000, T0 + 150_000),
        ]
        assert stopped.total_paused_time == 30_000
        assert not stopped.is_running
        assert store.get_active_timer() is None

        clock.advance(600)
        assert timers.elapsed_seconds(stopped) == 120

    def test_stop_while_paused_counts_final_pause(self, timers, clock):
        timers.create("PROJ-1")
        clock.advance(60)
        timers.pause()
        clock.advance(45)
        stopped = timers.stop()

        assert stopped.total_paused_time == 45_000
        assert stopped.intervals == [Interval(T0, T0 + 60_000)]
        assert timers.elapsed_seconds(stopped) == 60

    def test_pause_and_resume_are_noops_in_wrong_state(self, timers):
        assert timers.pause() is None
        assert timers.resume() is None

        timers.create("PROJ-1")
        assert timers.resume() is None
        timers.pause()
        assert timers.pause() is None

    def test_stop_without_timer(self, timers):
        assert not timers.has_active_timer()
        assert timers.stop() is None
        assert timers.elapsed_seconds() == 0

    def test_legacy_paused_timer_gains_history(self, timers, clock, store):
        store.set_active_timer(
            TimerState("PROJ-1", "", T0, paused_at=T0 + 60_000, is_paused=True)
        )
        clock.advance(100)
        timers.resume()
        clock.advance(20)
        stopped = timers.stop()

        assert stopped.intervals == [
            Interval(T0, T0 + 60_000),
            Interval(T0 + 100_000, T0 + 120_000),
        ]
        assert clock_module.elapsed_seconds(stopped, clock.now) == 80

    def test_legacy_running_timer_keeps_total(self, timers, clock, store):
        store.set_active_timer(TimerState("PROJ-1", "", T0))
        clock.advance(90)
        stopped = timers.stop()

        assert stopped.intervals == []
        assert timers.elapsed_seconds(stopped) == 90

    def test_legacy_running_timer_paused_keeps_first_span(self, timers, clock, store):
        store.set_active_timer(TimerState("PROJ-1", "", T0))
        clock.advance(600)
        timers.pause()
        clock.advance(60)
        timers.resume()
        clock.advance(600)
        stopped = timers.stop()

        assert stopped.intervals == [
            Interval(T0, T0 + 600_000),
            Interval(T0 + 660_000, T0 + 1_260_000),
        ]
        assert timers.elapsed_seconds(stopped) == 1200
        entries = build_entries("single", clock_module.to_segments(stopped), 1200, stopped.started_at)
        assert entries == [WorklogEntry(T0, 1200)]
