"""Tests for elapsed-time arithmetic."""

from jiratimetracker import clock
from jiratimetracker.models import Interval, TimerState

from .conftest import T0


def make_timer(**overrides):
    fields = dict(issue_key="PROJ-1", description="", started_at=T0)
    fields.update(overrides)
    return TimerState(**fields)


class TestElapsedSeconds:
    """Tests for elapsed seconds."""

    def test_running_timer(self):
        timer = make_timer(total_paused_time=10_000)
        assert clock.elapsed_seconds(timer, T0 + 70_500) == 60

    def test_paused_timer_excludes_current_pause(self):
        timer = make_timer(is_paused=True, paused_at=T0 + 60_000)
        assert clock.current_pause_ms(timer, T0 + 100_000) == 40_000
        assert clock.elapsed_seconds(timer, T0 + 100_000) == 60

    def test_stopped_timer_is_frozen(self):
        timer = make_timer(is_running=False, stopped_at=T0 + 30_000)
        assert clock.elapsed_seconds(timer, T0 + 999_000) == 30

    def test_inconsistent_timestamps_are_not_clamped(self):
        timer = make_timer(total_paused_time=5_000)
        assert clock.elapsed_seconds(timer, T0 + 1_000) < 0


class TestIntervals:
    """Tests for interval history and segments."""

    def test_existing_history_is_returned(self):
        intervals = [Interval(T0, T0 + 1000)]
        assert clock.materialize_intervals(make_timer(intervals=intervals)) is intervals

    def test_legacy_paused_timer(self):
        timer = make_timer(is_paused=True, paused_at=T0 + 5000)
        assert clock.materialize_intervals(timer) == [Interval(T0, T0 + 5000)]

    def test_legacy_running_timer(self):
        assert clock.materialize_intervals(make_timer()) == []

    def test_segments_skip_open_and_empty_intervals(self):
        timer = make_timer(
            intervals=[
                Interval(T0, T0 + 60_000),
                Interval(T0 + 70_000, T0 + 70_400),
                Interval(T0 + 80_000, None),
            ]
        )
        segments = clock.to_segments(timer)

        assert len(segments) == 1
        assert segments[0].duration_seconds == 60
        assert segments[0].ended_at == T0 + 60_000
