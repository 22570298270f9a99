"""Pure elapsed-time arithmetic over a timer's interval history."""
from __future__ import annotations

from .models import Interval, TimerState, WorklogSegment


def current_pause_ms(timer: TimerState, now: int) -> int:
    """Length of the pause in progress, or 0 when the timer is running."""
    if timer.is_paused and timer.paused_at is not None:
        return now - timer.paused_at
    return 0


def elapsed_seconds(timer: TimerState, now: int) -> int:
    """Net running time in whole seconds.

    A stopped timer is measured at its ``stopped_at`` instant. The result is
    not clamped; a negative value means the stored timestamps are inconsistent.
    """
    if not timer.is_running and timer.stopped_at is not None:
        now = timer.stopped_at
    elapsed = now - timer.started_at - timer.total_paused_time - current_pause_ms(timer, now)
    return elapsed // 1000


def materialize_intervals(timer: TimerState) -> list[Interval]:
    """Return the timer's interval history, synthesizing one for legacy timers.

    Timers persisted without history get ``[started_at, paused_at]`` when
    paused and nothing closeable while running.
    """
    if timer.intervals is not None:
        return timer.intervals
    if timer.is_paused and timer.paused_at is not None:
        return [Interval(timer.started_at, timer.paused_at)]
    return []


def to_segments(timer: TimerState) -> list[WorklogSegment]:
    segments = []
    for interval in materialize_intervals(timer):
        if interval.ended_at is None:
            continue
        duration = (interval.ended_at - interval.started_at) // 1000
        if duration <= 0:
            continue
        segments.append(WorklogSegment(interval.started_at, interval.ended_at, duration))
    return segments
