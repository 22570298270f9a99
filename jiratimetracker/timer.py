"""The single active-timer state machine.

States are ``NONE -> RUNNING <-> PAUSED -> STOPPED``. Only RUNNING and PAUSED
are ever persisted; a stopped timer is handed back to the caller and the slot
reverts to empty.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from . import clock
from .errors import TimerAlreadyRunningError
from .models import Interval, TimerState
from .storage import ConfigStore
from .utils import now_ms

LOGGER = logging.getLogger(__name__)


class TimerService:
    """Load-mutate-persist operations on the active-timer slot."""

    def __init__(self, store: ConfigStore, clock_ms: Callable[[], int] = now_ms) -> None:
        self.store = store
        self.clock_ms = clock_ms

    def current(self) -> Optional[TimerState]:
        return self.store.get_active_timer()

    def has_active_timer(self) -> bool:
        timer = self.current()
        return timer is not None and timer.is_running

    def create(self, issue_key: str, description: str = "") -> TimerState:
        existing = self.current()
        if existing is not None and existing.is_running:
            raise TimerAlreadyRunningError(existing.issue_key)
        now = self.clock_ms()
        timer = TimerState(
            issue_key=issue_key,
            description=description,
            started_at=now,
            intervals=[Interval(started_at=now)],
        )
        self.store.set_active_timer(timer)
        LOGGER.info("Started timer for %s", issue_key)
        return timer

    def pause(self) -> Optional[TimerState]:
        timer = self.current()
        if timer is None or not timer.is_running or timer.is_paused:
            return None
        now = self.clock_ms()
        if timer.intervals is None:
            # Legacy running timer: its first span starts at started_at.
            timer.intervals = [Interval(started_at=timer.started_at)]
        _close_open_interval(timer, now)
        timer.paused_at = now
        timer.is_paused = True
        self.store.set_active_timer(timer)
        LOGGER.info("Paused timer for %s", timer.issue_key)
        return timer

    def resume(self) -> Optional[TimerState]:
        timer = self.current()
        if timer is None or not timer.is_running or not timer.is_paused or timer.paused_at is None:
            return None
        now = self.clock_ms()
        timer.intervals = clock.materialize_intervals(timer)
        timer.total_paused_time += now - timer.paused_at
        timer.paused_at = None
        timer.is_paused = False
        timer.intervals.append(Interval(started_at=now))
        self.store.set_active_timer(timer)
        LOGGER.info("Resumed timer for %s", timer.issue_key)
        return timer

    def stop(self) -> Optional[TimerState]:
        timer = self.current()
        if timer is None or not timer.is_running:
            return None
        now = self.clock_ms()
        timer.intervals = clock.materialize_intervals(timer)
        if timer.is_paused and timer.paused_at is not None:
            # The interval was already closed when the timer paused.
            timer.total_paused_time += now - timer.paused_at
        else:
            _close_open_interval(timer, now)
        timer.is_running = False
        timer.is_paused = False
        timer.stopped_at = now
        self.store.clear_active_timer()
        LOGGER.info("Stopped timer for %s", timer.issue_key)
        return timer

    def elapsed_seconds(self, timer: Optional[TimerState] = None) -> int:
        timer = timer or self.current()
        if timer is None:
            return 0
        return clock.elapsed_seconds(timer, self.clock_ms())


def _close_open_interval(timer: TimerState, now: int) -> None:
    interval = timer.open_interval
    if interval is not None:
        interval.ended_at = now
