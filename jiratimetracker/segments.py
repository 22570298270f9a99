"""Turn a stopped timer into the worklog entries to post."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Sequence

from . import clock
from .models import TimerState, WorklogEntry, WorklogSegment

WorklogMode = Literal["single", "split"]

# Jira bills in whole minutes; entries shorter than this are rounded up.
MIN_WORKLOG_SECONDS = 60


def can_split(segments: Sequence[WorklogSegment], elapsed_seconds: int) -> bool:
    return len(segments) > 1 and elapsed_seconds >= MIN_WORKLOG_SECONDS


def default_mode(segments: Sequence[WorklogSegment], elapsed_seconds: int) -> WorklogMode:
    return "split" if can_split(segments, elapsed_seconds) else "single"


def build_entries(
    mode: WorklogMode,
    segments: Sequence[WorklogSegment],
    elapsed_seconds: int,
    fallback_started_at: int,
) -> list[WorklogEntry]:
    """Return one entry per segment in split mode, otherwise a single entry.

    A split request that is not allowed falls back to a single entry.
    """
    if mode == "split" and can_split(segments, elapsed_seconds):
        return [WorklogEntry(segment.started_at, segment.duration_seconds) for segment in segments]

    started_at = segments[0].started_at if segments else fallback_started_at
    return [WorklogEntry(started_at, elapsed_seconds)]


def count_rounded(entries: Sequence[WorklogEntry]) -> int:
    return sum(1 for entry in entries if entry.duration_seconds < MIN_WORKLOG_SECONDS)


@dataclass
class WorklogPlan:
    """The review-step view of a timer: its segments and the chosen mode."""

    issue_key: str
    started_at: int
    segments: list[WorklogSegment]
    elapsed_seconds: int
    mode: WorklogMode = "single"
    modes: list[WorklogMode] = field(default_factory=list)

    @classmethod
    def for_timer(cls, timer: TimerState, elapsed_seconds: int) -> "WorklogPlan":
        segments = clock.to_segments(timer)
        splittable = can_split(segments, elapsed_seconds)
        return cls(
            issue_key=timer.issue_key,
            started_at=timer.started_at,
            segments=segments,
            elapsed_seconds=elapsed_seconds,
            mode=default_mode(segments, elapsed_seconds),
            modes=["single", "split"] if splittable else ["single"],
        )

    @property
    def splittable(self) -> bool:
        return can_split(self.segments, self.elapsed_seconds)

    def choose(self, mode: WorklogMode) -> WorklogMode:
        self.mode = mode if mode in self.modes else "single"
        return self.mode

    def toggle(self) -> WorklogMode:
        if not self.splittable:
            return self.mode
        return self.choose("single" if self.mode == "split" else "split")

    def entries(self) -> list[WorklogEntry]:
        return build_entries(self.mode, self.segments, self.elapsed_seconds, self.started_at)
