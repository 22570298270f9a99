"""Sequences the timer, segmenter, poster and queue for one tracking session.

The presentation layer polls :meth:`TimerSession.snapshot` on its own tick and
sends intents (pause, resume, request_stop, submit_description, choose_mode,
confirm_submit, quit). Nothing here runs in the background.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .auth import ensure_authenticated
from .errors import InvalidIssueKeyError, NoActiveTimerError, TimerAlreadyRunningError
from .jira_client import JiraClient
from .models import JiraConfig, JiraIssue, OAuthAuth, TimerState, WorklogEntry
from .poster import BatchResult, Reauthenticate, WorklogPoster
from .segments import MIN_WORKLOG_SECONDS, WorklogMode, WorklogPlan, count_rounded
from .storage import ConfigStore
from .timer import TimerService
from .utils import format_time, format_time_human_readable, normalize_issue_key, now_ms
from .worklog_queue import OfflineQueue, RetryResult

LOGGER = logging.getLogger(__name__)

# Quitting with at least this much net time tracked needs explicit confirmation.
QUIT_CONFIRM_THRESHOLD_SECONDS = 5 * 60


class QuitOutcome(enum.Enum):
    NO_TIMER = "no-timer"
    NEEDS_CONFIRMATION = "needs-confirmation"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class TimerSnapshot:
    timer: TimerState
    elapsed_seconds: int
    issue: Optional[JiraIssue] = None

    @property
    def formatted(self) -> str:
        return format_time(self.elapsed_seconds)

    @property
    def status(self) -> str:
        return "paused" if self.timer.is_paused else "running"


@dataclass
class SubmitOutcome:
    issue_key: str
    elapsed_seconds: int
    entries: list[WorklogEntry] = field(default_factory=list)
    batch: BatchResult = field(default_factory=BatchResult)

    @property
    def rounded_count(self) -> int:
        return count_rounded(self.entries)

    @property
    def logged(self) -> bool:
        return self.batch.total > 0 and self.batch.all_succeeded

    @property
    def message(self) -> str:
        batch = self.batch
        if batch.total == 0:
            return "Timer stopped. Nothing was logged."
        if batch.failed == batch.total:
            return (
                f"Failed to log time: {batch.first_error.rstrip('.')}. "
                "The worklog has been saved offline for retry."
            )
        if batch.failed:
            return (
                f"Logged {batch.succeeded}/{batch.total}. {batch.failed} saved offline for retry."
            )
        logged = format_time_human_readable(max(self.elapsed_seconds, MIN_WORKLOG_SECONDS))
        noun = "entry" if batch.total == 1 else "entries"
        return f"Logged {logged} to {self.issue_key} ({batch.total} {noun})."


class TimerSession:
    """User-intent driven orchestration around the single active timer."""

    def __init__(
        self,
        store: ConfigStore,
        client=None,
        clock_ms: Callable[[], int] = now_ms,
        client_factory: Callable[[JiraConfig], object] = JiraClient,
    ) -> None:
        self.store = store
        self.clock_ms = clock_ms
        self.client_factory = client_factory
        self.client = client
        self.timers = TimerService(store, clock_ms)
        self.queue = OfflineQueue(store)
        self.poster = WorklogPoster(client, self.queue, clock_ms)
        self.issue: Optional[JiraIssue] = None
        self.plan: Optional[WorklogPlan] = None
        self.description = ""

    # ---------------------------------------------------------------- setup --
    def connect(self, force_refresh: bool = False) -> None:
        """Load (and if needed refresh) credentials and build the Jira client."""
        config = ensure_authenticated(self.store, self.clock_ms, force_refresh=force_refresh)
        self.client = self.client_factory(config)
        self.poster.client = self.client

    def drain_queue(self) -> Optional[RetryResult]:
        """Retry the offline queue; ``None`` when there was nothing queued."""
        if not self.queue.list():
            return None
        return self.queue.retry_all(self.poster)

    # --------------------------------------------------------------- issues --
    def fetch_issue(self, issue_key: str) -> JiraIssue:
        key = normalize_issue_key(issue_key)
        if key is None:
            raise InvalidIssueKeyError(issue_key)
        return self.client.get_issue(key)

    def assigned_issues(self) -> list[JiraIssue]:
        return self.client.search_assigned_issues()

    # ---------------------------------------------------------------- timer --
    def start(self, issue: JiraIssue | str, description: str = "") -> TimerSnapshot:
        """Start tracking ``issue``; a key is validated and fetched first."""
        if self.timers.has_active_timer():
            raise TimerAlreadyRunningError(self.timers.current().issue_key)
        if isinstance(issue, str):
            issue = self.fetch_issue(issue)
        self.issue = issue
        self.plan = None
        self.timers.create(issue.key, description)
        return self.snapshot()

    def resume_session(self) -> TimerSnapshot:
        """Pick up the persisted timer and fetch its issue."""
        timer = self.timers.current()
        if timer is None or not timer.is_running:
            raise NoActiveTimerError()
        self.issue = self.client.get_issue(timer.issue_key)
        self.plan = None
        return self.snapshot()

    def snapshot(self) -> Optional[TimerSnapshot]:
        timer = self.timers.current()
        if timer is None:
            return None
        return TimerSnapshot(timer, self.timers.elapsed_seconds(timer), self.issue)

    def pause(self) -> Optional[TimerState]:
        return self.timers.pause()

    def resume(self) -> Optional[TimerState]:
        return self.timers.resume()

    # ------------------------------------------------------------- stopping --
    def default_description(self, override: Optional[str] = None) -> str:
        """The ``-d`` value when given, otherwise the saved default message."""
        if override:
            return override
        return self.store.get_default_worklog_message()

    def request_stop(self) -> Optional[TimerSnapshot]:
        """Pause the clock while the worklog description is entered."""
        timer = self.timers.current()
        if timer is None or not timer.is_running:
            return None
        if not timer.is_paused:
            self.timers.pause()
        return self.snapshot()

    def cancel_stop(self) -> Optional[TimerState]:
        """Go back to tracking after a stop request."""
        self.plan = None
        return self.timers.resume()

    def submit_description(self, text: str, save_as_default: bool = False) -> WorklogPlan:
        description = text.strip()
        if not description:
            raise ValueError("Worklog description cannot be empty")
        timer = self.timers.current()
        if timer is None or not timer.is_running:
            raise NoActiveTimerError()
        if save_as_default:
            self.store.set_default_worklog_message(description)
        self.description = description
        self.plan = WorklogPlan.for_timer(timer, self.timers.elapsed_seconds(timer))
        return self.plan

    def choose_mode(self, mode: WorklogMode) -> WorklogMode:
        if self.plan is None:
            raise RuntimeError("Submit a description before choosing a mode")
        return self.plan.choose(mode)

    def confirm_submit(self, reauthenticate: Optional[Reauthenticate] = None) -> SubmitOutcome:
        """Stop the timer and post its worklog(s).

        Entries that fail are kept in the offline queue; the outcome message
        says how many were logged and that the rest were saved.
        """
        if self.plan is None:
            raise RuntimeError("Submit a description before confirming")
        mode = self.plan.mode
        stopped = self.timers.stop()
        if stopped is None:
            raise NoActiveTimerError()
        stopped.description = self.description

        plan = WorklogPlan.for_timer(stopped, self.timers.elapsed_seconds(stopped))
        plan.choose(mode)
        entries = plan.entries()
        self.plan = None

        renew = self._wrap_reauthenticate(reauthenticate) if reauthenticate else None
        batch = self.poster.post_batch(entries, stopped.issue_key, self.description, renew)
        outcome = SubmitOutcome(stopped.issue_key, plan.elapsed_seconds, entries, batch)
        LOGGER.info("%s", outcome.message)
        return outcome

    def _wrap_reauthenticate(self, reauthenticate: Reauthenticate) -> Reauthenticate:
        def renew() -> bool:
            if not reauthenticate():
                return False
            config = self.store.get_jira_config()
            self.connect(force_refresh=config is not None and isinstance(config.auth, OAuthAuth))
            return True

        return renew

    # ----------------------------------------------------------------- quit --
    def needs_quit_confirmation(self) -> bool:
        timer = self.timers.current()
        if timer is None or not timer.is_running:
            return False
        return self.timers.elapsed_seconds(timer) >= QUIT_CONFIRM_THRESHOLD_SECONDS

    def quit(self, confirmed: bool = False) -> QuitOutcome:
        """Discard the timer without logging, asking first for long sessions."""
        timer = self.timers.current()
        if timer is None or not timer.is_running:
            return QuitOutcome.NO_TIMER
        if not confirmed and self.needs_quit_confirmation():
            return QuitOutcome.NEEDS_CONFIRMATION
        self.timers.stop()
        self.plan = None
        LOGGER.info("Discarded timer for %s without logging", timer.issue_key)
        return QuitOutcome.DISCARDED
