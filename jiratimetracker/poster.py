"""Posting worklogs to Jira, with failed entries kept in the offline queue."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .errors import AuthenticationFailedError
from .models import FailedWorklog, WorklogEntry, WorklogResult
from .segments import MIN_WORKLOG_SECONDS
from .utils import now_ms, to_iso
from .worklog_queue import OfflineQueue

LOGGER = logging.getLogger(__name__)

Reauthenticate = Callable[[], bool]


@dataclass
class BatchResult:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    first_error: str = ""
    results: list[WorklogResult] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0


class WorklogPoster:
    """Sends worklogs through a Jira client and queues the ones that fail."""

    def __init__(self, client, queue: OfflineQueue, clock_ms: Callable[[], int] = now_ms) -> None:
        self.client = client
        self.queue = queue
        self.clock_ms = clock_ms

    def post(self, issue_key: str, time_spent_seconds: int, comment: str, started_at: int) -> WorklogResult:
        """Post one worklog, rounding it up to Jira's one-minute minimum.

        The returned result carries the rounded duration. Jira errors
        propagate unchanged.
        """
        adjusted = max(time_spent_seconds, MIN_WORKLOG_SECONDS)
        LOGGER.debug("Posting %ss to %s", adjusted, issue_key)
        return self.client.post_worklog(issue_key, adjusted, comment, started_at)

    def post_batch(
        self,
        entries: Iterable[WorklogEntry],
        issue_key: str,
        comment: str,
        reauthenticate: Optional[Reauthenticate] = None,
    ) -> BatchResult:
        """Post ``entries`` one after another.

        The first authentication failure gives ``reauthenticate`` its only
        chance in the batch; if it succeeds that entry is retried once. Every
        other failure queues the entry and moves on to the next one.
        """
        entries = list(entries)
        result = BatchResult(total=len(entries))
        reauth_available = reauthenticate is not None

        for entry in entries:
            try:
                posted = self.post(issue_key, entry.duration_seconds, comment, entry.started_at)
            except AuthenticationFailedError as exc:
                error: Exception = exc
                posted = None
                if reauth_available:
                    reauth_available = False
                    try:
                        renewed = reauthenticate()
                    except Exception as reauth_exc:
                        LOGGER.warning("Re-authentication failed: %s", reauth_exc)
                        error = reauth_exc
                        renewed = False
                    if renewed:
                        try:
                            posted = self.post(
                                issue_key, entry.duration_seconds, comment, entry.started_at
                            )
                        except Exception as retry_exc:
                            error = retry_exc
                if posted is None:
                    self._record_failure(result, issue_key, comment, entry, error)
                    continue
            except Exception as exc:
                self._record_failure(result, issue_key, comment, entry, exc)
                continue
            result.succeeded += 1
            result.results.append(posted)

        return result

    def _record_failure(
        self,
        result: BatchResult,
        issue_key: str,
        comment: str,
        entry: WorklogEntry,
        error: Exception,
    ) -> None:
        message = str(error) or "Unknown error"
        failed = FailedWorklog(
            issue_key=issue_key,
            time_spent_seconds=entry.duration_seconds,
            comment=comment,
            started=to_iso(entry.started_at),
            failed_at=self.clock_ms(),
            error=message,
        )
        self.queue.enqueue(failed)
        LOGGER.warning("Worklog for %s saved offline: %s", issue_key, message)
        result.failed += 1
        if not result.first_error:
            result.first_error = message
