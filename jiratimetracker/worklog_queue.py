"""Durable queue of worklogs that could not be posted."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .models import FailedWorklog
from .storage import ConfigStore
from .utils import from_iso

if TYPE_CHECKING:
    from .poster import WorklogPoster

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryResult:
    total: int = 0
    succeeded: int = 0
    failed: int = 0


class OfflineQueue:
    """Ordered list of failed worklogs, addressed by position."""

    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    def __len__(self) -> int:
        return len(self.list())

    def list(self) -> list[FailedWorklog]:
        return self.store.get_failed_worklogs()

    def enqueue(self, worklog: FailedWorklog) -> None:
        worklogs = self.list()
        worklogs.append(worklog)
        self.store.set_failed_worklogs(worklogs)

    def remove_at(self, index: int) -> None:
        worklogs = self.list()
        if 0 <= index < len(worklogs):
            worklogs.pop(index)
            self.store.set_failed_worklogs(worklogs)

    def clear(self) -> None:
        self.store.set_failed_worklogs([])

    def retry_all(self, poster: "WorklogPoster") -> RetryResult:
        """Repost every queued worklog once.

        Entries are replayed from the last index to the first so that removing
        a posted entry never shifts the ones still to be visited.
        """
        queue = self.list()
        if not queue:
            return RetryResult()

        succeeded = 0
        failed = 0
        for index in range(len(queue) - 1, -1, -1):
            worklog = queue[index]
            try:
                poster.post(
                    worklog.issue_key,
                    worklog.time_spent_seconds,
                    worklog.comment,
                    from_iso(worklog.started),
                )
            except Exception as exc:
                LOGGER.info("Queued worklog for %s still failing: %s", worklog.issue_key, exc)
                failed += 1
                continue
            self.remove_at(index)
            succeeded += 1

        LOGGER.info("Retried %d queued worklog(s): %d posted, %d pending", len(queue), succeeded, failed)
        return RetryResult(total=len(queue), succeeded=succeeded, failed=failed)
