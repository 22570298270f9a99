"""Tests for the offline worklog queue."""

import json
from dataclasses import replace

import pytest
from unittest.mock import MagicMock, patch

from jiratimetracker.errors import JiraUnknownError
from jiratimetracker.worklog_queue import OfflineQueue, RetryResult

from .conftest import T0


@pytest.fixture
def queue(store):
    return OfflineQueue(store)


def fill(queue, base, keys):
    for key in keys:
        queue.enqueue(replace(base, issue_key=key))


class TestOfflineQueue:
    """Tests for OfflineQueue."""

    def test_enqueue_and_list(self, queue, sample_failed_worklog):
        queue.enqueue(sample_failed_worklog)

        assert queue.list() == [sample_failed_worklog]
        assert len(queue) == 1

    def test_remove_at(self, queue, sample_failed_worklog):
        fill(queue, sample_failed_worklog, ["A-1", "B-1", "C-1"])
        queue.remove_at(1)

        assert [w.issue_key for w in queue.list()] == ["A-1", "C-1"]

    def test_remove_out_of_range_is_ignored(self, queue, sample_failed_worklog):
        queue.enqueue(sample_failed_worklog)
        queue.remove_at(5)
        queue.remove_at(-1)

        assert len(queue) == 1

    def test_clear(self, queue, sample_failed_worklog):
        fill(queue, sample_failed_worklog, ["A-1", "B-1"])
        queue.clear()

        assert queue.list() == []

    def test_persisted_with_camel_case_keys(self, queue, store, sample_failed_worklog):
        queue.enqueue(sample_failed_worklog)
        data = json.loads((store.directory / "pending_worklogs.json").read_text())

        assert data == [
            {
                "issueKey": "PROJ-1",
                "timeSpentSeconds": 1800,
                "comment": "Reviewed pull requests",
                "started": "2023-11-14T22:13:20.000Z",
                "failedAt": T0,
                "error": "Network down",
            }
        ]

    @pytest.mark.parametrize(
        "content",
        ["not json", '{"issueKey": "A-1"}', '[{"issueKey": "A-1", "timeSpentSeconds": "ten"}]'],
    )
    def test_malformed_file_reads_as_empty(self, queue, store, content):
        store.ensure_storage_directory()
        (store.directory / "pending_worklogs.json").write_text(content)

        assert queue.list() == []


class TestRetryAll:
    """Tests for retry_all."""

    def test_empty_queue(self, queue):
        poster = MagicMock()
        assert queue.retry_all(poster) == RetryResult(0, 0, 0)
        poster.post.assert_not_called()

    def test_visits_entries_from_last_to_first(self, queue, sample_failed_worklog):
        fill(queue, sample_failed_worklog, ["A-1", "B-1", "C-1"])
        poster = MagicMock()

        with patch.object(queue, "remove_at", wraps=queue.remove_at) as remove_at:
            result = queue.retry_all(poster)

        assert [c.args[0] for c in remove_at.call_args_list] == [2, 1, 0]
        assert [c.args[0] for c in poster.post.call_args_list] == ["C-1", "B-1", "A-1"]
        assert result == RetryResult(total=3, succeeded=3, failed=0)
        assert queue.list() == []

    def test_replays_stored_values(self, queue, sample_failed_worklog):
        queue.enqueue(sample_failed_worklog)
        poster = MagicMock()

        queue.retry_all(poster)

        poster.post.assert_called_once_with("PROJ-1", 1800, "Reviewed pull requests", T0)

    def test_failures_stay_queued(self, queue, sample_failed_worklog):
        fill(queue, sample_failed_worklog, ["A-1", "B-1"])
        poster = MagicMock()
        poster.post.side_effect = [None, JiraUnknownError("still offline")]

        result = queue.retry_all(poster)

        assert result == RetryResult(total=2, succeeded=1, failed=1)
        assert [w.issue_key for w in queue.list()] == ["A-1"]
