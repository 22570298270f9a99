"""Pytest configuration and fixtures."""

import pytest
from unittest.mock import MagicMock

from jiratimetracker.models import (
    ApiTokenAuth,
    FailedWorklog,
    JiraConfig,
    JiraIssue,
    WorklogResult,
)
from jiratimetracker.storage import ConfigStore

T0 = 1_700_000_000_000


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """A config store rooted in a temporary directory."""
    return ConfigStore(tmp_path / "jira-time-tracker")


@pytest.fixture
def configured_store(store):
    store.set_jira_config(
        JiraConfig("https://example.atlassian.net", ApiTokenAuth("dev@example.com", "secret-token-1234"))
    )
    return store


@pytest.fixture
def jira():
    """Stand-in Jira client that accepts every worklog."""
    client = MagicMock()
    client.get_issue.side_effect = lambda key: JiraIssue(key, f"Summary of {key}", "In Progress")
    client.post_worklog.side_effect = lambda key, secs, comment, started: WorklogResult(
        id="10001", issue_key=key, time_spent_seconds=secs, started=str(started), comment=comment
    )
    return client


@pytest.fixture
def sample_failed_worklog():
    """A worklog as it sits in the offline queue."""
    return FailedWorklog(
        issue_key="PROJ-1",
        time_spent_seconds=1800,
        comment="Reviewed pull requests",
        started="2023-11-14T22:13:20.000Z",
        failed_at=T0,
        error="Network down",
    )
