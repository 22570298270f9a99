"""Exceptions raised by the time tracker."""
from __future__ import annotations


class JiraTimeTrackerError(Exception):
    """Base class for all errors raised by this package."""


class JiraError(JiraTimeTrackerError):
    """A Jira request failed."""


class IssueNotFoundError(JiraError):
    def __init__(self, issue_key: str) -> None:
        super().__init__(f"Issue {issue_key} not found")
        self.issue_key = issue_key


class AuthenticationFailedError(JiraError):
    def __init__(self, message: str = 'Authentication failed. Check your credentials with "jtt config"') -> None:
        super().__init__(message)


class PermissionDeniedError(JiraError):
    def __init__(
        self,
        message: str = "Permission denied. You may not have permission to log work on this issue.",
    ) -> None:
        super().__init__(message)


class JiraUnknownError(JiraError):
    """Network, parsing or unclassified Jira failure; keeps the original message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotConfiguredError(JiraTimeTrackerError):
    def __init__(self, message: str = 'Not configured. Run "jtt config" first.') -> None:
        super().__init__(message)


class TokenRefreshError(JiraTimeTrackerError):
    """The OAuth access token could not be refreshed."""


class TimerAlreadyRunningError(JiraTimeTrackerError):
    def __init__(self, issue_key: str) -> None:
        super().__init__(f"Timer already running for {issue_key}")
        self.issue_key = issue_key


class NoActiveTimerError(JiraTimeTrackerError):
    def __init__(self) -> None:
        super().__init__("No active timer to resume")


class InvalidIssueKeyError(JiraTimeTrackerError, ValueError):
    def __init__(self, issue_key: str) -> None:
        super().__init__(f"Invalid issue key: {issue_key}. Expected format: PROJECT-123")
        self.issue_key = issue_key
