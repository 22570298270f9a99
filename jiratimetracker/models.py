"""Application domain models."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass
class Interval:
    """A contiguous span of running time, in epoch milliseconds."""

    started_at: int
    ended_at: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def serialize(self) -> dict:
        return {"startedAt": self.started_at, "endedAt": self.ended_at}

    @classmethod
    def deserialize(cls, payload: dict) -> "Interval":
        ended_at = payload.get("endedAt")
        return cls(
            started_at=int(payload["startedAt"]),
            ended_at=int(ended_at) if ended_at is not None else None,
        )


@dataclass
class TimerState:
    """State persisted for the active timer slot.

    ``intervals`` is ``None`` for timers written before interval history was
    recorded; see :func:`jiratimetracker.clock.materialize_intervals`.
    """

    issue_key: str
    description: str
    started_at: int
    paused_at: Optional[int] = None
    total_paused_time: int = 0
    intervals: Optional[list[Interval]] = None
    is_paused: bool = False
    is_running: bool = True
    stopped_at: Optional[int] = None

    @property
    def open_interval(self) -> Optional[Interval]:
        if self.intervals and self.intervals[-1].is_open:
            return self.intervals[-1]
        return None

    def serialize(self) -> dict:
        payload = {
            "issueKey": self.issue_key,
            "description": self.description,
            "startedAt": self.started_at,
            "pausedAt": self.paused_at,
            "totalPausedTime": self.total_paused_time,
            "isPaused": self.is_paused,
            "isRunning": self.is_running,
        }
        if self.intervals is not None:
            payload["intervals"] = [interval.serialize() for interval in self.intervals]
        if self.stopped_at is not None:
            payload["stoppedAt"] = self.stopped_at
        return payload

    @classmethod
    def deserialize(cls, payload: dict) -> "TimerState":
        paused_at = payload.get("pausedAt")
        stopped_at = payload.get("stoppedAt")
        raw_intervals = payload.get("intervals")
        intervals = None
        if raw_intervals is not None:
            intervals = [Interval.deserialize(item) for item in raw_intervals]
        return cls(
            issue_key=payload["issueKey"],
            description=payload.get("description", ""),
            started_at=int(payload["startedAt"]),
            paused_at=int(paused_at) if paused_at is not None else None,
            total_paused_time=int(payload.get("totalPausedTime", 0)),
            intervals=intervals,
            is_paused=bool(payload.get("isPaused", False)),
            is_running=bool(payload.get("isRunning", False)),
            stopped_at=int(stopped_at) if stopped_at is not None else None,
        )


@dataclass(frozen=True)
class WorklogSegment:
    """A closed interval expressed in whole seconds."""

    started_at: int
    ended_at: int
    duration_seconds: int


@dataclass(frozen=True)
class WorklogEntry:
    """One worklog to post: a start time and a duration."""

    started_at: int
    duration_seconds: int


@dataclass(frozen=True)
class FailedWorklog:
    """A worklog post that failed and waits in the offline queue."""

    issue_key: str
    time_spent_seconds: int
    comment: str
    started: str
    failed_at: int
    error: str

    def serialize(self) -> dict:
        return {
            "issueKey": self.issue_key,
            "timeSpentSeconds": self.time_spent_seconds,
            "comment": self.comment,
            "started": self.started,
            "failedAt": self.failed_at,
            "error": self.error,
        }

    @classmethod
    def deserialize(cls, payload: dict) -> "FailedWorklog":
        """Strict parse; raises ``ValueError`` on any field of the wrong shape."""
        if not isinstance(payload, dict):
            raise ValueError("Failed worklog must be an object")
        checks = (
            ("issueKey", str),
            ("timeSpentSeconds", (int, float)),
            ("comment", str),
            ("started", str),
            ("failedAt", (int, float)),
            ("error", str),
        )
        for key, expected in checks:
            value = payload.get(key)
            if isinstance(value, bool) or not isinstance(value, expected):
                raise ValueError(f"Invalid value for '{key}' in failed worklog")
        return cls(
            issue_key=payload["issueKey"],
            time_spent_seconds=int(payload["timeSpentSeconds"]),
            comment=payload["comment"],
            started=payload["started"],
            failed_at=int(payload["failedAt"]),
            error=payload["error"],
        )


@dataclass(frozen=True)
class WorklogResult:
    id: str
    issue_key: str
    time_spent_seconds: int
    started: str
    comment: str


@dataclass(frozen=True)
class JiraIssue:
    key: str
    summary: str
    status: str = "Unknown"


@dataclass(frozen=True)
class JiraUser:
    display_name: str
    email: str = ""


@dataclass(frozen=True)
class ApiTokenAuth:
    email: str
    api_token: str
    method: Literal["api-token"] = "api-token"


@dataclass(frozen=True)
class OAuthAuth:
    access_token: str
    refresh_token: str
    expires_at: int
    cloud_id: str
    method: Literal["oauth"] = "oauth"


JiraAuth = Union[ApiTokenAuth, OAuthAuth]


@dataclass(frozen=True)
class JiraConfig:
    """Jira host plus one of the supported credential kinds."""

    jira_host: str
    auth: JiraAuth


@dataclass(frozen=True)
class OAuthClientConfig:
    client_id: str
    client_secret: str


@dataclass
class AppSettings:
    """Everything persisted in the settings file."""

    jira_host: str = ""
    auth_method: str = ""
    email: str = ""
    api_token: str = ""
    access_token: str = ""
    refresh_token: str = ""
    expires_at: int = 0
    cloud_id: str = ""
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    default_worklog_message: str = ""

    def to_jira_config(self) -> Optional[JiraConfig]:
        """Return the typed credentials, or ``None`` when incomplete."""
        if not self.jira_host or not self.auth_method:
            return None
        if self.auth_method == "api-token":
            if not self.email or not self.api_token:
                return None
            return JiraConfig(self.jira_host, ApiTokenAuth(self.email, self.api_token))
        if self.auth_method == "oauth":
            if not self.access_token or not self.refresh_token or not self.cloud_id:
                return None
            return JiraConfig(
                self.jira_host,
                OAuthAuth(
                    access_token=self.access_token,
                    refresh_token=self.refresh_token,
                    expires_at=self.expires_at,
                    cloud_id=self.cloud_id,
                ),
            )
        return None

    def apply_jira_config(self, config: JiraConfig) -> None:
        """Store ``config``, clearing the fields of the other auth method."""
        self.jira_host = config.jira_host
        auth = config.auth
        self.auth_method = auth.method
        if isinstance(auth, ApiTokenAuth):
            self.email = auth.email
            self.api_token = auth.api_token
            self.access_token = ""
            self.refresh_token = ""
            self.expires_at = 0
            self.cloud_id = ""
        elif isinstance(auth, OAuthAuth):
            self.access_token = auth.access_token
            self.refresh_token = auth.refresh_token
            self.expires_at = auth.expires_at
            self.cloud_id = auth.cloud_id
            self.email = ""
            self.api_token = ""
        else:
            raise TypeError(f"Unsupported auth type: {type(auth).__name__}")

    def clear_credentials(self) -> None:
        """Forget the Jira connection; the default message is kept."""
        self.jira_host = ""
        self.auth_method = ""
        self.email = ""
        self.api_token = ""
        self.access_token = ""
        self.refresh_token = ""
        self.expires_at = 0
        self.cloud_id = ""
        self.oauth_client_id = ""
        self.oauth_client_secret = ""

    def serialize(self) -> dict:
        return {
            "jiraHost": self.jira_host,
            "authMethod": self.auth_method,
            "email": self.email,
            "apiToken": self.api_token,
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
            "cloudId": self.cloud_id,
            "oauthClientId": self.oauth_client_id,
            "oauthClientSecret": self.oauth_client_secret,
            "defaultWorklogMessage": self.default_worklog_message,
        }

    @classmethod
    def deserialize(cls, payload: dict | None) -> "AppSettings":
        payload = payload or {}
        settings = cls()
        settings.jira_host = payload.get("jiraHost", "")
        settings.auth_method = payload.get("authMethod", "")
        settings.email = payload.get("email", "")
        settings.api_token = payload.get("apiToken", "")
        settings.access_token = payload.get("accessToken", "")
        settings.refresh_token = payload.get("refreshToken", "")
        settings.expires_at = int(payload.get("expiresAt", 0) or 0)
        settings.cloud_id = payload.get("cloudId", "")
        settings.oauth_client_id = payload.get("oauthClientId", "")
        settings.oauth_client_secret = payload.get("oauthClientSecret", "")
        settings.default_worklog_message = payload.get("defaultWorklogMessage", "")
        return settings
