"""A lightweight Jira REST API client used by the time tracker."""
from __future__ import annotations

import logging

import requests
from requests.auth import HTTPBasicAuth

from .errors import (
    AuthenticationFailedError,
    IssueNotFoundError,
    JiraUnknownError,
    PermissionDeniedError,
)
from .models import ApiTokenAuth, JiraConfig, JiraIssue, JiraUser, OAuthAuth, WorklogResult
from .utils import make_comment_payload, make_timestamp, to_iso

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20
ATLASSIAN_API_URL = "https://api.atlassian.com/ex/jira"
ASSIGNED_ISSUES_JQL = "assignee = currentUser() AND resolution = Unresolved ORDER BY updated DESC"


def _issue_from_payload(data: dict) -> JiraIssue:
    fields = data.get("fields") or {}
    status = fields.get("status") or {}
    return JiraIssue(
        key=data["key"],
        summary=fields.get("summary") or "No summary",
        status=status.get("name") or "Unknown",
    )


class JiraClient:
    """Small helper around the Jira REST endpoints the tracker needs."""

    def __init__(self, config: JiraConfig) -> None:
        self.config = config
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})

        auth = config.auth
        if isinstance(auth, ApiTokenAuth):
            self.base_url = config.jira_host.rstrip("/")
            self._session.auth = HTTPBasicAuth(auth.email, auth.api_token)
        elif isinstance(auth, OAuthAuth):
            self.base_url = f"{ATLASSIAN_API_URL}/{auth.cloud_id}"
            self._session.headers.update({"Authorization": f"Bearer {auth.access_token}"})
        else:
            raise TypeError(f"Unsupported auth type: {type(auth).__name__}")

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        LOGGER.debug("Jira request %s %s", method, url)
        try:
            response = self._session.request(method, url, timeout=DEFAULT_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            LOGGER.error("Jira request %s %s failed: %s", method, url, exc)
            raise JiraUnknownError(str(exc)) from exc
        if response.status_code == 401:
            raise AuthenticationFailedError()
        if response.status_code >= 400:
            LOGGER.error("Jira API call failed: %s", response.text)
            raise JiraUnknownError(
                f"Jira request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        return response

    def _json(self, response: requests.Response):
        try:
            return response.json()
        except ValueError as exc:
            raise JiraUnknownError(f"Invalid response from Jira: {exc}") from exc

    def get_issue(self, issue_key: str) -> JiraIssue:
        try:
            response = self._request(
                "GET", f"/rest/api/3/issue/{issue_key}", params={"fields": "summary,status"}
            )
        except JiraUnknownError as exc:
            if exc.status_code == 404:
                raise IssueNotFoundError(issue_key) from exc
            raise
        data = self._json(response)
        try:
            return _issue_from_payload(data)
        except (KeyError, TypeError, AttributeError) as exc:
            raise JiraUnknownError(f"Unexpected issue payload for {issue_key}") from exc

    def search_assigned_issues(self, max_results: int = 50) -> list[JiraIssue]:
        payload = {
            "jql": ASSIGNED_ISSUES_JQL,
            "fields": ["summary", "status"],
            "maxResults": max_results,
        }
        data = self._json(self._request("POST", "/rest/api/3/search/jql", json=payload))
        try:
            return [_issue_from_payload(issue) for issue in data.get("issues", [])]
        except (KeyError, TypeError, AttributeError) as exc:
            raise JiraUnknownError("Failed to search issues: unexpected response") from exc

    def post_worklog(
        self, issue_key: str, time_spent_seconds: int, comment: str, started_at: int
    ) -> WorklogResult:
        payload = {
            "timeSpentSeconds": time_spent_seconds,
            "started": make_timestamp(started_at),
        }
        comment_payload = make_comment_payload(comment)
        if comment_payload is not None:
            payload["comment"] = comment_payload
        try:
            response = self._request("POST", f"/rest/api/3/issue/{issue_key}/worklog", json=payload)
        except JiraUnknownError as exc:
            if exc.status_code == 403:
                raise PermissionDeniedError() from exc
            raise
        data = self._json(response)
        return WorklogResult(
            id=str(data.get("id") or "unknown"),
            issue_key=issue_key,
            time_spent_seconds=time_spent_seconds,
            started=to_iso(started_at),
            comment=comment,
        )

    def get_current_user(self) -> JiraUser:
        data = self._json(self._request("GET", "/rest/api/3/myself"))
        return JiraUser(
            display_name=data.get("displayName") or "Unknown",
            email=data.get("emailAddress") or "",
        )

    def test_connection(self) -> bool:
        try:
            self._request("GET", "/rest/api/3/myself")
            return True
        except Exception:
            LOGGER.exception("Authentication test failed")
            return False
