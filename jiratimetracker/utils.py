"""Utility helpers for the time tracker."""
from __future__ import annotations

import re
import time
from datetime import datetime, timezone


SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE

ISSUE_KEY_PATTERN = re.compile(r"^[A-Z]+-\d+$")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def format_time(seconds: int) -> str:
    """Format ``seconds`` as a zero padded ``HH:MM:SS`` clock."""
    hours, remaining = divmod(seconds, SECONDS_PER_HOUR)
    minutes, secs = divmod(remaining, SECONDS_PER_MINUTE)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_time_human_readable(seconds: int) -> str:
    """Format ``seconds`` as ``1h 30m``; anything under a minute reads ``less than 1m``."""
    hours, remaining = divmod(seconds, SECONDS_PER_HOUR)
    minutes = remaining // SECONDS_PER_MINUTE

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if not parts:
        return "less than 1m"
    return " ".join(parts)


def normalize_issue_key(issue_key: str) -> str | None:
    """Return the upper-cased key, or ``None`` if it is not ``PROJECT-123`` shaped."""
    key = issue_key.strip().upper()
    if not ISSUE_KEY_PATTERN.match(key):
        return None
    return key


def to_iso(timestamp_ms: int) -> str:
    """Return the UTC ISO-8601 form used when a worklog is queued, e.g. ``2024-01-15T10:00:00.000Z``."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def from_iso(value: str) -> int:
    """Parse an ISO-8601 timestamp back into epoch milliseconds."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def make_timestamp(timestamp_ms: int) -> str:
    """Return the ``started`` format understood by Jira's worklog API."""
    return to_iso(timestamp_ms).replace("Z", "+0000")


def make_comment_payload(comment: str) -> dict | None:
    """Return a payload compatible with Jira's Atlassian Document Format."""

    text = comment.strip()
    if not text:
        return None

    content: list[dict] = []
    lines = comment.splitlines()
    for index, line in enumerate(lines):
        if line:
            content.append({"type": "text", "text": line})
        if index != len(lines) - 1:
            content.append({"type": "hardBreak"})

    if not content:
        content.append({"type": "text", "text": ""})

    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": content,
            }
        ],
    }


def mask_token(token: str) -> str:
    """Show only the first and last four characters of a secret."""
    if len(token) <= 8:
        return "****"
    return token[:4] + "****" + token[-4:]
