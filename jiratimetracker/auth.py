"""Credential loading and OAuth token refresh."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

import requests

from .errors import NotConfiguredError, TokenRefreshError
from .models import ApiTokenAuth, JiraConfig, OAuthAuth, OAuthClientConfig
from .storage import ConfigStore
from .utils import now_ms

LOGGER = logging.getLogger(__name__)

ATLASSIAN_TOKEN_URL = "https://auth.atlassian.com/oauth/token"
TOKEN_REFRESH_TIMEOUT = 20
# Tokens are refreshed this long before they actually expire.
EXPIRY_MARGIN_MS = 5 * 60 * 1000


def is_token_expired(auth: OAuthAuth, now: int) -> bool:
    if not auth.expires_at:
        return True
    return now > auth.expires_at - EXPIRY_MARGIN_MS


def needs_refresh(config: JiraConfig, now: int) -> bool:
    auth = config.auth
    if isinstance(auth, ApiTokenAuth):
        return False
    if isinstance(auth, OAuthAuth):
        return is_token_expired(auth, now)
    raise TypeError(f"Unsupported auth type: {type(auth).__name__}")


def refresh_access_token(refresh_token: str, client_config: OAuthClientConfig) -> dict:
    """Exchange ``refresh_token`` for a new token pair.

    Returns the token response (``access_token``, ``refresh_token``,
    ``expires_in``, ...). Raises :class:`TokenRefreshError` on any failure.
    """
    payload = {
        "grant_type": "refresh_token",
        "client_id": client_config.client_id,
        "client_secret": client_config.client_secret,
        "refresh_token": refresh_token,
    }
    try:
        response = requests.post(ATLASSIAN_TOKEN_URL, json=payload, timeout=TOKEN_REFRESH_TIMEOUT)
    except requests.RequestException as exc:
        raise TokenRefreshError(f"Failed to refresh access token: {exc}") from exc
    if response.status_code >= 400:
        raise TokenRefreshError(f"Failed to refresh access token: {response.text}")
    try:
        data = response.json()
        if not isinstance(data["access_token"], str) or not isinstance(data["expires_in"], (int, float)):
            raise TypeError("unexpected token types")
    except (ValueError, KeyError, TypeError) as exc:
        raise TokenRefreshError(f"Failed to refresh access token: invalid response ({exc})") from exc
    return data


def ensure_authenticated(
    store: ConfigStore,
    clock_ms: Callable[[], int] = now_ms,
    force_refresh: bool = False,
) -> JiraConfig:
    """Return usable credentials, refreshing an expiring OAuth token first.

    Raises :class:`NotConfiguredError` when nothing usable is stored and
    :class:`TokenRefreshError` when a refresh is needed but fails. Neither
    touches the active timer or the offline queue.
    """
    config = store.get_jira_config()
    if config is None:
        raise NotConfiguredError()

    now = clock_ms()
    auth = config.auth
    if not isinstance(auth, OAuthAuth) or not (force_refresh or needs_refresh(config, now)):
        return config

    client_config = store.get_oauth_client_config()
    if client_config is None:
        raise NotConfiguredError('OAuth client config missing. Run "jtt config" to reconfigure.')

    LOGGER.info("Refreshing OAuth access token")
    tokens = refresh_access_token(auth.refresh_token, client_config)
    refreshed = replace(
        auth,
        access_token=tokens["access_token"],
        refresh_token=tokens.get("refresh_token") or auth.refresh_token,
        expires_at=now + int(tokens["expires_in"] * 1000),
    )
    store.update_oauth_tokens(refreshed.access_token, refreshed.refresh_token, refreshed.expires_at)
    LOGGER.info("OAuth access token refreshed")
    return replace(config, auth=refreshed)
