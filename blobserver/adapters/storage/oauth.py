from __future__ import annotations

import threading
import time
from typing import Optional, Protocol

import requests
from loguru import logger

from blobserver.core.exceptions import AuthError, TransientError
from blobserver.utils import env as ENV
from blobserver.utils.http import ensure_ua

# Refresh this many seconds before the server-side expiry.
_EXPIRY_SLACK = 60.0


class TokenSource(Protocol):
    def token(self) -> str:
        ...

    def invalidate(self) -> None:
        ...


class StaticTokenSource:
    """Serves a fixed access token (emulators, short-lived scripts, tests)."""

    def __init__(self, access_token: str) -> None:
        self._token = access_token

    def token(self) -> str:
        return self._token

    def invalidate(self) -> None:
        return None


class RefreshTokenSource:
    """Exchanges an OAuth2 refresh token for access tokens, cached in memory.

    Tokens are never written to disk; a fresh process refreshes once on first use.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        token_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        if not (client_id and client_secret and refresh_token):
            raise AuthError("client_id, client_secret and refresh_token are required")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = token_url or ENV.GCS_TOKEN_URL
        self.timeout = timeout if timeout is not None else ENV.HTTP_TIMEOUT
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    def token(self) -> str:
        with self._lock:
            if self._access_token and time.monotonic() < self._expires_at:
                return self._access_token
            self._access_token, self._expires_at = self._refresh()
            return self._access_token

    def invalidate(self) -> None:
        with self._lock:
            self._access_token = None
            self._expires_at = 0.0

    def _refresh(self) -> tuple[str, float]:
        try:
            resp = self._session.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
                headers=ensure_ua({"Accept": "application/json"}),
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientError("token refresh failed", cause=e) from e

        if resp.status_code >= 500 or resp.status_code == 429:
            raise TransientError(f"token endpoint returned {resp.status_code}")
        if resp.status_code != 200:
            body = (resp.text or "")[:200]
            logger.error("token refresh rejected: status={} body={}", resp.status_code, body)
            raise AuthError(f"token refresh rejected with status {resp.status_code}")

        try:
            payload = resp.json()
            access_token = payload["access_token"]
        except (ValueError, KeyError) as e:
            raise AuthError("token endpoint returned no access_token", cause=e) from e

        expires_in = float(payload.get("expires_in", 3600))
        logger.debug("refreshed access token; expires_in={}s", expires_in)
        return access_token, time.monotonic() + max(expires_in - _EXPIRY_SLACK, 0.0)


__all__ = ["TokenSource", "StaticTokenSource", "RefreshTokenSource"]
