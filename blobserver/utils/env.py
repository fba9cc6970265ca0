from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable

# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------


def get_str(name: str, default: str = "") -> str:
    """Return env var as a string with a sensible default."""
    value = os.getenv(name)
    return value if value not in (None, "") else default


def get_int(name: str, default: int) -> int:
    """Coerce env var into int, falling back on conversion errors."""
    raw = os.getenv(name)
    try:
        return int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        return default


def get_float(name: str, default: float) -> float:
    """Coerce env var into float, falling back on conversion errors."""
    raw = os.getenv(name)
    try:
        return float(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        return default


def get_int_chain(names: Iterable[str], default: int) -> int:
    """Return the first valid int from a list of env vars."""
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        candidate = str(raw).strip()
        if not candidate:
            continue
        try:
            return int(candidate)
        except ValueError:
            continue
    return default


@dataclass(frozen=True)
class EnvSettings:
    """Runtime configuration sourced from environment variables."""

    #: Bucket name, optionally suffixed with a virtual directory ("bucket/dir/").
    GCS_BUCKET: str = field(default_factory=lambda: get_str("GCS_BUCKET", ""))
    #: OAuth2 client id of an "installed application".
    GCS_CLIENT_ID: str = field(default_factory=lambda: get_str("GCS_CLIENT_ID", ""))
    #: OAuth2 client secret.
    GCS_CLIENT_SECRET: str = field(
        default_factory=lambda: get_str("GCS_CLIENT_SECRET", "")
    )
    #: Long-lived refresh token exchanged for access tokens.
    GCS_REFRESH_TOKEN: str = field(
        default_factory=lambda: get_str("GCS_REFRESH_TOKEN", "")
    )
    #: Root of the JSON API (override for emulators).
    GCS_API_BASE: str = field(
        default_factory=lambda: get_str(
            "GCS_API_BASE", "https://storage.googleapis.com"
        )
    )
    #: OAuth2 token endpoint.
    GCS_TOKEN_URL: str = field(
        default_factory=lambda: get_str(
            "GCS_TOKEN_URL", "https://oauth2.googleapis.com/token"
        )
    )
    #: Total write attempts per Put (first try included).
    GCS_PUT_ATTEMPTS: int = field(default_factory=lambda: get_int("GCS_PUT_ATTEMPTS", 2))
    #: Base backoff between write attempts; 0 retries immediately.
    GCS_RETRY_BACKOFF_SEC: float = field(
        default_factory=lambda: get_float("GCS_RETRY_BACKOFF_SEC", 0.0)
    )
    #: Parallel deletions per RemoveBlobs call.
    GCS_REMOVE_CONCURRENCY: int = field(
        default_factory=lambda: get_int("GCS_REMOVE_CONCURRENCY", 8)
    )
    #: Largest accepted blob, in bytes.
    GCS_MAX_BLOB_SIZE: int = field(
        default_factory=lambda: get_int("GCS_MAX_BLOB_SIZE", 16 << 20)
    )

    #: Default HTTP request timeout (seconds).
    HTTP_TIMEOUT_SECS: int = field(
        default_factory=lambda: get_int_chain(("HTTP_TIMEOUT", "HTTP_TIMEOUT_SECS"), 30)
    )
    #: HTTP user-agent header for outbound requests.
    HTTP_USER_AGENT: str = field(
        default_factory=lambda: get_str(
            "HTTP_USER_AGENT", "gcs-blobserver/0.3 (+https://example.local)"
        )
    )

    #: Convenience alias for HTTP timeout seconds.
    HTTP_TIMEOUT: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "HTTP_TIMEOUT", self.HTTP_TIMEOUT_SECS)


ENV = EnvSettings()

GCS_BUCKET = ENV.GCS_BUCKET
GCS_CLIENT_ID = ENV.GCS_CLIENT_ID
GCS_CLIENT_SECRET = ENV.GCS_CLIENT_SECRET
GCS_REFRESH_TOKEN = ENV.GCS_REFRESH_TOKEN
GCS_API_BASE = ENV.GCS_API_BASE
GCS_TOKEN_URL = ENV.GCS_TOKEN_URL
GCS_PUT_ATTEMPTS = ENV.GCS_PUT_ATTEMPTS
GCS_RETRY_BACKOFF_SEC = ENV.GCS_RETRY_BACKOFF_SEC
GCS_REMOVE_CONCURRENCY = ENV.GCS_REMOVE_CONCURRENCY
GCS_MAX_BLOB_SIZE = ENV.GCS_MAX_BLOB_SIZE

HTTP_TIMEOUT_SECS = ENV.HTTP_TIMEOUT_SECS
HTTP_USER_AGENT = ENV.HTTP_USER_AGENT
HTTP_TIMEOUT = ENV.HTTP_TIMEOUT


__all__ = [
    "EnvSettings",
    "ENV",
    "get_str",
    "get_int",
    "get_float",
    "get_int_chain",
]
