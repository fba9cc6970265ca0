from __future__ import annotations

import random
import time
from typing import Dict, Optional

import requests
from loguru import logger

from blobserver.utils import env as ENV

# ------------------------------------------------------------------------------
# Header helpers
# ------------------------------------------------------------------------------


def ensure_ua(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    merged = {"User-Agent": ENV.HTTP_USER_AGENT}
    if headers:
        merged.update(headers)
    return merged


def bearer(token: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Merge caller headers with an OAuth2 bearer token + UA."""
    merged = ensure_ua(headers)
    merged["Authorization"] = f"Bearer {token}"
    return merged


def new_session() -> requests.Session:
    """Session reused across calls so connections stay pooled."""
    session = requests.Session()
    session.headers.update(ensure_ua())
    return session


# ------------------------------------------------------------------------------
# Backoff + request logging
# ------------------------------------------------------------------------------


def compute_backoff_delay(
    attempt: int, backoff: float, retry_after: Optional[str] = None
) -> float:
    # Respect Retry-After if present and valid
    if retry_after:
        try:
            val = float(retry_after)
            if val > 0:
                return val
        except ValueError:
            pass
    if backoff <= 0:
        return 0.0
    # Jittered backoff: base * (attempt+1) * (0.85..1.15)
    jitter = random.uniform(0.85, 1.15)
    return max(0.1, backoff * (attempt + 1) * jitter)


def log_http_event(
    *,
    level: str,
    method: str,
    url: str,
    status: int,
    start_time: float,
    note: str = "",
) -> None:
    latency_ms = round((time.perf_counter() - start_time) * 1000.0, 1)
    logger.log(
        level,
        "[gcs] method={} url={} status={} latency_ms={:.1f} {}",
        method.upper(),
        url,
        status,
        latency_ms,
        note,
    )


__all__ = [
    "ensure_ua",
    "bearer",
    "new_session",
    "compute_backoff_delay",
    "log_http_event",
]
