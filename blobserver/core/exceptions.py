from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


class BlobServerError(Exception):
    """Base class for all blob server exceptions.

    Carries the blob reference and qualified key (when known) plus the
    underlying cause so callers can diagnose a failure without retrying blindly.
    """

    def __init__(
        self,
        message: str,
        *,
        ref: Any = None,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.ref = ref
        self.key = key
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        parts = []
        if self.ref is not None:
            parts.append(f"ref={self.ref}")
        if self.key is not None:
            parts.append(f"key={self.key}")
        if self.cause is not None:
            parts.append(f"cause={self.cause!r}")
        return f"{base} ({', '.join(parts)})" if parts else base


class NotFoundError(BlobServerError):
    """Raised when the requested blob (or raw object) does not exist."""


class TransientError(BlobServerError):
    """Raised for failures expected to succeed on retry (5xx, 429, network, races)."""


class FatalError(BlobServerError):
    """Raised for non-retryable failures, and for exhausted retry budgets."""


class AuthError(FatalError):
    """Raised when credentials are rejected or an access token cannot be obtained."""


class ConfigError(FatalError):
    """Raised for missing/malformed configuration (bucket, namespace, auth)."""


class OperationCancelled(BlobServerError):
    """Raised when the caller's context was cancelled or its deadline passed."""


class PartialFailureError(BlobServerError):
    """Raised by batch removal when some deletions failed.

    Successful deletions are not rolled back; ``failed`` maps each blob
    reference that could not be removed to its error.
    """

    def __init__(
        self,
        failed: Dict[Any, BaseException],
        removed: Iterable[Any] = (),
    ) -> None:
        self.failed = dict(failed)
        self.removed = list(removed)
        refs = ", ".join(sorted(str(r) for r in self.failed))
        super().__init__(
            f"failed to remove {len(self.failed)} blob(s): {refs}",
            cause=next(iter(self.failed.values()), None),
        )

    def __str__(self) -> str:
        return self.args[0]


__all__ = [
    "BlobServerError",
    "NotFoundError",
    "TransientError",
    "FatalError",
    "AuthError",
    "ConfigError",
    "OperationCancelled",
    "PartialFailureError",
]
