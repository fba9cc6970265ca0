"""Retry policy for remote writes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

import requests
from loguru import logger

from blobserver.core.context import Context
from blobserver.core.exceptions import FatalError, TransientError
from blobserver.utils.http import compute_backoff_delay

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Default classification: explicit retry signals and transport hiccups."""
    return isinstance(
        exc, (TransientError, requests.ConnectionError, requests.Timeout)
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with an injectable classification function.

    Attributes:
        max_attempts (int): Total attempts, first try included. ``2`` means one retry.
        backoff (float): Base delay for jittered backoff; ``0`` retries immediately.
        classify (Callable): Returns True when an exception is worth retrying.
    """

    max_attempts: int = 2
    backoff: float = 0.0
    classify: Callable[[BaseException], bool] = field(default=is_transient)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff < 0:
            raise ValueError("backoff must be >= 0")

    def run(
        self,
        fn: Callable[[], T],
        *,
        ctx: Optional[Context] = None,
        what: str = "operation",
        ref: object = None,
        key: Optional[str] = None,
    ) -> T:
        """Call ``fn`` until it succeeds, fails fatally, or the budget runs out.

        Transient failures on the last attempt are converted to :class:`FatalError`;
        everything the classifier rejects propagates unchanged.
        """
        ctx = ctx or Context.background()
        for attempt in range(self.max_attempts):
            ctx.check(what)
            try:
                return fn()
            except Exception as exc:
                if not self.classify(exc):
                    raise
                if attempt + 1 >= self.max_attempts:
                    logger.error(
                        "{} failed after {} attempt(s): {}", what, attempt + 1, exc
                    )
                    raise FatalError(
                        f"{what} failed after {attempt + 1} attempt(s)",
                        ref=ref,
                        key=key,
                        cause=exc,
                    ) from exc
                delay = compute_backoff_delay(attempt, self.backoff)
                logger.warning(
                    "{} transient failure; retry {}/{} in {:.2f}s: {}",
                    what,
                    attempt + 1,
                    self.max_attempts - 1,
                    delay,
                    exc,
                )
                ctx.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["RetryPolicy", "is_transient"]
