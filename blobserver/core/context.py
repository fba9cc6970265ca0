"""Cancellation and deadlines for storage operations."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, List, Optional

from loguru import logger

from blobserver.core.exceptions import OperationCancelled


class Context:
    """Carries a cancellation flag and an optional deadline across remote calls.

    Operations call :meth:`check` before every remote round-trip and cap the
    HTTP timeout with :meth:`timeout`. Calls already in flight register a close
    hook with :meth:`on_cancel`, so :meth:`cancel` tears down their response
    streams and the operation fails with :class:`OperationCancelled`.
    """

    def __init__(self, *, timeout: Optional[float] = None) -> None:
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], Any]] = []

    @classmethod
    def background(cls) -> "Context":
        return cls()

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.debug("cancel hook {!r} failed: {}", callback, e)

    def on_cancel(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """Run ``callback`` once when the context is cancelled.

        Runs it immediately if the context is already cancelled. Returns a
        function that unregisters the callback.
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                return lambda: self._discard(callback)
        callback()
        return lambda: None

    def _discard(self, callback: Callable[[], Any]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def check(self, what: str = "operation") -> None:
        if self._cancelled.is_set():
            raise OperationCancelled(f"{what} cancelled")
        left = self.remaining()
        if left is not None and left <= 0:
            raise OperationCancelled(f"{what} deadline exceeded")

    def timeout(self, default: Optional[float]) -> Optional[float]:
        """Return the per-request timeout: ``default`` capped by the deadline."""
        left = self.remaining()
        if left is None:
            return default
        left = max(left, 0.001)
        return left if default is None else min(default, left)

    def sleep(self, seconds: float) -> None:
        """Wait up to ``seconds``; wakes early (and raises) on cancellation."""
        if seconds > 0:
            left = self.remaining()
            if left is not None:
                seconds = min(seconds, max(left, 0))
            self._cancelled.wait(seconds)
        self.check()


__all__ = ["Context"]
