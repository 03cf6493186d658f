"""Cooperative cancellation for long portal interactions."""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class OperationCancelled(Exception):
    """Raised at a step boundary once the token is cancelled or expired."""

    def __init__(self, reason: str, *, step: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.step = step


class CancelToken:
    """Cancellation flag with an optional deadline.

    Stages call :meth:`check` between portal steps and clamp their own
    Playwright timeouts with :meth:`clamp_ms`, so an outer deadline aborts a
    stuck interaction without leaving the page or the browser behind.
    """

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._deadline: Optional[float] = (
            clock() + float(timeout_seconds) if timeout_seconds is not None else None
        )

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def clamp_ms(self, timeout_ms: int) -> int:
        """Return ``timeout_ms`` bounded by the time left before the deadline."""

        remaining = self.remaining()
        if remaining is None:
            return timeout_ms
        return max(1, min(timeout_ms, int(remaining * 1000)))

    def check(self, step: str | None = None) -> None:
        if self.cancelled:
            raise OperationCancelled(self._reason or "cancelled", step=step)


def as_token(cancel: Optional[CancelToken]) -> CancelToken:
    return cancel if cancel is not None else CancelToken()


__all__ = ["CancelToken", "OperationCancelled", "as_token"]
