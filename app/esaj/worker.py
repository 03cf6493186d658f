from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Generic, Optional, TypeVar

from . import config
from .cancellation import CancelToken
from .logging_utils import _portal_event
from .service import ESAJService

T = TypeVar("T")
PortalJobFn = Callable[[ESAJService, CancelToken], T]


@dataclass
class PortalJob(Generic[T]):
    future: "Future[T]"
    cancel_token: CancelToken

    def result(self, timeout: Optional[float] = None) -> T:
        return self.future.result(timeout=timeout)

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self.cancel_token.cancel(reason)


class PortalWorker:
    """
    Single-thread executor that owns the browser session.

    IMPORTANT:
    - Playwright's sync objects are bound to the thread that created them, so
      every job runs on the one worker thread and jobs execute in order.
    - Each job gets its own CancelToken whose deadline starts at submission.
    - The service (and its browser) is created lazily on the worker thread.
    """

    def __init__(
        self,
        service_factory: Callable[[], ESAJService] = ESAJService,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._service_factory = service_factory
        self._timeout_seconds = timeout_seconds or config.OPERATION_TIMEOUT_SECONDS
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="esaj-portal")
        self._service: Optional[ESAJService] = None
        self._lock = Lock()
        self._in_flight: int = 0
        self._peak_in_flight: int = 0
        self._closed = False

    def _get_service(self) -> ESAJService:
        if self._service is None:
            self._service = self._service_factory()
        return self._service

    def submit(self, fn: PortalJobFn, *, timeout_seconds: Optional[float] = None) -> PortalJob:
        with self._lock:
            if self._closed:
                raise RuntimeError("PortalWorker is shut down")
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            queued = self._in_flight

        token = CancelToken(timeout_seconds or self._timeout_seconds)
        _portal_event("state", phase="worker", kind="submitted", in_flight=queued)

        def _wrapped() -> Any:
            try:
                return fn(self._get_service(), token)
            finally:
                with self._lock:
                    self._in_flight -= 1

        return PortalJob(future=self._executor.submit(_wrapped), cancel_token=token)

    def run(self, fn: PortalJobFn, *, timeout_seconds: Optional[float] = None) -> Any:
        """Submit ``fn`` and block for its result."""

        return self.submit(fn, timeout_seconds=timeout_seconds).result()

    @property
    def peak_in_flight(self) -> int:
        with self._lock:
            return self._peak_in_flight

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True

        def _cleanup() -> None:
            if self._service is not None:
                self._service.cleanup()

        try:
            self._executor.submit(_cleanup).result()
        finally:
            self._executor.shutdown(wait=True)


__all__ = ["PortalJob", "PortalWorker"]
