"""Progress events emitted by the retrieval stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from .logging_utils import _portal_event


class ProgressStage(str, Enum):
    INIT = "init"
    CONNECTING = "connecting"
    SEARCHING = "searching"
    NAVIGATING = "navigating"
    FINDING_DOCUMENT = "finding_document"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressUpdate:
    stage: ProgressStage
    message: str
    progress: Optional[int] = None
    details: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"stage": self.stage.value, "message": self.message}
        if self.progress is not None:
            payload["progress"] = self.progress
        if self.details:
            payload["details"] = dict(self.details)
        if self.error:
            payload["error"] = self.error
        return payload


ProgressCallback = Callable[[ProgressUpdate], None]


class ProgressReporter:
    """Deliver :class:`ProgressUpdate` events to one caller-supplied callback.

    A reporter is created per invocation and passed down explicitly, so events
    of one call never reach the callback of another. Without a callback the
    reporter is silent. A failing callback is logged and otherwise ignored.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback

    @property
    def enabled(self) -> bool:
        return self._callback is not None

    def emit(
        self,
        stage: ProgressStage,
        message: str,
        progress: Optional[int] = None,
        *,
        error: Optional[str] = None,
        **details: Any,
    ) -> None:
        if self._callback is None:
            return
        if progress is not None:
            progress = max(0, min(100, int(progress)))
        update = ProgressUpdate(
            stage=stage,
            message=message,
            progress=progress,
            details=details,
            error=error,
        )
        try:
            self._callback(update)
        except Exception as exc:  # noqa: BLE001
            _portal_event(
                "error",
                phase="progress",
                stage=stage.value,
                error=str(exc),
            )

    def fail(self, message: str, error: Optional[str] = None, **details: Any) -> None:
        self.emit(ProgressStage.ERROR, message, error=error or message, **details)


SILENT = ProgressReporter()


def as_reporter(
    progress: Union[ProgressReporter, ProgressCallback, None],
) -> ProgressReporter:
    """Accept a reporter, a bare callback or ``None``."""

    if progress is None:
        return SILENT
    if isinstance(progress, ProgressReporter):
        return progress
    return ProgressReporter(progress)


__all__ = [
    "ProgressStage",
    "ProgressUpdate",
    "ProgressCallback",
    "ProgressReporter",
    "SILENT",
    "as_reporter",
]
