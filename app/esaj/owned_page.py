"""Move-only handle for a browser page passed between retrieval stages."""
from __future__ import annotations

from typing import Any, Optional

from playwright.sync_api import Error as PWError

from .logging_utils import _portal_event


class PageOwnershipError(RuntimeError):
    """Raised when a moved or closed handle is used."""


class OwnedPage:
    """Exclusive ownership of one Playwright page.

    Exactly one handle owns a page at any instant. :meth:`take` moves the page
    into a new handle and empties this one; :meth:`close` releases it and is a
    no-op on an empty handle, so the page is closed at most once. Used as a
    context manager, the handle closes whatever it still owns on exit, which
    makes the last holder responsible for cleanup.
    """

    def __init__(self, page: Any, *, label: str = "page") -> None:
        if page is None:
            raise ValueError("OwnedPage requires a page")
        self._page: Optional[Any] = page
        self._label = label
        self._state = "owned"

    def __copy__(self) -> "OwnedPage":
        raise PageOwnershipError("OwnedPage cannot be copied; use take()")

    def __deepcopy__(self, memo: dict) -> "OwnedPage":
        raise PageOwnershipError("OwnedPage cannot be copied; use take()")

    def __enter__(self) -> "OwnedPage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def __repr__(self) -> str:
        return f"OwnedPage(label={self._label!r}, state={self._state!r})"

    @property
    def owned(self) -> bool:
        return self._state == "owned"

    @property
    def state(self) -> str:
        return self._state

    @property
    def page(self) -> Any:
        if self._page is None:
            raise PageOwnershipError(f"page handle is {self._state}")
        return self._page

    def take(self, *, label: str | None = None) -> "OwnedPage":
        """Move the page into a fresh handle; this handle becomes empty."""

        page = self.page
        self._page = None
        self._state = "moved"
        return OwnedPage(page, label=label or self._label)

    def close(self) -> None:
        if self._page is None:
            return
        page = self._page
        self._page = None
        self._state = "closed"
        try:
            if not page.is_closed():
                page.close()
        except PWError as exc:
            _portal_event("warn", phase="page", step="close", target=self._label, error=str(exc))


__all__ = ["OwnedPage", "PageOwnershipError"]
