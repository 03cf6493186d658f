from __future__ import annotations

"""Small Playwright helpers shared by the live stages."""

from typing import Any, Iterable, Optional

from playwright.sync_api import Error as PWError, Page, TimeoutError as PWTimeout

from . import config
from .error_codes import ErrorCode
from .logging_utils import _portal_event
from .utils import log_line, redact_url


def is_target_closed_error(exc: Exception) -> bool:
    """Return ``True`` if *exc* indicates the Playwright target is gone."""

    message = str(exc)
    return any(
        marker in message
        for marker in (
            "Target closed",
            "Target crashed",
            "has been closed",
            "Execution context was destroyed",
        )
    )


def wait_seconds(page: Optional[Page], seconds: float) -> None:
    """Wait safely for ``seconds`` only if *page* remains open.

    Waiting through the page keeps Playwright's event loop turning, so
    download and dialog handlers keep firing during the pause.
    """

    if page is None:
        return

    if seconds is None or seconds <= 0:
        return

    if not page.is_closed():
        page.wait_for_timeout(int(seconds * 1000))


def safe_goto(
    page: Page,
    url: str,
    *,
    label: str,
    wait_until: str = "networkidle",
    timeout_ms: int | None = None,
    tolerate_timeout: bool = False,
) -> Optional[str]:
    """Navigate to ``url``; return ``None`` on success or an error code.

    With ``tolerate_timeout`` a navigation timeout is logged and treated as
    success, for pages that render before the network settles.
    """

    timeout = timeout_ms or config.NAV_TIMEOUT_SECONDS * 1000
    safe_url = redact_url(url)
    try:
        _portal_event("nav", step="goto", target=label, url=safe_url)
        page.goto(url, wait_until=wait_until, timeout=timeout)
        return None
    except PWTimeout as exc:
        if tolerate_timeout:
            _portal_event("nav", step="goto_timeout_tolerated", target=label, url=safe_url)
            return None
        log_line(f"[ESAJ][ERROR][NAV] goto({safe_url!r}) timed out: {exc}")
        _portal_event(
            "error",
            phase="nav",
            step="goto_timeout",
            target=label,
            url=safe_url,
            error=str(exc),
        )
        return ErrorCode.NAVIGATION_TIMEOUT
    except PWError as exc:
        if is_target_closed_error(exc):
            log_line(f"[ESAJ][ERROR][NAV] Target closed during navigation to {label}: {exc}")
            _portal_event(
                "error",
                phase="nav",
                step="goto_target_closed",
                target=label,
                url=safe_url,
                error=str(exc),
            )
            return ErrorCode.INTERNAL
        log_line(f"[ESAJ][ERROR][NAV] goto({safe_url!r}) failed: {exc}")
        _portal_event(
            "error",
            phase="nav",
            step="goto_failed",
            target=label,
            url=safe_url,
            error=str(exc),
        )
        return ErrorCode.NETWORK


def first_locator(parent: Any, selector: str):
    try:
        loc = parent.locator(selector)
        return loc.nth(0) if loc.count() else None
    except PWError as exc:
        if is_target_closed_error(exc):
            raise
        log_line(f"[ESAJ][WARN] Locator error for {selector!r}: {exc}")
        return None


def first_visible_locator(parent: Any, selector: str):
    try:
        loc = parent.locator(selector)
        for index in range(loc.count()):
            item = loc.nth(index)
            if item.is_visible():
                return item
    except PWError as exc:
        if is_target_closed_error(exc):
            raise
        log_line(f"[ESAJ][WARN] Visibility check failed for {selector!r}: {exc}")
    return None


def wait_for_locator(parent: Any, selector: str, *, timeout_ms: int, state: str = "attached"):
    """Return the first match for ``selector`` once it reaches ``state``, else ``None``.

    With ``state="visible"`` only a visible match is returned.
    """

    lookup = first_visible_locator if state == "visible" else first_locator
    loc = lookup(parent, selector)
    if loc is not None:
        return loc
    try:
        parent.wait_for_selector(selector, state=state, timeout=timeout_ms)
    except PWTimeout:
        return None
    except PWError as exc:
        if is_target_closed_error(exc):
            raise
        log_line(f"[ESAJ][WARN] Wait error for {selector!r}: {exc}")
        return None
    return lookup(parent, selector)


def extract_attr(locator: Any, names: Iterable[str]) -> Optional[str]:
    for name in names:
        try:
            raw_value = locator.get_attribute(name)
        except PWError as exc:
            if is_target_closed_error(exc):
                raise
            raw_value = None
        if raw_value and str(raw_value).strip():
            return str(raw_value).strip()
    return None


__all__ = [
    "extract_attr",
    "first_locator",
    "first_visible_locator",
    "is_target_closed_error",
    "safe_goto",
    "wait_for_locator",
    "wait_seconds",
]
