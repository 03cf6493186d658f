from __future__ import annotations

"""Shared browser session for the retrieval stages.

One :class:`BrowserSession` owns one Chromium process. It is created by the
caller and passed to each stage explicitly; the browser is launched lazily on
the first :meth:`BrowserSession.acquire_browser` call and relaunched
transparently after an unexpected disconnect.
"""

import os
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from playwright.sync_api import Browser, Error as PWError, Page, sync_playwright

from . import config
from .logging_utils import _portal_event
from .owned_page import OwnedPage
from .utils import log_line, sanitize_filename

EXECUTABLE_NAMES = ("chrome", "chromium", "headless_shell", "chrome-headless-shell")
IN_PROGRESS_SUFFIX = ".part"


class BrowserUnavailableError(RuntimeError):
    """No usable browser executable could be launched."""


def _is_executable(path: Path) -> bool:
    try:
        return path.is_file() and os.access(path, os.X_OK)
    except OSError:
        return False


def _scan_cache_dir(root: Path, depth: int) -> Optional[Path]:
    """Depth-first search for a browser binary, preferring chrome/linux entries."""

    if depth < 0:
        return None
    try:
        entries = list(root.iterdir())
    except OSError:
        return None

    def _priority(entry: Path) -> tuple[int, str]:
        lowered = entry.name.lower()
        return (0 if "chrome" in lowered or "linux" in lowered else 1, entry.name)

    entries.sort(key=_priority)

    for entry in entries:
        if entry.name in EXECUTABLE_NAMES and _is_executable(entry):
            return entry
    for entry in entries:
        try:
            is_dir = entry.is_dir() and not entry.is_symlink()
        except OSError:
            continue
        if is_dir:
            found = _scan_cache_dir(entry, depth - 1)
            if found is not None:
                return found
    return None


def _cache_dirs() -> list[str]:
    dirs = [config.BROWSER_CACHE_DIR, *config.BROWSER_CACHE_DIRS]
    seen: set[str] = set()
    ordered: list[str] = []
    for item in dirs:
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def find_browser_executable(
    *,
    explicit_path: str | None = None,
    cache_dirs: Iterable[str] | None = None,
    system_paths: Iterable[str] | None = None,
    max_depth: int | None = None,
) -> Optional[str]:
    """Locate a Chromium binary.

    Order: explicit path, bounded scan of the cache directories, well-known
    system paths. ``None`` means the automation library should resolve the
    executable itself.
    """

    explicit = explicit_path if explicit_path is not None else config.EXECUTABLE_PATH
    if explicit:
        if _is_executable(Path(explicit)):
            return explicit
        log_line(f"[ESAJ][BROWSER] Configured executable not usable: {explicit}")

    depth = config.MAX_CACHE_SCAN_DEPTH if max_depth is None else max_depth
    for cache_dir in cache_dirs if cache_dirs is not None else _cache_dirs():
        root = Path(cache_dir)
        if not root.is_dir():
            continue
        for start in (root / "chrome", root):
            if not start.is_dir():
                continue
            found = _scan_cache_dir(start, depth)
            if found is not None:
                return str(found)

    for candidate in system_paths if system_paths is not None else config.SYSTEM_BROWSER_PATHS:
        if _is_executable(Path(candidate)):
            return candidate

    return None


def _unique_target(directory: Path, filename: str) -> Path:
    target = directory / filename
    counter = 1
    while target.exists():
        target = directory / f"{Path(filename).stem}_{counter}{Path(filename).suffix}"
        counter += 1
    return target


class BrowserSession:
    """Owns the Playwright driver and the single live browser."""

    def __init__(
        self,
        *,
        headless: bool | None = None,
        executable_path: str | None = None,
        downloads_dir: Path | None = None,
        playwright_factory: Callable[[], Any] = sync_playwright,
    ) -> None:
        self.headless = config.HEADLESS if headless is None else headless
        self.executable_path = executable_path
        self.downloads_dir = Path(downloads_dir or config.DOWNLOADS_DIR)
        self._playwright_factory = playwright_factory
        self._playwright: Any = None
        self._browser: Optional[Browser] = None
        self._download_dirs: dict[int, Path] = {}

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close_browser()

    @property
    def is_live(self) -> bool:
        return self._browser is not None

    def _on_disconnected(self, browser: Browser) -> None:
        if self._browser is browser:
            self._browser = None
        _portal_event("state", phase="browser", step="disconnected")

    def _launch(self, executable: Optional[str]) -> Browser:
        kwargs: dict[str, Any] = {
            "headless": self.headless,
            "args": list(config.BROWSER_ARGS),
        }
        if executable:
            kwargs["executable_path"] = executable
        return self._playwright.chromium.launch(**kwargs)

    def acquire_browser(self) -> Browser:
        """Return the live browser, launching one if needed."""

        if self._browser is not None:
            return self._browser

        if self._playwright is None:
            try:
                self._playwright = self._playwright_factory().start()
            except Exception as exc:  # noqa: BLE001
                _portal_event("error", phase="browser", step="driver_start", error=str(exc))
                raise BrowserUnavailableError(f"Playwright driver failed to start: {exc}") from exc

        discovered = find_browser_executable(explicit_path=self.executable_path)
        attempts: list[Optional[str]] = [discovered] if discovered else []
        attempts.append(None)

        errors: list[str] = []
        for executable in attempts:
            try:
                browser = self._launch(executable)
            except PWError as exc:
                errors.append(f"{executable or 'playwright'}: {exc}")
                _portal_event(
                    "warn",
                    phase="browser",
                    step="launch_failed",
                    executable=executable or "playwright",
                    error=str(exc),
                )
                continue

            browser.on("disconnected", self._on_disconnected)
            self._browser = browser
            _portal_event(
                "state",
                phase="browser",
                step="launched",
                executable=executable or "playwright",
                headless=self.headless,
            )
            return browser

        raise BrowserUnavailableError("; ".join(errors) or "no browser executable found")

    def new_page(self, *, label: str = "page") -> OwnedPage:
        """Open a page in its own context; closing the page closes the context."""

        browser = self.acquire_browser()
        page = browser.new_page(
            user_agent=config.UA,
            locale="pt-BR",
            accept_downloads=True,
            viewport={"width": 1368, "height": 900},
        )
        page.set_default_timeout(config.NAV_TIMEOUT_SECONDS * 1000)
        return OwnedPage(page, label=label)

    def configure_downloads(self, page: Page, directory: Path | None = None) -> bool:
        """Route the page's downloads into ``directory``; best-effort.

        Files are written under an in-progress suffix and renamed once
        complete, so directory polling only ever sees finished names. The
        listener is attached once per page; later calls only move the target
        directory.
        """

        target_dir = Path(directory or self.downloads_dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        key = id(page)
        already_listening = key in self._download_dirs
        self._download_dirs[key] = target_dir

        def _on_download(download: Any) -> None:
            current_dir = self._download_dirs.get(key, target_dir)
            name = sanitize_filename(download.suggested_filename or "documento.pdf")
            final_path = _unique_target(current_dir, name)
            part_path = final_path.with_name(final_path.name + IN_PROGRESS_SUFFIX)
            try:
                download.save_as(str(part_path))
                part_path.replace(final_path)
                _portal_event("download", phase="browser", step="saved", file=final_path.name)
            except (PWError, OSError) as exc:
                _portal_event("error", phase="browser", step="save_download", error=str(exc))

        def _on_close(_page: Any) -> None:
            self._download_dirs.pop(key, None)

        configured = True
        if not already_listening:
            try:
                page.on("download", _on_download)
                page.on("close", _on_close)
            except PWError as exc:
                configured = False
                self._download_dirs.pop(key, None)
                _portal_event("warn", phase="browser", step="download_listener", error=str(exc))

        try:
            cdp = page.context.new_cdp_session(page)
            cdp.send(
                "Page.setDownloadBehavior",
                {"behavior": "allow", "downloadPath": str(target_dir)},
            )
        except Exception as exc:  # noqa: BLE001
            _portal_event("warn", phase="browser", step="cdp_download_behavior", error=str(exc))

        return configured

    def close_browser(self) -> None:
        """Close every open page, then the browser and the driver."""

        browser = self._browser
        self._browser = None
        if browser is not None:
            try:
                for context in list(browser.contexts):
                    for page in list(context.pages):
                        try:
                            page.close()
                        except PWError:
                            continue
                browser.close()
            except PWError as exc:
                _portal_event("warn", phase="browser", step="close", error=str(exc))

        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as exc:  # noqa: BLE001
                _portal_event("warn", phase="browser", step="driver_stop", error=str(exc))
            self._playwright = None

    cleanup = close_browser


__all__ = [
    "BrowserSession",
    "BrowserUnavailableError",
    "find_browser_executable",
    "IN_PROGRESS_SUFFIX",
]
