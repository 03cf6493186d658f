"""Minimal stand-ins for the Playwright objects the stages touch."""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Optional

from playwright.sync_api import TimeoutError as PWTimeout

from app.esaj.owned_page import OwnedPage


class FakeElement:
    def __init__(
        self,
        page: "FakePage",
        selector: str,
        *,
        attrs: Optional[dict[str, str]] = None,
        visible: bool = True,
        on_click: Optional[Callable[["FakePage"], None]] = None,
        frame: Optional["FakePage"] = None,
        on_evaluate: Optional[Callable[["FakePage"], None]] = None,
    ) -> None:
        self.page = page
        self.frame = frame
        self.selector = selector
        self.attrs = attrs or {}
        self.visible = visible
        self.on_click = on_click
        self.on_evaluate = on_evaluate
        self.value = ""

    def _record(self, action: str, *args: Any) -> None:
        self.page.actions.append((action, self.selector, *args))

    def check(self, **_: Any) -> None:
        self._record("check")

    def click(self, **_: Any) -> None:
        self._record("click")
        if self.on_click is not None:
            self.on_click(self.page)

    def fill(self, value: str, **_: Any) -> None:
        self.value = value
        self._record("fill", value)

    def press_sequentially(self, text: str, **_: Any) -> None:
        self.value += text
        self._record("type", text)

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    def is_visible(self) -> bool:
        return self.visible

    def evaluate(self, script: str, arg: Any = None) -> Any:
        self._record("evaluate", arg)
        if self.on_evaluate is not None:
            self.on_evaluate(self.page)
        return True

    def element_handle(self) -> "FakeElement":
        return self

    def content_frame(self) -> Optional["FakePage"]:
        return self.frame


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page = page
        self.selector = selector

    def _matches(self) -> list[FakeElement]:
        return self.page.elements.get(self.selector, [])

    def count(self) -> int:
        return len(self._matches())

    def nth(self, index: int) -> FakeElement:
        return self._matches()[index]

    def filter(self, has_text: str | None = None) -> "FakeLocator":
        return FakeLocator(self.page, f"{self.selector}|{has_text}")


class FakeContext:
    def __init__(self, cookies: Optional[list[dict[str, Any]]] = None) -> None:
        self._cookies = cookies or []
        self.pages: list[Any] = []

    def cookies(self) -> list[dict[str, Any]]:
        return list(self._cookies)


class FakePage:
    def __init__(
        self,
        *,
        url: str = "about:blank",
        html: str = "<html><body></body></html>",
        cookies: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self.url = url
        self.html = html
        self.elements: dict[str, list[FakeElement]] = {}
        self.actions: list[tuple[Any, ...]] = []
        self.closed = False
        self.close_calls = 0
        self.context = FakeContext(cookies)
        self.context.pages.append(self)
        self.goto_pages: dict[str, str] = {}
        self.goto_error: Optional[Exception] = None
        self.handlers: dict[str, list[Callable[..., Any]]] = {}

    def add(self, selector: str, **kwargs: Any) -> FakeElement:
        element = FakeElement(self, selector, **kwargs)
        self.elements.setdefault(selector, []).append(element)
        return element

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def wait_for_selector(self, selector: str, **_: Any) -> None:
        if not self.elements.get(selector):
            raise PWTimeout(f"waiting for {selector} timed out")

    def goto(self, url: str, **_: Any) -> None:
        self.actions.append(("goto", url))
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url
        if url in self.goto_pages:
            self.html = self.goto_pages[url]

    @contextmanager
    def expect_navigation(self, **_: Any):
        yield

    def wait_for_load_state(self, *_: Any, **__: Any) -> None:
        return None

    def wait_for_timeout(self, ms: int) -> None:
        self.actions.append(("wait", ms))

    def set_default_timeout(self, ms: int) -> None:
        return None

    def content(self) -> str:
        return self.html

    def is_closed(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeSession:
    """Hands out pre-built fake pages through the ``new_page`` surface."""

    def __init__(self, pages: Optional[list[FakePage]] = None, *, downloads_dir: Path | None = None) -> None:
        self.pages = list(pages or [])
        self.opened: list[FakePage] = []
        self.downloads_dir = downloads_dir or Path(".")
        self.closed = False
        self.error: Optional[Exception] = None

    def new_page(self, *, label: str = "page") -> OwnedPage:
        if self.error is not None:
            raise self.error
        page = self.pages.pop(0) if self.pages else FakePage()
        self.opened.append(page)
        return OwnedPage(page, label=label)

    def configure_downloads(self, page: Any, directory: Path | None = None) -> bool:
        return True

    def close_browser(self) -> None:
        self.closed = True


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"") -> None:
        self.status_code = status_code
        self.content = content
