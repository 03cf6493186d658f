from __future__ import annotations

"""Authenticated document fetch reusing the browser session's cookies."""

from typing import Any, Callable, Optional

import requests

from . import config
from .error_codes import ErrorCode
from .logging_utils import _portal_event
from .utils import log_line, redact_url

# Some servers emit a few bytes of junk before the PDF header.
PDF_HEADER_WINDOW = 1024


class DownloadError(Exception):
    def __init__(self, error_code: str, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.http_status = http_status

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


def _classify_http_status(status: Optional[int]) -> str:
    if status is None:
        return ErrorCode.INTERNAL
    if status == 401:
        return ErrorCode.HTTP_401
    if status == 403:
        return ErrorCode.HTTP_403
    if status == 404:
        return ErrorCode.HTTP_404
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


def _validate_pdf_bytes(data: bytes) -> None:
    if not data:
        raise DownloadError(ErrorCode.MALFORMED_PDF, "Empty response body")
    if b"%PDF" not in data[:PDF_HEADER_WINDOW]:
        raise DownloadError(ErrorCode.MALFORMED_PDF, "Response is not a PDF")


def cookie_header(cookies: list[dict[str, Any]]) -> str:
    """Serialise browser cookies into a ``Cookie`` request header value."""

    return "; ".join(
        f"{cookie['name']}={cookie.get('value', '')}"
        for cookie in cookies
        if cookie.get("name")
    )


def session_headers(page: Any) -> dict[str, str]:
    """Headers that let a plain HTTP client act inside the page's session."""

    headers = dict(config.COMMON_HEADERS)
    cookies = page.context.cookies()
    if cookies:
        headers["Cookie"] = cookie_header(cookies)
    if page.url:
        headers["Referer"] = page.url
    return headers


def fetch_pdf(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    timeout: int | float | None = None,
    http_get: Callable[..., Any] | None = None,
) -> bytes:
    """Fetch ``url`` and return the PDF body, raising :class:`DownloadError`."""

    safe_url = redact_url(url)
    getter = http_get or requests.get
    status: Optional[int] = None
    try:
        response = getter(
            url,
            headers=headers or dict(config.COMMON_HEADERS),
            timeout=timeout or config.PDF_FETCH_TIMEOUT_SECONDS,
            allow_redirects=True,
        )
        status = response.status_code
        if status >= 400:
            raise DownloadError(
                _classify_http_status(status), f"HTTP {status}", http_status=status
            )
        body = bytes(response.content or b"")
        _validate_pdf_bytes(body)
    except DownloadError as exc:
        _portal_event(
            "error",
            phase="fetch",
            url=safe_url,
            http_status=exc.http_status,
            error_code=exc.error_code,
            error=str(exc),
        )
        raise
    except (requests.Timeout, requests.ConnectionError) as exc:
        _portal_event("error", phase="fetch", url=safe_url, error_code=ErrorCode.NETWORK, error=str(exc))
        raise DownloadError(ErrorCode.NETWORK, str(exc)) from exc
    except requests.RequestException as exc:
        _portal_event("error", phase="fetch", url=safe_url, error_code=ErrorCode.NETWORK, error=str(exc))
        raise DownloadError(ErrorCode.NETWORK, str(exc), http_status=status) from exc

    _portal_event("fetch", url=safe_url, status="ok", http_status=status, bytes=len(body))
    log_line(f"[ESAJ][FETCH] url={safe_url} status={status} bytes={len(body)}")
    return body


def fetch_pdf_with_page(
    page: Any,
    url: str,
    *,
    timeout: int | float | None = None,
    http_get: Callable[..., Any] | None = None,
) -> bytes:
    """Fetch ``url`` with the cookies and referer of ``page``."""

    return fetch_pdf(url, headers=session_headers(page), timeout=timeout, http_get=http_get)


__all__ = [
    "DownloadError",
    "cookie_header",
    "fetch_pdf",
    "fetch_pdf_with_page",
    "session_headers",
]
