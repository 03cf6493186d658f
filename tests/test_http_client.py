from __future__ import annotations

import pytest
import requests

from app.esaj.error_codes import ErrorCode
from app.esaj.http_client import DownloadError, cookie_header, fetch_pdf, fetch_pdf_with_page, session_headers
from tests.fakes import FakePage, FakeResponse

URL = "https://esaj.tjsp.jus.br/pastadigital/getPDF.do?cdDocumento=777"


def _getter(response=None, exc: Exception | None = None, calls: list | None = None):
    def _get(url, **kwargs):
        if calls is not None:
            calls.append((url, kwargs))
        if exc is not None:
            raise exc
        return response

    return _get


def test_cookie_header() -> None:
    cookies = [{"name": "JSESSIONID", "value": "abc"}, {"name": "K", "value": "1"}, {"value": "x"}]
    assert cookie_header(cookies) == "JSESSIONID=abc; K=1"


def test_session_headers_carry_cookies_and_referer() -> None:
    page = FakePage(url="https://esaj.tjsp.jus.br/cpopg/show.do", cookies=[{"name": "JSESSIONID", "value": "abc"}])

    headers = session_headers(page)

    assert headers["Cookie"] == "JSESSIONID=abc"
    assert headers["Referer"] == "https://esaj.tjsp.jus.br/cpopg/show.do"
    assert "application/pdf" in headers["Accept"]


def test_fetch_pdf_returns_body() -> None:
    calls: list = []
    body = fetch_pdf(URL, http_get=_getter(FakeResponse(200, b"%PDF-1.7 data"), calls=calls), timeout=5)

    assert body == b"%PDF-1.7 data"
    assert calls[0][1]["timeout"] == 5


def test_fetch_pdf_tolerates_leading_junk() -> None:
    body = b"\n\n  %PDF-1.4 data"
    assert fetch_pdf(URL, http_get=_getter(FakeResponse(200, body))) == body


@pytest.mark.parametrize(
    "status, code",
    [
        (401, ErrorCode.HTTP_401),
        (403, ErrorCode.HTTP_403),
        (404, ErrorCode.HTTP_404),
        (429, ErrorCode.HTTP_4XX),
        (503, ErrorCode.HTTP_5XX),
    ],
)
def test_fetch_pdf_classifies_http_status(status: int, code: str) -> None:
    with pytest.raises(DownloadError) as excinfo:
        fetch_pdf(URL, http_get=_getter(FakeResponse(status, b"")))
    assert excinfo.value.error_code == code
    assert excinfo.value.http_status == status


def test_fetch_pdf_rejects_html_body() -> None:
    with pytest.raises(DownloadError) as excinfo:
        fetch_pdf(URL, http_get=_getter(FakeResponse(200, b"<html>login</html>")))
    assert excinfo.value.error_code == ErrorCode.MALFORMED_PDF


def test_fetch_pdf_maps_timeouts_to_network_error() -> None:
    with pytest.raises(DownloadError) as excinfo:
        fetch_pdf(URL, http_get=_getter(exc=requests.Timeout("read timed out")))
    assert excinfo.value.error_code == ErrorCode.NETWORK


def test_fetch_pdf_with_page_sends_session_cookies() -> None:
    calls: list = []
    page = FakePage(url="https://esaj.tjsp.jus.br/cpopg/show.do", cookies=[{"name": "S", "value": "1"}])

    fetch_pdf_with_page(page, URL, http_get=_getter(FakeResponse(200, b"%PDF"), calls=calls))

    assert calls[0][1]["headers"]["Cookie"] == "S=1"
