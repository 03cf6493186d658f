from __future__ import annotations

from pathlib import Path

import pytest

from app.esaj import http_client
from app.esaj.error_codes import ErrorCode, message_for
from app.esaj.owned_page import OwnedPage
from app.esaj.pdf_text import PdfText
from app.esaj.results import CaseSearchResult
from app.esaj.service import ESAJService
from app.esaj.text_extractor import TextExtractor
from tests import portal_fixtures as fx
from tests.fakes import FakePage, FakeResponse, FakeSession

PORTAL = "https://esaj.tjsp.jus.br"
EXPECTED_PDF = f"{PORTAL}/pastadigital/getPDF.do?cdDocumento=777&processo.codigo=1H0000ABC0000"


def _case_page() -> FakePage:
    page = FakePage(url=fx.CASE_URL, html=fx.CASE_PAGE_EXPANDED)
    page.add(
        '[id="link-sent-2"]',
        attrs={"href": "/cpopg/abrirDocumentoVinculadoMovimentacao.do?processo.codigo=1H0000ABC0000&cdDocumento=777"},
    )
    return page


def test_download_document_validates_protocol() -> None:
    session = FakeSession()
    result = ESAJService(session).download_document("", "sentença")

    assert result.success is False
    assert result.error_code == ErrorCode.INVALID_INPUT
    assert session.opened == []


def test_download_document_rejects_unknown_mode_and_releases_page() -> None:
    page = _case_page()
    result = ESAJService(FakeSession()).download_document(
        "10001234520248260100", "sentença", page=OwnedPage(page), mode="zip"
    )

    assert result.error_code == ErrorCode.INVALID_INPUT
    assert page.closed is True


def test_download_document_url_mode_on_given_page() -> None:
    page = _case_page()
    updates = []

    result = ESAJService(FakeSession()).download_document(
        "1000123-45.2024.8.26.0100", "Sentença", page=OwnedPage(page), progress=updates.append
    )

    assert result.success is True
    assert result.document_url == EXPECTED_PDF
    assert result.document_type == "Sentença"
    assert page.close_calls == 1
    assert updates[-1].progress == 100


def test_download_document_file_mode_fetches_with_session(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list = []

    def _fake_get(url, **kwargs):
        seen.append((url, kwargs["headers"]))
        return FakeResponse(200, b"%PDF-1.4 sentenca")

    monkeypatch.setattr(http_client.requests, "get", _fake_get)
    page = _case_page()

    result = ESAJService(FakeSession()).download_document(
        "10001234520248260100",
        "sentença",
        page=OwnedPage(page),
        mode="file",
        directory=tmp_path,
    )

    assert result.success is True
    assert result.file_name == "10001234520248260100_sentença.pdf"
    assert (tmp_path / result.file_name).read_bytes() == b"%PDF-1.4 sentenca"
    assert seen[0][0] == EXPECTED_PDF
    assert seen[0][1]["Referer"] == fx.CASE_URL


def test_download_document_reports_locked_document() -> None:
    page = FakePage(url=fx.CASE_URL, html=fx.LOCKED_ONLY_PAGE)

    result = ESAJService(FakeSession()).download_document(
        "10001234520248260100", "sentença", page=OwnedPage(page)
    )

    assert result.error_code == ErrorCode.CREDENTIALS_REQUIRED
    assert "credenciais" in (result.error or "")
    assert page.closed is True


def test_extract_document_text_through_service() -> None:
    session = FakeSession()
    service = ESAJService(session)
    service.text_extractor = TextExtractor(
        session,
        resolver=service.resolver,
        http_get=lambda url, **_: FakeResponse(200, b"%PDF-1.4"),
        pdf_text=lambda _: PdfText("Vistos.", "whole_document"),
    )
    page = _case_page()

    result = service.extract_document_text("10001234520248260100", "sentença", page=OwnedPage(page))

    assert result.success is True
    assert result.text == "Vistos."
    assert result.document_url == EXPECTED_PDF
    assert page.closed is True


def test_extract_document_text_requires_document_type() -> None:
    page = _case_page()

    result = ESAJService(FakeSession()).extract_document_text(
        "10001234520248260100", " ", page=OwnedPage(page)
    )

    assert result.error_code == ErrorCode.INVALID_INPUT
    assert page.closed is True


def test_case_not_found_propagates_from_search() -> None:
    service = ESAJService(FakeSession())
    service.locator.locate = lambda protocol, **_: CaseSearchResult(
        found=False,
        protocol_number=protocol,
        error=message_for(ErrorCode.CASE_NOT_FOUND),
        error_code=ErrorCode.CASE_NOT_FOUND,
    )

    result = service.extract_movements("10001234520248260100")

    assert result.success is False
    assert result.error_code == ErrorCode.CASE_NOT_FOUND
    assert result.error == "Processo não encontrado no portal e-SAJ"


def test_cleanup_closes_session() -> None:
    session = FakeSession()
    ESAJService(session).cleanup()
    assert session.closed is True
