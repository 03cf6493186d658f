from __future__ import annotations

import importlib
import json
from concurrent.futures import Future
from pathlib import Path

import pytest

from app.esaj import config
from app.esaj.cancellation import CancelToken
from app.esaj.error_codes import ErrorCode, message_for
from app.esaj.healthcheck import HealthResult
from app.esaj.progress import ProgressReporter, ProgressStage
from app.esaj.results import (
    CaseSearchResult,
    DocumentDownloadResult,
    DocumentTextResult,
    ProcessMovementsResult,
)
from app.esaj.worker import PortalJob


class StubService:
    """Answers every operation from canned results."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def find_process(self, protocol, *, progress=None, cancel=None):
        self.calls.append(("find_process", protocol))
        reporter = ProgressReporter(progress)
        reporter.emit(ProgressStage.SEARCHING, "Buscando processo no e-SAJ...", 50)
        if protocol == "00000000000000000000":
            reporter.fail(message_for(ErrorCode.CASE_NOT_FOUND))
            return CaseSearchResult(
                found=False,
                protocol_number=protocol,
                error=message_for(ErrorCode.CASE_NOT_FOUND),
                error_code=ErrorCode.CASE_NOT_FOUND,
            )
        if not protocol:
            return CaseSearchResult(
                found=False,
                protocol_number="",
                error=message_for(ErrorCode.INVALID_INPUT),
                error_code=ErrorCode.INVALID_INPUT,
            )
        reporter.emit(ProgressStage.COMPLETE, "Processo encontrado!", 100)
        return CaseSearchResult(found=True, protocol_number=protocol, case_page_url="https://esaj/show.do")

    def download_document(self, protocol, document_type, case_url=None, page=None, *, mode="url", cancel=None, **_):
        self.calls.append(("download_document", protocol, document_type, case_url, mode))
        if mode == "file":
            return DocumentDownloadResult(
                success=True,
                protocol_number=protocol,
                file_path="/tmp/x.pdf",
                file_name="x.pdf",
                document_type=document_type,
            )
        return DocumentDownloadResult(
            success=True,
            protocol_number=protocol,
            document_url="https://esaj/pastadigital/getPDF.do?cdDocumento=1",
            document_type=document_type,
        )

    def extract_document_text(self, protocol, document_type, case_url=None, page=None, *, progress=None, cancel=None):
        self.calls.append(("extract_document_text", protocol, document_type))
        reporter = ProgressReporter(progress)
        reporter.emit(ProgressStage.EXTRACTING, "Extraindo texto do PDF...", 90)
        reporter.fail(message_for(ErrorCode.SCANNED_DOCUMENT_NO_TEXT))
        return DocumentTextResult(
            success=False,
            protocol_number=protocol,
            document_type=document_type,
            error=message_for(ErrorCode.SCANNED_DOCUMENT_NO_TEXT),
            error_code=ErrorCode.SCANNED_DOCUMENT_NO_TEXT,
        )

    def extract_movements(self, protocol, case_url=None, page=None, *, progress=None, cancel=None):
        self.calls.append(("extract_movements", protocol, case_url))
        return ProcessMovementsResult(success=True, protocol_number=protocol, movements="=== MOVIMENTAÇÕES ===")


class InlineWorker:
    """Runs jobs synchronously on the calling thread."""

    def __init__(self, service: StubService) -> None:
        self.service = service

    def submit(self, fn, *, timeout_seconds=None) -> PortalJob:
        token = CancelToken(timeout_seconds or 30)
        future: Future = Future()
        try:
            future.set_result(fn(self.service, token))
        except Exception as exc:  # noqa: BLE001
            future.set_exception(exc)
        return PortalJob(future=future, cancel_token=token)

    def run(self, fn, *, timeout_seconds=None):
        return self.submit(fn, timeout_seconds=timeout_seconds).result()


@pytest.fixture
def service() -> StubService:
    return StubService()


@pytest.fixture
def client(service: StubService, monkeypatch: pytest.MonkeyPatch):
    main = importlib.import_module("app.main")
    monkeypatch.setattr(main, "_worker", InlineWorker(service))
    monkeypatch.setattr(main, "STREAM_HEARTBEAT_SECONDS", 0.01)
    return main.app.test_client()


def _events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = block.splitlines()
        if not lines or lines[0].startswith(":"):
            continue
        name = lines[0].removeprefix("event: ")
        data = json.loads(lines[1].removeprefix("data: "))
        events.append((name, data))
    return events


def test_search_found(client, service) -> None:
    resp = client.post("/api/processes/search", json={"protocolNumber": "1000123-45.2024.8.26.0100"})

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["found"] is True
    assert payload["casePageUrl"] == "https://esaj/show.do"
    assert service.calls[0] == ("find_process", "1000123-45.2024.8.26.0100")


def test_search_not_found_maps_to_404(client) -> None:
    resp = client.post("/api/processes/search", json={"protocolNumber": "00000000000000000000"})

    assert resp.status_code == 404
    assert resp.get_json()["errorCode"] == ErrorCode.CASE_NOT_FOUND


def test_search_without_protocol_is_bad_request(client) -> None:
    resp = client.post("/api/processes/search", json={})
    assert resp.status_code == 400


def test_download_url_mode(client, service) -> None:
    resp = client.post(
        "/api/documents/download",
        json={"protocolNumber": "10001234520248260100", "documentType": "sentença"},
    )

    assert resp.status_code == 200
    assert resp.get_json()["documentUrl"].endswith("cdDocumento=1")
    assert service.calls[0][-1] == "url"


def test_download_file_mode_adds_download_link(client) -> None:
    resp = client.post(
        "/api/documents/download",
        json={"protocolNumber": "10001234520248260100", "documentType": "sentença", "mode": "file"},
    )

    payload = resp.get_json()
    assert resp.status_code == 200
    assert payload["downloadUrl"] == "/download/file/x.pdf"


def test_text_scanned_maps_to_422(client) -> None:
    resp = client.post(
        "/api/documents/text",
        json={"protocolNumber": "10001234520248260100", "documentType": "sentença"},
    )

    assert resp.status_code == 422
    assert resp.get_json()["errorCode"] == ErrorCode.SCANNED_DOCUMENT_NO_TEXT


def test_movements(client, service) -> None:
    resp = client.post(
        "/api/processes/movements",
        json={"protocolNumber": "10001234520248260100", "caseUrl": "https://esaj/show.do"},
    )

    assert resp.status_code == 200
    assert resp.get_json()["movements"].startswith("===")
    assert service.calls[0] == ("extract_movements", "10001234520248260100", "https://esaj/show.do")


def test_search_stream_ends_with_result_event(client) -> None:
    resp = client.get("/api/processes/search/stream?protocolNumber=10001234520248260100")

    assert resp.mimetype == "text/event-stream"
    assert resp.headers["Cache-Control"] == "no-cache"
    events = _events(resp.get_data(as_text=True))
    names = [name for name, _ in events]
    assert names[-1] == "result"
    assert names.count("result") == 1
    assert events[0][1]["stage"] == "searching"
    assert events[-1][1]["found"] is True


def test_text_stream_reports_error_then_result(client) -> None:
    resp = client.get("/api/documents/text/stream?protocolNumber=10001234520248260100&documentType=sentenca")

    events = _events(resp.get_data(as_text=True))
    assert [name for name, _ in events] == ["progress", "progress", "result"]
    assert events[1][1]["stage"] == "error"
    assert events[-1][1]["errorCode"] == ErrorCode.SCANNED_DOCUMENT_NO_TEXT


def test_health_endpoint_reports_status(client, monkeypatch: pytest.MonkeyPatch) -> None:
    main = importlib.import_module("app.main")
    monkeypatch.setattr(main, "run_health_checks", lambda entrypoint: HealthResult(ok=True, checks={"config": {"ok": True}}))
    assert client.get("/api/health").status_code == 200

    monkeypatch.setattr(main, "run_health_checks", lambda entrypoint: HealthResult(ok=False, checks={"config": {"ok": False}}))
    resp = client.get("/api/health")
    assert resp.status_code == 503
    assert resp.get_json()["ok"] is False


def _downloads_dir() -> Path:
    directory = Path(config.DOWNLOADS_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def test_file_download_serves_pdf(client) -> None:
    (_downloads_dir() / "10001234520248260100_sentenca.pdf").write_bytes(b"%PDF-1.4")

    resp = client.get("/download/file/10001234520248260100_sentenca.pdf")

    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data == b"%PDF-1.4"


def test_file_download_content_type_by_extension(client) -> None:
    (_downloads_dir() / "movimentacoes.txt").write_text("texto", encoding="utf-8")

    resp = client.get("/download/file/movimentacoes.txt")

    assert resp.mimetype == "text/plain"


@pytest.mark.parametrize("name", ["..secret.pdf", "a%5Cb.pdf", "sub/x.pdf"])
def test_file_download_rejects_traversal(client, name: str) -> None:
    assert client.get(f"/download/file/{name}").status_code == 400


def test_file_download_missing_or_empty(client) -> None:
    (_downloads_dir() / "vazio.pdf").write_bytes(b"")

    assert client.get("/download/file/nao-existe.pdf").status_code == 404
    assert client.get("/download/file/vazio.pdf").status_code == 404
