from __future__ import annotations

import json
import queue
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Optional

from flask import Flask, Response, jsonify, request, send_file, url_for

from app.esaj import config
from app.esaj.error_codes import ErrorCode
from app.esaj.healthcheck import run_health_checks
from app.esaj.logging_utils import _portal_event
from app.esaj.progress import ProgressUpdate
from app.esaj.utils import ensure_dirs
from app.esaj.worker import PortalWorker

app = Flask(__name__)

# Prepare storage paths on import so WSGI entrypoints find them in place.
ensure_dirs()

_worker: Optional[PortalWorker] = None

HTTP_STATUS_BY_ERROR: Dict[str, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.CREDENTIALS_REQUIRED: 403,
    ErrorCode.CASE_NOT_FOUND: 404,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.NO_MOVEMENTS: 404,
    ErrorCode.AMBIGUOUS_RESULT: 409,
    ErrorCode.SCANNED_DOCUMENT_NO_TEXT: 422,
    ErrorCode.PDF_PARSE_FAILED: 422,
    ErrorCode.PORTAL_STRUCTURE_CHANGED: 502,
    ErrorCode.URL_RESOLUTION_FAILED: 502,
    ErrorCode.NETWORK: 502,
    ErrorCode.MALFORMED_PDF: 502,
    ErrorCode.BROWSER_UNAVAILABLE: 503,
    ErrorCode.NAVIGATION_TIMEOUT: 504,
    ErrorCode.DOWNLOAD_TIMEOUT: 504,
    ErrorCode.CANCELLED: 504,
}

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".html": "text/html",
    ".htm": "text/html",
    ".txt": "text/plain",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".json": "application/json",
}

STREAM_HEARTBEAT_SECONDS = 1.0


def get_worker() -> PortalWorker:
    """Return the process-wide worker, creating it on first use."""

    global _worker
    if _worker is None:
        _worker = PortalWorker()
    return _worker


def _status_for(payload: Dict[str, Any]) -> int:
    if payload.get("success") or payload.get("found"):
        return 200
    return HTTP_STATUS_BY_ERROR.get(str(payload.get("errorCode") or ""), 500)


def _request_fields() -> Dict[str, Any]:
    if request.method == "GET":
        return dict(request.args)
    return request.get_json(silent=True) or request.form.to_dict() or {}


def _field(data: Dict[str, Any], *names: str) -> str:
    for name in names:
        value = data.get(name)
        if value:
            return str(value).strip()
    return ""


def _search_job(protocol: str, progress=None) -> Callable:
    def _job(service, token) -> Dict[str, Any]:
        result = service.find_process(protocol, progress=progress, cancel=token)
        owned = result.take_page()
        if owned is not None:
            owned.close()
        return result.to_dict()

    return _job


def _text_job(protocol: str, document_type: str, case_url: str | None, progress=None) -> Callable:
    def _job(service, token) -> Dict[str, Any]:
        return service.extract_document_text(
            protocol, document_type, case_url or None, progress=progress, cancel=token
        ).to_dict()

    return _job


def _run_json(job: Callable, context: str) -> Response:
    try:
        payload = get_worker().run(job)
    except Exception as exc:  # noqa: BLE001
        _portal_event("error", phase="api", context=context, error=str(exc))
        return (
            jsonify({"success": False, "error": str(exc), "errorCode": ErrorCode.INTERNAL}),
            500,
        )
    return jsonify(payload), _status_for(payload)


def _sse(event: str, data: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def _stream_job(job_factory: Callable[[Callable[[ProgressUpdate], None]], Callable], context: str) -> Response:
    """Run a job on the worker and stream its progress as Server-Sent Events.

    Each update becomes a ``progress`` event; the final payload is sent as a
    single ``result`` event before the stream closes.
    """

    updates: "queue.Queue[ProgressUpdate]" = queue.Queue()
    job = get_worker().submit(job_factory(updates.put))

    def _generate() -> Generator[str, None, None]:
        while True:
            try:
                update = updates.get(timeout=STREAM_HEARTBEAT_SECONDS)
            except queue.Empty:
                if job.future.done():
                    break
                yield ": heartbeat\n\n"
                continue
            yield _sse("progress", update.to_dict())

        while not updates.empty():
            yield _sse("progress", updates.get_nowait().to_dict())

        try:
            payload = job.result()
        except Exception as exc:  # noqa: BLE001
            _portal_event("error", phase="api", context=context, error=str(exc))
            payload = {"success": False, "error": str(exc), "errorCode": ErrorCode.INTERNAL}
        yield _sse("result", payload)

    response = Response(_generate(), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem and browser."""

    result = run_health_checks(entrypoint="api")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status


@app.post("/api/processes/search")
def api_search_process() -> Response:
    data = _request_fields()
    protocol = _field(data, "protocolNumber", "protocol")
    return _run_json(_search_job(protocol), "search")


@app.get("/api/processes/search/stream")
def api_search_process_stream() -> Response:
    data = _request_fields()
    protocol = _field(data, "protocolNumber", "protocol")
    return _stream_job(lambda progress: _search_job(protocol, progress), "search_stream")


@app.post("/api/documents/download")
def api_download_document() -> Response:
    data = _request_fields()
    protocol = _field(data, "protocolNumber", "protocol")
    document_type = _field(data, "documentType", "document_type")
    case_url = _field(data, "caseUrl", "case_url") or None
    mode = _field(data, "mode") or "url"

    def _job(service, token) -> Dict[str, Any]:
        return service.download_document(
            protocol, document_type, case_url, mode=mode, cancel=token
        ).to_dict()

    response, status = _run_json(_job, "download")
    payload = response.get_json()
    if status == 200 and payload.get("fileName"):
        payload["downloadUrl"] = url_for("download_file", filename=payload["fileName"])
        return jsonify(payload), status
    return response, status


@app.post("/api/documents/text")
def api_document_text() -> Response:
    data = _request_fields()
    protocol = _field(data, "protocolNumber", "protocol")
    document_type = _field(data, "documentType", "document_type")
    case_url = _field(data, "caseUrl", "case_url")
    return _run_json(_text_job(protocol, document_type, case_url), "text")


@app.get("/api/documents/text/stream")
def api_document_text_stream() -> Response:
    data = _request_fields()
    protocol = _field(data, "protocolNumber", "protocol")
    document_type = _field(data, "documentType", "document_type")
    case_url = _field(data, "caseUrl", "case_url")
    return _stream_job(
        lambda progress: _text_job(protocol, document_type, case_url, progress),
        "text_stream",
    )


@app.post("/api/processes/movements")
def api_process_movements() -> Response:
    data = _request_fields()
    protocol = _field(data, "protocolNumber", "protocol")
    case_url = _field(data, "caseUrl", "case_url") or None

    def _job(service, token) -> Dict[str, Any]:
        return service.extract_movements(protocol, case_url, cancel=token).to_dict()

    return _run_json(_job, "movements")


@app.get("/download/file/<path:filename>")
def download_file(filename: str) -> Response:
    """Serve a downloaded document from the downloads directory."""

    if ".." in filename or "/" in filename or "\\" in filename:
        return Response("Invalid path", status=400)

    root = Path(config.DOWNLOADS_DIR).resolve()
    target = (root / filename).resolve()
    if not str(target).startswith(str(root)):
        return Response("Invalid path", status=400)
    if not target.exists() or not target.is_file():
        return Response("File not found", status=404)
    if target.stat().st_size == 0:
        return Response("File is empty", status=404)

    mimetype = CONTENT_TYPES.get(target.suffix.lower(), "application/octet-stream")
    return send_file(target, mimetype=mimetype, as_attachment=True, download_name=target.name)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.PORT)
