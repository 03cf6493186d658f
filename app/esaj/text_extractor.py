from __future__ import annotations

"""Fetch a case document with the browser session and read its text layer."""

from typing import Any, Callable, Optional

from playwright.sync_api import Error as PWError, Page

from .cancellation import CancelToken, OperationCancelled, as_token
from .error_codes import MESSAGES, ErrorCode, message_for
from .finder import choose_candidate, find_candidates
from .http_client import DownloadError, fetch_pdf_with_page
from .logging_utils import _portal_event
from .page_actions import is_target_closed_error
from .pdf_text import PdfTextError, extract_pdf_text
from .progress import ProgressReporter, ProgressStage, as_reporter
from .resolver import DocumentResolver
from .results import DocumentTextResult
from .selectors_esaj import ESAJ_SELECTORS, ESAJSelectors
from .session import BrowserSession
from .utils import normalize_protocol, redact_url


class TextExtractor:
    def __init__(
        self,
        session: BrowserSession,
        *,
        selectors: ESAJSelectors = ESAJ_SELECTORS,
        resolver: DocumentResolver | None = None,
        http_get: Callable[..., Any] | None = None,
        pdf_text: Callable[[bytes], Any] = extract_pdf_text,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.resolver = resolver or DocumentResolver(session, selectors=selectors)
        self.http_get = http_get
        self.pdf_text = pdf_text

    def extract_text(
        self,
        page: Page,
        protocol_number: str,
        document_type: str,
        *,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> DocumentTextResult:
        """Return the text of the first unlocked ``document_type`` on the case page.

        ``page`` stays owned by the caller.
        """

        reporter = as_reporter(progress)
        token = as_token(cancel)
        protocol = normalize_protocol(protocol_number)
        document_type = (document_type or "").strip()

        if not protocol:
            return self._failure("", document_type, ErrorCode.INVALID_INPUT, reporter)
        if not document_type:
            return self._failure(
                protocol,
                document_type,
                ErrorCode.INVALID_INPUT,
                reporter,
                "Tipo de documento não fornecido",
            )

        try:
            return self._run(page, protocol, document_type, reporter, token)
        except OperationCancelled:
            return self._failure(protocol, document_type, ErrorCode.CANCELLED, reporter)
        except PWError as exc:
            if is_target_closed_error(exc):
                raise
            return self._failure(
                protocol,
                document_type,
                ErrorCode.INTERNAL,
                reporter,
                f"Erro ao extrair texto: {exc}",
            )

    def _run(
        self,
        page: Page,
        protocol: str,
        document_type: str,
        reporter: ProgressReporter,
        token: CancelToken,
    ) -> DocumentTextResult:
        candidates = find_candidates(
            page,
            document_type,
            selectors=self.selectors,
            progress=reporter,
            cancel=token,
        )
        candidate, error_code = choose_candidate(candidates)
        if candidate is None:
            return self._failure(protocol, document_type, error_code or ErrorCode.INTERNAL, reporter)

        token.check("resolve_url")
        reporter.emit(ProgressStage.DOWNLOADING, "Obtendo URL do documento...", 70)
        url = self.resolver.resolve_url(page, candidate, cancel=token)
        if not url:
            return self._failure(protocol, document_type, ErrorCode.URL_RESOLUTION_FAILED, reporter)

        token.check("fetch_pdf")
        reporter.emit(ProgressStage.DOWNLOADING, "Baixando PDF...", 80)
        try:
            body = fetch_pdf_with_page(page, url, http_get=self.http_get)
        except DownloadError as exc:
            return self._failure(
                protocol,
                document_type,
                exc.error_code,
                reporter,
                f"{MESSAGES.get(exc.error_code, MESSAGES[ErrorCode.NETWORK])} ({exc})",
                document_url=url,
            )

        token.check("extract_text")
        reporter.emit(ProgressStage.EXTRACTING, "Extraindo texto do PDF...", 90)
        try:
            extracted = self.pdf_text(body)
        except PdfTextError as exc:
            _portal_event("error", phase="pdf", url=redact_url(url), error=str(exc))
            return self._failure(
                protocol, document_type, ErrorCode.PDF_PARSE_FAILED, reporter, document_url=url
            )

        if extracted.empty:
            return self._failure(
                protocol,
                document_type,
                ErrorCode.SCANNED_DOCUMENT_NO_TEXT,
                reporter,
                document_url=url,
            )

        _portal_event(
            "text",
            protocol=protocol,
            document_type=document_type,
            method=extracted.method,
            chars=len(extracted.text),
        )
        reporter.emit(ProgressStage.COMPLETE, "Texto extraído com sucesso.", 100)
        return DocumentTextResult(
            success=True,
            protocol_number=protocol,
            document_type=document_type,
            text=extracted.text,
            document_url=url,
        )

    def _failure(
        self,
        protocol: str,
        document_type: str,
        error_code: str,
        reporter: ProgressReporter,
        message: str | None = None,
        *,
        document_url: str | None = None,
    ) -> DocumentTextResult:
        text = message or message_for(error_code)
        reporter.fail(text, error_code=error_code)
        _portal_event("text", step="failed", protocol=protocol, error_code=error_code)
        return DocumentTextResult(
            success=False,
            protocol_number=protocol,
            document_type=document_type or None,
            document_url=document_url,
            error=text,
            error_code=error_code,
        )


__all__ = ["TextExtractor"]
