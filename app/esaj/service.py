from __future__ import annotations

"""Facade wiring the retrieval stages together.

The service owns no browser state of its own: it receives a
:class:`BrowserSession` and hands it to every stage. Pages move between
stages as :class:`OwnedPage` handles; a handle passed in by the caller is
consumed, and whatever the service still owns at the end of a call is closed
before the result is returned.
"""

from pathlib import Path
from typing import Optional

from playwright.sync_api import Error as PWError, Page

from .cancellation import CancelToken, OperationCancelled, as_token
from .error_codes import ErrorCode, message_for
from .finder import choose_candidate, find_candidates
from .locator import CaseLocator, open_case_page
from .logging_utils import _portal_event
from .movements import MovementsExtractor
from .owned_page import OwnedPage
from .page_actions import is_target_closed_error
from .progress import ProgressReporter, as_reporter
from .resolver import DocumentResolver
from .results import (
    CaseSearchResult,
    DocumentDownloadResult,
    DocumentTextResult,
    ProcessMovementsResult,
)
from .session import BrowserSession
from .text_extractor import TextExtractor
from .utils import normalize_protocol

DOWNLOAD_MODES = ("url", "file")


def _validation_error(protocol: str, document_type: str | None) -> Optional[str]:
    if not protocol:
        return message_for(ErrorCode.INVALID_INPUT)
    if document_type is not None and not document_type.strip():
        return "Tipo de documento não fornecido"
    return None


class ESAJService:
    def __init__(self, session: BrowserSession | None = None) -> None:
        self.session = session or BrowserSession()
        self.locator = CaseLocator(self.session)
        self.resolver = DocumentResolver(self.session)
        self.movements = MovementsExtractor(self.session, locator=self.locator)
        self.text_extractor = TextExtractor(self.session, resolver=self.resolver)

    def find_process(
        self,
        protocol_number: str,
        *,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> CaseSearchResult:
        """Locate a case. The caller owns ``result.page`` when one is returned."""

        return self.locator.locate(protocol_number, progress=progress, cancel=cancel)

    def _case_page(
        self,
        protocol: str,
        case_url: str | None,
        page: Optional[OwnedPage],
        reporter: ProgressReporter,
        token: CancelToken,
    ) -> CaseSearchResult:
        if page is not None:
            return CaseSearchResult(
                found=True,
                protocol_number=protocol,
                case_page_url=page.page.url,
                page=page.take(label="case"),
            )
        return open_case_page(
            self.session,
            protocol,
            case_url,
            locator=self.locator,
            progress=reporter,
            cancel=token,
        )

    def download_document(
        self,
        protocol_number: str,
        document_type: str,
        case_url: str | None = None,
        page: Optional[OwnedPage] = None,
        *,
        mode: str = "url",
        directory: Path | None = None,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> DocumentDownloadResult:
        """Find ``document_type`` in the case and resolve it.

        ``mode="url"`` returns ``document_url``; ``mode="file"`` materialises
        the document and returns ``file_path`` and ``file_name``.
        """

        reporter = as_reporter(progress)
        token = as_token(cancel)
        protocol = normalize_protocol(protocol_number)
        document_type = (document_type or "").strip()

        invalid = _validation_error(protocol, document_type)
        if invalid is None and mode not in DOWNLOAD_MODES:
            invalid = f"Modo de download inválido: {mode}"
        if invalid:
            if page is not None:
                page.close()
            reporter.fail(invalid, error_code=ErrorCode.INVALID_INPUT)
            return DocumentDownloadResult(
                success=False,
                protocol_number=protocol,
                document_type=document_type or None,
                error=invalid,
                error_code=ErrorCode.INVALID_INPUT,
            )

        opened = self._case_page(protocol, case_url, page, reporter, token)
        owned = opened.take_page()
        if owned is None:
            return DocumentDownloadResult(
                success=False,
                protocol_number=protocol,
                document_type=document_type,
                error=opened.error,
                error_code=opened.error_code,
            )

        with owned:
            try:
                candidates = find_candidates(
                    owned.page, document_type, progress=reporter, cancel=token
                )
                candidate, error_code = choose_candidate(candidates)
                if candidate is None:
                    message = message_for(error_code or ErrorCode.INTERNAL)
                    reporter.fail(message, error_code=error_code)
                    return DocumentDownloadResult(
                        success=False,
                        protocol_number=protocol,
                        document_type=document_type,
                        error=message,
                        error_code=error_code,
                    )

                if mode == "file":
                    return self.resolver.download_file(
                        owned.page,
                        candidate,
                        protocol,
                        document_type,
                        directory=directory,
                        progress=reporter,
                        cancel=token,
                    )
                return self.resolver.resolve_document(
                    owned.page,
                    candidate,
                    protocol,
                    document_type,
                    progress=reporter,
                    cancel=token,
                )
            except OperationCancelled:
                reporter.fail(message_for(ErrorCode.CANCELLED), error_code=ErrorCode.CANCELLED)
                return DocumentDownloadResult(
                    success=False,
                    protocol_number=protocol,
                    document_type=document_type,
                    error=message_for(ErrorCode.CANCELLED),
                    error_code=ErrorCode.CANCELLED,
                )
            except PWError as exc:
                if is_target_closed_error(exc):
                    raise
                _portal_event("error", phase="service", step="download_document", error=str(exc))
                message = f"Erro ao baixar documento: {exc}"
                reporter.fail(message, error_code=ErrorCode.INTERNAL)
                return DocumentDownloadResult(
                    success=False,
                    protocol_number=protocol,
                    document_type=document_type,
                    error=message,
                    error_code=ErrorCode.INTERNAL,
                )

    def extract_movements(
        self,
        protocol_number: str,
        case_url: str | None = None,
        page: Optional[OwnedPage] = None,
        *,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> ProcessMovementsResult:
        return self.movements.extract(
            protocol_number, case_url, page=page, progress=progress, cancel=cancel
        )

    def extract_document_text(
        self,
        protocol_number: str,
        document_type: str,
        case_url: str | None = None,
        page: Optional[OwnedPage] = None,
        *,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> DocumentTextResult:
        reporter = as_reporter(progress)
        token = as_token(cancel)
        protocol = normalize_protocol(protocol_number)
        document_type = (document_type or "").strip()

        invalid = _validation_error(protocol, document_type)
        if invalid:
            if page is not None:
                page.close()
            reporter.fail(invalid, error_code=ErrorCode.INVALID_INPUT)
            return DocumentTextResult(
                success=False,
                protocol_number=protocol,
                document_type=document_type or None,
                error=invalid,
                error_code=ErrorCode.INVALID_INPUT,
            )

        opened = self._case_page(protocol, case_url, page, reporter, token)
        owned = opened.take_page()
        if owned is None:
            return DocumentTextResult(
                success=False,
                protocol_number=protocol,
                document_type=document_type,
                error=opened.error,
                error_code=opened.error_code,
            )

        with owned:
            return self.text_extractor.extract_text(
                owned.page, protocol, document_type, progress=reporter, cancel=token
            )

    def download_from_viewer(
        self,
        page: Page,
        *,
        protocol_number: str = "",
        directory: Path | None = None,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> DocumentDownloadResult:
        """Download the document shown in the viewer on ``page`` (caller keeps the page)."""

        return self.resolver.download_from_viewer(
            page,
            protocol_number=normalize_protocol(protocol_number),
            directory=directory,
            progress=progress,
            cancel=cancel,
        )

    def cleanup(self) -> None:
        self.session.close_browser()


__all__ = ["ESAJService", "DOWNLOAD_MODES"]
