from __future__ import annotations

"""Case metadata and movement history extraction."""

import re
from typing import Optional, Sequence

from playwright.sync_api import Error as PWError, Page

from .cancellation import CancelToken, OperationCancelled, as_token
from .error_codes import ErrorCode, message_for
from .finder import expand_movements
from .locator import CaseLocator, open_case_page
from .logging_utils import _portal_event
from .owned_page import OwnedPage
from .page_actions import is_target_closed_error
from .page_reader import (
    CaseMetadata,
    MovementRow,
    fallback_movements_text,
    read_case_metadata,
    read_movements,
)
from .progress import ProgressReporter, ProgressStage, as_reporter
from .results import ProcessMovementsResult
from .selectors_esaj import ESAJ_SELECTORS, ESAJSelectors
from .session import BrowserSession
from .utils import normalize_protocol

METADATA_HEADER = "=== INFORMAÇÕES DO PROCESSO ==="
MOVEMENTS_HEADER = "=== MOVIMENTAÇÕES ==="
METADATA_LABELS = (
    ("class", "Classe"),
    ("subject", "Assunto"),
    ("forum", "Foro"),
    ("court", "Vara"),
    ("judge", "Juiz"),
)

_HORIZONTAL_RUN = re.compile(r"[ \t]{3,}")
_BLANK_RUN = re.compile(r"\n{3,}")
# A single line break before a capitalised line becomes a paragraph break.
_PARAGRAPH_START = re.compile(r"(?<!\n)\n(?=[A-ZÀ-ÖØ-Þ])")


def clean_movements_text(text: str) -> str:
    """Normalise whitespace in a movements blob.

    Applying it twice gives the same result as applying it once.
    """

    text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_RUN.sub("  ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_RUN.sub("\n\n", text)
    text = text.strip()
    return _PARAGRAPH_START.sub("\n\n", text)


def format_metadata(metadata: CaseMetadata) -> str:
    if metadata.empty:
        return ""
    lines = [METADATA_HEADER, ""]
    if metadata.number:
        lines.append(f"Número: {metadata.number}")
    for key, label in METADATA_LABELS:
        value = metadata.fields.get(key)
        if value:
            lines.append(f"{label}: {value}")
    if metadata.parties:
        lines.append("")
        lines.append("Partes:")
        lines.extend(metadata.parties)
    return "\n".join(lines)


def format_movement(row: MovementRow) -> str:
    if row.date and row.description:
        return f"{row.date} - {row.description}"
    return row.date or row.description


def build_movements_text(
    metadata: CaseMetadata,
    movements: Sequence[MovementRow],
    *,
    fallback: str = "",
) -> str:
    """Join the metadata block and the movement list into one text blob."""

    parts: list[str] = []
    header = format_metadata(metadata)
    if header:
        parts.append(header)

    if movements:
        body = "\n\n".join(format_movement(row) for row in movements)
        parts.append(f"{MOVEMENTS_HEADER}\n\n{body}")
    elif fallback.strip():
        parts.append(f"{MOVEMENTS_HEADER}\n\n{fallback.strip()}")

    return "\n\n".join(parts)


def movements_text_from_html(html: str, selectors: ESAJSelectors = ESAJ_SELECTORS) -> str:
    metadata = read_case_metadata(html, selectors)
    movements = read_movements(html, selectors)
    fallback = "" if movements else fallback_movements_text(html, selectors)
    return clean_movements_text(build_movements_text(metadata, movements, fallback=fallback))


class MovementsExtractor:
    def __init__(
        self,
        session: BrowserSession,
        *,
        selectors: ESAJSelectors = ESAJ_SELECTORS,
        locator: CaseLocator | None = None,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.locator = locator or CaseLocator(session, selectors=selectors)

    def extract_from_page(self, page: Page) -> str:
        """Read the movements blob from a case page the caller keeps owning."""

        expand_movements(page, self.selectors)
        return movements_text_from_html(page.content(), self.selectors)

    def extract(
        self,
        protocol_number: str,
        case_url: str | None = None,
        *,
        page: Optional[OwnedPage] = None,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> ProcessMovementsResult:
        """Extract the movements of a case.

        ``page`` (already on the case page) is consumed. Otherwise the case
        page is opened from ``case_url`` or found through the search form.
        """

        reporter = as_reporter(progress)
        token = as_token(cancel)
        protocol = normalize_protocol(protocol_number)
        if not protocol:
            if page is not None:
                page.close()
            return self._failure("", ErrorCode.INVALID_INPUT, reporter)

        owned = page
        if owned is None:
            opened = open_case_page(
                self.session,
                protocol,
                case_url,
                locator=self.locator,
                progress=reporter,
                cancel=token,
            )
            owned = opened.take_page()
            if owned is None:
                return ProcessMovementsResult(
                    success=False,
                    protocol_number=protocol,
                    error=opened.error,
                    error_code=opened.error_code,
                )

        with owned:
            try:
                token.check("movements")
                reporter.emit(ProgressStage.PROCESSING, "Extraindo movimentações do processo...", 85)
                text = self.extract_from_page(owned.page)
            except OperationCancelled:
                return self._failure(protocol, ErrorCode.CANCELLED, reporter)
            except PWError as exc:
                if is_target_closed_error(exc):
                    raise
                return self._failure(
                    protocol,
                    ErrorCode.INTERNAL,
                    reporter,
                    f"Erro ao extrair movimentações: {exc}",
                )

        if not text:
            return self._failure(protocol, ErrorCode.NO_MOVEMENTS, reporter)

        _portal_event("movements", step="extracted", protocol=protocol, chars=len(text))
        reporter.emit(ProgressStage.COMPLETE, "Movimentações extraídas.", 100)
        return ProcessMovementsResult(success=True, protocol_number=protocol, movements=text)

    def _failure(
        self,
        protocol: str,
        error_code: str,
        reporter: ProgressReporter,
        message: str | None = None,
    ) -> ProcessMovementsResult:
        text = message or message_for(error_code)
        reporter.fail(text, error_code=error_code)
        return ProcessMovementsResult(
            success=False,
            protocol_number=protocol,
            error=text,
            error_code=error_code,
        )


__all__ = [
    "MovementsExtractor",
    "build_movements_text",
    "clean_movements_text",
    "format_metadata",
    "movements_text_from_html",
]
