from __future__ import annotations

"""PDF text layer extraction."""

import io
from dataclasses import dataclass
from typing import Callable, Optional

import pdfplumber
from pdfminer.high_level import extract_text as pdfminer_extract_text

from .logging_utils import _portal_event

TextExtractor = Callable[[bytes], str]


class PdfTextError(Exception):
    """The bytes could not be parsed as a PDF by any extraction pass."""


@dataclass(frozen=True)
class PdfText:
    text: str
    method: Optional[str]

    @property
    def empty(self) -> bool:
        return not self.text.strip()


def extract_whole_document(data: bytes) -> str:
    return pdfminer_extract_text(io.BytesIO(data)) or ""


def extract_page_by_page(data: bytes) -> str:
    texts: list[str] = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            text = (page.extract_text() or "").strip()
            if text:
                texts.append(text)
    return "\n\n".join(texts)


def extract_pdf_text(
    data: bytes,
    *,
    whole: TextExtractor = extract_whole_document,
    by_page: TextExtractor = extract_page_by_page,
) -> PdfText:
    """Extract the text layer of ``data``.

    The whole-document pass runs first; when it yields nothing (or fails) the
    pages are read one by one. An empty :class:`PdfText` means the PDF parsed
    but carries no text layer. :class:`PdfTextError` is raised only when no
    pass could parse the bytes at all.
    """

    errors: list[str] = []

    try:
        text = whole(data).strip()
    except Exception as exc:  # noqa: BLE001
        errors.append(f"whole: {exc}")
        _portal_event("warn", phase="pdf", step="whole_document_failed", error=str(exc))
    else:
        if text:
            return PdfText(text=text, method="whole_document")
        _portal_event("pdf", step="whole_document_empty", bytes=len(data))

    try:
        text = by_page(data).strip()
    except Exception as exc:  # noqa: BLE001
        errors.append(f"by_page: {exc}")
        _portal_event("warn", phase="pdf", step="page_by_page_failed", error=str(exc))
        if len(errors) == 2:
            raise PdfTextError("; ".join(errors)) from exc
        return PdfText(text="", method=None)

    if text:
        return PdfText(text=text, method="page_by_page")
    return PdfText(text="", method=None)


__all__ = [
    "PdfText",
    "PdfTextError",
    "extract_page_by_page",
    "extract_pdf_text",
    "extract_whole_document",
]
