"""Structured results returned by the retrieval stages.

Failures are values, not exceptions: every result carries ``success`` (or
``found``) plus an ``error`` message and an ``error_code`` from
:class:`app.esaj.error_codes.ErrorCode`. ``to_dict`` renders the camelCase
shape consumed by the HTTP layer and omits empty fields.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Optional

from .owned_page import OwnedPage

_CAMEL = {
    "protocol_number": "protocolNumber",
    "case_page_url": "casePageUrl",
    "file_path": "filePath",
    "file_name": "fileName",
    "document_url": "documentUrl",
    "document_type": "documentType",
    "error_code": "errorCode",
    "link_ref": "linkRef",
    "link_id": "linkId",
    "requires_password": "requiresPassword",
}


def _as_dict(obj: Any, *, skip: tuple[str, ...] = ()) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for item in fields(obj):
        if item.name in skip:
            continue
        value = getattr(obj, item.name)
        if value is None:
            continue
        payload[_CAMEL.get(item.name, item.name)] = value
    return payload


@dataclass(frozen=True)
class DocumentCandidate:
    description: str
    link_ref: str
    link_id: str = ""
    requires_password: bool = False
    onclick: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self, skip=("onclick",))


@dataclass
class CaseSearchResult:
    found: bool
    protocol_number: str
    case_page_url: Optional[str] = None
    page: Optional[OwnedPage] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def take_page(self) -> Optional[OwnedPage]:
        """Move the page out of the result; later calls return ``None``."""

        if self.page is None or not self.page.owned:
            return None
        handle = self.page.take(label="case")
        self.page = None
        return handle

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self, skip=("page",))


@dataclass
class DocumentDownloadResult:
    success: bool
    protocol_number: str
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    document_url: Optional[str] = None
    document_type: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)


@dataclass
class ProcessMovementsResult:
    success: bool
    protocol_number: str
    movements: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)


@dataclass
class DocumentTextResult:
    success: bool
    protocol_number: str
    document_type: Optional[str] = None
    text: Optional[str] = None
    document_url: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)


__all__ = [
    "DocumentCandidate",
    "CaseSearchResult",
    "DocumentDownloadResult",
    "ProcessMovementsResult",
    "DocumentTextResult",
]
