from __future__ import annotations

"""Centralised error code taxonomy for portal retrieval failures.

Every structured result carries one of these codes next to its human readable
message so callers (HTTP layer, CLI, chat layer) can branch on the kind of
failure without parsing Portuguese error strings.
"""


class ErrorCode:
    INVALID_INPUT = "invalid_input"
    BROWSER_UNAVAILABLE = "browser_unavailable"
    PORTAL_STRUCTURE_CHANGED = "portal_structure_changed"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    CASE_NOT_FOUND = "case_not_found"
    AMBIGUOUS_RESULT = "ambiguous_result"
    DOCUMENT_NOT_FOUND = "document_not_found"
    NO_MOVEMENTS = "no_movements"
    CREDENTIALS_REQUIRED = "credentials_required"
    URL_RESOLUTION_FAILED = "url_resolution_failed"
    DOWNLOAD_TIMEOUT = "download_timeout"
    SCANNED_DOCUMENT_NO_TEXT = "scanned_document_no_text"
    PDF_PARSE_FAILED = "pdf_parse_failed"
    NETWORK = "network_error"
    HTTP_4XX = "http_4xx"
    HTTP_401 = "http_401"
    HTTP_403 = "http_403"
    HTTP_404 = "http_404"
    HTTP_5XX = "http_5xx"
    MALFORMED_PDF = "malformed_pdf"
    CANCELLED = "cancelled"
    INTERNAL = "internal_error"

    # Kinds a caller may reasonably re-invoke the whole stage for. Nothing in
    # the core retries on its own.
    RECOVERABLE = frozenset(
        {
            NAVIGATION_TIMEOUT,
            AMBIGUOUS_RESULT,
            URL_RESOLUTION_FAILED,
            DOWNLOAD_TIMEOUT,
            NETWORK,
            HTTP_5XX,
            CANCELLED,
        }
    )


# Default user-facing messages, in the portal's language.
MESSAGES: dict[str, str] = {
    ErrorCode.INVALID_INPUT: "Número de protocolo não fornecido",
    ErrorCode.BROWSER_UNAVAILABLE: "Navegador indisponível: nenhum executável do Chromium pôde ser iniciado.",
    ErrorCode.PORTAL_STRUCTURE_CHANGED: "Erro: estrutura do portal pode ter mudado.",
    ErrorCode.NAVIGATION_TIMEOUT: "Tempo esgotado ao acessar o portal e-SAJ.",
    ErrorCode.CASE_NOT_FOUND: "Processo não encontrado no portal e-SAJ",
    ErrorCode.AMBIGUOUS_RESULT: (
        "Não foi possível determinar se o processo foi encontrado. "
        "A estrutura do portal pode ter mudado. Verifique manualmente."
    ),
    ErrorCode.DOCUMENT_NOT_FOUND: (
        "Documento solicitado não foi encontrado na movimentação do processo."
    ),
    ErrorCode.NO_MOVEMENTS: "Nenhuma movimentação encontrada no processo.",
    ErrorCode.CREDENTIALS_REQUIRED: (
        "O documento solicitado está disponível, mas requer credenciais de acesso "
        "(senha/login) e não pode ser baixado publicamente."
    ),
    ErrorCode.URL_RESOLUTION_FAILED: "Não foi possível obter a URL do documento.",
    ErrorCode.DOWNLOAD_TIMEOUT: "Timeout aguardando download completar.",
    ErrorCode.SCANNED_DOCUMENT_NO_TEXT: "O PDF não contém texto extraível ou está vazio.",
    ErrorCode.PDF_PARSE_FAILED: "Não foi possível ler o PDF retornado pelo portal.",
    ErrorCode.NETWORK: "Erro de rede ao baixar o documento.",
    ErrorCode.MALFORMED_PDF: "A resposta do portal não é um PDF.",
    ErrorCode.CANCELLED: "Operação cancelada ou tempo limite excedido.",
    ErrorCode.INTERNAL: "Erro interno ao consultar o portal e-SAJ.",
}


class PortalError(Exception):
    """A stage failure carrying its :class:`ErrorCode`."""

    def __init__(self, error_code: str, message: str | None = None) -> None:
        super().__init__(message or message_for(error_code))
        self.error_code = error_code

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


class PortalStructureChangedError(PortalError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.PORTAL_STRUCTURE_CHANGED, message)


def message_for(error_code: str) -> str:
    return MESSAGES.get(error_code) or MESSAGES[ErrorCode.INTERNAL]


def is_recoverable(error_code: str | None) -> bool:
    return bool(error_code) and error_code in ErrorCode.RECOVERABLE


__all__ = [
    "ErrorCode",
    "MESSAGES",
    "PortalError",
    "PortalStructureChangedError",
    "is_recoverable",
    "message_for",
]
