from __future__ import annotations

"""Case locator: drives the portal search form for one protocol number."""

from enum import Enum
from typing import Optional

from playwright.sync_api import Error as PWError, Page, TimeoutError as PWTimeout

from . import config
from .cancellation import CancelToken, OperationCancelled, as_token
from .error_codes import ErrorCode, PortalError, PortalStructureChangedError, message_for
from .logging_utils import _portal_event
from .owned_page import OwnedPage
from .page_actions import first_locator, safe_goto, wait_for_locator
from .page_reader import CaseClassification, classify_result_page
from .progress import ProgressReporter, ProgressStage, as_reporter
from .results import CaseSearchResult
from .selectors_esaj import ESAJ_SELECTORS, ESAJSelectors
from .session import BrowserSession, BrowserUnavailableError
from .utils import log_line, normalize_protocol

# After the submission settles the portal sometimes issues a second redirect.
LATE_NAVIGATION_GRACE_MS = 5000


class LocatorState(str, Enum):
    INIT = "init"
    FORM_LOADED = "form_loaded"
    QUERY_TYPE_SELECTED = "query_type_selected"
    PROTOCOL_FILLED = "protocol_filled"
    SUBMITTED = "submitted"
    RESULT_CLASSIFIED = "result_classified"


class CaseLocator:
    """Search the portal for a case and keep the result page open on success.

    The page moves into the returned :class:`CaseSearchResult` when the case is
    found; on any other outcome the locator closes it before returning.
    """

    def __init__(
        self,
        session: BrowserSession,
        *,
        selectors: ESAJSelectors = ESAJ_SELECTORS,
        portal_url: str | None = None,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.portal_url = portal_url or config.ESAJ_URL
        self.state = LocatorState.INIT

    def _advance(self, state: LocatorState, protocol: str) -> None:
        self.state = state
        _portal_event("search", step=state.value, protocol=protocol)

    def locate(
        self,
        protocol_number: str,
        *,
        page: Optional[OwnedPage] = None,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> CaseSearchResult:
        reporter = as_reporter(progress)
        token = as_token(cancel)
        protocol = normalize_protocol(protocol_number)
        self.state = LocatorState.INIT

        if not protocol:
            if page is not None:
                page.close()
            reporter.fail(message_for(ErrorCode.INVALID_INPUT))
            return CaseSearchResult(
                found=False,
                protocol_number="",
                error=message_for(ErrorCode.INVALID_INPUT),
                error_code=ErrorCode.INVALID_INPUT,
            )

        reporter.emit(ProgressStage.INIT, "Inicializando busca no e-SAJ...", 0)

        if page is None:
            reporter.emit(ProgressStage.CONNECTING, "Conectando ao portal e-SAJ...", 10)
            try:
                page = self.session.new_page(label="search")
            except BrowserUnavailableError as exc:
                log_line(f"[ESAJ][ERROR] Browser unavailable: {exc}")
                return self._failure(protocol, ErrorCode.BROWSER_UNAVAILABLE, reporter, str(exc))

        with page:
            try:
                found_url = self._run(page.page, protocol, reporter, token)
            except OperationCancelled as exc:
                _portal_event("error", phase="search", step=exc.step, error="cancelled", protocol=protocol)
                return self._failure(protocol, ErrorCode.CANCELLED, reporter)
            except PortalError as exc:
                return self._failure(protocol, exc.error_code, reporter, exc.message)
            except PWError as exc:
                log_line(f"[ESAJ][ERROR][SEARCH] {exc}")
                return self._failure(
                    protocol,
                    ErrorCode.INTERNAL,
                    reporter,
                    f"Erro ao buscar processo: {exc}",
                )

            reporter.emit(ProgressStage.COMPLETE, "✅ Processo encontrado!", 100, caseUrl=found_url)
            return CaseSearchResult(
                found=True,
                protocol_number=protocol,
                case_page_url=found_url,
                page=page.take(label="case"),
            )

    def _failure(
        self,
        protocol: str,
        error_code: str,
        reporter: ProgressReporter,
        message: str | None = None,
    ) -> CaseSearchResult:
        text = message or message_for(error_code)
        reporter.fail(text, error_code=error_code)
        _portal_event("search", step="failed", protocol=protocol, error_code=error_code)
        return CaseSearchResult(
            found=False,
            protocol_number=protocol,
            error=text,
            error_code=error_code,
        )

    def _run(
        self,
        page: Page,
        protocol: str,
        reporter: ProgressReporter,
        token: CancelToken,
    ) -> str:
        """Walk the search state machine; return the case page URL."""

        selectors = self.selectors
        page.set_default_timeout(token.clamp_ms(config.SUBMIT_TIMEOUT_SECONDS * 1000))

        token.check("navigate")
        reporter.emit(ProgressStage.NAVIGATING, "Acessando portal e-SAJ...", 20)
        nav_error = safe_goto(
            page,
            self.portal_url,
            label="search_form",
            timeout_ms=token.clamp_ms(config.NAV_TIMEOUT_SECONDS * 1000),
        )
        if nav_error:
            token.check("navigate")
            raise PortalError(nav_error)
        self._advance(LocatorState.FORM_LOADED, protocol)

        token.check("select_query_type")
        reporter.emit(ProgressStage.SEARCHING, "Preparando formulário de busca...", 30)
        selector_ms = token.clamp_ms(config.SELECTOR_TIMEOUT_SECONDS * 1000)
        radio = wait_for_locator(page, selectors.other_identifier_radio, timeout_ms=selector_ms)
        if radio is None:
            raise PortalStructureChangedError(
                "Radio button de consulta por outro número não encontrado. "
                "A estrutura do portal pode ter mudado."
            )
        radio.check(timeout=config.CLICK_TIMEOUT_MS)
        self._advance(LocatorState.QUERY_TYPE_SELECTED, protocol)

        token.check("fill_protocol")
        reporter.emit(ProgressStage.SEARCHING, "Preenchendo número do processo...", 40)
        field = wait_for_locator(
            page, selectors.protocol_input, timeout_ms=selector_ms, state="visible"
        )
        if field is None:
            raise PortalStructureChangedError(
                "Campo de protocolo não encontrado após selecionar o tipo de consulta."
            )
        field.click(click_count=3, timeout=config.CLICK_TIMEOUT_MS)
        field.fill("")
        field.press_sequentially(protocol, delay=config.TYPE_DELAY_MS)
        self._advance(LocatorState.PROTOCOL_FILLED, protocol)

        token.check("submit")
        reporter.emit(ProgressStage.SEARCHING, "Buscando processo no e-SAJ...", 50)
        button = first_locator(page, selectors.submit_button)
        if button is None:
            raise PortalStructureChangedError("Botão de consulta não encontrado.")
        try:
            with page.expect_navigation(
                wait_until="networkidle",
                timeout=token.clamp_ms(config.SUBMIT_TIMEOUT_SECONDS * 1000),
            ):
                button.click(timeout=config.CLICK_TIMEOUT_MS)
        except PWTimeout as exc:
            token.check("submit")
            _portal_event("error", phase="search", step="submit_timeout", error=str(exc))
            raise PortalError(
                ErrorCode.NAVIGATION_TIMEOUT,
                "Tempo esgotado aguardando a resposta da consulta no e-SAJ.",
            ) from exc
        self._advance(LocatorState.SUBMITTED, protocol)

        token.check("classify")
        reporter.emit(ProgressStage.SEARCHING, "Verificando resultado...", 70)
        try:
            page.wait_for_load_state("networkidle", timeout=token.clamp_ms(LATE_NAVIGATION_GRACE_MS))
        except PWTimeout:
            pass

        reporter.emit(ProgressStage.PROCESSING, "Processando resultado da busca...", 80)
        classification = classify_result_page(page.content(), selectors)
        self._advance(LocatorState.RESULT_CLASSIFIED, protocol)
        _portal_event(
            "search",
            step="classified",
            protocol=protocol,
            classification=classification.value,
        )

        case_url = page.url or ""
        if classification is CaseClassification.FOUND and case_url:
            return case_url
        if classification is CaseClassification.NOT_FOUND:
            raise PortalError(ErrorCode.CASE_NOT_FOUND)
        raise PortalError(ErrorCode.AMBIGUOUS_RESULT)


def open_case_page(
    session: BrowserSession,
    protocol_number: str,
    case_url: str | None = None,
    *,
    locator: Optional[CaseLocator] = None,
    progress=None,
    cancel: Optional[CancelToken] = None,
) -> CaseSearchResult:
    """Open the case page directly from ``case_url`` or through the search form.

    The returned result owns the page on success, like :meth:`CaseLocator.locate`.
    """

    if not case_url:
        return (locator or CaseLocator(session)).locate(
            protocol_number, progress=progress, cancel=cancel
        )

    reporter = as_reporter(progress)
    token = as_token(cancel)
    protocol = normalize_protocol(protocol_number)
    reporter.emit(ProgressStage.NAVIGATING, "Acessando página do processo...", 20)
    try:
        token.check("open_case_page")
        owned = session.new_page(label="case")
    except OperationCancelled:
        error_code, message = ErrorCode.CANCELLED, None
    except BrowserUnavailableError as exc:
        error_code, message = ErrorCode.BROWSER_UNAVAILABLE, str(exc)
    else:
        error_code = safe_goto(
            owned.page,
            case_url,
            label="case_page",
            timeout_ms=token.clamp_ms(config.NAV_TIMEOUT_SECONDS * 1000),
        )
        message = None
        if not error_code:
            return CaseSearchResult(
                found=True,
                protocol_number=protocol,
                case_page_url=owned.page.url or case_url,
                page=owned,
            )
        owned.close()

    text = message or message_for(error_code)
    reporter.fail(text, error_code=error_code)
    return CaseSearchResult(
        found=False,
        protocol_number=protocol,
        error=text,
        error_code=error_code,
    )


__all__ = ["CaseLocator", "LocatorState", "open_case_page"]
