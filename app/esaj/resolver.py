from __future__ import annotations

"""Document URL resolution and binary download.

URL resolution runs an ordered list of strategies. Each one returns a
:class:`StrategyOutcome`; the first successful outcome with a non-empty URL
wins and nothing after it runs. Strategies that need no navigation come
first, so a direct link is returned without touching the page.
"""

import os
import time
import urllib.parse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from playwright.sync_api import Error as PWError, Page, TimeoutError as PWTimeout

from . import config
from .cancellation import CancelToken, OperationCancelled, as_token
from .error_codes import ErrorCode, message_for
from .http_client import DownloadError, fetch_pdf_with_page
from .logging_utils import _portal_event
from .page_actions import (
    extract_attr,
    first_locator,
    is_target_closed_error,
    safe_goto,
    wait_for_locator,
    wait_seconds,
)
from .page_reader import viewer_frame_src
from .progress import ProgressReporter, ProgressStage, as_reporter
from .results import DocumentCandidate, DocumentDownloadResult
from .selectors_esaj import ESAJ_SELECTORS, ESAJSelectors
from .session import IN_PROGRESS_SUFFIX, BrowserSession
from .utils import log_line, normalize_url, page_origin, redact_url, sanitize_filename

IN_PROGRESS_SUFFIXES = (".crdownload", ".tmp", IN_PROGRESS_SUFFIX)

JS_RUN_ONCLICK = """
(el, code) => {
  const body = String(code || '').replace(/^\\s*javascript:/i, '');
  const handler = new Function('event', body);
  const evt = new MouseEvent('click', {bubbles: true, cancelable: true, view: window, detail: 1});
  handler.call(el, evt);
  return true;
}
"""


@dataclass(frozen=True)
class StrategyOutcome:
    ok: bool
    value: str = ""
    diagnostic: str = ""

    @classmethod
    def success(cls, value: str, diagnostic: str = "") -> "StrategyOutcome":
        return cls(ok=bool(value), value=value, diagnostic=diagnostic)

    @classmethod
    def failure(cls, diagnostic: str) -> "StrategyOutcome":
        return cls(ok=False, value="", diagnostic=diagnostic)


@dataclass
class ResolveContext:
    page: Page
    candidate: DocumentCandidate
    href: str
    onclick: str
    case_url: str
    token: CancelToken
    selectors: ESAJSelectors = ESAJ_SELECTORS
    link: Any = None
    attempts: list[tuple[str, StrategyOutcome]] = field(default_factory=list)


Strategy = Callable[[ResolveContext], StrategyOutcome]


# --- pure helpers ---------------------------------------------------------

def is_direct_pdf_url(href: str, selectors: ESAJSelectors = ESAJ_SELECTORS) -> bool:
    if not href:
        return False
    if selectors.direct_pdf_marker in href:
        return True
    try:
        path = urllib.parse.urlparse(href).path
    except ValueError:
        return False
    return path.lower().endswith(".pdf")


def _first_param(query: dict[str, list[str]], names: Iterable[str]) -> str:
    for name in names:
        values = query.get(name)
        if values and values[0].strip():
            return values[0].strip()
    return ""


def reconstruct_pdf_url(
    href: str,
    page_url: str,
    selectors: ESAJSelectors = ESAJ_SELECTORS,
) -> str:
    """Build the direct PDF endpoint from an opening link's document id.

    Returns ``""`` when ``href`` is not an opening link or carries no id.
    """

    if not href or selectors.open_document_marker not in href:
        return ""
    absolute = normalize_url(href, page_url=page_url) or href
    try:
        parsed = urllib.parse.urlparse(absolute)
    except ValueError:
        return ""
    query = urllib.parse.parse_qs(parsed.query)
    document_id = _first_param(query, selectors.document_id_params)
    if not document_id:
        return ""

    origin = page_origin(absolute) or page_origin(page_url)
    params = [("cdDocumento", document_id)]
    case_code = _first_param(query, selectors.case_code_params)
    if case_code:
        params.append(("processo.codigo", case_code))
    return f"{origin}{selectors.direct_pdf_path}?{urllib.parse.urlencode(params)}"


def pdf_url_from_frame_src(src: str, page_url: str) -> str:
    """Return the PDF behind a viewer frame ``src``.

    The viewer receives the document through its ``file`` query parameter;
    without one the frame source itself is the document.
    """

    src = (src or "").strip()
    if not src:
        return ""
    absolute_src = urllib.parse.urljoin(page_url, src)
    try:
        query = urllib.parse.parse_qs(urllib.parse.urlparse(absolute_src).query)
    except ValueError:
        return absolute_src
    file_param = _first_param(query, ("file",))
    if not file_param:
        return absolute_src

    decoded = urllib.parse.unquote(file_param)
    if decoded.lower().startswith(("http://", "https://")):
        return decoded
    origin = page_origin(absolute_src) or page_origin(page_url)
    if decoded.startswith("/"):
        return f"{origin}{decoded}"
    return urllib.parse.urljoin(absolute_src, decoded)


# --- live helpers ---------------------------------------------------------

def _css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def relocate_link(
    page: Page,
    candidate: DocumentCandidate,
    selectors: ESAJSelectors = ESAJ_SELECTORS,
):
    """Find the candidate's anchor again: by id, by href, then by row text."""

    if candidate.link_id:
        loc = first_locator(page, f'[id="{_css_string(candidate.link_id)}"]')
        if loc is not None:
            return loc

    # Fragment and javascript: hrefs are shared by unrelated links on the page.
    if normalize_url(candidate.link_ref, page_url=page.url or ""):
        loc = first_locator(page, f'a[href*="{_css_string(candidate.link_ref)}"]')
        if loc is not None:
            return loc

    text = candidate.description[:50].strip()
    if text:
        try:
            rows = page.locator(selectors.movement_row).filter(has_text=text)
            if rows.count():
                anchors = rows.nth(0).locator("a")
                if anchors.count():
                    return anchors.nth(0)
        except PWError as exc:
            if is_target_closed_error(exc):
                raise
            log_line(f"[ESAJ][WARN] Row lookup failed for {text!r}: {exc}")
    return None


def read_viewer_url(target: Any, ctx: ResolveContext, *, wait: bool = True) -> str:
    """Return the PDF URL behind the viewer frame shown on ``target``."""

    src = viewer_frame_src(target.content(), ctx.selectors)
    if not src and wait:
        for selector in ctx.selectors.viewer_frames:
            ctx.token.check("viewer_frame")
            frame = wait_for_locator(
                target,
                selector,
                timeout_ms=ctx.token.clamp_ms(config.SELECTOR_TIMEOUT_SECONDS * 1000),
            )
            if frame is None:
                continue
            src = extract_attr(frame, ("src",)) or ""
            if src:
                _portal_event("resolver", step="viewer_frame", selector=selector)
                break
    if not src:
        if is_direct_pdf_url(target.url or "", ctx.selectors):
            return target.url
        return ""
    return pdf_url_from_frame_src(src, target.url or ctx.case_url)


def _return_to_case_page(ctx: ResolveContext) -> bool:
    if ctx.page.url == ctx.case_url:
        if ctx.link is None:
            ctx.link = relocate_link(ctx.page, ctx.candidate, ctx.selectors)
        return ctx.link is not None
    error = safe_goto(
        ctx.page,
        ctx.case_url,
        label="case_page",
        wait_until="domcontentloaded",
        timeout_ms=ctx.token.clamp_ms(config.NAV_TIMEOUT_SECONDS * 1000),
    )
    if error:
        return False
    ctx.link = relocate_link(ctx.page, ctx.candidate, ctx.selectors)
    return ctx.link is not None


def _inspect_after_action(ctx: ResolveContext, action: Callable[[], None]) -> str:
    """Run ``action`` and look for the viewer on the page or a popup it opened."""

    context = ctx.page.context
    before = list(context.pages)
    action()
    wait_seconds(ctx.page, config.POST_CLICK_SLEEP_SECONDS)

    popups = [item for item in context.pages if item not in before]
    try:
        for target in [*popups, ctx.page]:
            ctx.token.check("inspect_viewer")
            try:
                target.wait_for_load_state(
                    "domcontentloaded",
                    timeout=ctx.token.clamp_ms(config.NAV_TIMEOUT_SECONDS * 1000),
                )
            except PWTimeout:
                pass
            url = read_viewer_url(target, ctx)
            if url:
                return url
    finally:
        for popup in popups:
            try:
                popup.close()
            except PWError:
                continue
    return ""


# --- strategies -----------------------------------------------------------

def strategy_direct_pdf(ctx: ResolveContext) -> StrategyOutcome:
    if is_direct_pdf_url(ctx.href, ctx.selectors):
        return StrategyOutcome.success(ctx.href, "link points at the PDF endpoint")
    return StrategyOutcome.failure("not a direct PDF link")


def strategy_reconstruct_from_id(ctx: ResolveContext) -> StrategyOutcome:
    url = reconstruct_pdf_url(ctx.href, ctx.case_url, ctx.selectors)
    if url:
        return StrategyOutcome.success(url, "built from document id")
    return StrategyOutcome.failure("no document id on opening link")


def strategy_viewer_frame(ctx: ResolveContext) -> StrategyOutcome:
    if not ctx.href or ctx.selectors.open_document_marker not in ctx.href:
        return StrategyOutcome.failure("not a document opening link")
    ctx.token.check("viewer_frame")
    error = safe_goto(
        ctx.page,
        ctx.href,
        label="document_viewer",
        wait_until="domcontentloaded",
        timeout_ms=ctx.token.clamp_ms(config.NAV_TIMEOUT_SECONDS * 1000),
        tolerate_timeout=True,
    )
    if error:
        return StrategyOutcome.failure(f"navigation failed: {error}")
    url = read_viewer_url(ctx.page, ctx)
    if url:
        return StrategyOutcome.success(url, "read from viewer frame")
    return StrategyOutcome.failure("viewer frame not found")


def strategy_script_handler(ctx: ResolveContext) -> StrategyOutcome:
    if not ctx.onclick:
        return StrategyOutcome.failure("link has no onclick handler")
    if not _return_to_case_page(ctx):
        return StrategyOutcome.failure("link not found on case page")

    def _run() -> None:
        ctx.link.evaluate(JS_RUN_ONCLICK, ctx.onclick)

    try:
        url = _inspect_after_action(ctx, _run)
    except PWError as exc:
        if is_target_closed_error(exc):
            raise
        return StrategyOutcome.failure(f"handler failed: {exc}")
    if url:
        return StrategyOutcome.success(url, "opened by onclick handler")
    return StrategyOutcome.failure("handler opened no viewer")


def strategy_href_navigation(ctx: ResolveContext) -> StrategyOutcome:
    target = normalize_url(ctx.href, page_url=ctx.case_url)
    if not target or ctx.selectors.open_document_marker in ctx.href:
        # Opening links were already followed by the viewer strategy.
        return StrategyOutcome.failure("no other navigable href")
    ctx.token.check("href_navigation")
    error = safe_goto(
        ctx.page,
        target,
        label="document_href",
        wait_until="domcontentloaded",
        timeout_ms=ctx.token.clamp_ms(config.NAV_TIMEOUT_SECONDS * 1000),
        tolerate_timeout=True,
    )
    if error:
        return StrategyOutcome.failure(f"navigation failed: {error}")
    url = read_viewer_url(ctx.page, ctx)
    if url:
        return StrategyOutcome.success(url, "viewer reached through href")
    return StrategyOutcome.failure("href led to no viewer")


def strategy_ui_click(ctx: ResolveContext) -> StrategyOutcome:
    if not _return_to_case_page(ctx):
        return StrategyOutcome.failure("link not found on case page")

    def _click() -> None:
        ctx.link.click(timeout=config.CLICK_TIMEOUT_MS)

    try:
        url = _inspect_after_action(ctx, _click)
    except PWError as exc:
        if is_target_closed_error(exc):
            raise
        return StrategyOutcome.failure(f"click failed: {exc}")
    if url:
        return StrategyOutcome.success(url, "opened by clicking the link")
    return StrategyOutcome.failure("click opened no viewer")


URL_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("direct_pdf", strategy_direct_pdf),
    ("reconstruct_from_id", strategy_reconstruct_from_id),
    ("viewer_frame", strategy_viewer_frame),
    ("script_handler", strategy_script_handler),
    ("href_navigation", strategy_href_navigation),
    ("ui_click", strategy_ui_click),
)


def run_strategies(
    ctx: ResolveContext,
    strategies: Sequence[tuple[str, Strategy]] = URL_STRATEGIES,
) -> Optional[str]:
    """Try each strategy in order; return the first non-empty URL."""

    for name, strategy in strategies:
        ctx.token.check(name)
        try:
            outcome = strategy(ctx)
        except (PWError, PWTimeout) as exc:
            if is_target_closed_error(exc):
                raise
            outcome = StrategyOutcome.failure(f"{type(exc).__name__}: {exc}")
        ctx.attempts.append((name, outcome))
        _portal_event(
            "resolver",
            step=name,
            ok=outcome.ok,
            diagnostic=outcome.diagnostic,
            url=redact_url(outcome.value) if outcome.value else None,
        )
        if outcome.ok and outcome.value:
            return outcome.value
    return None


# --- download polling -----------------------------------------------------

def _is_in_progress(name: str) -> bool:
    return name.endswith(IN_PROGRESS_SUFFIXES)


def list_directory(directory: Path) -> set[str]:
    try:
        return {entry.name for entry in os.scandir(directory) if entry.is_file()}
    except FileNotFoundError:
        return set()


def wait_for_download(
    directory: Path,
    before: set[str],
    *,
    timeout_s: float | None = None,
    interval_s: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    cancel: Optional[CancelToken] = None,
) -> Optional[Path]:
    """Poll ``directory`` for a finished file that was not in ``before``.

    Names with an in-progress suffix are ignored until renamed. Returns
    ``None`` once ``timeout_s`` has elapsed without a finished file; the last
    poll happens exactly at the ceiling.
    """

    timeout = float(config.DOWNLOAD_TIMEOUT_SECONDS if timeout_s is None else timeout_s)
    interval = float(config.DOWNLOAD_POLL_SECONDS if interval_s is None else interval_s)
    deadline = clock() + timeout

    while True:
        remaining = deadline - clock()
        if remaining <= 0:
            return None
        sleep(min(interval, remaining))
        if cancel is not None:
            cancel.check("wait_for_download")

        new_files = sorted(list_directory(directory) - set(before))
        finished = [name for name in new_files if not _is_in_progress(name)]
        if finished:
            return directory / finished[0]


# --- resolver -------------------------------------------------------------

class DocumentResolver:
    """Resolve a selected candidate into a document URL or a local file."""

    def __init__(
        self,
        session: BrowserSession,
        *,
        selectors: ESAJSelectors = ESAJ_SELECTORS,
        strategies: Sequence[tuple[str, Strategy]] = URL_STRATEGIES,
    ) -> None:
        self.session = session
        self.selectors = selectors
        self.strategies = strategies

    def build_context(self, page: Page, candidate: DocumentCandidate, token: CancelToken) -> ResolveContext:
        link = relocate_link(page, candidate, self.selectors)
        href = candidate.link_ref
        onclick = candidate.onclick
        if link is not None:
            if not normalize_url(href, page_url=page.url or ""):
                href = extract_attr(link, ("href",)) or href
            onclick = onclick or extract_attr(link, ("onclick",)) or ""
        else:
            _portal_event("warn", phase="resolver", step="link_not_relocated", description=candidate.description[:50])

        case_url = page.url
        return ResolveContext(
            page=page,
            candidate=candidate,
            href=normalize_url(href, page_url=case_url),
            onclick=onclick,
            case_url=case_url,
            token=token,
            selectors=self.selectors,
            link=link,
        )

    def resolve_url(
        self,
        page: Page,
        candidate: DocumentCandidate,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Optional[str]:
        token = as_token(cancel)
        ctx = self.build_context(page, candidate, token)
        return run_strategies(ctx, self.strategies)

    def resolve_document(
        self,
        page: Page,
        candidate: DocumentCandidate,
        protocol_number: str,
        document_type: str,
        *,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> DocumentDownloadResult:
        """Return a result carrying the resolved ``document_url``."""

        reporter = as_reporter(progress)
        reporter.emit(ProgressStage.DOWNLOADING, "Obtendo URL do documento...", 75)
        try:
            url = self.resolve_url(page, candidate, cancel=cancel)
        except OperationCancelled:
            return self._failure(protocol_number, document_type, ErrorCode.CANCELLED, reporter)

        if not url:
            return self._failure(protocol_number, document_type, ErrorCode.URL_RESOLUTION_FAILED, reporter)

        reporter.emit(ProgressStage.COMPLETE, "URL do documento obtida.", 100)
        return DocumentDownloadResult(
            success=True,
            protocol_number=protocol_number,
            document_url=url,
            document_type=document_type,
        )

    def download_file(
        self,
        page: Page,
        candidate: DocumentCandidate,
        protocol_number: str,
        document_type: str,
        *,
        directory: Path | None = None,
        progress=None,
        cancel: Optional[CancelToken] = None,
    ) -> DocumentDownloadResult:
        """Materialise the document under ``directory``.

        When resolution leaves the page on the viewer, the viewer's own
        download control is used; otherwise the resolved URL is fetched with
        the page's session.
        """

        reporter = as_reporter(progress)
        token = as_token(cancel)
        target_dir = Path(directory or self.session.downloads_dir)

        resolved = self.resolve_document(
            page, candidate, protocol_number, document_type, cancel=token
        )
        if not resolved.success:
            reporter.fail(resolved.error or "", error_code=resolved.error_code)
            return resolved

        try:
            on_viewer = bool(first_locator(page, self.selectors.viewer_frames[0]))
        except PWError:
            on_viewer = False

        if on_viewer:
            result = self.download_from_viewer(
                page,
                protocol_number=protocol_number,
                document_type=document_type,
                directory=target_dir,
                cancel=token,
            )
            if result.success:
                reporter.emit(ProgressStage.COMPLETE, "Download concluído.", 100, fileName=result.file_name)
                result.document_url = resolved.document_url
                return result
            _portal_event("warn", phase="resolver", step="viewer_download_failed", error_code=result.error_code)

        reporter.emit(ProgressStage.DOWNLOADING, "Baixando PDF...", 85)
        try:
            body = fetch_pdf_with_page(page, resolved.document_url or "")
        except DownloadError as exc:
            return self._failure(protocol_number, document_type, exc.error_code, reporter, str(exc))

        target_dir.mkdir(parents=True, exist_ok=True)
        file_name = sanitize_filename(f"{protocol_number}_{document_type}") + ".pdf"
        file_path = target_dir / file_name
        file_path.write_bytes(body)
        reporter.emit(ProgressStage.COMPLETE, "Download concluído.", 100, fileName=file_name)
        return DocumentDownloadResult(
            success=True,
            protocol_number=protocol_number,
            file_path=str(file_path),
            file_name=file_name,
            document_type=document_type,
        )

    def download_from_viewer(
        self,
        page: Page,
        *,
        protocol_number: str = "",
        document_type: str | None = None,
        directory: Path | None = None,
        progress=None,
        cancel: Optional[CancelToken] = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> DocumentDownloadResult:
        """Click the download control inside the viewer frame and wait for the file."""

        reporter = as_reporter(progress)
        token = as_token(cancel)
        target_dir = Path(directory or self.session.downloads_dir)

        reporter.emit(ProgressStage.DOWNLOADING, "Preparando download do documento...", 80)
        self.session.configure_downloads(page, target_dir)

        try:
            token.check("viewer_download")
            frame_element = wait_for_locator(
                page,
                self.selectors.viewer_frames[0],
                timeout_ms=token.clamp_ms(config.VIEWER_TIMEOUT_SECONDS * 1000),
                state="visible",
            )
            if frame_element is None:
                return self._failure(
                    protocol_number,
                    document_type,
                    ErrorCode.URL_RESOLUTION_FAILED,
                    reporter,
                    "Iframe do documento não encontrado na página.",
                )
            handle = frame_element.element_handle()
            frame = handle.content_frame() if handle is not None else None
            if frame is None:
                return self._failure(
                    protocol_number,
                    document_type,
                    ErrorCode.URL_RESOLUTION_FAILED,
                    reporter,
                    "Não foi possível acessar o conteúdo do iframe do documento.",
                )

            button = wait_for_locator(
                frame,
                self.selectors.viewer_download_button,
                timeout_ms=token.clamp_ms(config.VIEWER_TIMEOUT_SECONDS * 1000),
                state="visible",
            )
            if button is None:
                return self._failure(
                    protocol_number,
                    document_type,
                    ErrorCode.PORTAL_STRUCTURE_CHANGED,
                    reporter,
                    "Botão de download não encontrado dentro do visualizador.",
                )

            target_dir.mkdir(parents=True, exist_ok=True)
            before = list_directory(target_dir)
            button.click(timeout=config.CLICK_TIMEOUT_MS)
            reporter.emit(ProgressStage.DOWNLOADING, "Aguardando download completar...", 85)

            path = wait_for_download(
                target_dir,
                before,
                sleep=sleep or (lambda seconds: wait_seconds(page, seconds)),
                clock=clock,
                cancel=token,
            )
        except OperationCancelled:
            return self._failure(protocol_number, document_type, ErrorCode.CANCELLED, reporter)
        except PWError as exc:
            if is_target_closed_error(exc):
                raise
            return self._failure(
                protocol_number,
                document_type,
                ErrorCode.INTERNAL,
                reporter,
                f"Erro ao baixar documento: {exc}",
            )

        if path is None:
            return self._failure(
                protocol_number,
                document_type,
                ErrorCode.DOWNLOAD_TIMEOUT,
                reporter,
                f"Timeout aguardando download completar ({config.DOWNLOAD_TIMEOUT_SECONDS} segundos).",
            )

        size = path.stat().st_size
        if size == 0:
            return self._failure(
                protocol_number,
                document_type,
                ErrorCode.INTERNAL,
                reporter,
                "Arquivo baixado está vazio (0 bytes).",
            )

        _portal_event("download", phase="viewer", file=path.name, bytes=size)
        reporter.emit(ProgressStage.COMPLETE, "Download concluído.", 100, fileName=path.name)
        return DocumentDownloadResult(
            success=True,
            protocol_number=protocol_number,
            file_path=str(path),
            file_name=path.name,
            document_type=document_type,
        )

    def _failure(
        self,
        protocol_number: str,
        document_type: str | None,
        error_code: str,
        reporter: ProgressReporter,
        message: str | None = None,
    ) -> DocumentDownloadResult:
        text = message or message_for(error_code)
        reporter.fail(text, error_code=error_code)
        _portal_event("resolver", step="failed", error_code=error_code, error=text)
        return DocumentDownloadResult(
            success=False,
            protocol_number=protocol_number,
            document_type=document_type,
            error=text,
            error_code=error_code,
        )


__all__ = [
    "DocumentResolver",
    "ResolveContext",
    "StrategyOutcome",
    "URL_STRATEGIES",
    "is_direct_pdf_url",
    "list_directory",
    "pdf_url_from_frame_src",
    "reconstruct_pdf_url",
    "relocate_link",
    "run_strategies",
    "wait_for_download",
]
