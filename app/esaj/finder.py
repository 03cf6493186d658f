from __future__ import annotations

"""Document candidate finder and the selection policy."""

from typing import Optional, Sequence

from playwright.sync_api import Error as PWError, Page

from . import config
from .cancellation import CancelToken, as_token
from .error_codes import ErrorCode
from .logging_utils import _portal_event
from .page_actions import first_locator, is_target_closed_error, wait_seconds
from .page_reader import find_document_candidates
from .progress import ProgressStage, as_reporter
from .results import DocumentCandidate
from .selectors_esaj import ESAJ_SELECTORS, ESAJSelectors


def expand_movements(page: Page, selectors: ESAJSelectors = ESAJ_SELECTORS) -> bool:
    """Show the full movement table; a no-op when it is already visible.

    Returns ``True`` when the full table is (or was made) visible.
    """

    link = first_locator(page, selectors.expand_movements_link)
    if link is None:
        return False

    full_table = first_locator(page, selectors.all_movements_table)
    try:
        if full_table is not None and full_table.is_visible():
            _portal_event("movements", step="already_expanded")
            return True
        link.click(timeout=config.CLICK_TIMEOUT_MS)
        wait_seconds(page, config.POST_CLICK_SLEEP_SECONDS)
    except PWError as exc:
        if is_target_closed_error(exc):
            raise
        _portal_event("warn", phase="movements", step="expand_failed", error=str(exc))
        return False

    _portal_event("movements", step="expanded")
    return True


def find_candidates(
    page: Page,
    document_type: str,
    *,
    selectors: ESAJSelectors = ESAJ_SELECTORS,
    progress=None,
    cancel: Optional[CancelToken] = None,
) -> list[DocumentCandidate]:
    """Scan the case page's movement table for rows matching ``document_type``."""

    reporter = as_reporter(progress)
    token = as_token(cancel)

    token.check("find_candidates")
    reporter.emit(
        ProgressStage.FINDING_DOCUMENT,
        f"Procurando documento '{document_type}' nas movimentações...",
        55,
    )
    expand_movements(page, selectors)
    token.check("find_candidates")

    candidates = find_document_candidates(page.content(), document_type, selectors)
    _portal_event(
        "finder",
        step="candidates",
        document_type=document_type,
        count=len(candidates),
        locked=sum(1 for item in candidates if item.requires_password),
    )
    return candidates


def select_best_candidate(
    candidates: Sequence[DocumentCandidate],
) -> Optional[DocumentCandidate]:
    """Return the first password-free candidate in movement order, else ``None``."""

    for candidate in candidates:
        if not candidate.requires_password:
            return candidate
    return None


def choose_candidate(
    candidates: Sequence[DocumentCandidate],
) -> tuple[Optional[DocumentCandidate], Optional[str]]:
    """Apply the selection policy and name the failure when nothing is usable.

    No candidates at all means the document is not in the movement history;
    candidates that are all locked mean it exists behind portal credentials.
    """

    if not candidates:
        return None, ErrorCode.DOCUMENT_NOT_FOUND
    chosen = select_best_candidate(candidates)
    if chosen is None:
        return None, ErrorCode.CREDENTIALS_REQUIRED
    return chosen, None


__all__ = [
    "choose_candidate",
    "expand_movements",
    "find_candidates",
    "select_best_candidate",
]
