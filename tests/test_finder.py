from __future__ import annotations

import pytest

from app.esaj.cancellation import CancelToken, OperationCancelled
from app.esaj.error_codes import ErrorCode
from app.esaj.finder import choose_candidate, expand_movements, find_candidates, select_best_candidate
from app.esaj.results import DocumentCandidate
from tests import portal_fixtures as fx
from tests.fakes import FakePage


def _candidate(name: str, locked: bool = False) -> DocumentCandidate:
    return DocumentCandidate(description=name, link_ref=f"/doc/{name}", requires_password=locked)


def test_select_best_skips_locked_candidates() -> None:
    first_free = _candidate("b")
    chosen = select_best_candidate([_candidate("a", locked=True), first_free, _candidate("c")])
    assert chosen is first_free


def test_choose_candidate_reports_missing_document() -> None:
    assert choose_candidate([]) == (None, ErrorCode.DOCUMENT_NOT_FOUND)


def test_choose_candidate_reports_credentials_when_all_locked() -> None:
    assert choose_candidate([_candidate("a", locked=True)]) == (None, ErrorCode.CREDENTIALS_REQUIRED)


def test_expand_movements_is_noop_when_full_table_visible() -> None:
    page = FakePage(html=fx.CASE_PAGE_EXPANDED)
    page.add("#linkmovimentacoes")
    page.add("#tabelaTodasMovimentacoes", visible=True)

    assert expand_movements(page) is True
    assert ("click", "#linkmovimentacoes") not in page.actions


def test_expand_movements_clicks_link_when_hidden() -> None:
    page = FakePage(html=fx.CASE_PAGE)

    def _reveal(p: FakePage) -> None:
        p.html = fx.CASE_PAGE_EXPANDED

    page.add("#linkmovimentacoes", on_click=_reveal)
    page.add("#tabelaTodasMovimentacoes", visible=False)

    assert expand_movements(page) is True
    assert ("click", "#linkmovimentacoes") in page.actions
    assert page.html == fx.CASE_PAGE_EXPANDED


def test_find_candidates_on_page_after_expansion() -> None:
    page = FakePage(url=fx.CASE_URL, html=fx.CASE_PAGE)
    page.add("#linkmovimentacoes", on_click=lambda p: setattr(p, "html", fx.CASE_PAGE_EXPANDED))
    page.add("#tabelaTodasMovimentacoes", visible=False)
    updates = []

    candidates = find_candidates(page, "Sentença", progress=updates.append)
    chosen, error_code = choose_candidate(candidates)

    assert error_code is None
    assert chosen is not None and chosen.link_id == "link-sent-2"
    assert updates and updates[0].stage.value == "finding_document"


def test_find_candidates_honours_cancellation() -> None:
    token = CancelToken()
    token.cancel("stop")
    with pytest.raises(OperationCancelled):
        find_candidates(FakePage(html=fx.CASE_PAGE_EXPANDED), "sentença", cancel=token)
