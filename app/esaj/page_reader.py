"""HTML readers for e-SAJ pages.

Everything here works on a page snapshot (``page.content()``), never on a live
browser, so the scraping rules can be exercised against fixture HTML. Live
stages take a snapshot after each interaction and hand it to these readers.
"""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from .results import DocumentCandidate
from .selectors_esaj import ESAJ_SELECTORS, ESAJSelectors

_HIDDEN_STYLE = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


class CaseClassification(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class MovementRow:
    index: int
    date: str
    description: str


@dataclass
class CaseMetadata:
    number: str = ""
    fields: dict[str, str] = field(default_factory=dict)
    parties: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.number or self.fields or self.parties)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html5lib")


def _clean(text: str | None) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def fold_text(text: str) -> str:
    """Lower-case ``text`` and strip diacritics for tolerant matching."""

    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def _hides_itself(tag: Tag) -> bool:
    if tag.has_attr("hidden"):
        return True
    return bool(_HIDDEN_STYLE.search(tag.get("style") or ""))


def visible_text(soup: BeautifulSoup) -> str:
    """Text a user would see: no scripts, styles or hidden subtrees."""

    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    for tag in soup.find_all(_hides_itself):
        tag.extract()
    return soup.get_text(" ")


def _is_hidden(tag: Tag) -> bool:
    node: Optional[Tag] = tag
    while isinstance(node, Tag):
        if _hides_itself(node):
            return True
        node = node.parent
    return False


def classify_result_page(
    html: str, selectors: ESAJSelectors = ESAJ_SELECTORS
) -> CaseClassification:
    """Three-way classification of the page shown after a search submission.

    Failure tokens without any success token mean not found. Otherwise any
    success token or structural result element means found. Anything else is
    ambiguous and must never be taken as success.
    """

    soup = parse_html(html)
    has_structure = bool(soup.select(selectors.result_structure))
    text = visible_text(soup).lower()

    has_success = any(token in text for token in selectors.success_tokens)
    has_failure = any(token in text for token in selectors.failure_tokens)

    if has_failure and not has_success:
        return CaseClassification.NOT_FOUND
    if has_success or has_structure:
        return CaseClassification.FOUND
    return CaseClassification.AMBIGUOUS


def movement_table(
    soup: BeautifulSoup, selectors: ESAJSelectors = ESAJ_SELECTORS
) -> Optional[Tag]:
    """Return the full movement table when it is shown, else the latest one."""

    full = soup.select_one(selectors.all_movements_table)
    if full is not None and not _is_hidden(full):
        return full
    latest = soup.select_one(selectors.latest_movements_table)
    if latest is not None:
        return latest
    return full


def _movement_rows(soup: BeautifulSoup, selectors: ESAJSelectors) -> list[Tag]:
    table = movement_table(soup, selectors)
    if table is None:
        return []
    return table.select(selectors.movement_row)


def read_movements(html: str, selectors: ESAJSelectors = ESAJ_SELECTORS) -> list[MovementRow]:
    soup = parse_html(html)
    movements: list[MovementRow] = []
    for index, row in enumerate(_movement_rows(soup, selectors)):
        date_cell = row.select_one(selectors.movement_date_cell)
        desc_cell = row.select_one(selectors.movement_description_cell)
        date = _clean(date_cell.get_text(" ")) if date_cell else ""
        description = _clean(desc_cell.get_text(" ")) if desc_cell else ""
        if date or description:
            movements.append(MovementRow(index=index, date=date, description=description))
    return movements


def document_type_terms(document_type: str) -> list[str]:
    return [fold_text(term) for term in (document_type or "").split() if term.strip()]


def _link_for_row(row: Tag, selectors: ESAJSelectors) -> Optional[Tag]:
    # Icon next to the document link.
    for icon in row.select(selectors.document_icon):
        cell = icon.find_parent("td")
        anchor = cell.find("a") if cell is not None else None
        if anchor is not None:
            return anchor

    # Known link class or document URL pattern.
    anchor = row.select_one(selectors.document_link)
    if anchor is not None:
        return anchor

    # Any anchor that calls the document opening routine.
    for anchor in row.find_all("a"):
        href = anchor.get("href") or ""
        onclick = anchor.get("onclick") or ""
        if any(marker in href or marker in onclick for marker in selectors.document_link_markers):
            return anchor
    return None


def find_document_candidates(
    html: str,
    document_type: str,
    selectors: ESAJSelectors = ESAJ_SELECTORS,
) -> list[DocumentCandidate]:
    """Return one candidate per matching movement row, in table order."""

    terms = document_type_terms(document_type)
    if not terms:
        return []

    soup = parse_html(html)
    candidates: list[DocumentCandidate] = []
    for row in _movement_rows(soup, selectors):
        desc_cell = row.select_one(selectors.movement_description_cell)
        description = _clean((desc_cell or row).get_text(" "))
        folded = fold_text(description)
        if not any(term in folded for term in terms):
            continue

        anchor = _link_for_row(row, selectors)
        if anchor is None:
            continue

        href = (anchor.get("href") or "").strip()
        onclick = (anchor.get("onclick") or "").strip()
        candidates.append(
            DocumentCandidate(
                description=description,
                link_ref=href,
                link_id=(anchor.get("id") or "").strip(),
                requires_password=selectors.password_marker in href,
                onclick=onclick,
            )
        )
    return candidates


def is_digital_folder(html: str, selectors: ESAJSelectors = ESAJ_SELECTORS) -> bool:
    return bool(parse_html(html).select(selectors.digital_folder_markers))


def viewer_frame_src(html: str, selectors: ESAJSelectors = ESAJ_SELECTORS) -> str:
    soup = parse_html(html)
    for selector in selectors.viewer_frames:
        frame = soup.select_one(selector)
        if frame is not None and (frame.get("src") or "").strip():
            return frame["src"].strip()
    return ""


def _first_text(soup: BeautifulSoup, selector: str) -> Iterable[str]:
    for node in soup.select(selector):
        yield node.get_text(" ")


def read_case_metadata(html: str, selectors: ESAJSelectors = ESAJ_SELECTORS) -> CaseMetadata:
    soup = parse_html(html)
    metadata = CaseMetadata()

    number_re = re.compile(selectors.case_number_pattern)
    for text in _first_text(soup, selectors.case_number_sources):
        match = number_re.search(text)
        if match:
            metadata.number = match.group(0)
            break

    for row in soup.select(selectors.metadata_rows):
        cells = row.find_all("td", recursive=False) or row.find_all("td")
        if len(cells) < 2:
            continue
        label = cells[0].get_text(" ").strip().lower()
        value = _clean(cells[1].get_text(" "))
        if not label or not value:
            continue
        for keyword, key in selectors.metadata_labels:
            if keyword in label and key not in metadata.fields:
                metadata.fields[key] = value
                break

    section = soup.select_one(selectors.parties_section)
    if section is not None:
        seen: set[str] = set()
        rows = section.find_all("tr")
        if rows:
            lines = [row.get_text(" ") for row in rows]
        else:
            lines = section.get_text("\n").splitlines()
        for line in lines:
            cleaned = _clean(line)
            lowered = cleaned.lower()
            if cleaned and cleaned not in seen and any(
                keyword in lowered for keyword in selectors.party_keywords
            ):
                seen.add(cleaned)
                metadata.parties.append(cleaned)

    return metadata


def fallback_movements_text(html: str, selectors: ESAJSelectors = ESAJ_SELECTORS) -> str:
    soup = parse_html(html)
    section = soup.select_one(selectors.movements_fallback_section)
    if section is None:
        return ""
    return section.get_text("\n").strip()


__all__ = [
    "CaseClassification",
    "CaseMetadata",
    "MovementRow",
    "classify_result_page",
    "document_type_terms",
    "fallback_movements_text",
    "find_document_candidates",
    "fold_text",
    "is_digital_folder",
    "movement_table",
    "parse_html",
    "read_case_metadata",
    "read_movements",
    "viewer_frame_src",
    "visible_text",
]
