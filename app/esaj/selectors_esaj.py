from __future__ import annotations

"""Selectors and text markers for the e-SAJ first-instance case portal."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ESAJSelectors:
    """Every markup assumption about the portal lives here.

    Stages read the page through :mod:`app.esaj.page_reader` or through the
    live Playwright helpers, both of which take their selectors from this
    object, so a portal redesign is absorbed in one place.
    """

    # Search form
    other_identifier_radio: str = "input#radioNumeroAntigo"
    protocol_input: str = "input#nuProcessoAntigoFormatado"
    submit_button: str = "input#botaoConsultarProcessos"

    # Result page classification
    result_structure: str = (
        'table, .processo, .dados-processo, [class*="processo"], [id*="processo"]'
    )
    success_tokens: Tuple[str, ...] = (
        "processo encontrado",
        "dados do processo",
        "número do processo",
        "classe",
        "assunto",
        "status",
        "andamentos",
    )
    failure_tokens: Tuple[str, ...] = (
        "processo não encontrado",
        "não localizado",
        "não foi encontrado",
        "não existe",
        "inválido",
        "erro ao consultar",
    )

    # Movement history
    expand_movements_link: str = "#linkmovimentacoes"
    all_movements_table: str = "#tabelaTodasMovimentacoes"
    latest_movements_table: str = "#tabelaUltimasMovimentacoes"
    movement_row: str = "tr.containerMovimentacao"
    movement_date_cell: str = "td.dataMovimentacao"
    movement_description_cell: str = "td.descricaoMovimentacao"
    movements_fallback_section: str = (
        '[id*="moviment"], [class*="moviment"], #tabelaUltimasMovimentacoes'
    )

    # Document links inside a movement row
    document_icon: str = 'img[src*="doc.png"], img[src*="documento"], img[alt*="documento"]'
    document_link: str = (
        "a.linkMovVincProc, a[href*='abrirDocumento'], a[href*='liberarAutoPorSenha']"
    )
    document_link_markers: Tuple[str, ...] = (
        "abrirDocumento",
        "liberarAutoPorSenha",
        "cdDocumento",
    )
    # Matches both the "#liberarAutoPorSenha" fragment and the
    # liberarAutoPorSenha.do endpoint some rows link to.
    password_marker: str = "liberarAutoPorSenha"

    # Document endpoints
    direct_pdf_marker: str = "getPDF.do"
    open_document_marker: str = "abrirDocumento"
    document_id_params: Tuple[str, ...] = ("cdDocumento",)
    case_code_params: Tuple[str, ...] = ("processo.codigo", "cdProcesso")
    direct_pdf_path: str = "/pastadigital/getPDF.do"

    # Digital folder viewer
    viewer_frames: Tuple[str, ...] = (
        "iframe#documento",
        'iframe[src*="viewer"]',
        'iframe[src*="getPDF"]',
        "iframe",
    )
    digital_folder_markers: str = (
        "#divArvore, .pastaDigitalTitulo, #myMenu, iframe#documento, #esticarButton"
    )
    viewer_download_button: str = "#download"

    # Case header
    case_number_pattern: str = r"\d{7}-\d{2}\.\d{4}\.\d{1,2}\.\d{2}\.\d{4}"
    case_number_sources: str = '#numeroProcesso, [id*="numeroProcesso"], .numero-processo, h2, h3'
    metadata_rows: str = "table tr"
    metadata_labels: Tuple[Tuple[str, str], ...] = (
        ("classe", "class"),
        ("assunto", "subject"),
        ("foro", "forum"),
        ("vara", "court"),
        ("juiz", "judge"),
    )
    parties_section: str = (
        '#tablePartesPrincipais, [id*="Partes"], [id*="parte"], .partes, [class*="parte"]'
    )
    party_keywords: Tuple[str, ...] = ("reqte", "reqdo", "autor", "réu", "advogado")


ESAJ_SELECTORS = ESAJSelectors()

__all__ = ["ESAJSelectors", "ESAJ_SELECTORS"]
