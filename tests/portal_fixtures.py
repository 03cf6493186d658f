"""Snapshots of e-SAJ pages used by the reader and stage tests."""

CASE_URL = "https://esaj.tjsp.jus.br/cpopg/show.do?processo.codigo=1H0000ABC0000&processo.foro=100"

SEARCH_FORM = """
<html><body>
  <form>
    <input type="radio" id="radioNumeroUnificado" name="tipo">
    <input type="radio" id="radioNumeroAntigo" name="tipo">
    <input type="text" id="nuProcessoAntigoFormatado">
    <input type="submit" id="botaoConsultarProcessos" value="Consultar">
  </form>
</body></html>
"""

NOT_FOUND_PAGE = """
<html><body>
  <div id="mensagemRetorno">
    <li>Não existem informações disponíveis para os parâmetros informados.</li>
    <p>Processo não encontrado.</p>
  </div>
</body></html>
"""

AMBIGUOUS_PAGE = """
<html><body>
  <div><p>Aguarde, carregando...</p></div>
</body></html>
"""

NOT_FOUND_WITH_HIDDEN_SCRIPT = """
<html><head><script>var classe = 'assunto';</script></head><body>
  <p>Processo não encontrado</p>
</body></html>
"""

CASE_PAGE = """
<html><body>
  <div class="unj-entity-header">
    <span id="numeroProcesso">1000123-45.2024.8.26.0100</span>
  </div>
  <table id="dadosProcesso">
    <tr><td>Classe</td><td>Procedimento   Comum Cível</td></tr>
    <tr><td>Assunto</td><td>Indenização por Dano Moral</td></tr>
    <tr><td>Foro</td><td>Foro Central Cível</td></tr>
    <tr><td>Vara</td><td>10ª Vara Cível</td></tr>
    <tr><td>Juiz</td><td>Fulano de Tal</td></tr>
  </table>
  <table id="tablePartesPrincipais">
    <tr><td>Reqte: Maria da Silva</td></tr>
    <tr><td>Advogado: José Souza</td></tr>
    <tr><td>Reqdo: Empresa XYZ Ltda</td></tr>
    <tr><td>Reqte: Maria da Silva</td></tr>
  </table>
  <a id="linkmovimentacoes" href="javascript:void(0)">Mais</a>
  <table id="tabelaUltimasMovimentacoes">
    <tr class="containerMovimentacao">
      <td class="dataMovimentacao">20/03/2024</td>
      <td></td>
      <td class="descricaoMovimentacao">
        <a class="linkMovVincProc" id="link-sent-1"
           href="/cpopg/abrirDocumentoVinculadoMovimentacao.do?processo.codigo=1H0000ABC0000&amp;cdDocumento=555">
          Julgada Procedente a Ação
        </a>
      </td>
    </tr>
  </table>
  <table id="tabelaTodasMovimentacoes" style="display: none;">
    <tr class="containerMovimentacao">
      <td class="dataMovimentacao">20/03/2024</td>
      <td><img src="/cpopg/imagens/doc.png"></td>
      <td class="descricaoMovimentacao">
        <a class="linkMovVincProc" id="link-locked"
           href="/cpopg/liberarAutoPorSenha.do?cdDocumento=999">Sentença Registrada</a>
      </td>
    </tr>
    <tr class="containerMovimentacao">
      <td class="dataMovimentacao">15/03/2024</td>
      <td><img src="/cpopg/imagens/doc.png"></td>
      <td class="descricaoMovimentacao">
        <a class="linkMovVincProc" id="link-sent-2"
           href="/cpopg/abrirDocumentoVinculadoMovimentacao.do?processo.codigo=1H0000ABC0000&amp;cdDocumento=777">
          Sentenca Proferida
        </a>
      </td>
    </tr>
    <tr class="containerMovimentacao">
      <td class="dataMovimentacao">01/02/2024</td>
      <td></td>
      <td class="descricaoMovimentacao">Conclusos para Despacho</td>
    </tr>
    <tr class="containerMovimentacao">
      <td class="dataMovimentacao">10/01/2024</td>
      <td></td>
      <td class="descricaoMovimentacao">
        <a href="#" onclick="abrirDocumento('123'); return false;">Petição Inicial</a>
      </td>
    </tr>
  </table>
</body></html>
"""

# Same case page once the full movement table has been expanded.
CASE_PAGE_EXPANDED = CASE_PAGE.replace(
    'id="tabelaTodasMovimentacoes" style="display: none;"',
    'id="tabelaTodasMovimentacoes"',
)

LOCKED_ONLY_PAGE = """
<html><body>
  <table id="tabelaTodasMovimentacoes">
    <tr class="containerMovimentacao">
      <td class="dataMovimentacao">20/03/2024</td>
      <td class="descricaoMovimentacao">
        <a href="/cpopg/liberarAutoPorSenha.do?cdDocumento=999">Sentença Registrada</a>
      </td>
    </tr>
  </table>
</body></html>
"""

NO_MOVEMENTS_PAGE = """
<html><body>
  <div class="unj-entity-header"><h2>Consulta de Processos</h2></div>
</body></html>
"""

FALLBACK_MOVEMENTS_PAGE = """
<html><body>
  <div id="movimentacoesProcesso">
    10/01/2024
    Distribuído Livremente
  </div>
</body></html>
"""

VIEWER_PAGE = """
<html><body>
  <div id="divArvore"></div>
  <iframe id="documento"
          src="/pdf/web/viewer.html?file=%2Fpastadigital%2FgetPDF.do%3FnuSeqRecurso%3D0%26cdDocumento%3D777"></iframe>
</body></html>
"""

VIEWER_PAGE_PLAIN_FRAME = """
<html><body>
  <iframe id="documento" src="/pastadigital/getPDF.do?cdDocumento=777"></iframe>
</body></html>
"""

RESULT_WITH_HIDDEN_NOTICE = """
<html><body>
  <div id="mensagemRetorno" style="display:none">Não existem informações disponíveis para os parâmetros informados.</div>
  <table id="tabelaUltimasMovimentacoes">
    <tr class="containerMovimentacao">
      <td class="dataMovimentacao">05/03/2025</td>
      <td class="descricaoMovimentacao">Conclusos para Despacho</td>
    </tr>
  </table>
</body></html>
"""
