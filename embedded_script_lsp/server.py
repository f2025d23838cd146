"""
server.py - Servidor LSP para scripts embutidos em documentos de markup

Propósito:
    Servidor Language Server Protocol que fornece diagnósticos, hover,
    document symbols e completions para o bloco <script> de documentos
    de markup (HTML e afins), delegando ao ScriptPlugin.

Componentes principais:
    - EmbeddedScriptLanguageServer: servidor pygls com host e plugin
    - validate_document: publica diagnósticos do fragmento de script
    - Event handlers: did_open, did_change, did_close, configuração

Dependências críticas:
    - pygls: Framework LSP
    - embedded_script_lsp.plugin: Ponte de fragmentos

Exemplo de uso:
    embedded-script-lsp

Notas de implementação:
    - Comunica via STDIO (entrada/saída padrão)
    - O documento do cliente é espelhado no DocumentStore do host
    - Consultas fora do bloco <script> retornam resultado vazio
    - Tratamento robusto de exceções (nunca crasha)
    - Configuração em settings["script"] (didChangeConfiguration)
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from lsprotocol.types import (
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DOCUMENT_SYMBOL,
    TEXT_DOCUMENT_HOVER,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    DidChangeConfigurationParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DocumentSymbolParams,
    HoverParams,
)
from pygls.server import LanguageServer
from pygls.workspace import PositionCodec

from embedded_script_lsp import __version__
from embedded_script_lsp.cache import document_identity
from embedded_script_lsp.documents import Document, FragmentDocument, find_script_fragment
from embedded_script_lsp.host import WorkspaceHost
from embedded_script_lsp.plugin import PLUGIN_ID, ScriptPlugin, ScriptPluginConfig

# Configuração de logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class EmbeddedScriptLanguageServer(LanguageServer):
    """
    Servidor LSP com um host e o plugin de script registrado.

    Attributes:
        host: WorkspaceHost (store de documentos + settings)
        plugin: ScriptPlugin registrado no host
        open_documents: URIs abertos pelo cliente (para revalidação)
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.host: WorkspaceHost = WorkspaceHost()
        self.plugin: ScriptPlugin = ScriptPlugin()
        self.plugin.on_register(self.host)
        self.open_documents: set[str] = set()


# Instância global do servidor
server = EmbeddedScriptLanguageServer("embedded-script-lsp", f"v{__version__}")


def _sync_document(ls: EmbeddedScriptLanguageServer, uri: str) -> Document:
    """Copia texto, versão e codec de posições do documento do cliente para o store."""
    text_document = ls.workspace.get_text_document(uri)
    document = ls.host.open_document(
        uri=uri,
        text=text_document.source,
        version=text_document.version or 0,
        language_id=text_document.language_id or "",
    )
    codec = getattr(text_document, "position_codec", None)
    if isinstance(codec, PositionCodec):
        document.position_codec = codec
    return document


def _script_fragment(ls: EmbeddedScriptLanguageServer, uri: str) -> Optional[FragmentDocument]:
    document = ls.host.store.get(uri) or _sync_document(ls, uri)
    return find_script_fragment(document)


def validate_document(ls: EmbeddedScriptLanguageServer, uri: str) -> None:
    """
    Sincroniza o documento e publica diagnósticos do bloco <script>.

    Tratamento de Erros:
        - Captura exceções para evitar crash do servidor
        - Em caso de erro, limpa os diagnósticos do documento
    """
    try:
        document = _sync_document(ls, uri)
        ls.open_documents.add(uri)

        fragment = find_script_fragment(document)
        diagnostics = ls.plugin.get_diagnostics(fragment) if fragment else []

        logger.debug(f"Publishing {len(diagnostics)} diagnostics for {uri}")
        ls.publish_diagnostics(uri, diagnostics)
    except Exception as e:
        logger.error(f"Erro ao validar {uri}: {e}", exc_info=True)
        ls.publish_diagnostics(uri, [])


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: EmbeddedScriptLanguageServer, params: DidOpenTextDocumentParams) -> None:
    logger.info(f"Documento aberto: {params.text_document.uri}")
    validate_document(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: EmbeddedScriptLanguageServer, params: DidChangeTextDocumentParams) -> None:
    logger.debug(f"Documento modificado: {params.text_document.uri}")
    validate_document(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: EmbeddedScriptLanguageServer, params: DidCloseTextDocumentParams) -> None:
    """
    Handler para fechamento de documento.

    Limpa diagnósticos, descarta o contexto de análise (liberando o
    documento virtual) e remove o documento do store.
    """
    uri = params.text_document.uri
    logger.info(f"Documento fechado: {uri}")

    ls.publish_diagnostics(uri, [])
    ls.open_documents.discard(uri)

    document = ls.host.store.get(uri)
    if document is not None:
        try:
            identity = document_identity(document)
        except ValueError as e:
            logger.warning(f"Documento sem contexto de análise: {e}")
        else:
            ls.plugin.cache.invalidate(identity)
    ls.host.close_document(uri)


@server.feature(WORKSPACE_DID_CHANGE_CONFIGURATION)
def did_change_configuration(
    ls: EmbeddedScriptLanguageServer, params: DidChangeConfigurationParams
) -> None:
    """
    Atualiza as flags do plugin e revalida os documentos abertos.

    settings pode vir como {"script": {...}} ou já ser a seção.
    """
    try:
        settings = params.settings if isinstance(params.settings, dict) else {}
        section = settings.get(PLUGIN_ID, settings)
        if not isinstance(section, dict):
            section = {}

        ls.host.update_settings({PLUGIN_ID: section})
        ls.plugin.update_config(ScriptPluginConfig.from_settings(section))

        for doc_uri in list(ls.open_documents):
            validate_document(ls, doc_uri)
    except Exception as e:
        logger.error(f"Erro ao processar mudança de configuração: {e}", exc_info=True)


@server.feature(TEXT_DOCUMENT_HOVER)
def hover(ls: EmbeddedScriptLanguageServer, params: HoverParams):
    uri = params.text_document.uri
    try:
        fragment = _script_fragment(ls, uri)
        if fragment is None or not fragment.contains(params.position):
            return None
        return ls.plugin.do_hover(fragment, params.position)
    except Exception as e:
        logger.error(f"Hover falhou para {uri}: {e}", exc_info=True)
        return None


@server.feature(TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(ls: EmbeddedScriptLanguageServer, params: DocumentSymbolParams) -> list:
    """Símbolos do bloco <script> para outline/breadcrumb do editor."""
    uri = params.text_document.uri
    try:
        fragment = _script_fragment(ls, uri)
        if fragment is None:
            return []
        return ls.plugin.get_document_symbols(fragment)
    except Exception as e:
        logger.error(f"Document symbols falhou para {uri}: {e}", exc_info=True)
        return []


@server.feature(
    TEXT_DOCUMENT_COMPLETION,
    CompletionOptions(trigger_characters=["."]),
)
def completion(ls: EmbeddedScriptLanguageServer, params: CompletionParams) -> CompletionList:
    uri = params.text_document.uri

    trigger_char = None
    if params.context:
        trigger_char = getattr(params.context, "trigger_character", None)

    try:
        fragment = _script_fragment(ls, uri)
        if fragment is None or not fragment.contains(params.position):
            return CompletionList(is_incomplete=False, items=[])
        items = ls.plugin.get_completions(fragment, params.position, trigger_char)
    except Exception as e:
        logger.error(f"Completion falhou para {uri}: {e}", exc_info=True)
        items = []

    return CompletionList(is_incomplete=False, items=items)


def main() -> None:
    """
    Ponto de entrada principal do servidor.

    Inicia servidor LSP em modo STDIO.
    """
    logger.info("Iniciando Embedded Script Language Server...")
    logger.info("Python executable: %s", sys.executable)
    logger.info("embedded-script-lsp: %s", __version__)
    server.start_io()


if __name__ == "__main__":
    main()
