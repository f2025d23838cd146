"""
converters.py - Conversão entre formas do motor e tipos LSP

Propósito:
    Converter spans e tipos nativos do motor de análise para tipos do
    protocolo LSP no espaço de coordenadas do documento hospedeiro.
    É o único ponto onde um offset do motor vira Range do host.

Componentes principais:
    - to_host_range / convert_range: span do motor → Range do host
    - symbol_kind_from_string: tipo de elemento → SymbolKind
    - script_element_kind_to_completion_item_kind: → CompletionItemKind
    - get_commit_characters_for_script_element: caracteres de commit

Dependências críticas:
    - lsprotocol.types: Tipos do protocolo LSP

Exemplo de uso:
    from embedded_script_lsp.converters import to_host_range

    range_ = to_host_range(fragment, diagnostic)

Notas de implementação:
    - Spans aceitam {start, length} ou {start, end}
    - Spans podem ser objetos (atributos) ou mappings (chaves)
    - start = None conta como 0 (diagnóstico sem localização); span sem
      start algum é erro do chamador
    - Offsets fora do documento propagam ValueError (sem clamp)
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from lsprotocol.types import CompletionItemKind, Range, SymbolKind

from embedded_script_lsp.engine import ScriptElementKind as Kind

logger = logging.getLogger(__name__)


def _has_field(span, name: str) -> bool:
    if isinstance(span, Mapping):
        return name in span
    return hasattr(span, name)


def _field(span, name: str):
    if isinstance(span, Mapping):
        return span.get(name)
    return getattr(span, name, None)


def to_host_range(document, span) -> Range:
    """
    Converte um span do motor em Range no espaço do host.

    Args:
        document: Documento com position_at(offset) (normalmente o fragmento)
        span: Objeto ou mapping com start e length, ou start e end

    Returns:
        Range LSP com posições do documento hospedeiro

    Raises:
        ValueError: span sem start, ou offset fora do documento
    """
    if not _has_field(span, "start"):
        raise ValueError(f"Span sem start: {span!r}")
    start = _field(span, "start") or 0
    length = _field(span, "length")
    if length is None:
        end = _field(span, "end")
        end = start if end is None else end
    else:
        end = start + length

    return Range(start=document.position_at(start), end=document.position_at(end))


convert_range = to_host_range


_SYMBOL_KINDS = {
    Kind.MODULE: SymbolKind.Module,
    Kind.CLASS: SymbolKind.Class,
    Kind.LOCAL_CLASS: SymbolKind.Class,
    Kind.INTERFACE: SymbolKind.Interface,
    Kind.ENUM: SymbolKind.Enum,
    Kind.ENUM_MEMBER: SymbolKind.Constant,
    Kind.VARIABLE: SymbolKind.Variable,
    Kind.LOCAL_VARIABLE: SymbolKind.Variable,
    Kind.FUNCTION: SymbolKind.Function,
    Kind.LOCAL_FUNCTION: SymbolKind.Function,
    Kind.METHOD: SymbolKind.Method,
    Kind.GETTER: SymbolKind.Method,
    Kind.SETTER: SymbolKind.Method,
    Kind.MEMBER_VARIABLE: SymbolKind.Property,
    Kind.CONSTRUCTOR: SymbolKind.Constructor,
    Kind.PARAMETER: SymbolKind.Variable,
    Kind.TYPE_PARAMETER: SymbolKind.Variable,
    Kind.ALIAS: SymbolKind.Variable,
    Kind.LET: SymbolKind.Variable,
    Kind.CONST: SymbolKind.Constant,
}


def symbol_kind_from_string(kind: str) -> SymbolKind:
    """
    Mapeia tag de tipo do motor para SymbolKind do LSP.

    Tags desconhecidas viram SymbolKind.Variable.
    """
    try:
        return _SYMBOL_KINDS.get(Kind(kind), SymbolKind.Variable)
    except ValueError:
        return SymbolKind.Variable


_COMPLETION_KINDS = {
    Kind.PRIMITIVE_TYPE: CompletionItemKind.Keyword,
    Kind.KEYWORD: CompletionItemKind.Keyword,
    Kind.CONST: CompletionItemKind.Constant,
    Kind.LET: CompletionItemKind.Variable,
    Kind.VARIABLE: CompletionItemKind.Variable,
    Kind.LOCAL_VARIABLE: CompletionItemKind.Variable,
    Kind.ALIAS: CompletionItemKind.Variable,
    Kind.MEMBER_VARIABLE: CompletionItemKind.Field,
    Kind.GETTER: CompletionItemKind.Field,
    Kind.SETTER: CompletionItemKind.Field,
    Kind.FUNCTION: CompletionItemKind.Function,
    Kind.LOCAL_FUNCTION: CompletionItemKind.Function,
    Kind.METHOD: CompletionItemKind.Method,
    Kind.CONSTRUCT_SIGNATURE: CompletionItemKind.Method,
    Kind.CALL_SIGNATURE: CompletionItemKind.Method,
    Kind.INDEX_SIGNATURE: CompletionItemKind.Method,
    Kind.ENUM: CompletionItemKind.Enum,
    Kind.MODULE: CompletionItemKind.Module,
    Kind.EXTERNAL_MODULE_NAME: CompletionItemKind.Module,
    Kind.CLASS: CompletionItemKind.Class,
    Kind.TYPE: CompletionItemKind.Class,
    Kind.INTERFACE: CompletionItemKind.Interface,
    Kind.WARNING: CompletionItemKind.Text,
    Kind.SCRIPT: CompletionItemKind.File,
    Kind.DIRECTORY: CompletionItemKind.Folder,
    Kind.STRING: CompletionItemKind.Constant,
}


def script_element_kind_to_completion_item_kind(kind: str) -> CompletionItemKind:
    """Mapeia tag de tipo do motor para CompletionItemKind (padrão: Property)."""
    try:
        return _COMPLETION_KINDS.get(Kind(kind), CompletionItemKind.Property)
    except ValueError:
        return CompletionItemKind.Property


_DOT_ONLY = {
    Kind.GETTER,
    Kind.SETTER,
    Kind.CONSTRUCT_SIGNATURE,
    Kind.CONSTRUCTOR,
    Kind.CALL_SIGNATURE,
    Kind.INDEX_SIGNATURE,
    Kind.ENUM,
    Kind.INTERFACE,
}

_DOT_COMMA_PAREN = {
    Kind.MODULE,
    Kind.ALIAS,
    Kind.CONST,
    Kind.LET,
    Kind.VARIABLE,
    Kind.LOCAL_VARIABLE,
    Kind.MEMBER_VARIABLE,
    Kind.CLASS,
    Kind.FUNCTION,
    Kind.METHOD,
}


def get_commit_characters_for_script_element(kind: str) -> Optional[List[str]]:
    """
    Caracteres que confirmam a completion ao serem digitados.

    Retorna None quando o tipo não tem caracteres de commit.
    """
    try:
        element_kind = Kind(kind)
    except ValueError:
        return None

    if element_kind in _DOT_ONLY:
        return ["."]
    if element_kind in _DOT_COMMA_PAREN:
        return [".", ",", "("]
    return None
