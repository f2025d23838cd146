"""
symbols.py - Document symbols a partir da árvore de navegação do motor

Propósito:
    Achata a árvore de navegação (hierárquica) em SymbolInformation[]
    com o container de cada símbolo corrigido para o editor.

Algoritmo:
    - Percurso em pré-ordem
    - Nó com spans gera um símbolo do início do primeiro span ao fim do
      último (cobre nós fragmentados), com o nome do nó pai como container
    - Nó sem spans não gera símbolo, mas os filhos são visitados com o
      nome dele como container
    - A raiz é o módulo sintético: não é emitida, e quem tem a raiz como
      container passa a ter TOP_LEVEL_CONTAINER

Notas de implementação:
    - A raiz recebe o nome do arquivo virtual, que não significa nada
      para o editor; por isso o rótulo fixo
    - Árvore sem spans retorna lista vazia
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from lsprotocol.types import Location, Range, SymbolInformation

from embedded_script_lsp.converters import symbol_kind_from_string
from embedded_script_lsp.engine import NavigationTree

logger = logging.getLogger(__name__)

TOP_LEVEL_CONTAINER = "script"


def collect_symbols(
    tree: NavigationTree,
    container: Optional[str],
    document,
    callback: Callable[[NavigationTree, SymbolInformation], None],
) -> None:
    """Emite (nó, símbolo) em pré-ordem para cada nó com spans."""
    if tree.spans:
        start = tree.spans[0]
        end = tree.spans[-1]
        callback(
            tree,
            SymbolInformation(
                name=tree.text,
                kind=symbol_kind_from_string(tree.kind),
                location=Location(
                    uri=document.get_url(),
                    range=Range(
                        start=document.position_at(start.start),
                        end=document.position_at(end.start + end.length),
                    ),
                ),
                container_name=container,
            ),
        )

    for child in tree.child_items or []:
        collect_symbols(child, tree.text, document, callback)


def flatten_navigation_tree(tree: NavigationTree, document) -> List[SymbolInformation]:
    """
    Converte a árvore de navegação em lista plana de símbolos.

    Args:
        tree: Raiz da árvore de navegação do motor
        document: Documento do fragmento (position_at em espaço do host)

    Returns:
        SymbolInformation[] sem a raiz, em pré-ordem
    """
    symbols: List[SymbolInformation] = []

    def add(node: NavigationTree, symbol: SymbolInformation) -> None:
        if node is not tree:
            symbols.append(symbol)

    collect_symbols(tree, None, document, add)

    top_container_name = tree.text
    for symbol in symbols:
        if symbol.container_name == top_container_name:
            symbol.container_name = TOP_LEVEL_CONTAINER

    return symbols
