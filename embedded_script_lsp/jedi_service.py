"""
jedi_service.py - Motor de análise baseado em jedi/parso

Propósito:
    Implementa o protocolo LanguageService para fragmentos Python usando
    jedi (inferência, completions, navegação) e parso (árvore sintática).
    Converte as posições (linha 1-based, coluna 0-based) do jedi para
    offsets lineares no documento virtual.

Mapeamento de tipos jedi → ScriptElementKind:
    class     → class (local class dentro de função)
    function  → function / method (em classe) / constructor (__init__) /
                local function (dentro de função)
    module    → alias (imports)
    statement → var / const (nome em maiúsculas) / property (em classe) /
                local var (em função)

Notas de implementação:
    - Um jedi.Script por versão do arquivo (reaproveitado entre consultas)
    - Diagnósticos semânticos: referências que jedi não resolve
    - sort_text é o ranking do jedi com zeros à esquerda
"""

from __future__ import annotations

import bisect
import logging
import os
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

import jedi
import parso

from embedded_script_lsp.engine import (
    CompletionEntry,
    CompletionInfo,
    CompletionOptions,
    DiagnosticCategory,
    EngineDiagnostic,
    NavigationTree,
    QuickInfo,
    ScriptElementKind as Kind,
    SingleFileServiceHost,
    SymbolDisplayPart,
    TextSpan,
)

logger = logging.getLogger(__name__)

_CLASS_KINDS = {Kind.CLASS, Kind.LOCAL_CLASS}
_FUNCTION_KINDS = {Kind.FUNCTION, Kind.LOCAL_FUNCTION, Kind.METHOD, Kind.CONSTRUCTOR}
_SKIPPED_ANCESTORS = {"import_name", "import_from", "global_stmt", "nonlocal_stmt"}

SYNTAX_ERROR_CODE = 1001
UNDEFINED_NAME_CODE = 2001


class _LineIndex:
    """Conversão entre offsets e (linha 1-based, coluna 0-based)."""

    def __init__(self, text: str):
        self._length = len(text)
        self._starts = [0] + [m.end() for m in re.finditer(r"\r\n|\r|\n", text)]

    def offset(self, line: int, column: int) -> int:
        index = line - 1
        if index >= len(self._starts):
            return self._length
        return min(self._starts[max(index, 0)] + column, self._length)

    def line_column(self, offset: int) -> tuple[int, int]:
        if offset < 0 or offset > self._length:
            raise ValueError(f"Offset {offset} fora do arquivo (0..{self._length})")
        index = bisect.bisect_right(self._starts, offset) - 1
        return index + 1, offset - self._starts[index]


@dataclass
class _ParsedScript:
    version: str
    code: str
    script: jedi.Script
    module: object  # parso Module
    index: _LineIndex


def _iter_leaves(module) -> Iterator:
    leaf = module.get_first_leaf()
    while leaf is not None:
        yield leaf
        leaf = leaf.get_next_leaf()


def _has_ancestor(leaf, types: set) -> bool:
    node = leaf.parent
    while node is not None:
        if node.type in types:
            return True
        node = node.parent
    return False


def _is_reference(leaf) -> bool:
    """Verifica se um leaf 'name' é uso de nome que precisa resolver."""
    if leaf.type != "name" or leaf.is_definition():
        return False
    if leaf.value.startswith("__") and leaf.value.endswith("__"):
        return False

    previous = leaf.get_previous_leaf()
    if previous is not None and previous.value == ".":
        return False

    # Argumento nomeado: f(x=1)
    parent = leaf.parent
    if (
        parent.type == "argument"
        and parent.children[0] is leaf
        and len(parent.children) > 1
        and getattr(parent.children[1], "value", None) == "="
    ):
        return False

    return not _has_ancestor(leaf, _SKIPPED_ANCESTORS)


class JediLanguageService:
    """LanguageService de um único arquivo virtual."""

    def __init__(self, host: SingleFileServiceHost):
        self.host = host
        self._parsed: Optional[_ParsedScript] = None

    def _get(self, file_name: str) -> _ParsedScript:
        version = self.host.get_script_version(file_name)
        if self._parsed is None or self._parsed.version != version:
            code = self.host.get_script_snapshot(file_name)
            self._parsed = _ParsedScript(
                version=version,
                code=code,
                script=jedi.Script(code, path=file_name),
                module=parso.parse(code),
                index=_LineIndex(code),
            )
            logger.debug(f"jedi.Script criado para {file_name} (versão {version})")
        return self._parsed

    def get_syntactic_diagnostics(self, file_name: str) -> List[EngineDiagnostic]:
        parsed = self._get(file_name)
        diagnostics: List[EngineDiagnostic] = []
        for error in parsed.script.get_syntax_errors():
            start = parsed.index.offset(error.line, error.column)
            end = parsed.index.offset(error.until_line, error.until_column)
            diagnostics.append(
                EngineDiagnostic(
                    message_text=error.get_message(),
                    start=start,
                    length=max(0, end - start),
                    category=DiagnosticCategory.ERROR,
                    code=SYNTAX_ERROR_CODE,
                )
            )
        return diagnostics

    def get_semantic_diagnostics(self, file_name: str) -> List[EngineDiagnostic]:
        parsed = self._get(file_name)
        diagnostics: List[EngineDiagnostic] = []
        for leaf in _iter_leaves(parsed.module):
            if not _is_reference(leaf):
                continue
            line, column = leaf.start_pos
            if parsed.script.goto(line, column):
                continue
            start = parsed.index.offset(line, column)
            diagnostics.append(
                EngineDiagnostic(
                    message_text=f"Name '{leaf.value}' is not defined",
                    start=start,
                    length=len(leaf.value),
                    category=DiagnosticCategory.ERROR,
                    code=UNDEFINED_NAME_CODE,
                )
            )
        return diagnostics

    def _name_leaf_at(self, parsed: _ParsedScript, line: int, column: int):
        candidates = [(line, column)]
        if column > 0:
            candidates.append((line, column - 1))
        for position in candidates:
            try:
                leaf = parsed.module.get_leaf_for_position(position, include_prefixes=False)
            except ValueError:
                continue
            if leaf is not None and leaf.type == "name":
                return leaf
        return None

    def get_quick_info_at_position(
        self, file_name: str, offset: int
    ) -> Optional[QuickInfo]:
        parsed = self._get(file_name)
        line, column = parsed.index.line_column(offset)
        leaf = self._name_leaf_at(parsed, line, column)
        if leaf is None:
            return None

        names = parsed.script.infer(*leaf.start_pos) or parsed.script.goto(*leaf.start_pos)
        if not names:
            return None
        name = names[0]

        start = parsed.index.offset(*leaf.start_pos)
        end = parsed.index.offset(*leaf.end_pos)
        docstring = name.docstring(raw=True)

        return QuickInfo(
            kind=name.type,
            text_span=TextSpan(start=start, length=end - start),
            display_parts=[SymbolDisplayPart(_display_text(leaf.value, name))],
            documentation=[SymbolDisplayPart(docstring, "text")] if docstring else [],
        )

    def get_navigation_tree(self, file_name: str) -> NavigationTree:
        parsed = self._get(file_name)
        root = NavigationTree(
            text=os.path.basename(file_name),
            kind=Kind.MODULE.value,
            spans=[TextSpan(start=0, length=len(parsed.code))],
        )
        root.child_items = [
            self._navigation_item(parsed, name, Kind.MODULE)
            for name in parsed.script.get_names(all_scopes=False, definitions=True)
            if name.type != "param"
        ]
        return root

    def _navigation_item(self, parsed: _ParsedScript, name, parent_kind: Kind) -> NavigationTree:
        kind = _navigation_kind(name, parent_kind)
        node = NavigationTree(text=name.name, kind=kind.value, spans=_name_spans(parsed, name))
        if kind in _CLASS_KINDS or kind in _FUNCTION_KINDS:
            node.child_items = [
                self._navigation_item(parsed, child, kind)
                for child in name.defined_names()
                if child.type != "param" and child.module_path == name.module_path
            ]
        return node

    def get_completions_at_position(
        self, file_name: str, offset: int, options: Optional[CompletionOptions] = None
    ) -> Optional[CompletionInfo]:
        parsed = self._get(file_name)
        options = options or CompletionOptions()
        line, column = parsed.index.line_column(offset)

        completions = parsed.script.complete(line, column)
        if not completions:
            return None

        after_dot = options.trigger_character == "." or parsed.code[:offset].endswith(".")
        entries = [
            CompletionEntry(
                name=completion.name,
                kind=_completion_kind(completion, after_dot).value,
                sort_text=f"{rank:05d}",
            )
            for rank, completion in enumerate(completions)
        ]
        return CompletionInfo(entries=entries)


def _name_spans(parsed: _ParsedScript, name) -> List[TextSpan]:
    start = name.get_definition_start_position()
    end = name.get_definition_end_position()
    if start is None or end is None:
        if name.line is None:
            return []
        start = (name.line, name.column)
        end = (name.line, name.column + len(name.name))
    start_offset = parsed.index.offset(*start)
    end_offset = parsed.index.offset(*end)
    return [TextSpan(start=start_offset, length=max(0, end_offset - start_offset))]


def _navigation_kind(name, parent_kind: Kind) -> Kind:
    in_class = parent_kind in _CLASS_KINDS
    in_function = parent_kind in _FUNCTION_KINDS

    if name.type == "class":
        return Kind.LOCAL_CLASS if in_function else Kind.CLASS
    if name.type == "function":
        if in_class:
            return Kind.CONSTRUCTOR if name.name == "__init__" else Kind.METHOD
        return Kind.LOCAL_FUNCTION if in_function else Kind.FUNCTION
    if name.type == "module":
        return Kind.ALIAS
    if name.type == "property":
        return Kind.GETTER
    if in_class:
        return Kind.MEMBER_VARIABLE
    if in_function:
        return Kind.LOCAL_VARIABLE
    if name.name.isupper():
        return Kind.CONST
    return Kind.VARIABLE


def _completion_kind(completion, after_dot: bool) -> Kind:
    kinds = {
        "module": Kind.MODULE,
        "class": Kind.CLASS,
        "instance": Kind.VARIABLE,
        "statement": Kind.VARIABLE,
        "param": Kind.PARAMETER,
        "keyword": Kind.KEYWORD,
        "property": Kind.MEMBER_VARIABLE,
    }
    if completion.type == "function":
        return Kind.METHOD if after_dot else Kind.FUNCTION
    if completion.type == "path":
        return Kind.DIRECTORY if completion.name.endswith(("/", os.sep)) else Kind.STRING
    return kinds.get(completion.type, Kind.VARIABLE)


def _display_text(word: str, name) -> str:
    """Texto de hover: assinatura para callables, 'nome: tipo' para valores."""
    if name.type in ("function", "class"):
        signatures = name.get_signatures()
        prefix = "def" if name.type == "function" else "class"
        if signatures:
            return f"{prefix} {signatures[0].to_string()}"
        return f"{prefix} {name.name}"
    if name.type == "module":
        return f"module {name.full_name or name.name}"
    if name.type == "instance":
        return f"{word}: {name.name}"
    return name.description or word
