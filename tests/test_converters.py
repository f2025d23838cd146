"""
test_converters.py - Testes para conversão de spans e tipos do motor → LSP

Componentes testados:
    - to_host_range: TextSpan / {start, end} / diagnóstico sem localização
    - symbol_kind_from_string
    - script_element_kind_to_completion_item_kind
    - get_commit_characters_for_script_element
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from lsprotocol.types import CompletionItemKind, Position, Range, SymbolKind

from embedded_script_lsp.converters import (
    convert_range,
    get_commit_characters_for_script_element,
    script_element_kind_to_completion_item_kind,
    symbol_kind_from_string,
    to_host_range,
)
from embedded_script_lsp.documents import Document, find_script_fragment
from embedded_script_lsp.engine import EngineDiagnostic, ScriptElementKind, TextSpan

PAGE = "<p>titulo</p>\n<script>\nvalor = 42\n</script>\n"


def _fragment():
    return find_script_fragment(Document("file:///tmp/page.html", PAGE, version=1))


def test_text_span_to_host_range():
    """Span do motor (offset do fragmento) vira Range do documento hospedeiro."""
    fragment = _fragment()
    result = to_host_range(fragment, TextSpan(start=1, length=5))

    assert result == Range(
        start=Position(line=2, character=0),
        end=Position(line=2, character=5),
    )


def test_start_end_span():
    fragment = _fragment()
    span = SimpleNamespace(start=9, end=11)
    result = to_host_range(fragment, span)

    assert result.start == Position(line=2, character=8)
    assert result.end == Position(line=2, character=10)


def test_diagnostic_without_location_maps_to_fragment_start():
    fragment = _fragment()
    diagnostic = EngineDiagnostic(message_text="global", start=None, length=None)
    result = to_host_range(fragment, diagnostic)

    assert result.start == result.end
    assert result.start == Position(line=1, character=8)


def test_out_of_bounds_span_raises():
    fragment = _fragment()
    with pytest.raises(ValueError):
        to_host_range(fragment, TextSpan(start=0, length=500))


def test_mapping_span():
    """Span em forma de dict usa as chaves, não vira (0,0)-(0,0)."""
    fragment = _fragment()

    by_length = to_host_range(fragment, {"start": 9, "length": 2})
    by_end = to_host_range(fragment, {"start": 9, "end": 11})

    assert by_length == by_end
    assert by_length.start == Position(line=2, character=8)
    assert by_length.end == Position(line=2, character=10)


def test_mapping_span_with_null_start():
    fragment = _fragment()
    result = to_host_range(fragment, {"start": None, "length": None})
    assert result.start == result.end == Position(line=1, character=8)


@pytest.mark.parametrize("span", [{"length": 2}, SimpleNamespace(length=2), object()])
def test_span_without_start_raises(span):
    with pytest.raises(ValueError):
        to_host_range(_fragment(), span)


def test_convert_range_alias():
    assert convert_range is to_host_range


@pytest.mark.parametrize(
    "kind, expected",
    [
        ("module", SymbolKind.Module),
        ("class", SymbolKind.Class),
        ("local class", SymbolKind.Class),
        ("function", SymbolKind.Function),
        ("method", SymbolKind.Method),
        ("getter", SymbolKind.Method),
        ("property", SymbolKind.Property),
        ("constructor", SymbolKind.Constructor),
        ("const", SymbolKind.Constant),
        ("var", SymbolKind.Variable),
        ("alias", SymbolKind.Variable),
        ("algo-desconhecido", SymbolKind.Variable),
    ],
)
def test_symbol_kind_from_string(kind, expected):
    assert symbol_kind_from_string(kind) == expected


@pytest.mark.parametrize(
    "kind, expected",
    [
        ("keyword", CompletionItemKind.Keyword),
        ("const", CompletionItemKind.Constant),
        ("var", CompletionItemKind.Variable),
        ("property", CompletionItemKind.Field),
        ("function", CompletionItemKind.Function),
        ("method", CompletionItemKind.Method),
        ("module", CompletionItemKind.Module),
        ("class", CompletionItemKind.Class),
        ("directory", CompletionItemKind.Folder),
        ("string", CompletionItemKind.Constant),
        ("parameter", CompletionItemKind.Property),
        ("algo-desconhecido", CompletionItemKind.Property),
    ],
)
def test_completion_item_kind(kind, expected):
    assert script_element_kind_to_completion_item_kind(kind) == expected


def test_completion_item_kind_accepts_enum():
    assert (
        script_element_kind_to_completion_item_kind(ScriptElementKind.METHOD)
        == CompletionItemKind.Method
    )


def test_commit_characters():
    assert get_commit_characters_for_script_element("method") == [".", ",", "("]
    assert get_commit_characters_for_script_element("var") == [".", ",", "("]
    assert get_commit_characters_for_script_element("getter") == ["."]
    assert get_commit_characters_for_script_element("keyword") is None
    assert get_commit_characters_for_script_element("algo-desconhecido") is None
