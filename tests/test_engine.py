"""
test_engine.py - Testes para helpers do contrato do motor

Componentes testados:
    - flatten_diagnostic_message_text
    - display_parts_to_string
    - SingleFileServiceHost
    - ScriptKind.extension
"""

from __future__ import annotations

import pytest

from embedded_script_lsp.documents import Document
from embedded_script_lsp.engine import (
    DiagnosticMessageChain,
    ScriptKind,
    SingleFileServiceHost,
    SymbolDisplayPart,
    TextSpan,
    display_parts_to_string,
    flatten_diagnostic_message_text,
)


def test_flatten_plain_string():
    assert flatten_diagnostic_message_text("mensagem") == "mensagem"


def test_flatten_none():
    assert flatten_diagnostic_message_text(None) == ""


def test_flatten_nested_chain():
    chain = DiagnosticMessageChain(
        "topo",
        [
            DiagnosticMessageChain("filho 1", [DiagnosticMessageChain("neto")]),
            DiagnosticMessageChain("filho 2"),
        ],
    )
    assert flatten_diagnostic_message_text(chain) == "topo\n  filho 1\n    neto\n  filho 2"


def test_flatten_custom_newline():
    chain = DiagnosticMessageChain("a", [DiagnosticMessageChain("b")])
    assert flatten_diagnostic_message_text(chain, " | ") == "a |   b"


def test_display_parts_to_string():
    parts = [SymbolDisplayPart("def", "keyword"), SymbolDisplayPart(" "), SymbolDisplayPart("f()")]
    assert display_parts_to_string(parts) == "def f()"
    assert display_parts_to_string([]) == ""
    assert display_parts_to_string(None) == ""


def test_text_span_end():
    assert TextSpan(start=3, length=4).end == 7


def test_script_kind_extension():
    assert ScriptKind.PLAIN.extension == ".py"
    assert ScriptKind.TYPED.extension == ".typed.py"
    assert ScriptKind.PLAIN.value == "untyped"
    assert ScriptKind.TYPED.value == "typed"


def test_single_file_service_host():
    document = Document("file:///tmp/a.html.py", "x = 1", version=0)
    host = SingleFileServiceHost("/tmp/a.html.py", document, ScriptKind.PLAIN)

    assert host.get_script_file_names() == ["/tmp/a.html.py"]
    assert host.get_script_snapshot("/tmp/a.html.py") == "x = 1"
    assert host.get_script_version("/tmp/a.html.py") == "0"
    assert host.get_script_kind("/tmp/a.html.py") is ScriptKind.PLAIN


def test_single_file_service_host_captures_text_and_version():
    document = Document("file:///tmp/a.html.py", "x = 1", version=3)
    host = SingleFileServiceHost("/tmp/a.html.py", document, ScriptKind.PLAIN)
    document.update("outro texto", 4)

    assert host.get_script_snapshot("/tmp/a.html.py") == "x = 1"
    assert host.get_script_version("/tmp/a.html.py") == "3"


def test_single_file_service_host_explicit_content():
    document = Document("file:///tmp/a.html.py", "documento", version=0)
    host = SingleFileServiceHost(
        "/tmp/a.html.py", document, ScriptKind.PLAIN, content="fragmento"
    )
    assert host.get_script_snapshot("/tmp/a.html.py") == "fragmento"


def test_single_file_service_host_rejects_other_files():
    document = Document("file:///tmp/a.html.py", "", version=0)
    host = SingleFileServiceHost("/tmp/a.html.py", document, ScriptKind.PLAIN)

    with pytest.raises(ValueError):
        host.get_script_snapshot("/tmp/outro.py")
