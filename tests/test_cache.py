"""
test_cache.py - Testes unitários para AnalysisContextCache

Propósito:
    Validar reutilização por identidade+versão, reconstrução quando a
    versão muda, criação/lock de documentos virtuais e liberação do lock
    ao substituir ou invalidar um contexto. Usa um motor falso (sem jedi).
"""

from __future__ import annotations

import pytest

from embedded_script_lsp.cache import AnalysisContextCache, ContextKey, document_identity
from embedded_script_lsp.documents import Document, find_script_fragment
from embedded_script_lsp.engine import ScriptKind
from embedded_script_lsp.host import WorkspaceHost
from embedded_script_lsp.virtual_documents import VirtualDocumentFactory

URI = "file:///tmp/site/page.html"


class FakeService:
    """Motor mínimo: guarda o service host recebido."""

    def __init__(self, service_host):
        self.service_host = service_host


class CountingFactory(VirtualDocumentFactory):
    def __init__(self, host):
        super().__init__(host)
        self.calls = []

    def ensure(self, file_name, content):
        self.calls.append((file_name, content))
        return super().ensure(file_name, content)


def _fragment(version=1, body="x = 1", attrs=""):
    text = f"<div></div>\n<script{attrs}>{body}</script>\n"
    return find_script_fragment(Document(URI, text, version=version))


def _cache():
    host = WorkspaceHost()
    factory = CountingFactory(host)
    return AnalysisContextCache(factory, FakeService), factory, host


def test_same_version_returns_same_instance():
    cache, factory, _ = _cache()
    fragment = _fragment(version=1)

    first = cache.get_or_create(fragment)
    second = cache.get_or_create(fragment)

    assert first is second
    assert len(factory.calls) == 1


def test_version_change_rebuilds():
    cache, factory, _ = _cache()
    old = cache.get_or_create(_fragment(version=1, body="x = 1"))
    new = cache.get_or_create(_fragment(version=2, body="x = 2"))

    assert new is not old
    assert new.key == ContextKey(identity="/tmp/site/page.html", version=2)
    assert len(factory.calls) == 2
    # O contexto antigo nunca volta
    assert cache.get_or_create(_fragment(version=2, body="x = 2")) is new
    assert cache.get("/tmp/site/page.html") is new
    assert len(cache) == 1


def test_virtual_document_name_and_content():
    cache, factory, host = _cache()
    context = cache.get_or_create(_fragment(body="y = 3"))

    assert context.file_name == "/tmp/site/page.html.py"
    assert context.script_kind is ScriptKind.PLAIN
    assert factory.calls == [("/tmp/site/page.html.py", "y = 3")]

    virtual = host.store.get("file:///tmp/site/page.html.py")
    assert virtual is context.virtual_document.document
    assert virtual.get_text() == "y = 3"
    assert virtual.version == 0
    assert virtual.language_id == ""


def test_typed_script_uses_typed_extension():
    cache, _, _ = _cache()
    context = cache.get_or_create(_fragment(attrs=' lang="typed"'))

    assert context.script_kind is ScriptKind.TYPED
    assert context.file_name == "/tmp/site/page.html.typed.py"


def test_service_bound_to_single_virtual_file():
    cache, _, _ = _cache()
    context = cache.get_or_create(_fragment(body="z = 9"))
    service_host = context.service.service_host

    assert service_host.get_script_file_names() == [context.file_name]
    assert service_host.get_script_snapshot(context.file_name) == "z = 9"


def test_virtual_document_locked_while_cached():
    cache, _, host = _cache()
    context = cache.get_or_create(_fragment())
    uri = context.virtual_document.uri

    assert host.store.is_locked(uri)
    assert host.close_document(uri) is False


def test_rebuild_releases_old_lock_only():
    """Novo contexto com a mesma URI mantém exatamente um lock."""
    cache, _, host = _cache()
    old = cache.get_or_create(_fragment(version=1))
    cache.get_or_create(_fragment(version=2))

    assert old.virtual_document.lock.released
    assert host.store.is_locked(old.virtual_document.uri)
    assert host.store._locks[old.virtual_document.uri] == 1


def test_kind_change_unlocks_previous_virtual_document():
    cache, _, host = _cache()
    plain = cache.get_or_create(_fragment(version=1))
    typed = cache.get_or_create(_fragment(version=2, attrs=' lang="typed"'))

    assert plain.virtual_document.uri != typed.virtual_document.uri
    assert not host.store.is_locked(plain.virtual_document.uri)
    assert host.store.is_locked(typed.virtual_document.uri)


def test_kind_change_closes_previous_virtual_document():
    """Trocar .py por .typed.py não deixa o documento antigo no store."""
    cache, _, host = _cache()
    plain = cache.get_or_create(_fragment(version=1))
    typed = cache.get_or_create(_fragment(version=2, attrs=' lang="typed"'))

    assert host.store.get(plain.virtual_document.uri) is None
    assert host.store.get(typed.virtual_document.uri) is typed.virtual_document.document
    assert len(host.store) == 1


def test_same_uri_rebuild_keeps_virtual_document_open():
    cache, _, host = _cache()
    cache.get_or_create(_fragment(version=1))
    new = cache.get_or_create(_fragment(version=2, body="x = 2"))

    assert host.store.get(new.virtual_document.uri) is new.virtual_document.document
    assert new.virtual_document.document.get_text() == "x = 2"


def test_replaced_context_keeps_its_own_text():
    """Contexto antigo ainda em uso não enxerga o texto da versão nova."""
    cache, _, host = _cache()
    old = cache.get_or_create(_fragment(version=1, body="x = 1\n"))
    new = cache.get_or_create(_fragment(version=2, body="def (:\n" * 3 + "y = 22222222\n"))

    shared = host.store.get(old.virtual_document.uri)
    assert shared.get_text().startswith("def (:")
    assert old.service.service_host.get_script_snapshot(old.file_name) == "x = 1\n"
    assert new.service.service_host.get_script_snapshot(new.file_name).startswith("def (:")


def test_invalidate_releases_and_forgets():
    cache, factory, host = _cache()
    context = cache.get_or_create(_fragment())

    cache.invalidate("/tmp/site/page.html")

    assert "/tmp/site/page.html" not in cache
    assert not host.store.is_locked(context.virtual_document.uri)
    assert host.store.get(context.virtual_document.uri) is None
    cache.get_or_create(_fragment())
    assert len(factory.calls) == 2


def test_invalidate_missing():
    """Invalidar identidade inexistente não levanta exceção."""
    cache, _, _ = _cache()
    cache.invalidate("/nao/existe.html")


def test_identities_are_isolated():
    cache, _, _ = _cache()
    a = cache.get_or_create(_fragment())
    other = find_script_fragment(
        Document("file:///tmp/site/other.html", "<script>b = 2</script>", version=1)
    )
    b = cache.get_or_create(other)

    assert a is not b
    assert cache.get_or_create(_fragment()) is a
    assert len(cache) == 2


def test_document_identity_requires_file_path():
    class NoPath:
        def get_file_path(self):
            return None

        def get_url(self):
            return "untitled:1"

    with pytest.raises(ValueError):
        document_identity(NoPath())
