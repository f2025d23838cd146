"""
host.py - Interface do host e implementação sobre DocumentStore

Propósito:
    O host é dono do armazenamento de documentos e das configurações.
    Os plugins recebem o host em on_register() e o usam para ler
    configurações e criar/travar documentos.

Componentes principais:
    - Host: protocolo consumido pelos plugins
    - WorkspaceHost: host concreto (DocumentStore + settings do cliente)

Notas de implementação:
    - Chaves de configuração são pontilhadas: "script.hover.enable"
    - Settings vêm de workspace/didChangeConfiguration (dict aninhado)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from embedded_script_lsp.documents import Document, DocumentLock, DocumentStore

logger = logging.getLogger(__name__)


@runtime_checkable
class Host(Protocol):
    def get_config(self, key: str) -> Any:
        ...

    def open_document(
        self, uri: str, text: str, version: int = 0, language_id: str = ""
    ) -> Document:
        ...

    def lock_document(self, uri: str) -> DocumentLock:
        ...

    def close_document(self, uri: str) -> bool:
        ...


class WorkspaceHost:
    """Host concreto usado pelo servidor LSP."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        settings: Optional[Dict[str, Any]] = None,
    ):
        self.store = store if store is not None else DocumentStore()
        self.settings: Dict[str, Any] = dict(settings or {})

    def get_config(self, key: str, default: Any = None) -> Any:
        """Busca chave pontilhada nas settings; retorna default se ausente."""
        node: Any = self.settings
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def update_settings(self, settings: Optional[Dict[str, Any]]) -> None:
        self.settings = dict(settings or {})
        logger.info(f"Settings atualizadas: {sorted(self.settings)}")

    def open_document(
        self, uri: str, text: str, version: int = 0, language_id: str = ""
    ) -> Document:
        return self.store.open_document(uri, text, version, language_id)

    def lock_document(self, uri: str) -> DocumentLock:
        return self.store.lock(uri)

    def close_document(self, uri: str) -> bool:
        return self.store.close(uri)
