"""
cache.py - Cache de contextos de análise por documento

Propósito:
    Mantém um contexto de análise (documento virtual + instância do motor)
    por fragmento, para que consultas repetidas reaproveitem o estado do
    motor (parse, inferência) em vez de reconstruí-lo a cada chamada.

Componentes principais:
    - ContextKey: chave de valor (identidade do documento + versão)
    - AnalysisContext: documento virtual, motor e lock de serialização
    - AnalysisContextCache: get_or_create / invalidate

Notas de implementação:
    - A chave inclui a versão: versão diferente → contexto novo
    - Cada identidade tem no máximo um contexto em cache
    - O documento virtual antigo é liberado e fechado ao substituir o
      contexto (depois de travar o novo; com a mesma URI ele permanece)
    - O service host recebe o texto do fragmento capturado no build
    - Chamadas ao motor no mesmo contexto são serializadas por context.lock
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from embedded_script_lsp.documents import get_script_kind_from_attributes
from embedded_script_lsp.engine import LanguageService, ScriptKind, SingleFileServiceHost
from embedded_script_lsp.virtual_documents import VirtualDocument, VirtualDocumentFactory

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[SingleFileServiceHost], LanguageService]


def _default_service_factory(service_host: SingleFileServiceHost) -> LanguageService:
    from embedded_script_lsp.jedi_service import JediLanguageService

    return JediLanguageService(service_host)


@dataclass(frozen=True)
class ContextKey:
    identity: str
    version: int


@dataclass
class AnalysisContext:
    """Estado do motor ligado a um documento virtual."""

    key: ContextKey
    script_kind: ScriptKind
    virtual_document: VirtualDocument
    service: LanguageService
    lock: threading.RLock = field(default_factory=threading.RLock)
    timestamp: float = field(default_factory=time.time)

    @property
    def file_name(self) -> str:
        return self.virtual_document.file_name


def document_identity(document) -> str:
    """Identidade estável do documento: caminho do arquivo do host."""
    file_path = document.get_file_path()
    if not file_path:
        raise ValueError(f"Documento sem caminho de arquivo: {document.get_url()}")
    return file_path


class AnalysisContextCache:
    """Contextos de análise por identidade de documento."""

    def __init__(
        self,
        factory: VirtualDocumentFactory,
        service_factory: Optional[ServiceFactory] = None,
    ):
        self.factory = factory
        self.service_factory = service_factory or _default_service_factory
        self._contexts: Dict[str, AnalysisContext] = {}
        self._lock = threading.Lock()

    def get_or_create(self, document) -> AnalysisContext:
        """Retorna o contexto do documento, reconstruindo se a versão mudou."""
        identity = document_identity(document)
        key = ContextKey(identity=identity, version=document.version)

        with self._lock:
            cached = self._contexts.get(identity)
            if cached is not None and cached.key == key:
                return cached

            context = self._build(key, document)
            self._contexts[identity] = context
            if cached is not None:
                self.factory.discard(cached.virtual_document)
                logger.debug(
                    f"Contexto substituído para {identity}: "
                    f"v{cached.key.version} → v{key.version}"
                )
            else:
                logger.info(f"Contexto de análise criado para {identity}")
            return context

    def _build(self, key: ContextKey, document) -> AnalysisContext:
        script_kind = get_script_kind_from_attributes(document.get_attributes())
        file_name = key.identity + script_kind.extension
        content = document.get_text()
        virtual_document = self.factory.ensure(file_name, content)
        service_host = SingleFileServiceHost(
            file_name, virtual_document.document, script_kind, content=content
        )
        return AnalysisContext(
            key=key,
            script_kind=script_kind,
            virtual_document=virtual_document,
            service=self.service_factory(service_host),
        )

    def get(self, identity: str) -> Optional[AnalysisContext]:
        return self._contexts.get(identity)

    def invalidate(self, identity: str) -> None:
        """Remove o contexto, liberando e fechando o documento virtual."""
        with self._lock:
            context = self._contexts.pop(identity, None)
            if context is not None:
                self.factory.discard(context.virtual_document)
                logger.info(f"Contexto invalidado para {identity}")

    def __contains__(self, identity: str) -> bool:
        return identity in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)
