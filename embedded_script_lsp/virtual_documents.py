"""
virtual_documents.py - Criação de documentos virtuais para fragmentos

Propósito:
    O motor de análise só entende arquivos inteiros. Para cada fragmento,
    criamos no store do host um documento "standalone" com o texto do
    fragmento, sob um nome de arquivo sintético, e o travamos para que o
    host não o remova enquanto um contexto de análise depende dele.

Notas de implementação:
    - URI = file URI do nome sintético (pygls.uris.from_fs_path)
    - language_id vazio, versão 0
    - O host deduplica por URI; esta fábrica não faz cache
    - discard() fecha o documento; se outro contexto ainda o trava
      (mesma URI), o host o mantém
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pygls.uris import from_fs_path

from embedded_script_lsp.documents import Document, DocumentLock

logger = logging.getLogger(__name__)


@dataclass
class VirtualDocument:
    """Documento virtual e o token de lock que o mantém vivo."""

    file_name: str
    document: Document
    lock: DocumentLock

    @property
    def uri(self) -> str:
        return self.document.uri

    def release(self) -> None:
        self.lock.release()


class VirtualDocumentFactory:
    def __init__(self, host):
        self.host = host

    def ensure(self, file_name: str, content: str) -> VirtualDocument:
        uri = from_fs_path(file_name) if file_name else None
        if not uri:
            raise ValueError(f"Nome de arquivo sintético inválido: {file_name!r}")

        document = self.host.open_document(
            uri=uri, text=content, version=0, language_id=""
        )
        lock = self.host.lock_document(uri)
        logger.debug(f"Documento virtual criado: {uri}")
        return VirtualDocument(file_name=file_name, document=document, lock=lock)

    def discard(self, virtual_document: VirtualDocument) -> bool:
        """Libera o lock e fecha o documento se ninguém mais o trava."""
        virtual_document.release()
        closed = self.host.close_document(virtual_document.uri)
        if closed:
            logger.debug(f"Documento virtual fechado: {virtual_document.uri}")
        return closed
