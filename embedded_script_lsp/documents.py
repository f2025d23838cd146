"""
documents.py - Documentos do host, fragmentos e armazenamento de documentos

Propósito:
    Modela o documento hospedeiro (markup com blocos <script>), o fragmento
    de script dentro dele e o armazenamento de documentos rastreados,
    incluindo o "lock" que impede a remoção de documentos virtuais em uso.

Componentes principais:
    - Document: texto, URI, versão, atributos; offset_at/position_at
    - FragmentDocument: sub-região de um Document em offsets locais
    - extract_fragments / find_script_fragment: localização de blocos
    - get_script_kind_from_attributes: lang/type → ScriptKind
    - DocumentStore / DocumentLock: registro de documentos com contagem
      de referências

Notas de implementação:
    - Posições são 0-based (line, character) como no LSP
    - Offsets em code points do Python; colunas das Positions em unidades
      do cliente (UTF-16 por padrão), convertidas pelo PositionCodec do pygls
    - position_at fora de [0, len(texto)] é erro do chamador (ValueError)
    - offset_at segue o LSP: coluna limitada ao fim da linha
"""

from __future__ import annotations

import bisect
import logging
import re
from typing import Dict, List, Optional

from lsprotocol.types import Position, PositionEncodingKind
from pygls.uris import to_fs_path
from pygls.workspace import PositionCodec

from embedded_script_lsp.engine import ScriptKind

logger = logging.getLogger(__name__)

_TYPED_SCRIPT_LANGS = {"typed", "typed-python", "text/typed-python"}

_RE_ELEMENT = re.compile(
    r"<(?P<tag>script|style)\b(?P<attrs>[^>]*)>(?P<body>.*?)</(?P=tag)\s*>",
    re.DOTALL | re.IGNORECASE,
)
_RE_ATTRIBUTE = re.compile(
    r"""([^\s=/>"']+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>"']+)))?"""
)


def _line_starts(text: str) -> List[int]:
    starts = [0]
    for match in re.finditer(r"\r\n|\r|\n", text):
        starts.append(match.end())
    return starts


class Document:
    """Documento rastreado pelo host."""

    def __init__(
        self,
        uri: str,
        text: str,
        version: int = 0,
        language_id: str = "",
        attributes: Optional[Dict[str, str]] = None,
        position_codec: Optional[PositionCodec] = None,
    ):
        self.uri = uri
        self.position_codec = position_codec or PositionCodec(
            encoding=PositionEncodingKind.Utf16
        )
        self.language_id = language_id
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.version = version
        self._text = text
        self._line_starts = _line_starts(text)

    def update(self, text: str, version: int) -> None:
        self._text = text
        self._line_starts = _line_starts(text)
        self.version = version

    def get_text(self) -> str:
        return self._text

    def get_url(self) -> str:
        return self.uri

    def get_file_path(self) -> Optional[str]:
        return to_fs_path(self.uri)

    def get_attributes(self) -> Dict[str, str]:
        return self.attributes

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def position_at(self, offset: int) -> Position:
        """Converte offset linear em Position (line, character)."""
        if offset < 0 or offset > len(self._text):
            raise ValueError(
                f"Offset {offset} fora do documento (0..{len(self._text)}): {self.uri}"
            )
        line = bisect.bisect_right(self._line_starts, offset) - 1
        prefix = self._text[self._line_starts[line]:offset]
        character = self.position_codec.client_num_units(prefix)
        return Position(line=line, character=character)

    def offset_at(self, position: Position) -> int:
        """
        Converte Position em offset linear, limitando à linha.

        Uma coluna no meio de um par surrogate avança para o code point
        seguinte.
        """
        if position.line >= len(self._line_starts):
            return len(self._text)
        if position.line < 0:
            return 0
        line_start = self._line_starts[position.line]
        if position.line + 1 < len(self._line_starts):
            next_line_start = self._line_starts[position.line + 1]
        else:
            next_line_start = len(self._text)
        offset = line_start
        units = 0
        while offset < next_line_start and units < position.character:
            units += self.position_codec.client_num_units(self._text[offset])
            offset += 1
        return offset


class FragmentDocument:
    """
    Região contígua de um Document (ex: o corpo de um <script>).

    Expõe as mesmas operações de documento que o host, mas com offsets
    locais ao fragmento: offset 0 é o primeiro caractere do bloco. As
    posições devolvidas continuam no espaço do documento hospedeiro.
    """

    def __init__(
        self,
        parent: Document,
        start: int,
        end: int,
        attributes: Optional[Dict[str, str]] = None,
    ):
        if not 0 <= start <= end <= len(parent.get_text()):
            raise ValueError(f"Fragmento inválido [{start}, {end}) em {parent.uri}")
        self.parent = parent
        self.start = start
        self.end = end
        self.attributes: Dict[str, str] = dict(attributes or {})

    @property
    def uri(self) -> str:
        return self.parent.uri

    @property
    def version(self) -> int:
        return self.parent.version

    def get_text(self) -> str:
        return self.parent.get_text()[self.start:self.end]

    def get_url(self) -> str:
        return self.parent.get_url()

    def get_file_path(self) -> Optional[str]:
        return self.parent.get_file_path()

    def get_attributes(self) -> Dict[str, str]:
        return self.attributes

    def position_at(self, offset: int) -> Position:
        if offset < 0 or offset > self.end - self.start:
            raise ValueError(
                f"Offset {offset} fora do fragmento (0..{self.end - self.start}): {self.uri}"
            )
        return self.parent.position_at(self.start + offset)

    def offset_at(self, position: Position) -> int:
        offset = self.parent.offset_at(position) - self.start
        if offset < 0 or offset > self.end - self.start:
            raise ValueError(
                f"Posição {position.line}:{position.character} fora do fragmento: {self.uri}"
            )
        return offset

    def contains(self, position: Position) -> bool:
        offset = self.parent.offset_at(position)
        return self.start <= offset <= self.end


def _parse_attributes(raw: str) -> Dict[str, str]:
    attributes: Dict[str, str] = {}
    for match in _RE_ATTRIBUTE.finditer(raw):
        name = match.group(1).lower()
        value = next((g for g in match.group(2, 3, 4) if g is not None), "")
        attributes[name] = value
    return attributes


def extract_fragments(document: Document) -> List[FragmentDocument]:
    """Localiza blocos <script> e <style> do documento, em ordem."""
    fragments: List[FragmentDocument] = []
    for match in _RE_ELEMENT.finditer(document.get_text()):
        attributes = _parse_attributes(match.group("attrs"))
        attributes["tag"] = match.group("tag").lower()
        fragments.append(
            FragmentDocument(
                document, match.start("body"), match.end("body"), attributes
            )
        )
    return fragments


def find_script_fragment(document: Document) -> Optional[FragmentDocument]:
    """Retorna o primeiro fragmento aceito pelo plugin de script, ou None."""
    from embedded_script_lsp.plugin import ScriptPlugin

    for fragment in extract_fragments(document):
        if ScriptPlugin.match_fragment(fragment):
            return fragment
    return None


def get_script_kind_from_attributes(attributes: Dict[str, str]) -> ScriptKind:
    """Mapeia os atributos lang/type do bloco para o tipo de script."""
    lang = (attributes.get("lang") or attributes.get("type") or "").strip().lower()
    if lang in _TYPED_SCRIPT_LANGS:
        return ScriptKind.TYPED
    return ScriptKind.PLAIN


class DocumentLock:
    """Token de posse de um documento travado; release() devolve a referência."""

    def __init__(self, store: "DocumentStore", uri: str):
        self._store = store
        self.uri = uri
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._store._unlock(self.uri)


class DocumentStore:
    """
    Armazena documentos abertos por URI.

    Documentos travados (lock count > 0) não são removidos por close();
    isso mantém vivos os documentos virtuais dos contextos de análise.
    """

    def __init__(self):
        self._documents: Dict[str, Document] = {}
        self._locks: Dict[str, int] = {}

    def open_document(
        self,
        uri: str,
        text: str,
        version: int = 0,
        language_id: str = "",
    ) -> Document:
        document = self._documents.get(uri)
        if document is not None:
            document.update(text, version)
            return document
        document = Document(uri, text, version=version, language_id=language_id)
        self._documents[uri] = document
        return document

    def get(self, uri: str) -> Optional[Document]:
        return self._documents.get(uri)

    def lock(self, uri: str) -> DocumentLock:
        if uri not in self._documents:
            raise ValueError(f"Documento não aberto: {uri}")
        self._locks[uri] = self._locks.get(uri, 0) + 1
        return DocumentLock(self, uri)

    def is_locked(self, uri: str) -> bool:
        return self._locks.get(uri, 0) > 0

    def close(self, uri: str) -> bool:
        """Remove o documento se não estiver travado. Retorna True se removeu."""
        if self.is_locked(uri):
            logger.debug(f"Documento travado, mantido no store: {uri}")
            return False
        return self._documents.pop(uri, None) is not None

    def _unlock(self, uri: str) -> None:
        count = self._locks.get(uri, 0) - 1
        if count > 0:
            self._locks[uri] = count
        else:
            self._locks.pop(uri, None)

    def __contains__(self, uri: str) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)
