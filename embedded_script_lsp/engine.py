"""
engine.py - Contrato do motor de análise (formas nativas do motor)

Propósito:
    Define a interface que qualquer motor de análise precisa expor para
    ser usado pela ponte de fragmentos, e os tipos nativos que ele devolve.
    O motor trabalha sobre arquivos inteiros, endereçados por nome de
    arquivo, com offsets lineares de caractere.

Componentes principais:
    - TextSpan / EngineDiagnostic / QuickInfo / NavigationTree /
      CompletionEntry / CompletionInfo: formas nativas
    - ScriptKind: tipo de script (sem tipos / tipado)
    - ScriptElementKind: tags de tipo de elemento emitidas pelo motor
    - LanguageService: protocolo do motor
    - SingleFileServiceHost: registro mínimo de arquivos (um único arquivo)

Notas de implementação:
    - Todas as posições aqui estão em espaço do motor (offset no documento
      virtual); a conversão para o host acontece em converters.py
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, Union, runtime_checkable


class ScriptKind(Enum):
    """Tipo de script de um fragmento."""

    PLAIN = "untyped"
    TYPED = "typed"

    @property
    def extension(self) -> str:
        return ".typed.py" if self is ScriptKind.TYPED else ".py"


class ScriptElementKind(str, Enum):
    """Tags de tipo de elemento usadas em árvores de navegação e completions."""

    WARNING = "warning"
    KEYWORD = "keyword"
    SCRIPT = "script"
    MODULE = "module"
    CLASS = "class"
    LOCAL_CLASS = "local class"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    ENUM_MEMBER = "enum member"
    VARIABLE = "var"
    LOCAL_VARIABLE = "local var"
    FUNCTION = "function"
    LOCAL_FUNCTION = "local function"
    METHOD = "method"
    GETTER = "getter"
    SETTER = "setter"
    MEMBER_VARIABLE = "property"
    CONSTRUCTOR = "constructor"
    CALL_SIGNATURE = "call"
    INDEX_SIGNATURE = "index"
    CONSTRUCT_SIGNATURE = "construct"
    PARAMETER = "parameter"
    TYPE_PARAMETER = "type parameter"
    PRIMITIVE_TYPE = "primitive type"
    ALIAS = "alias"
    CONST = "const"
    LET = "let"
    DIRECTORY = "directory"
    EXTERNAL_MODULE_NAME = "external module name"
    STRING = "string"


class DiagnosticCategory(Enum):
    WARNING = 0
    ERROR = 1
    SUGGESTION = 2
    MESSAGE = 3


@dataclass
class TextSpan:
    """Intervalo semiaberto [start, start + length) em offsets do motor."""

    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length


@dataclass
class DiagnosticMessageChain:
    """Mensagem encadeada: texto principal + detalhes aninhados."""

    message_text: str
    next: List["DiagnosticMessageChain"] = field(default_factory=list)


@dataclass
class EngineDiagnostic:
    message_text: Union[str, DiagnosticMessageChain]
    start: Optional[int] = None
    length: Optional[int] = None
    category: DiagnosticCategory = DiagnosticCategory.ERROR
    code: int = 0


@dataclass
class SymbolDisplayPart:
    text: str
    kind: str = "text"


@dataclass
class QuickInfo:
    kind: str
    text_span: TextSpan
    display_parts: List[SymbolDisplayPart] = field(default_factory=list)
    documentation: List[SymbolDisplayPart] = field(default_factory=list)


@dataclass
class NavigationTree:
    """Nó da árvore de navegação; spans podem ser disjuntos."""

    text: str
    kind: str
    spans: List[TextSpan] = field(default_factory=list)
    child_items: Optional[List["NavigationTree"]] = None


@dataclass
class CompletionEntry:
    name: str
    kind: str
    sort_text: str
    is_recommended: bool = False
    insert_text: Optional[str] = None


@dataclass
class CompletionInfo:
    entries: List[CompletionEntry] = field(default_factory=list)
    is_incomplete: bool = False


@dataclass
class CompletionOptions:
    include_completions_for_module_exports: bool = False
    trigger_character: Optional[str] = None


def flatten_diagnostic_message_text(
    message: Union[str, DiagnosticMessageChain, None], newline: str = "\n"
) -> str:
    """
    Achata uma cadeia de mensagens em texto legível.

    Cada nível de aninhamento é indentado com dois espaços.
    """
    if message is None:
        return ""
    if isinstance(message, str):
        return message

    lines: List[str] = []

    def walk(chain: DiagnosticMessageChain, indent: int) -> None:
        lines.append("  " * indent + chain.message_text)
        for child in chain.next:
            walk(child, indent + 1)

    walk(message, 0)
    return newline.join(lines)


def display_parts_to_string(parts: Optional[List[SymbolDisplayPart]]) -> str:
    if not parts:
        return ""
    return "".join(part.text for part in parts)


class SingleFileServiceHost:
    """
    Registro de arquivos do motor contendo apenas o documento virtual.

    Texto e versão são capturados na construção: o documento virtual é
    compartilhado por URI e reescrito quando o contexto é reconstruído,
    mas um contexto antigo ainda em uso continua vendo o seu próprio texto.
    """

    def __init__(
        self,
        file_name: str,
        document,
        script_kind: ScriptKind,
        content: Optional[str] = None,
    ):
        self.file_name = file_name
        self.document = document
        self.script_kind = script_kind
        self.content = document.get_text() if content is None else content
        self.version = str(document.version)

    def get_script_file_names(self) -> List[str]:
        return [self.file_name]

    def get_script_version(self, file_name: str) -> str:
        self._check(file_name)
        return self.version

    def get_script_snapshot(self, file_name: str) -> str:
        self._check(file_name)
        return self.content

    def get_script_kind(self, file_name: str) -> ScriptKind:
        self._check(file_name)
        return self.script_kind

    def _check(self, file_name: str) -> None:
        if file_name != self.file_name:
            raise ValueError(f"Arquivo desconhecido para este contexto: {file_name}")


@runtime_checkable
class LanguageService(Protocol):
    """Operações do motor de análise, por nome de arquivo."""

    def get_syntactic_diagnostics(self, file_name: str) -> List[EngineDiagnostic]:
        ...

    def get_semantic_diagnostics(self, file_name: str) -> List[EngineDiagnostic]:
        ...

    def get_quick_info_at_position(
        self, file_name: str, offset: int
    ) -> Optional[QuickInfo]:
        ...

    def get_navigation_tree(self, file_name: str) -> NavigationTree:
        ...

    def get_completions_at_position(
        self, file_name: str, offset: int, options: Optional[CompletionOptions] = None
    ) -> Optional[CompletionInfo]:
        ...
