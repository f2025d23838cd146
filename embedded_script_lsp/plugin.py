"""
plugin.py - Plugin de script: diagnostics, hover, symbols e completions

Propósito:
    Fachada pública da ponte de fragmentos. Cada operação verifica sua
    flag de configuração, obtém o contexto de análise do fragmento no
    cache, consulta o motor e converte o resultado para tipos LSP no
    espaço de coordenadas do documento hospedeiro.

Componentes principais:
    - DiagnosticsProvider / HoverProvider / DocumentSymbolsProvider /
      CompletionsProvider / OnRegister: contratos dos provedores
    - ScriptPluginConfig: flags por funcionalidade
    - ScriptPlugin: implementa todos os contratos

Notas de implementação:
    - Flag desligada → resultado vazio sem tocar no cache nem no motor
    - Análise semântica só para scripts tipados (diagnostics apenas)
    - Severidade sempre Error; source "typed" ou "untyped"
    - Completions sempre incluem exports de módulos
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from lsprotocol.types import (
    CompletionItem,
    Diagnostic,
    DiagnosticSeverity,
    Hover,
    MarkupContent,
    MarkupKind,
    Position,
    SymbolInformation,
)

from embedded_script_lsp.cache import AnalysisContextCache, ServiceFactory
from embedded_script_lsp.converters import (
    get_commit_characters_for_script_element,
    script_element_kind_to_completion_item_kind,
    to_host_range,
)
from embedded_script_lsp.engine import (
    CompletionOptions,
    ScriptKind,
    display_parts_to_string,
    flatten_diagnostic_message_text,
)
from embedded_script_lsp.symbols import flatten_navigation_tree
from embedded_script_lsp.virtual_documents import VirtualDocumentFactory

logger = logging.getLogger(__name__)

PLUGIN_ID = "script"


@runtime_checkable
class DiagnosticsProvider(Protocol):
    def get_diagnostics(self, document) -> List[Diagnostic]:
        ...


@runtime_checkable
class HoverProvider(Protocol):
    def do_hover(self, document, position: Position) -> Optional[Hover]:
        ...


@runtime_checkable
class DocumentSymbolsProvider(Protocol):
    def get_document_symbols(self, document) -> List[SymbolInformation]:
        ...


@runtime_checkable
class CompletionsProvider(Protocol):
    def get_completions(
        self, document, position: Position, trigger_character: Optional[str] = None
    ) -> List[CompletionItem]:
        ...


@runtime_checkable
class OnRegister(Protocol):
    def on_register(self, host) -> None:
        ...


@dataclass
class ScriptPluginConfig:
    """Flags de funcionalidade; enable desliga o plugin inteiro."""

    enable: bool = True
    diagnostics: bool = True
    hover: bool = True
    document_symbols: bool = True
    completions: bool = True

    @classmethod
    def from_host(cls, host, plugin_id: str = PLUGIN_ID) -> "ScriptPluginConfig":
        """Lê as flags do host ("<plugin>.<feature>.enable"); ausente → True."""

        def flag(key: str) -> bool:
            value = host.get_config(f"{plugin_id}.{key}")
            return True if value is None else bool(value)

        return cls(
            enable=flag("enable"),
            diagnostics=flag("diagnostics.enable"),
            hover=flag("hover.enable"),
            document_symbols=flag("documentSymbols.enable"),
            completions=flag("completions.enable"),
        )

    @classmethod
    def from_settings(cls, settings: Optional[Dict[str, Any]]) -> "ScriptPluginConfig":
        """Constrói a partir do bloco de settings do plugin (dict aninhado)."""
        settings = settings or {}

        def flag(name: str) -> bool:
            section = settings.get(name)
            if isinstance(section, dict):
                return bool(section.get("enable", True))
            return True

        return cls(
            enable=bool(settings.get("enable", True)),
            diagnostics=flag("diagnostics"),
            hover=flag("hover"),
            document_symbols=flag("documentSymbols"),
            completions=flag("completions"),
        )

    def is_enabled(self, feature: str) -> bool:
        return self.enable and bool(getattr(self, feature))


class ScriptPlugin:
    """
    Provedor de inteligência de editor para blocos <script>.

    Attributes:
        plugin_id: Namespace das chaves de configuração
        config: Flags de funcionalidade em vigor
        cache: Cache de contextos de análise (criado em on_register)
    """

    plugin_id = PLUGIN_ID

    def __init__(
        self,
        config: Optional[ScriptPluginConfig] = None,
        cache: Optional[AnalysisContextCache] = None,
        service_factory: Optional[ServiceFactory] = None,
    ):
        self.config = config
        self.cache = cache
        self.service_factory = service_factory
        self.host = None

    @staticmethod
    def match_fragment(fragment) -> bool:
        return fragment.get_attributes().get("tag") == "script"

    def on_register(self, host) -> None:
        self.host = host
        if self.cache is None:
            self.cache = AnalysisContextCache(
                VirtualDocumentFactory(host), self.service_factory
            )
        if self.config is None:
            self.config = ScriptPluginConfig.from_host(host, self.plugin_id)
        logger.info(f"Plugin '{self.plugin_id}' registrado: {self.config}")

    def update_config(self, config: ScriptPluginConfig) -> None:
        self.config = config
        logger.info(f"Configuração do plugin '{self.plugin_id}' atualizada: {config}")

    def _enabled(self, feature: str) -> bool:
        config = self.config or ScriptPluginConfig()
        return config.is_enabled(feature)

    def get_diagnostics(self, document) -> List[Diagnostic]:
        if not self._enabled("diagnostics"):
            return []

        context = self.cache.get_or_create(document)
        is_typed = context.script_kind is ScriptKind.TYPED

        with context.lock:
            diagnostics = list(context.service.get_syntactic_diagnostics(context.file_name))
            if is_typed:
                diagnostics.extend(
                    context.service.get_semantic_diagnostics(context.file_name)
                )

        return [
            Diagnostic(
                range=to_host_range(document, diagnostic),
                severity=DiagnosticSeverity.Error,
                source=context.script_kind.value,
                message=flatten_diagnostic_message_text(diagnostic.message_text, "\n"),
            )
            for diagnostic in diagnostics
        ]

    def do_hover(self, document, position: Position) -> Optional[Hover]:
        if not self._enabled("hover"):
            return None

        context = self.cache.get_or_create(document)
        with context.lock:
            info = context.service.get_quick_info_at_position(
                context.file_name, document.offset_at(position)
            )
        if not info:
            return None

        contents = display_parts_to_string(info.display_parts)
        documentation = display_parts_to_string(info.documentation)
        value = f"```python\n{contents}\n```"
        if documentation:
            value += f"\n\n{documentation}"

        return Hover(
            contents=MarkupContent(kind=MarkupKind.Markdown, value=value),
            range=to_host_range(document, info.text_span),
        )

    def get_document_symbols(self, document) -> List[SymbolInformation]:
        if not self._enabled("document_symbols"):
            return []

        context = self.cache.get_or_create(document)
        with context.lock:
            tree = context.service.get_navigation_tree(context.file_name)

        return flatten_navigation_tree(tree, document)

    def get_completions(
        self,
        document,
        position: Position,
        trigger_character: Optional[str] = None,
    ) -> List[CompletionItem]:
        if not self._enabled("completions"):
            return []

        context = self.cache.get_or_create(document)
        with context.lock:
            completions = context.service.get_completions_at_position(
                context.file_name,
                document.offset_at(position),
                CompletionOptions(
                    include_completions_for_module_exports=True,
                    trigger_character=trigger_character,
                ),
            )

        if not completions:
            return []
        logger.debug(f"{len(completions.entries)} completions para {document.get_url()}")

        return [
            CompletionItem(
                label=entry.name,
                kind=script_element_kind_to_completion_item_kind(entry.kind),
                sort_text=entry.sort_text,
                commit_characters=get_commit_characters_for_script_element(entry.kind),
                preselect=entry.is_recommended,
            )
            for entry in completions.entries
        ]
