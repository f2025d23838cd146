"""
embedded_script_lsp - Language Server para scripts embutidos em markup

Propósito:
    Fornece diagnósticos, hover, document symbols e completions para o
    bloco <script> de documentos de markup, fazendo a ponte entre o
    fragmento e um motor de análise que só entende arquivos inteiros.

Componentes principais:
    - server: Servidor principal usando pygls
    - plugin: Fachada de capacidades (ScriptPlugin)
    - cache: Contextos de análise por documento
    - converters: Conversão de spans/tipos do motor → LSP
    - symbols: Achatamento da árvore de navegação
    - jedi_service: Motor de análise baseado em jedi

Dependências críticas:
    - pygls: Framework LSP
    - jedi / parso: Análise de código Python

Exemplo de uso:
    embedded-script-lsp
"""
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
import re


def _read_version_from_pyproject() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    try:
        text = pyproject.read_text(encoding="utf-8")
    except OSError:
        return "0.0.0"
    match = re.search(r'(?m)^version = "([^"]+)"\s*$', text)
    return match.group(1) if match else "0.0.0"


try:
    __version__ = _pkg_version("embedded-script-lsp")
except PackageNotFoundError:
    __version__ = _read_version_from_pyproject()

__all__ = ["server", "plugin", "cache", "converters", "symbols"]
