"""Tree-sitter powered entity extraction and structural complexity."""

from __future__ import annotations

import importlib
import threading
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from ..config import SummarizationOptions
from ..languages import grammar_for
from ..logging import get_logger
from ..models import EntityType, NamedEntity
from .base import EntityExtractor
from .regex import RegexExtractor

try:  # pragma: no cover - optional dependency
    from tree_sitter import Language, Parser

    TREE_SITTER_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    Language = None  # type: ignore[assignment,misc]
    Parser = None  # type: ignore[assignment,misc]
    TREE_SITTER_AVAILABLE = False

_LOGGER = get_logger("extractors.tree_sitter")

# grammar key -> importable grammar package
_GRAMMAR_MODULES = {
    "c": "tree_sitter_c",
    "cpp": "tree_sitter_cpp",
    "python": "tree_sitter_python",
    "javascript": "tree_sitter_javascript",
}

_FUNCTION_NODES = {
    "c": {"function_definition"},
    "cpp": {"function_definition"},
    "python": {"function_definition"},
    "javascript": {"function_declaration"},
}

_CLASS_NODES = {
    "c": set(),
    "cpp": {"class_specifier"},
    "python": {"class_definition"},
    "javascript": {"class_declaration"},
}

_CONDITIONAL_NODES = {"if_statement", "while_statement", "for_statement", "switch_statement"}

_DECLARATOR_NAMES = {
    "identifier",
    "field_identifier",
    "qualified_identifier",
    "destructor_name",
    "operator_name",
}

_LANGUAGES: Dict[str, object] = {}
_LANGUAGES_LOCK = threading.Lock()


def _load_language(key: str):  # type: ignore[no-untyped-def]
    with _LANGUAGES_LOCK:
        language = _LANGUAGES.get(key)
        if language is not None:
            return language
        module = importlib.import_module(_GRAMMAR_MODULES[key])
        language = Language(module.language())
        _LANGUAGES[key] = language
        return language


def _node_text(node, source_bytes: bytes) -> str:  # type: ignore[no-untyped-def]
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def _walk(node) -> Iterator:  # type: ignore[no-untyped-def]
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


class TreeSitterBackend:
    """Parses source files with tree-sitter grammars.

    Parsers are not safe to share between threads, so each thread keeps its
    own per-grammar parser. Grammar objects are loaded once per process.
    """

    def __init__(self, enabled: Optional[bool] = None) -> None:
        self._enabled = TREE_SITTER_AVAILABLE if enabled is None else (enabled and TREE_SITTER_AVAILABLE)
        self._local = threading.local()
        self._broken: set[str] = set()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def supports(self, path: str | Path) -> bool:
        if not self._enabled:
            return False
        key = grammar_for(path)
        return key is not None and key in _GRAMMAR_MODULES and key not in self._broken

    def _get_parser(self, key: str):  # type: ignore[no-untyped-def]
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        parser = parsers.get(key)
        if parser is not None:
            return parser
        try:
            language = _load_language(key)
        except (ImportError, AttributeError, TypeError, ValueError) as exc:
            _LOGGER.warning("tree-sitter grammar %s unavailable: %s", key, exc)
            self._broken.add(key)
            return None
        parser = Parser(language)
        parsers[key] = parser
        return parser

    def parse(self, content: str, path: str | Path):  # type: ignore[no-untyped-def]
        """Return ``(grammar_key, root_node, source_bytes)`` or ``None``."""
        if not self.supports(path):
            return None
        key = grammar_for(path)
        parser = self._get_parser(key)  # type: ignore[arg-type]
        if parser is None:
            return None
        source_bytes = content.encode("utf-8")
        try:
            tree = parser.parse(source_bytes)
        except (ValueError, TypeError, RuntimeError) as exc:
            _LOGGER.debug("tree-sitter failed to parse %s: %s", path, exc)
            return None
        if tree is None:
            return None
        return key, tree.root_node, source_bytes

    def complexity(self, content: str, path: str | Path) -> Optional[float]:
        """Weighted count of functions, classes and conditionals capped at 1.0.

        Returns ``None`` when the file cannot be parsed so callers can fall
        back to a line heuristic.
        """
        parsed = self.parse(content, path)
        if parsed is None:
            return None
        key, root, _ = parsed
        functions = classes = conditionals = 0
        function_nodes = _FUNCTION_NODES[key]
        class_nodes = _CLASS_NODES[key]
        for node in _walk(root):
            if node.type in function_nodes:
                functions += 1
            elif node.type in class_nodes:
                classes += 1
            elif node.type in _CONDITIONAL_NODES:
                conditionals += 1
        return min(1.0, functions * 0.1 + classes * 0.2 + conditionals * 0.05)

    def entities(self, content: str, path: str | Path) -> Optional[List[NamedEntity]]:
        parsed = self.parse(content, path)
        if parsed is None:
            return None
        key, root, source_bytes = parsed
        if key in {"c", "cpp"}:
            collector = self._collect_c_family
        elif key == "python":
            collector = self._collect_python
        else:
            collector = self._collect_javascript
        return list(collector(root, source_bytes))

    @staticmethod
    def _declarator_name(node, source_bytes: bytes) -> str:  # type: ignore[no-untyped-def]
        current = node.child_by_field_name("declarator")
        while current is not None:
            if current.type in _DECLARATOR_NAMES:
                return _node_text(current, source_bytes)
            current = current.child_by_field_name("declarator")
        return ""

    def _collect_c_family(self, root, source_bytes: bytes) -> Iterable[NamedEntity]:  # type: ignore[no-untyped-def]
        for node in _walk(root):
            if node.type == "function_definition":
                name = self._declarator_name(node, source_bytes)
                if name:
                    yield NamedEntity(name, EntityType.FUNCTION)
            elif node.type in {"class_specifier", "struct_specifier"}:
                # Only definitions carry a body; bare `struct foo x;` references do not.
                name_node = node.child_by_field_name("name")
                if name_node is not None and node.child_by_field_name("body") is not None:
                    yield NamedEntity(_node_text(name_node, source_bytes), EntityType.CLASS)
            elif node.type == "enum_specifier":
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    yield NamedEntity(_node_text(name_node, source_bytes), EntityType.ENUM)
            elif node.type == "preproc_include":
                path_node = node.child_by_field_name("path")
                if path_node is not None:
                    target = _node_text(path_node, source_bytes).strip('<>"')
                    if target:
                        yield NamedEntity(target, EntityType.IMPORT)

    def _collect_python(self, root, source_bytes: bytes) -> Iterable[NamedEntity]:  # type: ignore[no-untyped-def]
        for node in _walk(root):
            if node.type == "function_definition":
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    yield NamedEntity(_node_text(name_node, source_bytes), EntityType.FUNCTION)
            elif node.type == "class_definition":
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    yield NamedEntity(_node_text(name_node, source_bytes), EntityType.CLASS)
            elif node.type == "import_statement":
                for child in node.children:
                    target = child
                    if child.type == "aliased_import":
                        target = child.child_by_field_name("name")
                    if target is not None and target.type == "dotted_name":
                        yield NamedEntity(_node_text(target, source_bytes), EntityType.IMPORT)
            elif node.type == "import_from_statement":
                module_node = node.child_by_field_name("module_name")
                if module_node is not None:
                    yield NamedEntity(_node_text(module_node, source_bytes), EntityType.IMPORT)

    def _collect_javascript(self, root, source_bytes: bytes) -> Iterable[NamedEntity]:  # type: ignore[no-untyped-def]
        for node in _walk(root):
            if node.type == "function_declaration":
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    yield NamedEntity(_node_text(name_node, source_bytes), EntityType.FUNCTION)
            elif node.type == "method_definition":
                name_node = node.child_by_field_name("name")
                name = _node_text(name_node, source_bytes) if name_node is not None else ""
                if name and name != "constructor":
                    yield NamedEntity(name, EntityType.FUNCTION)
            elif node.type == "class_declaration":
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    yield NamedEntity(_node_text(name_node, source_bytes), EntityType.CLASS)
            elif node.type == "import_statement":
                source_node = node.child_by_field_name("source")
                if source_node is not None:
                    target = _node_text(source_node, source_bytes).strip("'\"`")
                    if target:
                        yield NamedEntity(target, EntityType.IMPORT)


class TreeSitterExtractor(EntityExtractor):
    """Grammar-based extraction that falls back to regex tables when it cannot parse."""

    name = "tree_sitter"

    def __init__(
        self,
        options: SummarizationOptions | None = None,
        *,
        backend: TreeSitterBackend | None = None,
    ) -> None:
        super().__init__(options)
        self._backend = backend or TreeSitterBackend()
        self._fallback = RegexExtractor(self.options)

    @property
    def available(self) -> bool:
        return self._backend.enabled

    @property
    def backend(self) -> TreeSitterBackend:
        return self._backend

    def _extract(self, content: str, path: Path) -> Iterable[NamedEntity]:
        entities = self._backend.entities(content, path)
        if entities is None:
            return self._fallback._extract(content, path)
        return entities


__all__ = ["TREE_SITTER_AVAILABLE", "TreeSitterBackend", "TreeSitterExtractor"]
