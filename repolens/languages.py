"""Per-language pattern registry shared by density analysis, import
scanning and regex entity extraction.

Each :class:`LanguageSpec` bundles the regular expressions that describe one
language family. Lookups go through :func:`language_for` using the file
extension, so callers never branch on extensions themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Pattern, Tuple

from .models import EntityType

# Line prefixes treated as single-line comments regardless of language.
LINE_COMMENT_PREFIXES: Tuple[str, ...] = ("//", "#", "--", ";")

# Identifiers that look like calls but are control flow.
CALL_STOPWORDS: FrozenSet[str] = frozenset(
    {"if", "for", "while", "switch", "catch", "return", "sizeof"}
)


@dataclass(frozen=True)
class EntityPattern:
    """A content-wide regex whose ``group`` names an entity."""

    regex: Pattern[str]
    type: EntityType
    group: int = 1
    stopwords: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class ImportPattern:
    """A per-line regex whose ``group`` captures an import target."""

    regex: Pattern[str]
    group: int = 1


@dataclass(frozen=True)
class LanguageSpec:
    name: str
    extensions: Tuple[str, ...]
    # density heuristics (matched against stripped lines)
    function_line: Optional[Pattern[str]] = None
    class_line: Optional[Pattern[str]] = None
    import_line: Optional[Pattern[str]] = None
    block_comment_start: Optional[Pattern[str]] = None
    block_comment_end: Optional[Pattern[str]] = None
    # dependency graph
    comment_prefixes: Tuple[str, ...] = ("//",)
    imports: Tuple[ImportPattern, ...] = ()
    # An optional group 1 on the start/end regexes carries a module prefix or source.
    multiline_import_start: Optional[Pattern[str]] = None
    multiline_import_end: Optional[Pattern[str]] = None
    block_entry: Optional[Pattern[str]] = None
    block_joiner: str = ""
    module_separator: Optional[str] = None
    dotted_modules: bool = False
    # entity extraction, in output order
    entities: Tuple[EntityPattern, ...] = ()
    # tree-sitter grammar per extension
    grammars: Dict[str, str] = field(default_factory=dict)

    def grammar_for(self, extension: str) -> Optional[str]:
        return self.grammars.get(extension.lower())


def _re(pattern: str, flags: int = 0) -> Pattern[str]:
    return re.compile(pattern, flags)


_C_STYLE_BLOCK_START = _re(r"/\*")
_C_STYLE_BLOCK_END = _re(r"\*/")

C_FAMILY = LanguageSpec(
    name="c-family",
    extensions=(".c", ".h", ".cc", ".cpp", ".cxx", ".hpp"),
    function_line=_re(r"\w+\s+\w+\s*\(.*\)\s*(const)?\s*\{?"),
    class_line=_re(r"(class|struct)\s+\w+"),
    import_line=_re(r"#include"),
    block_comment_start=_C_STYLE_BLOCK_START,
    block_comment_end=_C_STYLE_BLOCK_END,
    comment_prefixes=("//",),
    imports=(ImportPattern(_re(r"#include\s+[<\"](.+?)[>\"]")),),
    entities=(
        EntityPattern(_re(r"\b(class|struct)\s+(\w+)"), EntityType.CLASS, group=2),
        EntityPattern(
            _re(
                r"(\w+)\s*\([^{;]*\)\s*(?:const)?\s*(?:noexcept)?\s*(?:override)?\s*"
                r"(?:final)?\s*(?:=\s*0)?\s*(?:=\s*delete)?\s*(?:=\s*default)?\s*(?:;|\{)"
            ),
            EntityType.FUNCTION,
            stopwords=CALL_STOPWORDS,
        ),
        EntityPattern(
            _re(
                r"(?:int|float|double|char|bool|unsigned|long|short|size_t|uint\d+_t|"
                r"int\d+_t|std::string|string|auto|constexpr|const|static)\s+(\w+)\s*(?:=|;|\[)"
            ),
            EntityType.VARIABLE,
        ),
        EntityPattern(_re(r"\benum\s+(?:class\s+)?(\w+)"), EntityType.ENUM),
        EntityPattern(_re(r"#include\s*[<\"]([^>\"]+)[>\"]"), EntityType.IMPORT),
    ),
    grammars={
        ".c": "c",
        ".h": "cpp",
        ".cc": "cpp",
        ".cpp": "cpp",
        ".cxx": "cpp",
        ".hpp": "cpp",
    },
)

PYTHON = LanguageSpec(
    name="python",
    extensions=(".py",),
    function_line=_re(r"^\s*def\s+\w+\s*\(.*\)\s*:"),
    class_line=_re(r"^\s*class\s+\w+.*:"),
    import_line=_re(r"^\s*(import|from)\s+\w+"),
    block_comment_start=_re(r'^\s*"""'),
    block_comment_end=_re(r'"""\s*$'),
    comment_prefixes=("#",),
    imports=(
        ImportPattern(_re(r"from\s+([\w.]+)\s+import")),
        ImportPattern(_re(r"^\s*import\s+([\w.]+)")),
    ),
    multiline_import_start=_re(r"from\s+([\w.]+)\s+import\s+\("),
    multiline_import_end=_re(r"\)"),
    block_entry=_re(r"(\w+)(?:\s+as\s+\w+)?"),
    block_joiner=".",
    module_separator=".",
    dotted_modules=True,
    entities=(
        EntityPattern(_re(r"\bclass\s+(\w+)"), EntityType.CLASS),
        EntityPattern(_re(r"\bdef\s+(\w+)\s*\("), EntityType.FUNCTION),
        EntityPattern(
            _re(r"(\w+)\s*=\s*[^=]"),
            EntityType.VARIABLE,
            stopwords=frozenset({"if", "for", "while", "def"}),
        ),
        EntityPattern(_re(r"\bimport\s+(\w+)"), EntityType.IMPORT),
    ),
    grammars={".py": "python"},
)

JAVASCRIPT = LanguageSpec(
    name="javascript",
    extensions=(".js", ".jsx", ".ts", ".tsx"),
    function_line=_re(
        r"(function\s+\w+\s*\(|const\s+\w+\s*=\s*\(|\w+\s*=\s*\(|\w+\s*\(.*\)\s*\{)"
    ),
    class_line=_re(r"class\s+\w+"),
    import_line=_re(r"(import|require)"),
    block_comment_start=_C_STYLE_BLOCK_START,
    block_comment_end=_C_STYLE_BLOCK_END,
    imports=(
        ImportPattern(_re(r"import\s+.*?from\s+['\"](.+?)['\"]")),
        ImportPattern(_re(r"import\s+['\"](.+?)['\"]")),
        ImportPattern(_re(r"require\s*\(['\"](.+?)['\"]\)")),
    ),
    multiline_import_start=_re(r"import\s+\{[^}]*$"),
    multiline_import_end=_re(r"\}\s*from\s+['\"](.+?)['\"]"),
    entities=(
        EntityPattern(_re(r"\bclass\s+(\w+)"), EntityType.CLASS),
        EntityPattern(_re(r"\bfunction\s+(\w+)\s*\("), EntityType.FUNCTION),
        EntityPattern(
            _re(r"\bconst\s+(\w+)\s*=\s*(?:async\s+)?\([^{]*\)\s*=>"), EntityType.FUNCTION
        ),
        EntityPattern(
            _re(r"(\w+)\s*\([^{]*\)\s*\{"),
            EntityType.FUNCTION,
            stopwords=frozenset({"if", "for", "while", "switch", "catch", "constructor", "function"}),
        ),
    ),
    # TypeScript is parsed with the JavaScript grammar.
    grammars={".js": "javascript", ".jsx": "javascript", ".ts": "javascript", ".tsx": "javascript"},
)

JAVA = LanguageSpec(
    name="java",
    extensions=(".java",),
    function_line=_re(
        r"(public|private|protected)?\s*(static)?\s*\w+\s+\w+\s*\(.*\)\s*\{?"
    ),
    class_line=_re(r"(public|private|protected)?\s*(static)?\s*class\s+\w+"),
    import_line=_re(r"import\s+\w+"),
    block_comment_start=_C_STYLE_BLOCK_START,
    block_comment_end=_C_STYLE_BLOCK_END,
    imports=(ImportPattern(_re(r"import\s+(?:static\s+)?([\w.*]+);")),),
    module_separator=".",
    entities=(
        EntityPattern(_re(r"\b(?:class|interface|record)\s+(\w+)"), EntityType.CLASS),
        EntityPattern(
            _re(r"\b[\w<>\[\]]+\s+(\w+)\s*\([^;{)]*\)\s*(?:throws\s+[\w.,\s]+)?\{"),
            EntityType.FUNCTION,
            stopwords=CALL_STOPWORDS | {"else", "new"},
        ),
        EntityPattern(
            _re(
                r"\b(?:private|public|protected|static|final)\s+(?:static\s+)?(?:final\s+)?"
                r"[\w<>\[\],]+\s+(\w+)\s*(?:=|;)"
            ),
            EntityType.VARIABLE,
        ),
        EntityPattern(_re(r"\benum\s+(\w+)"), EntityType.ENUM),
        EntityPattern(_re(r"^\s*import\s+(?:static\s+)?([\w.]+(?:\.\*)?)\s*;", re.MULTILINE), EntityType.IMPORT),
    ),
)

RUBY = LanguageSpec(
    name="ruby",
    extensions=(".rb",),
    function_line=_re(r"def\s+\w+"),
    class_line=_re(r"class\s+\w+"),
    import_line=_re(r"(require|include)"),
    block_comment_start=_re(r"^=begin"),
    block_comment_end=_re(r"^=end"),
    comment_prefixes=("#",),
    imports=(
        ImportPattern(_re(r"require\s+['\"](.+?)['\"]")),
        ImportPattern(_re(r"require_relative\s+['\"](.+?)['\"]")),
        ImportPattern(_re(r"\bload\s+['\"](.+?)['\"]")),
    ),
    # Ruby has no enum construct; modules are reported as classes.
    entities=(
        EntityPattern(_re(r"^\s*(?:class|module)\s+([A-Z]\w*(?:::\w+)*)", re.MULTILINE), EntityType.CLASS),
        EntityPattern(_re(r"^\s*def\s+(?:self\.)?(\w+[?!=]?)", re.MULTILINE), EntityType.FUNCTION),
        EntityPattern(_re(r"^\s*([a-z_]\w*|[A-Z][A-Z0-9_]*)\s*=(?![=~>])", re.MULTILINE), EntityType.VARIABLE),
        EntityPattern(
            _re(r"^\s*require(?:_relative)?\s+['\"]([^'\"]+)['\"]", re.MULTILINE), EntityType.IMPORT
        ),
    ),
)

PHP = LanguageSpec(
    name="php",
    extensions=(".php",),
    comment_prefixes=("//", "#"),
    imports=(
        ImportPattern(_re(r"(?:require|include)(?:_once)?\s*\(?\s*['\"](.+?)['\"]")),
        ImportPattern(_re(r"^\s*use\s+([\w\\]+)")),
    ),
    module_separator="\\",
)

GO = LanguageSpec(
    name="go",
    extensions=(".go",),
    imports=(ImportPattern(_re(r"import\s+(?:\w+\s+)?['\"](.+?)['\"]")),),
    multiline_import_start=_re(r"import\s+\("),
    multiline_import_end=_re(r"\)"),
    block_entry=_re(r"(?:[\w.]+\s+)?\"(.+?)\""),
)

RUST = LanguageSpec(
    name="rust",
    extensions=(".rs",),
    imports=(ImportPattern(_re(r"\buse\s+([\w:]+)")),),
    multiline_import_start=_re(r"\buse\s+([\w:]*)\{"),
    multiline_import_end=_re(r"\}\s*;"),
    block_entry=_re(r"([\w:]+)"),
    module_separator="::",
)

REGISTRY: Tuple[LanguageSpec, ...] = (C_FAMILY, PYTHON, JAVASCRIPT, JAVA, RUBY, PHP, GO, RUST)

_BY_EXTENSION: Dict[str, LanguageSpec] = {
    extension: spec for spec in REGISTRY for extension in spec.extensions
}


def language_for(path: str | Path) -> Optional[LanguageSpec]:
    """Return the language family for ``path`` based on its extension."""
    return _BY_EXTENSION.get(Path(path).suffix.lower())


def grammar_for(path: str | Path) -> Optional[str]:
    """Return the tree-sitter grammar key for ``path`` if one is registered."""
    spec = language_for(path)
    if spec is None:
        return None
    return spec.grammar_for(Path(path).suffix)


__all__ = [
    "C_FAMILY",
    "CALL_STOPWORDS",
    "EntityPattern",
    "GO",
    "ImportPattern",
    "JAVA",
    "JAVASCRIPT",
    "LINE_COMMENT_PREFIXES",
    "LanguageSpec",
    "PHP",
    "PYTHON",
    "REGISTRY",
    "RUBY",
    "RUST",
    "grammar_for",
    "language_for",
]
