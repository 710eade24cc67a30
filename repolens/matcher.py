"""Glob and gitignore-style path matching."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import parse_pattern_list
from .logging import get_logger

_LOGGER = get_logger("matcher")

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    # version control
    ".git/**",
    ".svn/**",
    ".hg/**",
    # build output
    "build/**",
    "dist/**",
    "out/**",
    "target/**",
    "bin/**",
    "obj/**",
    "CMakeFiles/**",
    "CMakeCache.txt",
    "_deps/**",
    # dependencies
    "node_modules/**",
    "vendor/**",
    "bower_components/**",
    "jspm_packages/**",
    # caches
    "__pycache__/**",
    ".cache/**",
    ".pytest_cache/**",
    ".nyc_output/**",
    # editors
    ".idea/**",
    ".vscode/**",
    "*.sublime-*",
    "*.swp",
    ".DS_Store",
    # compiled artefacts and archives
    "*.o",
    "*.obj",
    "*.exe",
    "*.dll",
    "*.so",
    "*.dylib",
    "*.lib",
    "*.a",
    "*.class",
    "*.jar",
    "*.war",
    "*.pyc",
    "*.pyo",
    "*.zip",
    "*.tar.gz",
    "*.tgz",
    "*.rar",
    "*.7z",
    # logs
    "*.log",
    "logs/**",
)

_WILDCARDS = set("*?/")


@dataclass(frozen=True)
class CompiledPattern:
    """A glob pattern translated into a path regex."""

    pattern: str
    regex: Optional["re.Pattern[str]"]
    suffix: Optional[str] = None

    @property
    def is_extension_only(self) -> bool:
        return self.suffix is not None

    def matches(self, path: str) -> bool:
        target = normalize_path(path)
        if self.suffix is not None:
            return target.rsplit("/", 1)[-1].endswith(self.suffix)
        if self.regex is None:
            return False
        return self.regex.match(target) is not None


def normalize_path(path: str | Path) -> str:
    """Return ``path`` as a posix string without a leading ``./``."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> CompiledPattern:
    """Translate a glob into a matcher.

    ``**/`` spans zero or more directories, ``**`` spans anything, ``*`` and
    ``?`` stay inside one path component. Anything else is literal, so a
    malformed glob simply never matches. Patterns starting with ``/`` are
    anchored at the scan root; others may begin at any component boundary.
    A trailing ``/`` matches the directory and everything beneath it.
    """
    raw = normalize_path(pattern.strip())
    if not raw:
        return CompiledPattern(pattern=pattern, regex=None)

    if raw.startswith("*.") and not (_WILDCARDS & set(raw[2:])):
        return CompiledPattern(pattern=pattern, regex=None, suffix=raw[1:])

    anchored = raw.startswith("/")
    body = raw.lstrip("/")
    directory_only = body.endswith("/")
    if directory_only:
        body = body.rstrip("/")
    if not body:
        return CompiledPattern(pattern=pattern, regex=None)

    parts: List[str] = ["^" if anchored else "^(?:.*/)?"]
    index = 0
    while index < len(body):
        char = body[index]
        if body.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
            continue
        if body.startswith("**", index):
            parts.append(".*")
            index += 2
            continue
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        index += 1
    parts.append("(?:/.*)?$" if directory_only else "$")

    try:
        regex = re.compile("".join(parts))
    except re.error:  # pragma: no cover - escaped input always compiles
        _LOGGER.debug("Discarding unmatchable pattern %s", pattern)
        regex = None
    return CompiledPattern(pattern=pattern, regex=regex)


class PatternMatcher:
    """Decides which repository paths are processed.

    A path is processed when it is not ignored and, if any include patterns
    were registered, at least one of them matches. All paths are relative to
    the scan root.
    """

    def __init__(
        self,
        ignore_patterns: Optional[Iterable[str]] = None,
        include_patterns: Optional[Iterable[str]] = None,
        *,
        use_defaults: bool = True,
    ) -> None:
        self._ignore: List[CompiledPattern] = []
        self._include: List[CompiledPattern] = []
        if use_defaults:
            for pattern in DEFAULT_IGNORE_PATTERNS:
                self.add_ignore_pattern(pattern)
        for pattern in ignore_patterns or ():
            self.add_ignore_pattern(pattern)
        for pattern in include_patterns or ():
            self.add_include_pattern(pattern)

    @property
    def ignore_patterns(self) -> Sequence[str]:
        return [compiled.pattern for compiled in self._ignore]

    @property
    def include_patterns(self) -> Sequence[str]:
        return [compiled.pattern for compiled in self._include]

    @property
    def has_include_patterns(self) -> bool:
        return bool(self._include)

    def add_ignore_pattern(self, pattern: str) -> None:
        if pattern.strip():
            self._ignore.append(compile_pattern(pattern.strip()))

    def add_include_pattern(self, pattern: str) -> None:
        if pattern.strip():
            self._include.append(compile_pattern(pattern.strip()))

    def set_include_patterns(self, patterns: str) -> None:
        """Replace include patterns with a comma-separated list."""
        self._include = [compile_pattern(item) for item in parse_pattern_list(patterns)]

    def set_exclude_patterns(self, patterns: str) -> None:
        """Add a comma-separated list of exclude patterns on top of the existing ones."""
        for item in parse_pattern_list(patterns):
            self.add_ignore_pattern(item)

    def load_ignore_file(self, path: Path) -> int:
        """Read gitignore-style patterns from ``path``; returns how many were added."""
        try:
            text = Path(path).read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            _LOGGER.debug("No ignore file at %s", path)
            return 0
        except OSError as exc:
            _LOGGER.warning("Could not read ignore file %s: %s", path, exc)
            return 0

        added = 0
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("!"):
                # Negation is not supported; the pattern would only re-include.
                _LOGGER.debug("Skipping negated ignore pattern %s", line)
                continue
            self.add_ignore_pattern(line)
            added += 1
        return added

    def is_ignored(self, path: str | Path) -> bool:
        target = normalize_path(path)
        return any(compiled.matches(target) for compiled in self._ignore)

    def is_ignored_dir(self, path: str | Path) -> bool:
        """True when a directory (and therefore everything in it) is ignored."""
        target = normalize_path(path).rstrip("/")
        if not target:
            return False
        return self.is_ignored(target) or self.is_ignored(f"{target}/")

    def is_included(self, path: str | Path) -> bool:
        if not self._include:
            return True
        target = normalize_path(path)
        return any(compiled.matches(target) for compiled in self._include)

    def should_process(self, path: str | Path) -> bool:
        return not self.is_ignored(path) and self.is_included(path)


__all__ = [
    "CompiledPattern",
    "DEFAULT_IGNORE_PATTERNS",
    "PatternMatcher",
    "compile_pattern",
    "normalize_path",
]
