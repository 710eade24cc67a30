"""Import scanning and a file-level dependency graph."""

from __future__ import annotations

import math
import posixpath
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..languages import LanguageSpec, language_for
from ..logging import get_logger
from ..models import DependencyGraph
from ..processor import read_file

_LOGGER = get_logger("scoring.dependencies")

RELATIVE_EXTENSIONS: Tuple[str, ...] = (
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".py",
    ".java",
    ".rb",
    ".php",
    ".go",
    ".rs",
)
INDEX_FILES: Tuple[str, ...] = ("index.js", "index.ts", "index.jsx", "index.tsx", "__init__.py")

# Each import is a tuple of alternative targets; the first one that resolves wins.
ImportCandidates = Tuple[str, ...]


class FileIndex:
    """Relative paths of a repository, indexed by filename and by stem."""

    def __init__(self, relative_paths: Iterable[str]) -> None:
        self.paths: List[str] = sorted(relative_paths)
        self.known: Set[str] = set(self.paths)
        self._by_name: Dict[str, List[str]] = defaultdict(list)
        for rel in self.paths:
            name = posixpath.basename(rel)
            self._by_name[name].append(rel)
            stem, ext = posixpath.splitext(name)
            if ext and stem:
                self._by_name[stem].append(rel)

    def lookup(self, name: str) -> Optional[str]:
        matches = self._by_name.get(name)
        return matches[0] if matches else None


def _join_block(prefix: str, entry: str, joiner: str) -> str:
    if not prefix:
        return entry
    if joiner and prefix.endswith(joiner):
        return prefix + entry
    return prefix + joiner + entry


def extract_imports(content: str, spec: LanguageSpec) -> List[ImportCandidates]:
    """Collect raw import targets from ``content`` line by line."""
    imports: List[ImportCandidates] = []
    in_block = False
    prefix = ""

    def add_block_entries(text: str) -> None:
        if spec.block_entry is None:
            return
        for match in spec.block_entry.finditer(text):
            entry = match.group(1)
            if not entry:
                continue
            if spec.dotted_modules and prefix:
                imports.append((_join_block(prefix, entry, spec.block_joiner), prefix))
            else:
                imports.append((_join_block(prefix, entry, spec.block_joiner),))

    def close_block(text: str) -> bool:
        end = spec.multiline_import_end.search(text) if spec.multiline_import_end else None
        if end is None:
            add_block_entries(text)
            return False
        add_block_entries(text[: end.start()])
        if end.re.groups and end.group(1):
            imports.append((end.group(1),))
        return True

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if in_block:
            if close_block(line):
                in_block = False
            continue

        if line.startswith(spec.comment_prefixes):
            continue

        if spec.multiline_import_start is not None:
            start = spec.multiline_import_start.search(line)
            if start is not None:
                prefix = start.group(1) if start.re.groups and start.group(1) else ""
                in_block = not close_block(line[start.end():])
                continue

        for pattern in spec.imports:
            for match in pattern.regex.finditer(line):
                target = match.group(pattern.group)
                if target:
                    imports.append((target,))

    return imports


def _existing(candidate: str, index: FileIndex) -> Optional[str]:
    candidate = posixpath.normpath(candidate)
    if candidate.startswith("..") or candidate == ".":
        return None
    return candidate if candidate in index.known else None


def _resolve_python(module: str, source: str, index: FileIndex) -> Optional[str]:
    stripped = module.lstrip(".")
    dots = len(module) - len(stripped)
    parts = [part for part in stripped.split(".") if part]

    if dots:
        base = posixpath.dirname(source)
        for _ in range(dots - 1):
            base = posixpath.dirname(base)
        target = posixpath.join(base, *parts) if parts else base
        if parts:
            found = _existing(target + ".py", index)
            if found:
                return found
        return _existing(posixpath.join(target, "__init__.py") if target else "__init__.py", index)

    if not parts:
        return None
    target = "/".join(parts)
    for candidate in (target + ".py", posixpath.join(target, "__init__.py")):
        found = _existing(candidate, index)
        if found:
            return found
    return index.lookup(parts[-1] + ".py")


def resolve_import(raw: str, source: str, index: FileIndex, spec: LanguageSpec | None = None) -> Optional[str]:
    """Map one import target written in ``source`` to a repository file.

    Returns the target's relative path or ``None`` when nothing in the
    repository matches.
    """
    if spec is not None and spec.dotted_modules:
        return _resolve_python(raw, source, index)

    target = raw
    if spec is not None and spec.module_separator:
        target = target.replace(spec.module_separator, "/")

    if target.startswith("/"):
        found = _existing(target.lstrip("/"), index)
        if found:
            return found
    elif target.startswith(("./", "../")):
        base = posixpath.join(posixpath.dirname(source), target)
        found = _existing(base, index)
        if found:
            return found
        for extension in RELATIVE_EXTENSIONS:
            found = _existing(base + extension, index)
            if found:
                return found
        for index_file in INDEX_FILES:
            found = _existing(posixpath.join(base, index_file), index)
            if found:
                return found

    name = posixpath.basename(target.rstrip("/"))
    if not name or name in {".", ".."}:
        return None
    return index.lookup(name)


def build_dependency_graph(
    root: Path, files: Sequence[str], source_extensions: Iterable[str]
) -> DependencyGraph:
    """Scan every source file in ``files`` and return ``{file: [imported files]}``.

    ``files`` are posix paths relative to ``root``. Imports that do not
    resolve to one of ``files`` are dropped, as are self-references.
    """
    index = FileIndex(files)
    extensions = {extension.lower() for extension in source_extensions}
    graph: DependencyGraph = {}

    for rel in index.paths:
        if posixpath.splitext(rel)[1].lower() not in extensions:
            continue
        graph[rel] = []
        spec = language_for(rel)
        if spec is None or not spec.imports:
            continue
        try:
            content = read_file(root / rel).decode("utf-8", errors="replace")
        except OSError as exc:
            _LOGGER.debug("Skipping imports for %s: %s", rel, exc)
            continue
        for candidates in extract_imports(content, spec):
            for raw in candidates:
                target = resolve_import(raw, rel, index, spec)
                if target is not None:
                    if target != rel:
                        graph[rel].append(target)
                    break

    edges = sum(len(targets) for targets in graph.values())
    _LOGGER.debug("Dependency graph: %d files, %d edges", len(graph), edges)
    return graph


def incoming_counts(graph: DependencyGraph) -> Dict[str, int]:
    """Number of distinct files importing each target."""
    counts: Dict[str, int] = defaultdict(int)
    for targets in graph.values():
        for target in set(targets):
            counts[target] += 1
    return dict(counts)


def connectivity_score(rel: str, graph: DependencyGraph, incoming: Dict[str, int] | None = None) -> float:
    """Unweighted connectivity in [0, 1]: ``log2(in + out + 1) / 5``."""
    if incoming is None:
        incoming = incoming_counts(graph)
    total = incoming.get(rel, 0) + len(graph.get(rel, ()))
    if total == 0:
        return 0.0
    return min(1.0, math.log2(total + 1) / 5.0)


__all__ = [
    "FileIndex",
    "INDEX_FILES",
    "RELATIVE_EXTENSIONS",
    "build_dependency_graph",
    "connectivity_score",
    "extract_imports",
    "incoming_counts",
    "resolve_import",
]
