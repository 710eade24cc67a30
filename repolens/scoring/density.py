"""Code density analysis for source files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..extractors.tree_sitter import TreeSitterBackend
from ..languages import C_FAMILY, LINE_COMMENT_PREFIXES, LanguageSpec, language_for


@dataclass
class LineMetrics:
    """Per-line classification counts for one file."""

    total: int = 0
    code: int = 0
    comments: int = 0
    blank: int = 0
    imports: int = 0
    functions: int = 0
    classes: int = 0


def _comment_prefixes(spec: Optional[LanguageSpec]) -> tuple[str, ...]:
    if spec is C_FAMILY:
        # `#include` and friends are preprocessor code, not comments.
        return tuple(prefix for prefix in LINE_COMMENT_PREFIXES if prefix != "#")
    return LINE_COMMENT_PREFIXES


def line_metrics(content: str, path: str | Path) -> LineMetrics:
    """Classify every line of ``content`` as code, comment or blank."""
    spec = language_for(path)
    prefixes = _comment_prefixes(spec)
    metrics = LineMetrics()
    in_block = False

    for raw_line in content.splitlines():
        metrics.total += 1
        line = raw_line.strip()

        if in_block:
            metrics.comments += 1
            if spec is not None and spec.block_comment_end is not None:
                if spec.block_comment_end.search(line):
                    in_block = False
            continue

        if spec is not None and spec.block_comment_start is not None:
            start = spec.block_comment_start.search(line)
            if start is not None:
                metrics.comments += 1
                rest = line[start.end():]
                closed = spec.block_comment_end is not None and spec.block_comment_end.search(rest)
                in_block = not closed
                continue

        if not line:
            metrics.blank += 1
            continue

        if line.startswith(prefixes):
            metrics.comments += 1
            continue

        if spec is not None:
            if spec.function_line is not None and spec.function_line.search(line):
                metrics.functions += 1
            if spec.class_line is not None and spec.class_line.search(line):
                metrics.classes += 1
            if spec.import_line is not None and spec.import_line.search(line):
                metrics.imports += 1

        metrics.code += 1

    return metrics


def line_density(content: str, path: str | Path) -> float:
    """Unweighted line-heuristic density in [0, 1]."""
    metrics = line_metrics(content, path)
    ratio = metrics.code / (metrics.total or 1)

    structure_bonus = 0.0
    if metrics.functions or metrics.classes:
        structure_bonus = min(0.2, (metrics.functions + metrics.classes * 2) * 0.02)

    no_comment_penalty = 0.1 if metrics.comments == 0 and metrics.code > 20 else 0.0

    comment_bonus = 0.0
    if metrics.comments:
        comment_ratio = metrics.comments / (metrics.code or 1)
        if 0.1 <= comment_ratio <= 0.3:
            comment_bonus = 0.1

    import_penalty = 0.0
    if metrics.imports > 5 and metrics.code < metrics.imports * 3:
        import_penalty = 0.1

    score = ratio * 0.6 + structure_bonus + comment_bonus - no_comment_penalty - import_penalty
    return min(1.0, max(0.0, score))


class DensityAnalyzer:
    """Measures how much structural code a file carries.

    With ``use_tree_sitter`` the measure is a weighted count of function,
    class and conditional nodes; files the grammar backend cannot handle
    use :func:`line_density` instead.
    """

    def __init__(
        self, use_tree_sitter: bool = True, backend: TreeSitterBackend | None = None
    ) -> None:
        self.use_tree_sitter = use_tree_sitter
        self._backend = backend if backend is not None else (TreeSitterBackend() if use_tree_sitter else None)

    @property
    def grammar_enabled(self) -> bool:
        return self.use_tree_sitter and self._backend is not None and self._backend.enabled

    def analyze(self, content: str, path: str | Path) -> float:
        if self.grammar_enabled and self._backend.supports(path):  # type: ignore[union-attr]
            complexity = self._backend.complexity(content, path)  # type: ignore[union-attr]
            if complexity is not None:
                return complexity
        return line_density(content, path)


__all__ = ["DensityAnalyzer", "LineMetrics", "line_density", "line_metrics"]
