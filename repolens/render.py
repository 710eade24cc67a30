"""Plain text, Markdown and XML renderings of a processed repository."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
from xml.sax.saxutils import escape

from .matcher import PatternMatcher
from .models import ProcessedFile
from .processor import FileProcessor, is_readme

FORMATS = ("plain", "markdown", "xml")

# Markdown fence language per extension.
FENCE_LANGUAGES = {
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".h": "cpp",
    ".js": "javascript",
    ".py": "python",
    ".ts": "typescript",
    ".jsx": "jsx",
    ".tsx": "jsx",
    ".html": "html",
    ".css": "css",
    ".json": "json",
    ".md": "markdown",
    ".sh": "bash",
}


@dataclass(frozen=True)
class Totals:
    files: int
    lines: int
    bytes: int

    @property
    def kilobytes(self) -> int:
        return self.bytes // 1024

    @classmethod
    def of(cls, files: Sequence[ProcessedFile]) -> "Totals":
        return cls(
            files=len(files),
            lines=sum(item.line_count for item in files),
            bytes=sum(item.byte_size for item in files),
        )


def directory_tree(root: Path, matcher: PatternMatcher | None = None) -> str:
    """Indented listing of ``root`` that omits ignored entries."""
    lines: List[str] = []

    def visit(directory: Path, level: int) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
        except OSError:
            return
        indent = "  " * level
        for entry in entries:
            relative = Path(entry.path).relative_to(root).as_posix()
            is_dir = entry.is_dir(follow_symlinks=False)
            if matcher is not None:
                ignored = matcher.is_ignored_dir(relative) if is_dir else matcher.is_ignored(relative)
                if ignored:
                    continue
            lines.append(f"{indent}{'📁' if is_dir else '📄'} {entry.name}")
            if is_dir:
                visit(Path(entry.path), level + 1)

    visit(root, 0)
    return "\n".join(lines) + "\n" if lines else ""


def _body(item: ProcessedFile, processor: FileProcessor | None) -> str:
    if processor is not None:
        options = processor.summarization
        if options.enabled and item.byte_size > options.file_size_threshold:
            return processor.summarize_file(item)
    return item.content


def _cdata(text: str) -> str:
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def render_plain(files: Sequence[ProcessedFile], tree: str, processor: FileProcessor | None = None) -> str:
    totals = Totals.of(files)
    parts = [
        "Repository Summary\n",
        "==================\n",
        f"Files: {totals.files}\n",
        f"Lines: {totals.lines}\n",
        f"Size: {totals.kilobytes} KB\n\n",
        "Directory Structure\n",
        "------------------\n",
        tree,
        "\n\n",
        "File Contents\n",
        "-------------\n",
    ]
    for item in files:
        parts.append(f"=== {item.relative_path} ===\n")
        parts.append(f"Lines: {item.line_count}, Size: {item.byte_size // 1024} KB\n")
        parts.append(_body(item, processor))
        parts.append("\n\n")
    return "".join(parts)


def render_markdown(files: Sequence[ProcessedFile], tree: str, processor: FileProcessor | None = None) -> str:
    totals = Totals.of(files)
    parts = [
        "# Repository Summary\n\n",
        "| Files | Lines | Size |\n",
        "|-------|-------|------|\n",
        f"| {totals.files} | {totals.lines} | {totals.kilobytes} KB |\n\n",
        "## Directory Structure\n\n",
        "```\n",
        tree,
        "```\n\n",
        "## File Contents\n\n",
    ]
    summarization = processor.summarization if processor is not None else None
    for item in files:
        parts.append(f"### {item.relative_path}\n\n")
        parts.append(f"*{item.line_count} lines, {item.byte_size // 1024} KB*\n\n")
        if summarization is not None and summarization.enabled and summarization.include_readme and is_readme(item.path):
            parts.append(item.content + "\n\n")
            continue
        body = _body(item, processor)
        parts.append(f"```{FENCE_LANGUAGES.get(item.path.suffix, '')}\n")
        parts.append(body)
        if body and not body.endswith("\n"):
            parts.append("\n")
        parts.append("```\n\n")
    return "".join(parts)


def render_xml(files: Sequence[ProcessedFile], tree: str, processor: FileProcessor | None = None) -> str:
    totals = Totals.of(files)
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>\n',
        "<repository>\n",
        "  <summary>\n",
        f"    <files>{totals.files}</files>\n",
        f"    <lines>{totals.lines}</lines>\n",
        f"    <size>{totals.bytes}</size>\n",
        "  </summary>\n",
        f"  <directory_structure>{_cdata(chr(10) + tree)}</directory_structure>\n",
        "  <files>\n",
    ]
    for item in files:
        parts.append("    <file>\n")
        parts.append(f"      <path>{escape(item.relative_path)}</path>\n")
        parts.append(f"      <lines>{item.line_count}</lines>\n")
        parts.append(f"      <size>{item.byte_size}</size>\n")
        parts.append(f"      <content>{_cdata(_body(item, processor))}</content>\n")
        parts.append("    </file>\n")
    parts.append("  </files>\n")
    parts.append("</repository>\n")
    return "".join(parts)


_RENDERERS = {
    "plain": render_plain,
    "markdown": render_markdown,
    "xml": render_xml,
}


def render(
    files: Sequence[ProcessedFile],
    root: Path,
    fmt: str = "plain",
    *,
    processor: Optional[FileProcessor] = None,
    matcher: Optional[PatternMatcher] = None,
) -> str:
    """Render ``files`` (already filtered and ordered) in the requested format."""
    try:
        renderer = _RENDERERS[fmt]
    except KeyError:
        raise ValueError(f"Unknown output format: {fmt}") from None
    tree = directory_tree(root, matcher)
    return renderer(files, tree, processor)


__all__ = [
    "FENCE_LANGUAGES",
    "FORMATS",
    "Totals",
    "directory_tree",
    "render",
    "render_markdown",
    "render_plain",
    "render_xml",
]
