"""Assigns an importance score to every file in a repository."""

from __future__ import annotations

import json
import os
import time
from fnmatch import fnmatchcase
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, List, Optional, Sequence

from ..config import ScoringConfig
from ..errors import validate_root
from ..logging import get_logger
from ..matcher import PatternMatcher
from ..models import DependencyGraph, ScoredFile
from ..processor import read_file
from .dependencies import build_dependency_graph, connectivity_score, incoming_counts
from .density import DensityAnalyzer

_LOGGER = get_logger("scoring")

ENTRY_POINT_STEMS = frozenset({"main", "index", "app", "server", "start", "init", "bootstrap"})

SECONDS_PER_DAY = 86400


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


class FileScorer:
    """Weighted heuristics over structure, type, recency, size, density and imports.

    Each component is computed separately and kept on the resulting
    :class:`ScoredFile` so the scoring report can explain every decision.
    """

    def __init__(
        self,
        config: ScoringConfig | None = None,
        *,
        matcher: PatternMatcher | None = None,
        density_analyzer: DensityAnalyzer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or ScoringConfig()
        self.matcher = matcher or PatternMatcher()
        self.density = density_analyzer or DensityAnalyzer(use_tree_sitter=self.config.use_tree_sitter)
        self._clock = clock
        self._source_extensions = {ext.lower() for ext in self.config.source_code_extensions}
        self._config_extensions = {ext.lower() for ext in self.config.config_file_extensions}
        self._doc_extensions = {ext.lower() for ext in self.config.documentation_extensions}

    # repository ------------------------------------------------------------

    def collect_files(self, root: Path) -> List[str]:
        """Relative posix paths of every regular, non-ignored file under ``root``."""
        files: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                name for name in dirnames if not self.matcher.is_ignored_dir(_relative(current / name, root))
            )
            for name in sorted(filenames):
                candidate = current / name
                rel = _relative(candidate, root)
                if self.matcher.should_process(rel) and candidate.is_file():
                    files.append(rel)
        return files

    def score_repository(self, root: str | Path) -> List[ScoredFile]:
        root_path = validate_root(root)
        files = self.collect_files(root_path)
        _LOGGER.info("Scoring %d files under %s", len(files), root_path)

        graph: Optional[DependencyGraph] = None
        incoming: Dict[str, int] = {}
        if self.config.dependency_graph_weight > 0:
            graph = build_dependency_graph(root_path, files, self.config.source_code_extensions)
            incoming = incoming_counts(graph)

        scored: List[ScoredFile] = []
        for rel in files:
            try:
                components = self._intrinsic_components(root_path / rel, rel)
            except Exception as exc:  # per-file failures drop the file, never the scan
                _LOGGER.warning("Failed to score %s: %s", rel, exc)
                continue
            connectivity = 0.0
            if graph is not None:
                connectivity = connectivity_score(rel, graph, incoming) * self.config.dependency_graph_weight
            components["connectivity"] = connectivity
            scored.append(self._build(root_path / rel, rel, components))

        scored.sort(key=lambda item: (-item.score, item.relative_path))
        included = sum(1 for item in scored if item.included)
        _LOGGER.info("Selected %d of %d files (threshold %.2f)", included, len(scored), self.config.inclusion_threshold)
        return scored

    def score_file(self, path: str | Path, root: str | Path) -> ScoredFile:
        """Score one file without dependency information."""
        root_path = Path(root).resolve()
        file_path = Path(path)
        if not file_path.is_absolute():
            file_path = root_path / file_path
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")
        rel = _relative(file_path.resolve(), root_path)
        return self._build(file_path, rel, self._intrinsic_components(file_path, rel))

    def _build(self, path: Path, rel: str, components: Dict[str, float]) -> ScoredFile:
        score = min(1.0, max(0.0, sum(components.values())))
        return ScoredFile(
            path=path,
            relative_path=rel,
            score=score,
            components=MappingProxyType(dict(components)),
            included=score >= self.config.inclusion_threshold,
        )

    def _intrinsic_components(self, path: Path, rel: str) -> Dict[str, float]:
        stat = path.stat()
        return {
            "structure": self.structure_score(rel),
            "file_type": self.file_type_score(rel),
            "recency": self.recency_score(stat.st_mtime),
            "size": self.size_score(stat.st_size),
            "density": self.density_score(path, rel),
        }

    # components ------------------------------------------------------------

    def structure_score(self, rel: str) -> float:
        config = self.config
        parts = rel.split("/")
        filename = parts[-1]
        score = 0.0

        if len(parts) == 1:
            score += config.root_files_weight
            if any(fnmatchcase(filename, pattern) for pattern in config.important_file_patterns):
                score += config.root_files_weight * 0.5

        directories = parts[:-1]
        for pattern in config.important_dir_patterns:
            name = pattern.strip("/")
            if name and any(fnmatchcase(directory, name) for directory in directories):
                score += config.top_level_dirs_weight
                break

        if filename.split(".", 1)[0].lower() in ENTRY_POINT_STEMS:
            score += config.entry_points_weight
        return score

    def is_test_file(self, rel: str) -> bool:
        filename = rel.rsplit("/", 1)[-1]
        for pattern in self.config.test_file_patterns:
            if "/" in pattern:
                if fnmatchcase("/" + rel, pattern):
                    return True
            elif fnmatchcase(filename, pattern):
                return True
        return False

    def file_type_score(self, rel: str) -> float:
        config = self.config
        extension = os.path.splitext(rel)[1].lower()
        score = 0.0
        if extension in self._source_extensions:
            score = config.source_code_weight
        elif extension in self._config_extensions:
            score = config.config_files_weight
        elif extension in self._doc_extensions:
            score = config.documentation_weight

        if self.is_test_file(rel):
            score = config.test_files_weight
        return score

    def recency_score(self, mtime: float) -> float:
        window = self.config.recent_time_window_days
        if window <= 0:
            return 0.0
        days = max(0, int((self._clock() - mtime) // SECONDS_PER_DAY))
        if days > window:
            return 0.0
        return (1.0 - days / window) * self.config.recently_modified_weight

    def size_score(self, size: int) -> float:
        threshold = self.config.large_file_threshold
        if threshold <= 0 or size > threshold:
            return 0.0
        return (1.0 - size / threshold) * self.config.file_size_weight

    def density_score(self, path: Path, rel: str) -> float:
        weight = self.config.code_density_weight
        if weight <= 0 or os.path.splitext(rel)[1].lower() not in self._source_extensions:
            return 0.0
        content = read_file(path).decode("utf-8", errors="replace")
        return self.density.analyze(content, path) * weight

    # selection & reporting -------------------------------------------------

    @staticmethod
    def get_selected_files(scored: Sequence[ScoredFile]) -> List[Path]:
        return [item.path for item in scored if item.included]

    def get_scoring_report(self, scored: Sequence[ScoredFile]) -> Dict[str, object]:
        files = [
            {
                "path": item.relative_path,
                "score": item.score,
                "included": item.included,
                "components": dict(item.components),
            }
            for item in scored
        ]
        total = len(scored)
        included = sum(1 for item in scored if item.included)
        return {
            "config": self.config.as_dict(),
            "files": files,
            "summary": {
                "total_files": total,
                "included_files": included,
                "inclusion_percentage": (included / total * 100.0) if total else 0.0,
            },
        }

    def scoring_report_json(self, scored: Sequence[ScoredFile]) -> str:
        return json.dumps(self.get_scoring_report(scored), indent=2)


__all__ = ["ENTRY_POINT_STEMS", "FileScorer"]
