"""Pipeline orchestration: discover, select, process and render a repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .config import RepoLensConfig, load_config
from .errors import validate_root
from .logging import get_logger, log_duration
from .matcher import PatternMatcher
from .models import ProcessedFile, ScoredFile
from .processor import FileProcessor
from .render import FORMATS, Totals, render
from .scoring import FileScorer

GITIGNORE_FILENAME = ".gitignore"


@dataclass
class RunStats:
    """Counters and timings for a single run."""

    total_files: int = 0
    total_lines: int = 0
    total_bytes: int = 0
    skipped_files: int = 0
    failed_files: int = 0
    scored_files: int = 0
    selected_files: int = 0
    scoring_ms: float = 0.0
    processing_ms: float = 0.0
    output_ms: float = 0.0
    total_ms: float = 0.0

    def summary(self, *, timing: bool = True) -> str:
        lines = [
            "Repository processing summary:",
            f"  Total files: {self.total_files}",
            f"  Total lines: {self.total_lines}",
            f"  Total bytes: {self.total_bytes} bytes",
        ]
        if self.skipped_files:
            lines.append(f"  Skipped files: {self.skipped_files}")
        if self.failed_files:
            lines.append(f"  Failed files: {self.failed_files}")
        if self.scored_files:
            lines.append(f"  Selected files: {self.selected_files} of {self.scored_files}")
        if timing:
            if self.scored_files:
                lines.append(f"  Scoring time: {self.scoring_ms:.0f} ms")
            lines.append(f"  Processing time: {self.processing_ms:.0f} ms")
            lines.append(f"  Output generation time: {self.output_ms:.0f} ms")
            lines.append(f"  Total time: {self.total_ms:.0f} ms")
        return "\n".join(lines)


@dataclass
class RunResult:
    """Everything produced by :meth:`Orchestrator.run`."""

    root: Path
    files: List[ProcessedFile]
    output: str
    scored: List[ScoredFile] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)
    output_path: Optional[Path] = None


class Orchestrator:
    """Coordinates matcher, scorer, processor and renderer for one repository.

    Without an explicit ``config`` each run loads ``.repolens.yml`` from the
    repository root (defaults apply when it is missing).
    """

    def __init__(self, config: RepoLensConfig | None = None) -> None:
        self._config = config
        self.logger = get_logger("orchestrator")

    def config_for(self, root: Path) -> RepoLensConfig:
        if self._config is not None:
            return self._config
        return load_config(root)

    def build_matcher(self, root: Path, config: RepoLensConfig) -> PatternMatcher:
        scan = config.scan
        matcher = PatternMatcher(scan.exclude_patterns, scan.include_patterns)
        if scan.use_gitignore:
            loaded = matcher.load_ignore_file(root / GITIGNORE_FILENAME)
            if loaded:
                self.logger.debug("Loaded %d patterns from %s", loaded, GITIGNORE_FILENAME)
        return matcher

    def build_processor(self, matcher: PatternMatcher, config: RepoLensConfig) -> FileProcessor:
        scan = config.scan
        return FileProcessor(
            matcher,
            scan.resolved_threads(),
            max_file_size=scan.max_file_size,
            summarization=config.summarization,
            parallel_collection=scan.parallel_collection,
            collector_threads=scan.collector_threads,
            retain_content=scan.retain_content,
        )

    def build_scorer(self, matcher: PatternMatcher, config: RepoLensConfig) -> FileScorer:
        return FileScorer(config.scoring, matcher=matcher)

    def run(
        self,
        root: str | Path,
        output_path: str | Path | None = None,
        *,
        output_format: str | None = None,
    ) -> RunResult:
        """Process ``root`` and render it, optionally writing the output to disk."""
        stats = RunStats()
        with log_duration(self.logger, "run", level=logging.INFO) as total:
            result = self._execute(root, output_path, output_format, stats)
        stats.total_ms = total.elapsed_ms
        return result

    def _execute(
        self,
        root: str | Path,
        output_path: str | Path | None,
        output_format: str | None,
        stats: RunStats,
    ) -> RunResult:
        root_path = validate_root(root)
        config = self.config_for(root_path)
        fmt = (output_format or config.output_format).lower()
        if fmt not in FORMATS:
            raise ValueError(f"Unknown output format: {fmt}")

        matcher = self.build_matcher(root_path, config)
        processor = self.build_processor(matcher, config)
        scored: List[ScoredFile] = []

        if config.selection_strategy == "scoring":
            with log_duration(self.logger, "scoring") as timing:
                scorer = self.build_scorer(matcher, config)
                scored = scorer.score_repository(root_path)
                selected = scorer.get_selected_files(scored)
            stats.scoring_ms = timing.elapsed_ms
            stats.scored_files = len(scored)
            stats.selected_files = len(selected)
            self.logger.info("Selected %d of %d files by score", len(selected), len(scored))

            with log_duration(self.logger, "processing") as timing:
                processed = processor.process_paths(selected, root_path)
            stats.processing_ms = timing.elapsed_ms
            order: Dict[str, int] = {item.relative_path: index for index, item in enumerate(scored)}
            processed.sort(key=lambda item: order.get(item.relative_path, len(order)))
        else:
            with log_duration(self.logger, "processing") as timing:
                processed = processor.process_directory(root_path)
            stats.processing_ms = timing.elapsed_ms
            processed.sort(key=lambda item: item.relative_path)

        files = [item for item in processed if item.ok]
        stats.skipped_files = sum(1 for item in processed if item.skipped)
        stats.failed_files = sum(1 for item in processed if item.error is not None)
        totals = Totals.of(files)
        stats.total_files = totals.files
        stats.total_lines = totals.lines
        stats.total_bytes = totals.bytes

        with log_duration(self.logger, "output") as timing:
            output = render(files, root_path, fmt, processor=processor, matcher=matcher)
            written: Optional[Path] = None
            if output_path is not None:
                written = Path(output_path)
                written.write_text(output, encoding="utf-8")
                self.logger.info("Output written to %s", written)
        stats.output_ms = timing.elapsed_ms

        return RunResult(
            root=root_path,
            files=files,
            output=output,
            scored=scored,
            stats=stats,
            output_path=written,
        )

    def scoring_report(self, root: str | Path) -> Dict[str, object]:
        """Score ``root`` and return the JSON-ready report without processing files."""
        root_path = validate_root(root)
        config = self.config_for(root_path)
        matcher = self.build_matcher(root_path, config)
        scorer = self.build_scorer(matcher, config)
        return scorer.get_scoring_report(scorer.score_repository(root_path))


__all__ = ["Orchestrator", "RunResult", "RunStats"]
