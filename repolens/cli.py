"""CLI entrypoint for repolens."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import ConfigError, NERMethod, RepoLensConfig, load_config, parse_pattern_list
from .logging import configure_logging
from .orchestrator import Orchestrator
from .render import FORMATS
from .scoring import FileScorer


def _add_verbose_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repolens",
        description="Pack a repository into a single document, optionally selecting files by importance score.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    parser.add_argument("-o", "--output", help="Write the rendered output to this file instead of stdout.")
    parser.add_argument("--format", choices=FORMATS, help="Output format (defaults to plain or the config value).")
    parser.add_argument("--include", help="Comma-separated patterns; only matching files are processed.")
    parser.add_argument("--exclude", help="Comma-separated patterns added to the ignore list.")
    parser.add_argument("--threads", type=int, help="Worker threads (0 processes sequentially).")
    parser.add_argument(
        "--strategy",
        choices=("all", "scoring"),
        help="Process every file or only files whose score passes the threshold.",
    )
    parser.add_argument("--threshold", type=float, help="Inclusion threshold for the scoring strategy.")
    parser.add_argument(
        "--summarize",
        action="store_true",
        help="Condense files larger than the summarization threshold.",
    )
    parser.add_argument(
        "--ner",
        choices=[method.value for method in NERMethod],
        help="Entity extraction method used in summaries (implies --summarize).",
    )
    parser.add_argument("--scoring-report", help="Write the JSON scoring report to this file.")
    parser.add_argument("--config", help="Path to a .repolens.yml (defaults to the one in the repository).")
    return parser


def _apply_overrides(config: RepoLensConfig, args: argparse.Namespace) -> RepoLensConfig:
    if args.include:
        config.scan.include_patterns = parse_pattern_list(args.include)
    if args.exclude:
        config.scan.exclude_patterns = config.scan.exclude_patterns + parse_pattern_list(args.exclude)
    if args.threads is not None:
        config.scan.num_threads = max(0, args.threads)
    if args.strategy:
        config.selection_strategy = args.strategy
    if args.threshold is not None:
        config.scoring = config.scoring.with_overrides(inclusion_threshold=args.threshold)
    if args.format:
        config.output_format = args.format
    if args.summarize or args.ner:
        config.summarization = config.summarization.with_overrides(enabled=True)
    if args.ner:
        config.summarization = config.summarization.with_overrides(
            include_entity_recognition=True,
            ner_method=NERMethod.parse(args.ner),
        )
    return config


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repolens."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    root = Path(args.path)
    try:
        config = load_config(Path(args.config) if args.config else root)
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")
    config = _apply_overrides(config, args)
    orchestrator = Orchestrator(config)

    try:
        result = orchestrator.run(root, args.output)
        if args.scoring_report:
            if result.scored:
                report = FileScorer(config.scoring).get_scoring_report(result.scored)
            else:
                report = orchestrator.scoring_report(root)
            Path(args.scoring_report).write_text(json.dumps(report, indent=2), encoding="utf-8")
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"Error: {exc}\n")
    except OSError as exc:
        parser.exit(1, f"repolens failed: {exc}\n")
    except RuntimeError as exc:
        parser.exit(1, f"repolens failed: {exc}\nRun with --verbose for more details.\n")

    if result.output_path is None:
        sys.stdout.write(result.output)
    else:
        print(f"Output written to {_relativize(result.output_path)}")
    if args.verbose or result.output_path is not None:
        print(result.stats.summary(), file=sys.stderr)


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
