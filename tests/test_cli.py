"""CLI parser and entrypoint tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from repolens.cli import _apply_overrides, _build_parser, main
from repolens.config import NERMethod, RepoLensConfig
from tests._fixtures.repo_builder import RepoBuilder


def test_cli_defaults() -> None:
    args = _build_parser().parse_args([])
    assert args.path == "."
    assert args.verbose is False
    assert args.format is None
    assert args.strategy is None


def test_cli_accepts_all_options() -> None:
    args = _build_parser().parse_args(
        [
            "repo",
            "-o",
            "out.md",
            "--format",
            "markdown",
            "--include",
            "*.py,*.md",
            "--exclude",
            "dist/",
            "--threads",
            "0",
            "--strategy",
            "scoring",
            "--threshold",
            "0.4",
            "--ner",
            "hybrid",
            "--scoring-report",
            "report.json",
            "-v",
        ]
    )
    assert args.path == "repo"
    assert args.output == "out.md"
    assert args.threads == 0
    assert args.threshold == pytest.approx(0.4)
    assert args.ner == "hybrid"
    assert args.verbose is True


def test_cli_rejects_unknown_strategy() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["--strategy", "random"])


def test_overrides_apply_on_top_of_config() -> None:
    config = RepoLensConfig()
    config.scan.exclude_patterns = ["build/"]
    args = _build_parser().parse_args(
        ["--exclude", "dist/", "--include", "*.py", "--threads", "3", "--threshold", "0.7", "--ner", "ml"]
    )

    updated = _apply_overrides(config, args)

    assert updated.scan.exclude_patterns == ["build/", "dist/"]
    assert updated.scan.include_patterns == ["*.py"]
    assert updated.scan.num_threads == 3
    assert updated.scoring.inclusion_threshold == pytest.approx(0.7)
    assert updated.summarization.enabled is True
    assert updated.summarization.include_entity_recognition is True
    assert updated.summarization.ner_method is NERMethod.ML


def test_main_writes_output_and_scoring_report(
    repo_builder: RepoBuilder, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_builder.write({"README.md": "# Demo\n", "src/app.py": "print('hi')\n"})
    output = tmp_path / "packed.md"
    report = tmp_path / "report.json"

    main(
        [
            str(repo_builder.path()),
            "-o",
            str(output),
            "--format",
            "markdown",
            "--strategy",
            "scoring",
            "--threads",
            "1",
            "--scoring-report",
            str(report),
        ]
    )

    assert output.read_text(encoding="utf-8").startswith("# Repository Summary")
    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["summary"]["total_files"] == 2
    assert "Output written to" in capsys.readouterr().out


def test_main_prints_to_stdout(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    repo_builder.write({"notes.txt": "hello\n"})

    main([str(repo_builder.path()), "--threads", "0"])

    out = capsys.readouterr().out
    assert out.startswith("Repository Summary")
    assert "=== notes.txt ===" in out


def test_main_exits_for_missing_directory(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    assert "does not exist" in capsys.readouterr().err
