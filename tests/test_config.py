"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from repolens.config import (
    ConfigError,
    NERMethod,
    ScanOptions,
    ScoringConfig,
    SummarizationOptions,
    load_config,
    parse_pattern_list,
)


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.root == tmp_path.resolve()
    assert config.selection_strategy == "all"
    assert config.output_format == "plain"
    assert config.scoring == ScoringConfig()
    assert config.summarization == SummarizationOptions()
    assert config.scan.include_patterns == []


def test_load_config_parses_all_sections(tmp_path: Path) -> None:
    _write(
        tmp_path / ".repolens.yml",
        """
selection_strategy: scoring
output_format: Markdown
scan:
  include: "*.py, *.md"
  exclude:
    - dist/
    - "*.min.js"
  threads: 0
  parallel_collection: true
  collector_threads: 2
scoring:
  inclusion_threshold: 0.45
  recent_time_window_days: 14
  use_tree_sitter: false
  weights:
    code_density: 0.9
    dependency_graph: 0
  important_dirs: [core/]
  test_patterns: ["spec_*"]
summarization:
  enabled: true
  entity_recognition: yes
  ner_method: tree-sitter
  first_n_lines: 20
  ml_confidence_threshold: 0.5
  entities:
    variables: false
""".lstrip(),
    )

    config = load_config(tmp_path)

    assert config.selection_strategy == "scoring"
    assert config.output_format == "markdown"
    assert config.scan.include_patterns == ["*.py", "*.md"]
    assert config.scan.exclude_patterns == ["dist/", "*.min.js"]
    assert config.scan.num_threads == 0
    assert config.scan.resolved_threads() == 0
    assert config.scan.parallel_collection is True
    assert config.scan.collector_threads == 2

    assert config.scoring.inclusion_threshold == pytest.approx(0.45)
    assert config.scoring.recent_time_window_days == 14
    assert config.scoring.use_tree_sitter is False
    assert config.scoring.code_density_weight == pytest.approx(0.9)
    assert config.scoring.dependency_graph_weight == 0.0
    assert config.scoring.important_dir_patterns == ("core/",)
    assert config.scoring.test_file_patterns == ("spec_*",)
    assert config.scoring.root_files_weight == ScoringConfig().root_files_weight

    assert config.summarization.enabled is True
    assert config.summarization.include_entity_recognition is True
    assert config.summarization.ner_method is NERMethod.TREE_SITTER
    assert config.summarization.first_n_lines == 20
    assert config.summarization.ml_confidence_threshold == pytest.approx(0.5)
    assert config.summarization.include_variable_names is False
    assert config.summarization.include_class_names is True


def test_load_config_accepts_explicit_file(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.yml"
    _write(config_file, "output_format: xml\n")

    assert load_config(config_file).output_format == "xml"


def test_empty_config_file_uses_defaults(tmp_path: Path) -> None:
    _write(tmp_path / ".repolens.yml", "")

    assert load_config(tmp_path).selection_strategy == "all"


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "selection_strategy: random\n",
        "output_format: pdf\n",
        "summarization:\n  ner_method: telepathy\n",
        "scan: [unbalanced\n",
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, content: str) -> None:
    _write(tmp_path / ".repolens.yml", content)

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_negative_and_malformed_values_are_ignored(tmp_path: Path) -> None:
    _write(
        tmp_path / ".repolens.yml",
        "scan:\n  threads: -3\n  max_file_size: lots\nscoring:\n  weights:\n    source_code: -1\n",
    )

    config = load_config(tmp_path)

    assert config.scan.num_threads is None
    assert config.scan.max_file_size == ScanOptions().max_file_size
    assert config.scoring.source_code_weight == ScoringConfig().source_code_weight


def test_parse_pattern_list_trims_and_drops_empty_entries() -> None:
    assert parse_pattern_list(" *.py , ,src/ ,") == ["*.py", "src/"]
    assert parse_pattern_list("") == []
    assert parse_pattern_list(None) == []


def test_scoring_config_snapshot_keys() -> None:
    snapshot = ScoringConfig().as_dict()

    assert snapshot["code_density_weight"] == ScoringConfig().code_density_weight
    assert snapshot["large_file_threshold"] == 1_000_000
    assert "important_file_patterns" not in snapshot
