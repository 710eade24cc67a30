"""End-to-end tests for the orchestrator and output renderers."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from repolens.config import RepoLensConfig, ScanOptions, ScoringConfig, SummarizationOptions
from repolens.matcher import PatternMatcher
from repolens.orchestrator import Orchestrator
from repolens.render import directory_tree, render
from tests._fixtures.repo_builder import RepoBuilder


def _sample_repo(builder: RepoBuilder) -> Path:
    builder.write(
        {
            "README.md": "# Sample\n",
            "src/app.py": "def main():\n    return 1\n",
            "src/style.css": "body { margin: 0; }\n",
            "node_modules/dep/index.js": "module.exports = 1;\n",
            ".gitignore": "secret/\n",
            "secret/key.txt": "hunter2\n",
        }
    )
    return builder.path()


def _config(**kwargs: object) -> RepoLensConfig:
    config = RepoLensConfig(scan=ScanOptions(num_threads=2), scoring=ScoringConfig(use_tree_sitter=False))
    for key, value in kwargs.items():
        setattr(config, key, value)
    return config


def test_directory_tree_skips_ignored_entries(repo_builder: RepoBuilder) -> None:
    root = _sample_repo(repo_builder)

    tree = directory_tree(root, PatternMatcher(["secret/"]))

    assert "📁 src" in tree
    assert "  📄 app.py" in tree
    assert "node_modules" not in tree
    assert "secret" not in tree


def test_plain_output_lists_files_with_headers(repo_builder: RepoBuilder) -> None:
    root = _sample_repo(repo_builder)

    result = Orchestrator(_config()).run(root)

    assert [item.relative_path for item in result.files] == [
        ".gitignore",
        "README.md",
        "src/app.py",
        "src/style.css",
    ]
    assert result.output.startswith("Repository Summary\n==================\nFiles: 4\n")
    assert "=== src/app.py ===\nLines: 2, Size: 0 KB\ndef main():" in result.output
    assert "hunter2" not in result.output
    assert result.stats.total_files == 4
    assert result.stats.total_lines == 5


def test_markdown_output_uses_language_fences(repo_builder: RepoBuilder) -> None:
    root = _sample_repo(repo_builder)

    result = Orchestrator(_config(output_format="markdown")).run(root)

    assert result.output.startswith("# Repository Summary\n\n| Files | Lines | Size |")
    assert "### src/app.py\n\n*2 lines, 0 KB*\n\n```python\ndef main():" in result.output
    assert "```css\nbody { margin: 0; }\n```" in result.output


def test_xml_output_is_well_formed(repo_builder: RepoBuilder) -> None:
    root = _sample_repo(repo_builder)
    repo_builder.write({"src/weird.txt": "contains ]]> marker & <tags>\n"})

    result = Orchestrator(_config()).run(root, output_format="xml")
    document = ET.fromstring(result.output.split("\n", 1)[1])

    paths = [node.findtext("path") for node in document.iter("file")]
    assert "src/weird.txt" in paths
    weird = next(node for node in document.iter("file") if node.findtext("path") == "src/weird.txt")
    assert weird.findtext("content") == "contains ]]> marker & <tags>\n"
    assert document.findtext("summary/files") == "5"


def test_scoring_strategy_processes_only_selected_files(repo_builder: RepoBuilder) -> None:
    root = _sample_repo(repo_builder)
    repo_builder.write({"misc/deep/old.xyz": "x\n"})
    repo_builder.age("misc/deep/old.xyz", 90)
    config = _config(
        selection_strategy="scoring",
        scoring=ScoringConfig(use_tree_sitter=False, inclusion_threshold=0.5),
    )

    result = Orchestrator(config).run(root)

    processed = [item.relative_path for item in result.files]
    assert "misc/deep/old.xyz" not in processed
    assert "src/app.py" in processed
    assert result.stats.scored_files == len(result.scored)
    assert result.stats.selected_files == len(processed)
    scores = {item.relative_path: item.score for item in result.scored}
    assert [scores[path] for path in processed] == sorted((scores[path] for path in processed), reverse=True)
    stats = result.stats
    assert stats.total_ms >= stats.scoring_ms + stats.processing_ms + stats.output_ms
    assert stats.scoring_ms > 0.0


def test_large_files_are_summarized_in_output(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"big.py": "".join(f"value_{index} = {index}\n" for index in range(400))})
    config = _config(
        summarization=SummarizationOptions(enabled=True, file_size_threshold=100, first_n_lines=5),
    )

    result = Orchestrator(config).run(repo_builder.path())

    assert "value_4 = 4\n// ... (395 more lines) ..." in result.output
    assert "value_200 = 200" not in result.output


def test_output_is_written_to_disk(repo_builder: RepoBuilder, tmp_path: Path) -> None:
    root = _sample_repo(repo_builder)
    target = tmp_path / "packed.txt"

    result = Orchestrator(_config()).run(root, target)

    assert result.output_path == target
    assert target.read_text(encoding="utf-8") == result.output
    assert "Total files: 4" in result.stats.summary()


def test_run_without_config_reads_repository_file(repo_builder: RepoBuilder) -> None:
    root = _sample_repo(repo_builder)
    repo_builder.write({".repolens.yml": "output_format: markdown\nscan:\n  include: '*.py'\n"})

    result = Orchestrator().run(root)

    assert [item.relative_path for item in result.files] == ["src/app.py"]
    assert result.output.startswith("# Repository Summary")


def test_scoring_report_without_processing(repo_builder: RepoBuilder) -> None:
    root = _sample_repo(repo_builder)

    report = Orchestrator(_config()).scoring_report(root)

    assert report["summary"]["total_files"] == len(report["files"])
    assert "secret/key.txt" not in {entry["path"] for entry in report["files"]}


def test_invalid_root_and_format(tmp_path: Path) -> None:
    orchestrator = Orchestrator(_config())
    with pytest.raises(FileNotFoundError):
        orchestrator.run(tmp_path / "missing")
    with pytest.raises(ValueError):
        orchestrator.run(tmp_path, output_format="pdf")


def test_render_rejects_unknown_format(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        render([], tmp_path, "yaml")
