"""Tests for repolens.processor."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, List

import pytest

from repolens.config import SummarizationOptions
from repolens.extractors import RegexExtractor
from repolens.matcher import PatternMatcher
from repolens.models import EntityType
from repolens.processor import (
    MMAP_THRESHOLD,
    FileProcessor,
    PipelineState,
    count_lines,
    is_binary_sample,
    read_file,
)
from tests._fixtures.repo_builder import RepoBuilder


def _sample_repo(builder: RepoBuilder) -> None:
    builder.write(
        {
            "src/app.py": "print('hi')\n",
            "src/util.py": "def helper():\n    return 1\n",
            "README.md": "# Sample\n",
            "node_modules/lib/index.js": "module.exports = 1;\n",
            ".git/config": "[core]\n",
        }
    )


def _relative_paths(records: List[Any]) -> List[str]:
    return sorted(record.relative_path for record in records)


def test_count_lines_handles_unterminated_tail() -> None:
    assert count_lines(b"") == 0
    assert count_lines(b"a\nb\n") == 2
    assert count_lines(b"a\nb") == 2
    assert count_lines(b"\n") == 1


def test_is_binary_sample_thresholds() -> None:
    assert is_binary_sample(b"") is False
    assert is_binary_sample(b"plain text\n\twith tabs\r\n") is False
    assert is_binary_sample(b"\x00" * 20 + b"a" * 80) is True
    assert is_binary_sample(bytes(range(128, 256))) is True


def test_is_binary_sample_boundaries() -> None:
    assert is_binary_sample(b"a" * 1000 + b"\x00") is False
    assert is_binary_sample(b"\x00" * 100 + b"a" * 900) is False
    assert is_binary_sample(b"\x00" * 150 + b"a" * 850) is True
    assert is_binary_sample(b"\x01" * 201 + b"a" * 799) is True


def test_read_file_uses_mapping_above_threshold(tmp_path: Path) -> None:
    big = tmp_path / "big.txt"
    payload = b"line\n" * (MMAP_THRESHOLD // 5 + 10)
    big.write_bytes(payload)
    assert len(payload) > MMAP_THRESHOLD
    assert read_file(big) == payload

    small = tmp_path / "small.txt"
    small.write_bytes(b"tiny")
    assert read_file(small) == b"tiny"
    assert read_file(tmp_path / "small.txt", 0) == b""


def test_process_directory_skips_default_ignores(repo_builder: RepoBuilder) -> None:
    _sample_repo(repo_builder)
    processor = FileProcessor(num_threads=2)

    records = processor.process_directory(repo_builder.path())

    assert _relative_paths(records) == ["README.md", "src/app.py", "src/util.py"]
    util = next(record for record in records if record.relative_path == "src/util.py")
    assert util.line_count == 2
    assert util.byte_size == len("def helper():\n    return 1\n")
    assert util.content.startswith("def helper")
    assert processor.state is PipelineState.DONE
    assert processor.state_history == [PipelineState.PARALLEL, PipelineState.DONE]


def test_process_directory_respects_include_patterns(repo_builder: RepoBuilder) -> None:
    _sample_repo(repo_builder)
    processor = FileProcessor(PatternMatcher(include_patterns=["*.py"]), 1)

    records = processor.process_directory(repo_builder.path())

    assert _relative_paths(records) == ["src/app.py", "src/util.py"]


def test_parallel_collection_matches_sequential_walk(repo_builder: RepoBuilder) -> None:
    _sample_repo(repo_builder)
    for index in range(20):
        repo_builder.write({f"pkg{index % 4}/sub/mod{index}.py": f"value = {index}\n"})
    processor = FileProcessor(num_threads=4, collector_threads=3)

    sequential = processor.collect_files(repo_builder.path())
    parallel = processor.collect_files_parallel(repo_builder.path())

    assert parallel == sorted(sequential)
    assert len(parallel) == 23


def test_zero_threads_processes_sequentially(repo_builder: RepoBuilder) -> None:
    _sample_repo(repo_builder)
    processor = FileProcessor(num_threads=0)

    records = processor.process_directory(repo_builder.path())

    assert len(records) == 3
    assert processor.state_history == [PipelineState.SEQUENTIAL, PipelineState.DONE]


def test_worker_count_is_capped_by_queue_size(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"a.py": "a = 1\n", "b.py": "b = 2\n"})
    started: List[str] = []

    def factory(*args: Any, **kwargs: Any) -> threading.Thread:
        started.append(kwargs["name"])
        return threading.Thread(*args, **kwargs)

    processor = FileProcessor(num_threads=16, thread_factory=factory)
    records = processor.process_directory(repo_builder.path())

    assert len(records) == 2
    assert len(started) == 2


def test_spawn_failure_degrades_to_sequential(repo_builder: RepoBuilder) -> None:
    for index in range(10):
        repo_builder.write({f"file{index}.txt": f"content {index}\n"})
    attempts: List[int] = []

    def flaky_factory(*args: Any, **kwargs: Any) -> threading.Thread:
        attempts.append(1)
        if len(attempts) > 1:
            raise RuntimeError("can't start new thread")
        return threading.Thread(*args, **kwargs)

    processor = FileProcessor(num_threads=4, thread_factory=flaky_factory)
    records = processor.process_directory(repo_builder.path())

    assert _relative_paths(records) == sorted(f"file{index}.txt" for index in range(10))
    assert len({record.relative_path for record in records}) == 10
    assert processor.state_history == [
        PipelineState.PARALLEL,
        PipelineState.DEGRADING,
        PipelineState.SEQUENTIAL,
        PipelineState.DONE,
    ]


def test_binary_and_oversized_files_are_skipped(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"notes.txt": "hello\n", "large.txt": "x" * 200})
    repo_builder.write_bytes("blob.dat2", b"\x00\x01\x02" * 100)
    repo_builder.write_bytes("image.png", b"not really a png")

    processor = FileProcessor(num_threads=1, max_file_size=100)
    records = {record.relative_path: record for record in processor.process_directory(repo_builder.path())}

    assert records["notes.txt"].ok
    assert records["large.txt"].skipped
    assert records["blob.dat2"].skipped
    assert records["image.png"].skipped


def test_missing_root_raises_before_work(tmp_path: Path) -> None:
    processor = FileProcessor()
    with pytest.raises(FileNotFoundError):
        processor.process_directory(tmp_path / "missing")

    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        processor.process_directory(target)


def test_process_file_raises_for_missing_file(tmp_path: Path) -> None:
    processor = FileProcessor()
    with pytest.raises(FileNotFoundError):
        processor.process_file(tmp_path / "nope.py")


def test_process_paths_processes_explicit_list(repo_builder: RepoBuilder) -> None:
    _sample_repo(repo_builder)
    processor = FileProcessor(num_threads=2)

    records = processor.process_paths(["src/app.py", repo_builder.path() / "README.md"], repo_builder.path())

    assert _relative_paths(records) == ["README.md", "src/app.py"]


def test_summarization_populates_preview_snippets_and_entities(repo_builder: RepoBuilder) -> None:
    body = "\n".join(f"def function_{index}():\n    return {index}\n" for index in range(60))
    repo_builder.write({"big.py": "class Service:\n    pass\n" + body})
    options = SummarizationOptions(
        enabled=True,
        first_n_lines=5,
        include_snippets=True,
        snippets_count=2,
        snippet_lines=3,
        file_size_threshold=100,
        include_entity_recognition=True,
    )
    processor = FileProcessor(num_threads=1, summarization=options, extractor=RegexExtractor(options))

    record = processor.process_file(repo_builder.path() / "big.py", repo_builder.path())

    assert record.preview.splitlines()[0] == "class Service:"
    assert len(record.preview.splitlines()) == 5
    assert len(record.snippets) == 2
    assert all(len(snippet.splitlines()) == 3 for snippet in record.snippets)
    assert any(entity.type is EntityType.CLASS and entity.name == "Service" for entity in record.entities)
    assert "Classes:" in record.entity_summary

    summary = processor.summarize_file(record)
    assert summary.startswith("class Service:")
    assert "more lines) ..." in summary
    assert "// Snippet 1:" in summary
    assert "// Entities:" in summary


def test_summary_is_truncated_to_max_lines(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"long.txt": "".join(f"line {index}\n" for index in range(500))})
    options = SummarizationOptions(
        enabled=True,
        first_n_lines=50,
        include_snippets=False,
        file_size_threshold=10,
        max_summary_lines=10,
    )
    processor = FileProcessor(num_threads=0, summarization=options)

    record = processor.process_file(repo_builder.path() / "long.txt", repo_builder.path())
    summary_lines = processor.summarize_file(record).splitlines()

    assert len(summary_lines) == 11
    assert summary_lines[-1] == "// ... (summary truncated) ..."


def test_readme_is_exempt_from_summarization(repo_builder: RepoBuilder) -> None:
    text = "# Title\n" + "words " * 100 + "\n"
    repo_builder.write({"README.md": text})
    options = SummarizationOptions(enabled=True, file_size_threshold=10, include_readme=True)
    processor = FileProcessor(num_threads=0, summarization=options)

    record = processor.process_file(repo_builder.path() / "README.md", repo_builder.path())

    assert record.preview == ""
    assert processor.summarize_file(record) == text


def test_parallel_and_degraded_runs_produce_the_same_files(repo_builder: RepoBuilder) -> None:
    _sample_repo(repo_builder)
    for index in range(12):
        repo_builder.write({f"pkg{index % 3}/mod{index}.py": f"value = {index}\n"})

    def failing_factory(*args: Any, **kwargs: Any) -> threading.Thread:
        raise RuntimeError("can't start new thread")

    parallel = FileProcessor(num_threads=4).process_directory(repo_builder.path(), parallel_collection=True)
    degraded_processor = FileProcessor(num_threads=4, thread_factory=failing_factory)
    degraded = degraded_processor.process_directory(repo_builder.path())
    sequential = FileProcessor(num_threads=0).process_directory(repo_builder.path())

    expected = {record.path for record in sequential}
    assert len(expected) == 15
    assert {record.path for record in parallel} == expected
    assert {record.path for record in degraded} == expected
    assert PipelineState.DEGRADING in degraded_processor.state_history
