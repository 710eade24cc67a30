"""Tests for the line-based code density heuristic."""

from __future__ import annotations

import pytest

from repolens.scoring.density import DensityAnalyzer, line_density, line_metrics


def test_line_metrics_classifies_code_comments_and_blanks() -> None:
    source = (
        "// header\n"
        "/* block\n"
        "   still block */\n"
        "\n"
        "#include <stdio.h>\n"
        "int main() {\n"
        "    return 0;\n"
        "}\n"
    )

    metrics = line_metrics(source, "main.c")

    assert metrics.total == 8
    assert metrics.comments == 3
    assert metrics.blank == 1
    assert metrics.code == 4
    assert metrics.imports == 1


def test_single_line_block_comment_does_not_swallow_following_code() -> None:
    source = "/* one line */\nint x = 1;\nint y = 2;\n"

    metrics = line_metrics(source, "values.c")

    assert metrics.comments == 1
    assert metrics.code == 2


def test_python_docstrings_count_as_comments() -> None:
    source = '"""Module doc."""\n\ndef run():\n    """\n    Long doc.\n    """\n    return 1\n'

    metrics = line_metrics(source, "run.py")

    assert metrics.comments == 4
    assert metrics.functions == 1
    assert metrics.code == 2


def test_line_density_of_plain_code() -> None:
    # 2 code lines out of 2, one function: 0.6 + 0.02
    assert line_density("def run():\n    return 1\n", "run.py") == pytest.approx(0.62)


def test_comment_ratio_bonus_applies_between_ten_and_thirty_percent() -> None:
    code = "".join(f"value_{index} = {index}\n" for index in range(8))
    source = "# settings\n" + code + "# end\n"

    # 8/10 code, comment ratio 2/8 = 0.25
    assert line_density(source, "settings.py") == pytest.approx(0.8 * 0.6 + 0.1)


def test_missing_comments_penalised_for_long_files() -> None:
    source = "".join(f"value_{index} = {index}\n" for index in range(25))

    assert line_density(source, "values.py") == pytest.approx(0.6 - 0.1)


def test_import_heavy_files_are_penalised() -> None:
    source = "".join(f"import module_{index}\n" for index in range(6)) + "run()\n"

    assert line_density(source, "imports.py") == pytest.approx(0.6 - 0.1)


def test_empty_content_scores_zero() -> None:
    assert line_density("", "empty.py") == 0.0


def test_analyzer_without_grammar_uses_line_heuristic() -> None:
    analyzer = DensityAnalyzer(use_tree_sitter=False)
    source = "def run():\n    return 1\n"

    assert analyzer.grammar_enabled is False
    assert analyzer.analyze(source, "run.py") == line_density(source, "run.py")
