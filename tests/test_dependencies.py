"""Tests for import scanning and dependency graph construction."""

from __future__ import annotations

import math

import pytest

from repolens.languages import GO, JAVASCRIPT, PYTHON, RUST
from repolens.scoring.dependencies import (
    FileIndex,
    build_dependency_graph,
    connectivity_score,
    extract_imports,
    incoming_counts,
    resolve_import,
)
from tests._fixtures.repo_builder import RepoBuilder

SOURCE_EXTENSIONS = (".py", ".js", ".ts", ".go", ".rs", ".c", ".h", ".java")


def _graph(builder: RepoBuilder, files: dict) -> dict:
    builder.write(files)
    return build_dependency_graph(builder.path(), sorted(files), SOURCE_EXTENSIONS)


def test_extract_python_imports_including_parenthesised_blocks() -> None:
    source = (
        "import os\n"
        "# import ignored\n"
        "from pkg.models import (\n"
        "    User,\n"
        "    Group as G,\n"
        ")\n"
        "from . import helpers\n"
    )

    imports = extract_imports(source, PYTHON)

    assert imports == [
        ("os",),
        ("pkg.models.User", "pkg.models"),
        ("pkg.models.Group", "pkg.models"),
        (".",),
    ]


def test_extract_javascript_multiline_import_records_source() -> None:
    source = (
        "import {\n"
        "  a,\n"
        "  b,\n"
        "} from './lib/util';\n"
        "const x = require('./other');\n"
        "// import nope from './nope';\n"
    )

    assert extract_imports(source, JAVASCRIPT) == [("./lib/util",), ("./other",)]


def test_extract_go_block_and_rust_braced_use() -> None:
    go_source = 'import (\n    "fmt"\n    util "example.com/app/util"\n)\n'
    assert extract_imports(go_source, GO) == [("fmt",), ("example.com/app/util",)]

    rust_source = "use crate::net::{client, server};\nuse config;\n"
    assert extract_imports(rust_source, RUST) == [
        ("crate::net::client",),
        ("crate::net::server",),
        ("config",),
    ]


def test_resolve_relative_javascript_paths() -> None:
    index = FileIndex(["src/app.js", "src/lib/util.ts", "src/components/index.jsx"])

    assert resolve_import("./lib/util", "src/app.js", index, JAVASCRIPT) == "src/lib/util.ts"
    assert resolve_import("./components", "src/app.js", index, JAVASCRIPT) == "src/components/index.jsx"
    assert resolve_import("../app.js", "src/lib/util.ts", index, JAVASCRIPT) == "src/app.js"
    assert resolve_import("react", "src/app.js", index, JAVASCRIPT) is None


def test_resolve_root_absolute_and_filename_lookup() -> None:
    index = FileIndex(["include/util.h", "src/main.c", "vendor/util.h"])

    assert resolve_import("/vendor/util.h", "src/main.c", index) == "vendor/util.h"
    # Bare names take the first indexed candidate in sorted order.
    assert resolve_import("util.h", "src/main.c", index) == "include/util.h"


def test_resolve_python_dotted_and_relative_modules() -> None:
    index = FileIndex(["pkg/__init__.py", "pkg/models.py", "pkg/sub/__init__.py", "pkg/sub/views.py"])

    assert resolve_import("pkg.models", "main.py", index, PYTHON) == "pkg/models.py"
    assert resolve_import("pkg.sub", "main.py", index, PYTHON) == "pkg/sub/__init__.py"
    assert resolve_import(".views", "pkg/sub/api.py", index, PYTHON) == "pkg/sub/views.py"
    assert resolve_import("..models", "pkg/sub/api.py", index, PYTHON) == "pkg/models.py"
    assert resolve_import(".", "pkg/sub/api.py", index, PYTHON) == "pkg/sub/__init__.py"
    assert resolve_import("requests", "main.py", index, PYTHON) is None


def test_build_graph_drops_self_edges_and_unresolved(repo_builder: RepoBuilder) -> None:
    graph = _graph(
        repo_builder,
        {
            "app.py": "import helpers\nimport app\nimport requests\n",
            "helpers.py": "from pkg.models import (\n    User,\n)\n",
            "pkg/__init__.py": "",
            "pkg/models.py": "import os\n",
            "README.md": "import helpers\n",
        },
    )

    assert graph["app.py"] == ["helpers.py"]
    assert graph["helpers.py"] == ["pkg/models.py"]
    assert graph["pkg/models.py"] == []
    assert "README.md" not in graph


def test_build_graph_for_javascript_tree(repo_builder: RepoBuilder) -> None:
    graph = _graph(
        repo_builder,
        {
            "src/index.js": "import App from './App';\nimport { a } from './lib/util';\n",
            "src/App.js": "const util = require('./lib/util');\n",
            "src/lib/util.js": "export const a = 1;\n",
        },
    )

    assert graph["src/index.js"] == ["src/App.js", "src/lib/util.js"]
    assert graph["src/App.js"] == ["src/lib/util.js"]
    assert incoming_counts(graph) == {"src/App.js": 1, "src/lib/util.js": 2}


def test_connectivity_score_uses_log_scale_and_distinct_importers() -> None:
    graph = {
        "a.py": ["c.py", "c.py"],
        "b.py": ["c.py"],
        "c.py": ["d.py"],
        "d.py": [],
        "lonely.py": [],
    }

    # c.py: imported by two distinct files, imports one
    assert connectivity_score("c.py", graph) == pytest.approx(math.log2(4) / 5)
    assert connectivity_score("lonely.py", graph) == 0.0
    assert connectivity_score("missing.py", graph) == 0.0

    busy = {f"f{index}.py": ["hub.py"] for index in range(40)}
    busy["hub.py"] = []
    assert connectivity_score("hub.py", busy) == 1.0
