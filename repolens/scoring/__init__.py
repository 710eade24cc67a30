"""File importance scoring."""

from .density import DensityAnalyzer, line_density
from .dependencies import build_dependency_graph, connectivity_score, resolve_import
from .scorer import FileScorer

__all__ = [
    "DensityAnalyzer",
    "FileScorer",
    "build_dependency_graph",
    "connectivity_score",
    "line_density",
    "resolve_import",
]
