"""Configuration loading for repolens (.repolens.yml)."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

CONFIG_FILENAME = ".repolens.yml"
MAX_FILE_SIZE = 100 * 1024 * 1024


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


class NERMethod(Enum):
    """Entity-recognition backends selectable from configuration."""

    REGEX = "regex"
    TREE_SITTER = "tree_sitter"
    ML = "ml"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: Any, default: "NERMethod | None" = None) -> "NERMethod":
        if isinstance(value, NERMethod):
            return value
        if isinstance(value, str):
            key = value.strip().lower().replace("-", "_")
            if key == "treesitter":
                key = "tree_sitter"
            for method in cls:
                if method.value == key:
                    return method
        if default is not None:
            return default
        raise ConfigError(f"Unknown entity recognition method: {value!r}")


_DEFAULT_IMPORTANT_FILES: Tuple[str, ...] = (
    "README.md",
    "package.json",
    "requirements.txt",
    "setup.py",
    "Makefile",
    "CMakeLists.txt",
    ".gitignore",
    "Dockerfile",
    "docker-compose.yml",
    ".eslintrc.*",
    "tsconfig.json",
    "*.config.js",
    "main.*",
    "index.*",
    "app.*",
)

_DEFAULT_IMPORTANT_DIRS: Tuple[str, ...] = (
    "src/",
    "lib/",
    "app/",
    "source/",
    "include/",
    "core/",
)

_DEFAULT_SOURCE_EXTENSIONS: Tuple[str, ...] = (
    ".c", ".cpp", ".cc", ".cxx", ".h", ".hpp",
    ".js", ".ts", ".jsx", ".tsx",
    ".py", ".java", ".go", ".rs", ".rb", ".php", ".swift",
)

_DEFAULT_CONFIG_EXTENSIONS: Tuple[str, ...] = (
    ".json", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf",
)

_DEFAULT_DOC_EXTENSIONS: Tuple[str, ...] = (
    ".md", ".txt", ".rst", ".adoc", ".pdf", ".doc", ".docx",
)

_DEFAULT_TEST_PATTERNS: Tuple[str, ...] = (
    "test_*",
    "*_test.*",
    "*_spec.*",
    "*Test.*",
    "*Spec.*",
    "*/test/*",
    "*/tests/*",
)

# YAML key under `scoring.weights` -> ScoringConfig attribute.
_WEIGHT_KEYS = {
    "root_files": "root_files_weight",
    "top_level_dirs": "top_level_dirs_weight",
    "entry_points": "entry_points_weight",
    "dependency_graph": "dependency_graph_weight",
    "source_code": "source_code_weight",
    "config_files": "config_files_weight",
    "documentation": "documentation_weight",
    "test_files": "test_files_weight",
    "recently_modified": "recently_modified_weight",
    "file_size": "file_size_weight",
    "code_density": "code_density_weight",
}


@dataclass(frozen=True)
class ScoringConfig:
    """Weights, thresholds and pattern lists used by the file scorer."""

    root_files_weight: float = 0.9
    top_level_dirs_weight: float = 0.8
    entry_points_weight: float = 0.8
    dependency_graph_weight: float = 0.7
    source_code_weight: float = 0.8
    config_files_weight: float = 0.7
    documentation_weight: float = 0.6
    test_files_weight: float = 0.5
    recently_modified_weight: float = 0.7
    recent_time_window_days: int = 7
    file_size_weight: float = 0.4
    large_file_threshold: int = 1_000_000
    code_density_weight: float = 0.5
    inclusion_threshold: float = 0.3
    important_file_patterns: Tuple[str, ...] = _DEFAULT_IMPORTANT_FILES
    important_dir_patterns: Tuple[str, ...] = _DEFAULT_IMPORTANT_DIRS
    source_code_extensions: Tuple[str, ...] = _DEFAULT_SOURCE_EXTENSIONS
    config_file_extensions: Tuple[str, ...] = _DEFAULT_CONFIG_EXTENSIONS
    documentation_extensions: Tuple[str, ...] = _DEFAULT_DOC_EXTENSIONS
    test_file_patterns: Tuple[str, ...] = _DEFAULT_TEST_PATTERNS
    use_tree_sitter: bool = True

    def with_overrides(self, **overrides: Any) -> "ScoringConfig":
        """Return a copy with the provided fields replaced."""
        return dataclasses.replace(self, **overrides)

    def as_dict(self) -> Dict[str, Any]:
        """Snapshot used in scoring reports."""
        payload: Dict[str, Any] = {}
        for key, attr in _WEIGHT_KEYS.items():
            payload[f"{key}_weight"] = getattr(self, attr)
        payload["recent_time_window_days"] = self.recent_time_window_days
        payload["large_file_threshold"] = self.large_file_threshold
        payload["inclusion_threshold"] = self.inclusion_threshold
        payload["use_tree_sitter"] = self.use_tree_sitter
        return payload


@dataclass(frozen=True)
class SummarizationOptions:
    """Controls how large files are condensed and which entities are extracted."""

    enabled: bool = False
    include_first_n_lines: bool = True
    first_n_lines: int = 50
    include_snippets: bool = False
    snippets_count: int = 3
    snippet_lines: int = 10
    file_size_threshold: int = 10240
    max_summary_lines: int = 200
    include_readme: bool = True
    include_entity_recognition: bool = False
    ner_method: NERMethod = NERMethod.REGEX
    use_tree_sitter: bool = True
    use_ml_for_large_files: bool = False
    ml_ner_size_threshold: int = 102400
    ml_model_path: str = ""
    cache_ml_results: bool = True
    ml_confidence_threshold: float = 0.7
    max_ml_processing_time_ms: int = 5000
    include_class_names: bool = True
    include_function_names: bool = True
    include_variable_names: bool = True
    include_enum_values: bool = True
    include_imports: bool = True
    max_entities: int = 100
    group_entities_by_type: bool = True

    def with_overrides(self, **overrides: Any) -> "SummarizationOptions":
        return dataclasses.replace(self, **overrides)


@dataclass
class ScanOptions:
    """Discovery and concurrency settings for the processing pipeline."""

    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    num_threads: Optional[int] = None
    max_file_size: int = MAX_FILE_SIZE
    parallel_collection: bool = False
    collector_threads: int = 4
    retain_content: bool = True
    use_gitignore: bool = True

    def resolved_threads(self) -> int:
        if self.num_threads is None:
            return os.cpu_count() or 1
        return max(0, self.num_threads)


_STRATEGIES = {"all", "scoring"}
_FORMATS = {"plain", "markdown", "xml"}


@dataclass
class RepoLensConfig:
    """Represents the high-level settings defined in .repolens.yml."""

    scan: ScanOptions = field(default_factory=ScanOptions)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    summarization: SummarizationOptions = field(default_factory=SummarizationOptions)
    selection_strategy: str = "all"
    output_format: str = "plain"
    root: Optional[Path] = None


def parse_pattern_list(text: str | None) -> List[str]:
    """Split a comma-separated pattern string into trimmed, non-empty entries."""
    if not text:
        return []
    return [part.strip() for part in text.split(",") if part.strip()]


def load_config(config_path: Path) -> RepoLensConfig:
    """Load configuration from disk.

    ``config_path`` may point at the YAML file or at a repository root, in
    which case ``.repolens.yml`` inside it is used. Missing files yield the
    defaults.
    """
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return RepoLensConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    return config_from_mapping(data, root=root)


def config_from_mapping(data: Dict[str, Any], *, root: Optional[Path] = None) -> RepoLensConfig:
    """Build a configuration object from an already-parsed mapping."""
    strategy = (_as_str(data.get("selection_strategy")) or "all").lower()
    if strategy not in _STRATEGIES:
        raise ConfigError(f"Unknown selection_strategy: {strategy}")
    output_format = (_as_str(data.get("output_format")) or "plain").lower()
    if output_format not in _FORMATS:
        raise ConfigError(f"Unknown output_format: {output_format}")

    return RepoLensConfig(
        scan=_parse_scan(_as_dict(data.get("scan"))),
        scoring=_parse_scoring(_as_dict(data.get("scoring"))),
        summarization=_parse_summarization(_as_dict(data.get("summarization"))),
        selection_strategy=strategy,
        output_format=output_format,
        root=root,
    )


def _resolve_config_path(path: Path) -> Path:
    if path.is_dir():
        return path / CONFIG_FILENAME
    return path


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _parse_scan(data: Dict[str, Any]) -> ScanOptions:
    options = ScanOptions()
    options.include_patterns = _as_pattern_list(data.get("include"))
    options.exclude_patterns = _as_pattern_list(data.get("exclude"))
    threads = _as_int(data.get("threads"))
    if threads is not None and threads >= 0:
        options.num_threads = threads
    max_size = _as_int(data.get("max_file_size"))
    if max_size is not None and max_size > 0:
        options.max_file_size = max_size
    parallel = _as_bool(data.get("parallel_collection"))
    if parallel is not None:
        options.parallel_collection = parallel
    collectors = _as_int(data.get("collector_threads"))
    if collectors is not None and collectors > 0:
        options.collector_threads = collectors
    retain = _as_bool(data.get("retain_content"))
    if retain is not None:
        options.retain_content = retain
    gitignore = _as_bool(data.get("use_gitignore"))
    if gitignore is not None:
        options.use_gitignore = gitignore
    return options


def _parse_scoring(data: Dict[str, Any]) -> ScoringConfig:
    overrides: Dict[str, Any] = {}
    for key, attr in _WEIGHT_KEYS.items():
        value = _as_float(_as_dict(data.get("weights")).get(key))
        if value is not None and value >= 0:
            overrides[attr] = value

    window = _as_int(data.get("recent_time_window_days"))
    if window is not None and window > 0:
        overrides["recent_time_window_days"] = window
    large = _as_int(data.get("large_file_threshold"))
    if large is not None and large > 0:
        overrides["large_file_threshold"] = large
    threshold = _as_float(data.get("inclusion_threshold"))
    if threshold is not None:
        overrides["inclusion_threshold"] = threshold
    use_ts = _as_bool(data.get("use_tree_sitter"))
    if use_ts is not None:
        overrides["use_tree_sitter"] = use_ts

    for key, attr in (
        ("important_files", "important_file_patterns"),
        ("important_dirs", "important_dir_patterns"),
        ("source_extensions", "source_code_extensions"),
        ("config_extensions", "config_file_extensions"),
        ("documentation_extensions", "documentation_extensions"),
        ("test_patterns", "test_file_patterns"),
    ):
        if key in data:
            overrides[attr] = tuple(_as_str_list(data.get(key)))

    return ScoringConfig(**overrides)


def _parse_summarization(data: Dict[str, Any]) -> SummarizationOptions:
    overrides: Dict[str, Any] = {}
    for key, attr in (
        ("enabled", "enabled"),
        ("include_first_n_lines", "include_first_n_lines"),
        ("include_snippets", "include_snippets"),
        ("include_readme", "include_readme"),
        ("entity_recognition", "include_entity_recognition"),
        ("use_tree_sitter", "use_tree_sitter"),
        ("use_ml_for_large_files", "use_ml_for_large_files"),
        ("cache_ml_results", "cache_ml_results"),
        ("group_entities_by_type", "group_entities_by_type"),
    ):
        value = _as_bool(data.get(key))
        if value is not None:
            overrides[attr] = value

    for key in (
        "first_n_lines",
        "snippets_count",
        "snippet_lines",
        "file_size_threshold",
        "max_summary_lines",
        "ml_ner_size_threshold",
        "max_ml_processing_time_ms",
        "max_entities",
    ):
        value = _as_int(data.get(key))
        if value is not None and value >= 0:
            overrides[key] = value

    confidence = _as_float(data.get("ml_confidence_threshold"))
    if confidence is not None:
        overrides["ml_confidence_threshold"] = confidence
    model_path = _as_str(data.get("ml_model_path"))
    if model_path:
        overrides["ml_model_path"] = model_path
    if "ner_method" in data:
        overrides["ner_method"] = NERMethod.parse(data.get("ner_method"))

    entities = _as_dict(data.get("entities"))
    for key, attr in (
        ("classes", "include_class_names"),
        ("functions", "include_function_names"),
        ("variables", "include_variable_names"),
        ("enums", "include_enum_values"),
        ("imports", "include_imports"),
    ):
        value = _as_bool(entities.get(key))
        if value is not None:
            overrides[attr] = value

    return SummarizationOptions(**overrides)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    if isinstance(value, str):
        return [value]
    return []


def _as_pattern_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return parse_pattern_list(value)
    return [item.strip() for item in _as_str_list(value) if item.strip()]


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "MAX_FILE_SIZE",
    "NERMethod",
    "RepoLensConfig",
    "ScanOptions",
    "ScoringConfig",
    "SummarizationOptions",
    "config_from_mapping",
    "load_config",
    "parse_pattern_list",
]
