"""Core data models shared across repolens components."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple


class EntityType(Enum):
    """Kinds of named code entities recognised by the extractors."""

    CLASS = "class"
    FUNCTION = "function"
    VARIABLE = "variable"
    ENUM = "enum"
    IMPORT = "import"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _ENTITY_LABELS[self]


_ENTITY_LABELS = {
    EntityType.CLASS: "Class",
    EntityType.FUNCTION: "Function",
    EntityType.VARIABLE: "Variable",
    EntityType.ENUM: "Enum",
    EntityType.IMPORT: "Import",
    EntityType.OTHER: "Other",
}


@dataclass(frozen=True)
class NamedEntity:
    """A named code entity found in a source file."""

    name: str
    type: EntityType


@dataclass(frozen=True)
class ProcessedFile:
    """Result of running a single file through the processing pipeline."""

    path: Path
    relative_path: str
    content: str = ""
    line_count: int = 0
    byte_size: int = 0
    preview: str = ""
    snippets: Tuple[str, ...] = ()
    entities: Tuple[NamedEntity, ...] = ()
    entity_summary: str = ""
    error: Optional[str] = None
    skipped: bool = False

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


@dataclass(frozen=True)
class ScoredFile:
    """Importance score assigned to one repository file."""

    path: Path
    relative_path: str
    score: float
    components: Mapping[str, float] = field(default_factory=dict)
    included: bool = False


# Repo-relative posix path -> repo-relative paths it imports (no self-edges).
DependencyGraph = Dict[str, List[str]]


__all__ = [
    "DependencyGraph",
    "EntityType",
    "NamedEntity",
    "ProcessedFile",
    "ScoredFile",
]
