"""Code entity extraction strategies and the factory that selects one."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List

from ..config import NERMethod, SummarizationOptions
from ..logging import get_logger
from ..models import EntityType, NamedEntity
from .base import EntityExtractor, finalize_entities
from .hybrid import HybridExtractor
from .ml import MLExtractor
from .regex import RegexExtractor
from .tree_sitter import TREE_SITTER_AVAILABLE, TreeSitterBackend, TreeSitterExtractor

_LOGGER = get_logger("extractors")

_FACTORIES: Dict[NERMethod, Callable[[SummarizationOptions], EntityExtractor]] = {
    NERMethod.REGEX: RegexExtractor,
    NERMethod.TREE_SITTER: TreeSitterExtractor,
    NERMethod.ML: MLExtractor,
    NERMethod.HYBRID: HybridExtractor,
}

_GROUP_HEADINGS = (
    (EntityType.CLASS, "Classes"),
    (EntityType.FUNCTION, "Functions"),
    (EntityType.VARIABLE, "Variables"),
    (EntityType.ENUM, "Enums"),
    (EntityType.IMPORT, "Imports"),
    (EntityType.OTHER, "Other"),
)


def create_extractor(options: SummarizationOptions | None = None) -> EntityExtractor:
    """Build the extractor selected by ``options.ner_method``.

    Construction failures are logged and degrade to :class:`RegexExtractor`.
    """
    options = options or SummarizationOptions()
    factory = _FACTORIES.get(options.ner_method, RegexExtractor)
    try:
        return factory(options)
    except Exception as exc:  # any backend failure degrades to regex extraction
        _LOGGER.warning(
            "Failed to initialise %s entity extractor, using regex: %s",
            options.ner_method.value,
            exc,
        )
        return RegexExtractor(options)


def format_entities(entities: Iterable[NamedEntity], group_by_type: bool = True) -> str:
    """Render entities as a grouped block or a flat ``name (Type)`` list."""
    items = list(entities)
    if not items:
        return ""
    lines: List[str] = []
    if group_by_type:
        for entity_type, heading in _GROUP_HEADINGS:
            names = [entity.name for entity in items if entity.type is entity_type]
            if not names:
                continue
            lines.append(f"{heading}:")
            lines.extend(f"  - {name}" for name in names)
    else:
        lines.extend(f"- {entity.name} ({entity.type.label})" for entity in items)
    return "\n".join(lines)


__all__ = [
    "EntityExtractor",
    "HybridExtractor",
    "MLExtractor",
    "RegexExtractor",
    "TREE_SITTER_AVAILABLE",
    "TreeSitterBackend",
    "TreeSitterExtractor",
    "create_extractor",
    "finalize_entities",
    "format_entities",
]
