"""Base classes for code entity extractors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List

from ..config import SummarizationOptions
from ..models import EntityType, NamedEntity


class EntityExtractor(ABC):
    """Contract for strategies that pull named entities out of source text."""

    name = "base"

    def __init__(self, options: SummarizationOptions | None = None) -> None:
        self.options = options or SummarizationOptions()

    @property
    def available(self) -> bool:
        """False when the backend this strategy needs is missing."""
        return True

    def extract_entities(self, content: str, path: str | Path) -> List[NamedEntity]:
        """Return entities found in ``content``, filtered and truncated per the options."""
        if not content:
            return []
        return finalize_entities(self._extract(content, Path(path)), self.options)

    @abstractmethod
    def _extract(self, content: str, path: Path) -> Iterable[NamedEntity]:
        """Produce raw entities for one file."""


def kind_enabled(entity_type: EntityType, options: SummarizationOptions) -> bool:
    if entity_type is EntityType.CLASS:
        return options.include_class_names
    if entity_type is EntityType.FUNCTION:
        return options.include_function_names
    if entity_type is EntityType.VARIABLE:
        return options.include_variable_names
    if entity_type is EntityType.ENUM:
        return options.include_enum_values
    if entity_type is EntityType.IMPORT:
        return options.include_imports
    return True


def finalize_entities(
    entities: Iterable[NamedEntity], options: SummarizationOptions
) -> List[NamedEntity]:
    """Drop disabled kinds and cap the list at ``options.max_entities``."""
    limit = max(0, options.max_entities)
    result: List[NamedEntity] = []
    for entity in entities:
        if len(result) >= limit:
            break
        if entity.name and kind_enabled(entity.type, options):
            result.append(entity)
    return result


__all__ = ["EntityExtractor", "finalize_entities", "kind_enabled"]
