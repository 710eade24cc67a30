"""Regex-table entity extraction."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from ..languages import language_for
from ..models import NamedEntity
from .base import EntityExtractor, kind_enabled


class RegexExtractor(EntityExtractor):
    """Extracts entities with the per-language tables in :mod:`repolens.languages`.

    Files in languages without entity tables yield nothing. Kinds switched
    off in the options are skipped before their regexes run.
    """

    name = "regex"

    def _extract(self, content: str, path: Path) -> Iterable[NamedEntity]:
        spec = language_for(path)
        if spec is None:
            return []

        entities: List[NamedEntity] = []
        for pattern in spec.entities:
            if not kind_enabled(pattern.type, self.options):
                continue
            for match in pattern.regex.finditer(content):
                name = match.group(pattern.group)
                if not name or name in pattern.stopwords:
                    continue
                entities.append(NamedEntity(name=name, type=pattern.type))
        return entities


__all__ = ["RegexExtractor"]
