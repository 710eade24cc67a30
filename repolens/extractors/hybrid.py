"""Size-based dispatch between the ML, grammar and regex strategies."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from ..config import SummarizationOptions
from ..logging import get_logger
from ..models import NamedEntity
from .base import EntityExtractor
from .ml import MLExtractor
from .regex import RegexExtractor
from .tree_sitter import TreeSitterExtractor

_LOGGER = get_logger("extractors.hybrid")


class HybridExtractor(EntityExtractor):
    """Chooses a strategy per file.

    Files at or above ``ml_ner_size_threshold`` go to the ML model when it
    loaded and ``use_ml_for_large_files`` is set. Everything else uses the
    grammar backend when ``use_tree_sitter`` is set and it is available, and
    regex tables otherwise.
    """

    name = "hybrid"

    def __init__(
        self,
        options: SummarizationOptions | None = None,
        *,
        ml: Optional[EntityExtractor] = None,
        tree_sitter: Optional[EntityExtractor] = None,
    ) -> None:
        super().__init__(options)
        self._regex = RegexExtractor(self.options)
        self._tree_sitter = tree_sitter
        self._ml = ml
        if self._tree_sitter is None and self.options.use_tree_sitter:
            self._tree_sitter = TreeSitterExtractor(self.options)
        if self._ml is None and self.options.use_ml_for_large_files:
            self._ml = MLExtractor(self.options)
        if self._ml is not None and not self._ml.available:
            _LOGGER.info("ML extraction unavailable; large files will use grammar or regex strategies")
            self._ml = None

    def choose(self, content: str, path: str | Path) -> EntityExtractor:
        size = len(content.encode("utf-8"))
        if (
            self._ml is not None
            and self.options.use_ml_for_large_files
            and size >= self.options.ml_ner_size_threshold
        ):
            return self._ml
        if self._tree_sitter is not None and self.options.use_tree_sitter and self._tree_sitter.available:
            return self._tree_sitter
        return self._regex

    def _extract(self, content: str, path: Path) -> Iterable[NamedEntity]:
        strategy = self.choose(content, path)
        _LOGGER.debug("Extracting entities from %s with %s", path, strategy.name)
        return strategy._extract(content, path)


__all__ = ["HybridExtractor"]
