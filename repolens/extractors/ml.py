"""ONNX sequence-labelling entity extraction."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import SummarizationOptions
from ..errors import ModelLoadError
from ..logging import get_logger
from ..models import EntityType, NamedEntity
from .base import EntityExtractor
from .regex import RegexExtractor

try:  # pragma: no cover - optional dependency
    import numpy as np
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    np = None  # type: ignore[assignment]

try:  # pragma: no cover - optional dependency
    import onnxruntime as ort
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    ort = None  # type: ignore[assignment]

ML_RUNTIME_AVAILABLE = np is not None and ort is not None

_LOGGER = get_logger("extractors.ml")

DEFAULT_MODEL_PATH = Path("models") / "codebert-ner.onnx"

UNK_TOKEN_ID = 100
CLS_TOKEN_ID = 101
SEP_TOKEN_ID = 102
MAX_SEQUENCE_LENGTH = 512

DEFAULT_LABELS: Tuple[str, ...] = (
    "O",
    "B-CLASS",
    "I-CLASS",
    "B-FUNC",
    "I-FUNC",
    "B-VAR",
    "I-VAR",
    "B-ENUM",
    "I-ENUM",
    "B-IMP",
    "I-IMP",
)

_MODEL_TYPES = {
    "CLASS": EntityType.CLASS,
    "FUNC": EntityType.FUNCTION,
    "VAR": EntityType.VARIABLE,
    "ENUM": EntityType.ENUM,
    "IMP": EntityType.IMPORT,
}


def entity_type_for_label(label: str) -> EntityType:
    return _MODEL_TYPES.get(label, EntityType.OTHER)


def decode_bio(tokens: Sequence[str], labels: Sequence[str]) -> List[NamedEntity]:
    """Group ``B-X`` tokens with the ``I-X`` tokens that follow them.

    ``I-`` tokens without a preceding ``B-`` of the same type are ignored.
    """
    entities: List[NamedEntity] = []
    size = min(len(tokens), len(labels))
    index = 0
    while index < size:
        label = labels[index]
        if not label.startswith("B-"):
            index += 1
            continue
        kind = label[2:]
        parts = [tokens[index]]
        index += 1
        while index < size and labels[index] == f"I-{kind}":
            parts.append(tokens[index])
            index += 1
        entities.append(NamedEntity(" ".join(parts), entity_type_for_label(kind)))
    return entities


class EntityCache:
    """Per-path entity cache guarded by a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, List[NamedEntity]] = {}

    def get(self, key: str) -> Optional[List[NamedEntity]]:
        with self._lock:
            cached = self._entries.get(key)
            return list(cached) if cached is not None else None

    def store(self, key: str, entities: Sequence[NamedEntity]) -> None:
        with self._lock:
            self._entries[key] = list(entities)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class Vocabulary:
    """Whitespace tokenizer backed by a ``vocab.txt`` file (one token per line)."""

    def __init__(self, tokens: Sequence[str]) -> None:
        self._id_to_token = list(tokens)
        self._token_to_id = {token: index for index, token in enumerate(self._id_to_token)}

    @classmethod
    def load(cls, path: Path) -> "Vocabulary":
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ModelLoadError(f"Failed to read vocabulary {path}: {exc}") from exc
        return cls([line.rstrip("\r") for line in text.split("\n") if line.rstrip("\r")])

    def encode(self, text: str) -> List[int]:
        ids = [CLS_TOKEN_ID]
        for token in text.split():
            ids.append(self._token_to_id.get(token, UNK_TOKEN_ID))
            if len(ids) >= MAX_SEQUENCE_LENGTH - 1:
                break
        ids.append(SEP_TOKEN_ID)
        return ids

    def token(self, token_id: int) -> str:
        if 0 <= token_id < len(self._id_to_token):
            return self._id_to_token[token_id]
        return "<unk>"


class _OnnxModel:
    def __init__(self, model_path: Path) -> None:
        if not ML_RUNTIME_AVAILABLE:
            raise ModelLoadError("onnxruntime and numpy are required for ML entity extraction")
        if not model_path.is_file():
            raise ModelLoadError(f"ONNX model file not found at: {model_path}")

        session_options = ort.SessionOptions()
        session_options.intra_op_num_threads = 2
        session_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_BASIC
        try:
            self.session = ort.InferenceSession(
                str(model_path), sess_options=session_options, providers=["CPUExecutionProvider"]
            )
        except Exception as exc:  # onnxruntime raises its own exception hierarchy
            raise ModelLoadError(f"Failed to load ONNX model {model_path}: {exc}") from exc

        self.vocabulary = Vocabulary.load(model_path.parent / "vocab.txt")
        labels_path = model_path.parent / "labels.txt"
        if labels_path.is_file():
            self.labels = tuple(
                line.strip() for line in labels_path.read_text(encoding="utf-8").splitlines() if line.strip()
            )
        else:
            self.labels = DEFAULT_LABELS

    def predict(self, input_ids: List[int]) -> "np.ndarray":
        feed = {"input_ids": np.asarray([input_ids], dtype=np.int64)}
        (logits,) = self.session.run(["logits"], feed)
        return logits[0]


class MLExtractor(EntityExtractor):
    """Runs a BIO token-classification model over each non-empty line.

    Falls back to :class:`RegexExtractor` when the runtime or model is
    missing, when inference raises, or when a file takes longer than
    ``max_ml_processing_time_ms``. Results are cached per path.
    """

    name = "ml"

    def __init__(
        self,
        options: SummarizationOptions | None = None,
        *,
        model: object | None = None,
        strict: bool = False,
    ) -> None:
        super().__init__(options)
        self._fallback = RegexExtractor(self.options)
        self._cache = EntityCache()
        self._model = model
        if self._model is None:
            try:
                self._model = _OnnxModel(self.model_path)
            except ModelLoadError as exc:
                if strict:
                    raise
                _LOGGER.warning("ML entity model unavailable, using regex extraction: %s", exc)

    @property
    def model_path(self) -> Path:
        if self.options.ml_model_path:
            return Path(self.options.ml_model_path)
        return DEFAULT_MODEL_PATH

    @property
    def available(self) -> bool:
        return self._model is not None

    @property
    def cache(self) -> EntityCache:
        return self._cache

    def _extract(self, content: str, path: Path) -> Iterable[NamedEntity]:
        key = str(path)
        if self.options.cache_ml_results:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        started = time.monotonic()
        if self._model is None:
            entities = list(self._fallback._extract(content, path))
        else:
            try:
                entities = self._infer(content)
            except Exception as exc:  # inference backends raise arbitrary runtime errors
                _LOGGER.warning("ML inference failed for %s: %s", path, exc)
                entities = list(self._fallback._extract(content, path))

        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms > self.options.max_ml_processing_time_ms:
            _LOGGER.warning(
                "ML processing exceeded time limit for %s (%.0fms > %dms)",
                path,
                elapsed_ms,
                self.options.max_ml_processing_time_ms,
            )
            entities = list(self._fallback._extract(content, path))

        if self.options.cache_ml_results:
            self._cache.store(key, entities)
        return entities

    def _infer(self, content: str) -> List[NamedEntity]:
        model = self._model
        entities: List[NamedEntity] = []
        for line in content.splitlines():
            if not line.strip():
                continue
            input_ids = model.vocabulary.encode(line)  # type: ignore[union-attr]
            if len(input_ids) <= 2:
                continue
            logits = model.predict(input_ids)  # type: ignore[union-attr]
            # Names come from the source text so out-of-vocabulary identifiers survive.
            tokens = line.split()[: len(input_ids) - 2]
            labels = self._labels_for(logits[1:-1], model.labels)  # type: ignore[union-attr]
            entities.extend(decode_bio(tokens, labels))
        return entities

    def _labels_for(self, logits, label_names: Sequence[str]) -> List[str]:  # type: ignore[no-untyped-def]
        scores = np.asarray(logits, dtype=np.float64)
        if scores.size == 0:
            return []
        shifted = np.exp(scores - scores.max(axis=-1, keepdims=True))
        probabilities = shifted / shifted.sum(axis=-1, keepdims=True)
        best = probabilities.argmax(axis=-1)
        confidence = probabilities.max(axis=-1)
        threshold = self.options.ml_confidence_threshold
        return [
            label_names[index] if score >= threshold and index < len(label_names) else "O"
            for index, score in zip(best.tolist(), confidence.tolist())
        ]


__all__ = [
    "DEFAULT_LABELS",
    "DEFAULT_MODEL_PATH",
    "EntityCache",
    "ML_RUNTIME_AVAILABLE",
    "MLExtractor",
    "Vocabulary",
    "decode_bio",
]
