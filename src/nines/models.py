"""
Symbol classifier wrapper and the process-wide model store.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .constants import GLYPH_SIZE, LabelTable, PipelineConfig, default_label_table, load_label_table
from .exceptions import InferenceError, ModelLoadError

try:
    from tensorflow import keras

    _TF_AVAILABLE = True
    _TF_IMPORT_ERROR = None
except Exception as exc:  # pragma: no cover
    keras = None  # type: ignore
    _TF_AVAILABLE = False
    _TF_IMPORT_ERROR = exc

logger = logging.getLogger(__name__)


def _ensure_tf() -> None:
    if not _TF_AVAILABLE:
        raise ModelLoadError(
            "TensorFlow is required to load the symbol classifier but is not available. "
            f"Original import error: {_TF_IMPORT_ERROR}"
        )


@dataclass(frozen=True)
class Classification:
    symbol: str
    confidence: float
    probabilities: np.ndarray


class SymbolClassifier:
    """
    Fixed-alphabet glyph classifier.

    ``predictor`` is anything with a ``predict(batch)`` method returning an
    ``(N, len(labels))`` probability array, normally a loaded Keras model.
    """

    def __init__(
        self,
        predictor: Any,
        labels: Optional[LabelTable] = None,
        input_shape: Tuple[int, int, int] = (GLYPH_SIZE, GLYPH_SIZE, 1),
    ) -> None:
        self.predictor = predictor
        self.labels = labels or default_label_table()
        self.input_shape = tuple(input_shape)

    def _predict(self, batch: np.ndarray) -> np.ndarray:
        if keras is not None and isinstance(self.predictor, keras.Model):
            probs = self.predictor.predict(batch, verbose=0)
        else:
            probs = self.predictor.predict(batch)
        return np.asarray(probs, dtype=np.float32)

    def classify_batch(self, tensors: Sequence[np.ndarray]) -> List[Classification]:
        """Classify every tensor; the result list is in input order."""
        if len(tensors) == 0:
            return []
        batch = np.stack(
            [np.asarray(t, dtype=np.float32).reshape(self.input_shape) for t in tensors], axis=0
        )
        try:
            probs = self._predict(batch)
        except Exception as exc:
            raise InferenceError(f"Classifier failed on a batch of {len(tensors)} glyph(s): {exc}") from exc
        if probs.shape != (len(tensors), len(self.labels)):
            raise InferenceError(
                f"Classifier returned shape {probs.shape}, expected {(len(tensors), len(self.labels))}"
            )
        results: List[Classification] = []
        for row in probs:
            label_idx = int(np.argmax(row))
            results.append(
                Classification(
                    symbol=self.labels.symbol_at(label_idx),
                    confidence=float(row[label_idx]),
                    probabilities=row,
                )
            )
        return results

    def classify(self, tensor: np.ndarray) -> Classification:
        return self.classify_batch([tensor])[0]

    async def aclassify_batch(self, tensors: Sequence[np.ndarray]) -> List[Classification]:
        return await asyncio.to_thread(self.classify_batch, list(tensors))

    async def aclassify(self, tensor: np.ndarray) -> Classification:
        return await asyncio.to_thread(self.classify, tensor)


def _declared_shape(model: Any, attribute: str) -> Optional[Tuple[Any, ...]]:
    try:
        shape = getattr(model, attribute, None)
    except (AttributeError, ValueError):
        shape = None
    if shape is None:
        tensors = getattr(model, attribute.replace("_shape", "s"), None)
        if tensors:
            shape = [tuple(t.shape) for t in tensors]
    if isinstance(shape, list):
        if len(shape) != 1:
            raise ModelLoadError(f"Classifier must have a single {attribute.split('_')[0]}, got {len(shape)}")
        shape = shape[0]
    return tuple(shape) if shape is not None else None


def build_classifier(model: Any, labels: LabelTable, glyph_size: int = GLYPH_SIZE) -> SymbolClassifier:
    """Check ``model`` against the label table and expected input, then wrap it."""
    output_shape = _declared_shape(model, "output_shape")
    if not output_shape:
        raise ModelLoadError("Classifier does not declare an output shape")
    labels.validate_output_size(int(output_shape[-1]))

    expected_input = (glyph_size, glyph_size, 1)
    input_shape = _declared_shape(model, "input_shape")
    if input_shape is not None and tuple(input_shape[1:]) != expected_input:
        raise ModelLoadError(f"Classifier expects input {input_shape[1:]}, glyphs are {expected_input}")
    return SymbolClassifier(model, labels=labels, input_shape=expected_input)


def load_symbol_model(config: PipelineConfig) -> SymbolClassifier:
    """Load the Keras classifier and its label table described by ``config``."""
    _ensure_tf()
    path = config.model_path
    if not os.path.exists(path):
        raise ModelLoadError(f"Classifier model not found at '{path}'")

    labels = config.labels
    if labels is None:
        mapping_path = config.label_mapping_path
        labels = load_label_table(mapping_path) if os.path.exists(mapping_path) else default_label_table()

    try:
        model = keras.models.load_model(path, compile=False)
    except Exception as exc:
        raise ModelLoadError(f"Failed to load classifier from '{path}': {exc}") from exc

    classifier = build_classifier(model, labels, config.glyph_size)
    logger.info("Loaded symbol classifier from %s with labels %s", path, list(labels.symbols))
    return classifier


class ModelHandle:
    """Reference to the shared classifier; release it when done."""

    def __init__(self, store: "ModelStore", classifier: SymbolClassifier) -> None:
        self._store = store
        self.classifier = classifier
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._store._release()

    async def __aenter__(self) -> SymbolClassifier:
        return self.classifier

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()


class ModelStore:
    """
    Load-once holder for the symbol classifier.

    The first ``acquire`` starts the load; concurrent callers on any thread or
    event loop wait on the same in-flight future. A failed load stays cached
    until ``reset`` is called.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        loader: Callable[[PipelineConfig], SymbolClassifier] = load_symbol_model,
    ) -> None:
        self.config = config or PipelineConfig()
        self._loader = loader
        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self._refs = 0
        self.load_count = 0

    @property
    def references(self) -> int:
        with self._lock:
            return self._refs

    @property
    def loaded(self) -> bool:
        with self._lock:
            future = self._future
        return future is not None and future.done() and future.exception() is None

    def _claim(self) -> Tuple[Future, bool]:
        with self._lock:
            if self._future is None:
                self._future = Future()
                self.load_count += 1
                return self._future, True
            return self._future, False

    def _load_into(self, future: Future) -> None:
        try:
            classifier = self._loader(self.config)
        except ModelLoadError as exc:
            logger.error("Model load failed: %s", exc)
            future.set_exception(exc)
        except Exception as exc:
            logger.error("Model load failed: %s", exc)
            future.set_exception(ModelLoadError(str(exc)))
        except BaseException as exc:
            # Waiters must never be left on an unresolved future.
            future.set_exception(exc)
            raise
        else:
            future.set_result(classifier)

    def _handle(self, classifier: SymbolClassifier) -> ModelHandle:
        with self._lock:
            self._refs += 1
        return ModelHandle(self, classifier)

    def _release(self) -> None:
        with self._lock:
            self._refs = max(0, self._refs - 1)

    async def acquire(self) -> ModelHandle:
        future, owner = self._claim()
        if owner:
            await asyncio.to_thread(self._load_into, future)
        classifier = await asyncio.wrap_future(future)
        return self._handle(classifier)

    def acquire_sync(self) -> ModelHandle:
        """Blocking variant of ``acquire`` for callers without an event loop."""
        future, owner = self._claim()
        if owner:
            self._load_into(future)
        return self._handle(future.result())

    def reset(self) -> None:
        """Forget a failed or finished load so the next ``acquire`` loads again."""
        with self._lock:
            if self._future is not None and not self._future.done():
                raise RuntimeError("Cannot reset while a load is in flight")
            self._future = None

    def close(self) -> None:
        """Drop the cached classifier once no handles are outstanding."""
        with self._lock:
            if self._refs:
                raise RuntimeError(f"{self._refs} model handle(s) still in use")
            if self._future is not None and not self._future.done():
                raise RuntimeError("Cannot close while a load is in flight")
            self._future = None
