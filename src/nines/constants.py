"""
Label configuration and defaults for the nines symbol recogniser.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .exceptions import ModelLoadError

# Output order of the pretrained classifier. Index i of the probability
# vector is SYMBOL_ALPHABET[i].
SYMBOL_ALPHABET: Tuple[str, ...] = ("9", "+", "-", "*", "/", "(", ")")

NINE = "9"
REQUIRED_NINES = 3

DEFAULT_THRESHOLD = 200
DEFAULT_MIN_AREA = 10
DEFAULT_CONNECTIVITY = 4
GLYPH_SIZE = 28
INTERPOLATIONS = ("nearest", "bilinear")

MODEL_FILENAME = "symbol_classifier.keras"
LABEL_MAPPING_FILENAME = "label_mapping.json"
MODEL_PATH_ENV = "NINES_MODEL_PATH"


@dataclass(frozen=True)
class LabelTable:
    """Explicit index->symbol table for the classifier output vector."""

    symbols: Tuple[str, ...] = SYMBOL_ALPHABET

    def __post_init__(self) -> None:
        if not self.symbols:
            raise ValueError("Label table must contain at least one symbol")
        if len(set(self.symbols)) != len(self.symbols):
            raise ValueError(f"Duplicate symbols in label table: {self.symbols}")

    def __len__(self) -> int:
        return len(self.symbols)

    def symbol_at(self, index: int) -> str:
        return self.symbols[index]

    def as_mapping(self) -> Dict[int, str]:
        return {idx: symbol for idx, symbol in enumerate(self.symbols)}

    @classmethod
    def from_mapping(cls, mapping: Mapping[object, str]) -> "LabelTable":
        """
        Build a table from a ``{index: symbol}`` mapping, as stored in
        ``label_mapping.json``. Indices must be exactly ``0..n-1``.
        """
        indexed = {int(k): str(v) for k, v in mapping.items()}
        expected = list(range(len(indexed)))
        if sorted(indexed) != expected:
            raise ValueError(f"Label indices must be contiguous from 0, got {sorted(indexed)}")
        return cls(tuple(indexed[idx] for idx in expected))

    def validate_output_size(self, size: int) -> None:
        if size != len(self.symbols):
            raise ModelLoadError(
                f"Classifier declares {size} outputs but the label table has "
                f"{len(self.symbols)} symbols {list(self.symbols)}"
            )


def default_label_table() -> LabelTable:
    return LabelTable(SYMBOL_ALPHABET)


def load_label_table(path: str) -> LabelTable:
    """Read a ``{"0": "9", "1": "+", ...}`` JSON mapping from ``path``."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError("label mapping must be a JSON object")
        return LabelTable.from_mapping(data)
    except (OSError, ValueError) as exc:
        raise ModelLoadError(f"Invalid label mapping '{path}': {exc}") from exc


def default_model_dir() -> str:
    package_dir = os.path.dirname(os.path.abspath(__file__))
    project_root = os.path.dirname(os.path.dirname(package_dir))
    return os.path.join(project_root, "models")


def default_model_path() -> str:
    return os.path.join(default_model_dir(), MODEL_FILENAME)


@dataclass(frozen=True)
class PipelineConfig:
    """Tunable parameters for one recognition pipeline."""

    threshold: int = DEFAULT_THRESHOLD
    min_area: int = DEFAULT_MIN_AREA
    connectivity: int = DEFAULT_CONNECTIVITY
    glyph_size: int = GLYPH_SIZE
    interpolation: str = "nearest"
    model_path: str = field(default_factory=default_model_path)
    labels: Optional[LabelTable] = None

    def __post_init__(self) -> None:
        if not 0 <= self.threshold <= 256:
            raise ValueError(f"threshold must be within 0..256, got {self.threshold}")
        if self.min_area < 0:
            raise ValueError(f"min_area must be non-negative, got {self.min_area}")
        if self.connectivity not in (4, 8):
            raise ValueError(f"connectivity must be 4 or 8, got {self.connectivity}")
        if self.glyph_size <= 0:
            raise ValueError(f"glyph_size must be positive, got {self.glyph_size}")
        if self.interpolation not in INTERPOLATIONS:
            raise ValueError(f"interpolation must be one of {INTERPOLATIONS}, got {self.interpolation!r}")

    @property
    def label_mapping_path(self) -> str:
        return os.path.join(os.path.dirname(os.path.abspath(self.model_path)), LABEL_MAPPING_FILENAME)

    def with_overrides(self, **overrides: object) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        env = os.environ if environ is None else environ
        model_path = env.get(MODEL_PATH_ENV)
        if model_path:
            return cls(model_path=model_path)
        return cls()


def resolve_symbols(symbols: Sequence[str]) -> LabelTable:
    return LabelTable(tuple(str(symbol) for symbol in symbols))
