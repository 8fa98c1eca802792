"""
Nines: draw an expression with exactly three 9s that hits the target.

Handwritten symbol segmentation, recognition, and expression validation
for the nines puzzle game.
"""

from .constants import PipelineConfig, SYMBOL_ALPHABET
from .exceptions import InferenceError, ModelLoadError, NinesError
from .pipeline import NinesPipeline, Recognition
from .validation import ValidationResult, validate

__version__ = "1.0.0"

__all__ = [
    "InferenceError",
    "ModelLoadError",
    "NinesError",
    "NinesPipeline",
    "PipelineConfig",
    "Recognition",
    "SYMBOL_ALPHABET",
    "ValidationResult",
    "validate",
]
