"""
Error types raised by the recognition pipeline.
"""


class NinesError(Exception):
    """Base class for errors raised by this package."""


class ModelLoadError(NinesError):
    """The classifier could not be loaded; the pipeline is unusable until resolved."""


class InferenceError(NinesError):
    """The classifier failed while predicting a batch of glyphs."""
