"""
High-level pipeline orchestrating segmentation, recognition and validation
for a single drawing snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .constants import PipelineConfig
from .exceptions import InferenceError, ModelLoadError
from .expression import ClassifiedSymbol, assemble, order_symbols
from .models import ModelStore
from .preprocess import Glyph, GlyphPreprocessor
from .raster import BinaryMask, RasterBuffer
from .segmentation import ComponentSegmenter, Region
from .validation import MSG_RECOGNITION_FAILED, ExpressionValidator, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recognition:
    expression: str
    symbols: Tuple[ClassifiedSymbol, ...] = ()
    regions: Tuple[Region, ...] = ()

    @property
    def average_confidence(self) -> float:
        if not self.symbols:
            return 0.0
        return sum(item.confidence for item in self.symbols) / len(self.symbols)


@dataclass(frozen=True)
class CheckResult:
    result: ValidationResult
    recognition: Optional[Recognition] = None

    @property
    def expression(self) -> str:
        return self.recognition.expression if self.recognition else ""


class NinesPipeline:
    """Segment and recognise a drawn expression, then validate it against a target."""

    def __init__(
        self,
        store: ModelStore,
        config: Optional[PipelineConfig] = None,
        validator: Optional[ExpressionValidator] = None,
    ) -> None:
        self.store = store
        self.config = config or store.config
        self.preprocessor = GlyphPreprocessor(
            threshold=self.config.threshold,
            target_size=self.config.glyph_size,
            interpolation=self.config.interpolation,
        )
        self.segmenter = ComponentSegmenter(
            min_area=self.config.min_area, connectivity=self.config.connectivity
        )
        self.validator = validator or ExpressionValidator()

    def prepare(self, buffer: RasterBuffer) -> Tuple[BinaryMask, List[Glyph]]:
        """Binarise, segment and normalise; one glyph per surviving region."""
        mask = self.preprocessor.binarise(buffer)
        regions = self.segmenter.segment(mask)
        return mask, self.preprocessor.normalise_all(mask, regions)

    async def recognise(self, buffer: RasterBuffer) -> Recognition:
        """
        Run one recognition pass. Raises ``ModelLoadError`` if the classifier
        cannot be loaded and ``InferenceError`` if prediction fails.
        """
        _, glyphs = self.prepare(buffer)
        if not glyphs:
            logger.debug("No regions found in %dx%d snapshot", buffer.width, buffer.height)
            return Recognition(expression="")

        async with await self.store.acquire() as classifier:
            predictions = await classifier.aclassify_batch([glyph.tensor for glyph in glyphs])

        symbols = [
            ClassifiedSymbol(
                symbol=prediction.symbol,
                anchor_x=glyph.region.min_x,
                confidence=prediction.confidence,
                index=glyph.region.index,
            )
            for glyph, prediction in zip(glyphs, predictions)
        ]
        ordered = order_symbols(symbols)
        expression = assemble(ordered)
        logger.debug("Recognised %r from %d glyph(s)", expression, len(glyphs))
        return Recognition(
            expression=expression,
            symbols=tuple(ordered),
            regions=tuple(glyph.region for glyph in glyphs),
        )

    def validate(self, expression: str, target: int) -> ValidationResult:
        return self.validator.validate(expression, target)

    async def check(self, buffer: RasterBuffer, target: int) -> CheckResult:
        """
        Recognise ``buffer`` and validate it against ``target``.

        Inference failures become a failed ``ValidationResult``; a model load
        failure is fatal and propagates to the caller.
        """
        try:
            recognition = await self.recognise(buffer)
        except ModelLoadError as exc:
            logger.error("Classifier unavailable: %s", exc)
            raise
        except InferenceError:
            logger.exception("Recognition pass failed")
            return CheckResult(result=ValidationResult(valid=False, message=MSG_RECOGNITION_FAILED))
        return CheckResult(result=self.validate(recognition.expression, target), recognition=recognition)

    async def evaluate(self, buffer: RasterBuffer, target: int) -> ValidationResult:
        return (await self.check(buffer, target)).result

    def run_check(self, buffer: RasterBuffer, target: int) -> CheckResult:
        """Blocking ``check`` for threads that do not own an event loop."""
        return asyncio.run(self.check(buffer, target))
