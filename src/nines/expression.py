"""
Assembly of classified glyphs into a left-to-right token string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class ClassifiedSymbol:
    symbol: str
    anchor_x: int
    confidence: float
    index: int = 0


def order_symbols(symbols: Iterable[ClassifiedSymbol]) -> List[ClassifiedSymbol]:
    """Sort by horizontal anchor; ties keep detection order."""
    return sorted(symbols, key=lambda item: (item.anchor_x, item.index))


def assemble(symbols: Iterable[ClassifiedSymbol]) -> str:
    return "".join(item.symbol for item in order_symbols(symbols))
