"""
Arithmetic evaluation of assembled expressions.

The evaluator never raises for bad input: every outcome is an ``Evaluation``
that either carries a value or the reason it could not be computed.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

import sympy as sp
from sympy.parsing.sympy_parser import implicit_multiplication, parse_expr, standard_transformations

logger = logging.getLogger(__name__)

ALLOWED_CHARS = set("0123456789+-*/(). \t")

# Python operators with no meaning in the game's grammar.
_FORBIDDEN_OPERATORS = re.compile(r"\*\*|//")

_TRANSFORMATIONS = standard_transformations + (implicit_multiplication,)

Number = Union[int, float]


@dataclass(frozen=True)
class Evaluation:
    ok: bool
    value: Optional[Number] = None
    exact: Any = None
    reason: str = ""

    @classmethod
    def success(cls, exact: sp.Expr) -> "Evaluation":
        return cls(ok=True, value=to_number(exact), exact=exact)

    @classmethod
    def failure(cls, reason: str) -> "Evaluation":
        return cls(ok=False, reason=reason)


# Division by zero is well-formed; its result is reported, not rejected.
_NON_FINITE = {
    sp.zoo: float("inf"),
    sp.oo: float("inf"),
    -sp.oo: float("-inf"),
    sp.nan: float("nan"),
}


def to_number(value: sp.Expr) -> Number:
    if value in _NON_FINITE:
        return _NON_FINITE[value]
    if value.is_Integer:
        return int(value)
    if value.is_Float and value == int(value):
        return int(value)
    return float(value)


def format_number(value: Number) -> str:
    if isinstance(value, float) and math.isnan(value):
        return "NaN"
    if isinstance(value, float) and math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def evaluate_expression(expression: str) -> Evaluation:
    """Evaluate an infix arithmetic string with exact rational arithmetic."""
    expr = expression.strip()
    if not expr:
        return Evaluation.failure("empty expression")
    bad = sorted({ch for ch in expr if ch not in ALLOWED_CHARS})
    if bad:
        return Evaluation.failure(f"unsupported characters {bad}")
    if _FORBIDDEN_OPERATORS.search(expr):
        return Evaluation.failure("unsupported operator")

    try:
        result = parse_expr(expr, transformations=_TRANSFORMATIONS, evaluate=True)
    except Exception as exc:
        logger.debug("Failed to parse expression %r: %s", expr, exc)
        return Evaluation.failure(f"malformed expression: {exc}")

    if not isinstance(result, sp.Expr) or not result.is_number:
        return Evaluation.failure("expression does not reduce to a number")
    if result in _NON_FINITE:
        return Evaluation.success(result)
    if result.is_finite is not True or result.is_real is not True:
        return Evaluation.failure("result is not a finite real number")
    return Evaluation.success(result)
