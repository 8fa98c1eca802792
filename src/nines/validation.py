"""
Game-rule validation of an assembled expression against a target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import NINE, REQUIRED_NINES
from .evaluate import Evaluation, Number, evaluate_expression, format_number

logger = logging.getLogger(__name__)

MSG_CORRECT = "Correct!"
MSG_NINE_COUNT = "Must use exactly three 9s"
MSG_INVALID = "Invalid expression"
MSG_RECOGNITION_FAILED = "Recognition failed"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str
    value: Optional[Number] = None


class ExpressionValidator:
    """Check the nine-count rule, then evaluate and compare with the target."""

    def __init__(
        self,
        evaluator: Callable[[str], Evaluation] = evaluate_expression,
        required_nines: int = REQUIRED_NINES,
    ) -> None:
        self.evaluator = evaluator
        self.required_nines = required_nines

    def count_nines(self, token_string: str) -> int:
        return token_string.count(NINE)

    def matches(self, evaluation: Evaluation, target: int) -> bool:
        # Rationals compare exactly; decimal input is compared as a Python float.
        exact = evaluation.exact
        if exact is not None and getattr(exact, "is_Rational", False):
            return bool(exact == target)
        return evaluation.value == target

    def validate(self, token_string: str, target: int) -> ValidationResult:
        if self.count_nines(token_string) != self.required_nines:
            return ValidationResult(valid=False, message=MSG_NINE_COUNT)

        evaluation = self.evaluator(token_string)
        if not evaluation.ok:
            logger.debug("Rejected %r: %s", token_string, evaluation.reason)
            return ValidationResult(valid=False, message=MSG_INVALID)

        if self.matches(evaluation, target):
            return ValidationResult(valid=True, message=MSG_CORRECT, value=evaluation.value)
        return ValidationResult(
            valid=False,
            message=f"Result: {format_number(evaluation.value)}, Target: {target}",
            value=evaluation.value,
        )


_DEFAULT_VALIDATOR = ExpressionValidator()


def validate(token_string: str, target: int) -> ValidationResult:
    return _DEFAULT_VALIDATOR.validate(token_string, target)
