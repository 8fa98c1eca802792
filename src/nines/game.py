"""
Game state: the current target and the history of attempts.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional, Set

from .validation import ValidationResult

TARGET_MIN = 0
TARGET_MAX = 99


@dataclass(frozen=True)
class Attempt:
    target: int
    expression: str
    result: ValidationResult


@dataclass
class GameState:
    rng: random.Random = field(default_factory=random.Random)
    target: int = -1
    attempts: List[Attempt] = field(default_factory=list)
    achieved: Set[int] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.target < 0:
            self.new_target()

    def new_target(self) -> int:
        self.target = self.rng.randint(TARGET_MIN, TARGET_MAX)
        return self.target

    def record(self, expression: str, result: ValidationResult, target: Optional[int] = None) -> Attempt:
        attempt = Attempt(target=self.target if target is None else target, expression=expression, result=result)
        self.attempts.append(attempt)
        if result.valid:
            self.achieved.add(attempt.target)
        return attempt

    @property
    def remaining(self) -> List[int]:
        return [n for n in range(TARGET_MIN, TARGET_MAX + 1) if n not in self.achieved]
