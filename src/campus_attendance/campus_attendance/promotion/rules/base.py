from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from ...academics.model import Stage
from ...core.enums import DecisionReason, PromotionOutcome
from ...enrollments.model import Enrollment
from ..model import PromotionPolicy


@dataclass(frozen=True)
class RuleContext:
    failed: Sequence[Enrollment]
    policy: PromotionPolicy
    student_stage: Optional[Stage]

    @property
    def fail_count(self) -> int:
        return len(self.failed)


@dataclass(frozen=True)
class RuleVerdict:
    outcome: PromotionOutcome
    reason: DecisionReason


class PromotionRule(ABC):
    """Strategy Pattern: one promotion rule.

    ``check`` returns a verdict when the rule decides the outcome, else None so
    the next rule in the chain is consulted. Only called with at least one failure.
    """

    @abstractmethod
    def check(self, ctx: RuleContext) -> Optional[RuleVerdict]:
        raise NotImplementedError
