from __future__ import annotations

from dataclasses import dataclass

from .rules.base import PromotionRule
from .rules.carry_limit_rule import CarryLimitRule
from .rules.core_subject_rule import CoreSubjectRule
from .rules.final_year_rule import FinalYearRule
from .rules.threshold_rule import FailThresholdRule


@dataclass
class PromotionRuleFactory:
    """Factory Pattern: build the ordered rule chain.

    Order is the precedence: threshold, final year, core subject, carry limit.
    The first rule that returns a verdict decides the reason code.
    """

    def default_chain(self) -> tuple[PromotionRule, ...]:
        return (
            FailThresholdRule(),
            FinalYearRule(),
            CoreSubjectRule(),
            CarryLimitRule(),
        )
