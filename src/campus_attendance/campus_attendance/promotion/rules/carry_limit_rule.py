from __future__ import annotations

from typing import Optional

from ...core.enums import DecisionReason, PromotionOutcome
from .base import PromotionRule, RuleContext, RuleVerdict


class CarryLimitRule(PromotionRule):
    def check(self, ctx: RuleContext) -> Optional[RuleVerdict]:
        if ctx.fail_count > ctx.policy.config.max_carry_subjects:
            return RuleVerdict(PromotionOutcome.REPEAT_YEAR, DecisionReason.FAIL_COUNT_EXCEEDS_CARRY_LIMIT)
        return None
