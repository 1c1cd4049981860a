from __future__ import annotations

from typing import Optional

from ...core.enums import DecisionReason, PromotionOutcome
from .base import PromotionRule, RuleContext, RuleVerdict


class FinalYearRule(PromotionRule):
    """No carrying out of the department's final stage when the policy says so."""

    def check(self, ctx: RuleContext) -> Optional[RuleVerdict]:
        config = ctx.policy.config
        if config.disable_carry_for_final_year and ctx.fail_count > 0 and ctx.policy.is_final_stage(ctx.student_stage):
            return RuleVerdict(PromotionOutcome.REPEAT_YEAR, DecisionReason.FINAL_YEAR_NO_CARRY)
        return None
