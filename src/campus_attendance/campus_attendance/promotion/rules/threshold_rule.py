from __future__ import annotations

from typing import Optional

from ...core.enums import DecisionReason, PromotionOutcome
from .base import PromotionRule, RuleContext, RuleVerdict


class FailThresholdRule(PromotionRule):
    """Fail count at or above the threshold forces a repeat, whatever the carry limit."""

    def check(self, ctx: RuleContext) -> Optional[RuleVerdict]:
        if ctx.fail_count >= ctx.policy.config.fail_threshold_for_repeat:
            return RuleVerdict(PromotionOutcome.REPEAT_YEAR, DecisionReason.FAIL_COUNT_MEETS_THRESHOLD)
        return None
