from __future__ import annotations

from typing import Optional

from ...core.enums import DecisionReason, PromotionOutcome
from .base import PromotionRule, RuleContext, RuleVerdict


class CoreSubjectRule(PromotionRule):
    """A failed core subject cannot be carried."""

    def check(self, ctx: RuleContext) -> Optional[RuleVerdict]:
        if ctx.policy.config.block_carry_for_core and any(e.is_core_subject for e in ctx.failed):
            return RuleVerdict(PromotionOutcome.REPEAT_YEAR, DecisionReason.CORE_SUBJECT_FAILED_BLOCKS_CARRY)
        return None
