from __future__ import annotations

from collections import Counter
from typing import Optional, Sequence

from ..academics.model import Stage
from ..core.enums import DecisionReason, PromotionOutcome, ResultStatus
from ..core.exceptions import DataIntegrityError, InsufficientData
from ..enrollments.model import CarryFlagUpdate, Enrollment
from .factory import PromotionRuleFactory
from .model import MaterialRef, PromotionDecision, PromotionPolicy
from .rules.base import PromotionRule, RuleContext

BLOCKED_BY_ABSENCE_NOTE = "blocked_by_absence"


def _ref(e: Enrollment) -> MaterialRef:
    return MaterialRef(material_id=e.material_id, name=e.material_name, is_core_subject=e.is_core_subject)


class PromotionEvaluator:
    """Pure decision function: (enrollments, policy, stage) -> PromotionDecision.

    No I/O and no shared mutable state, so one instance can serve many threads.
    Only FAILED counts as a failure; BLOCKED_BY_ABSENCE is reported through
    ``annotations`` without changing the outcome.
    """

    def __init__(self, rules: Optional[Sequence[PromotionRule]] = None):
        self._rules = tuple(rules) if rules is not None else PromotionRuleFactory().default_chain()

    def evaluate(
        self,
        enrollments: Sequence[Enrollment],
        policy: PromotionPolicy,
        student_stage: Optional[Stage] = None,
    ) -> PromotionDecision:
        if not enrollments:
            raise InsufficientData("No enrollments for the requested academic year")

        student_id, academic_year = self._identity(enrollments)
        self._check_unique_materials(student_id, enrollments)

        failed = [e for e in enrollments if e.result_status == ResultStatus.FAILED]
        absent = [e for e in enrollments if e.result_status == ResultStatus.BLOCKED_BY_ABSENCE]

        def decide(outcome: PromotionOutcome, reason: DecisionReason, carried: Sequence[Enrollment] = ()) -> PromotionDecision:
            return PromotionDecision(
                student_id=student_id,
                academic_year=academic_year,
                outcome=outcome,
                reason=reason,
                failed_materials=tuple(_ref(e) for e in failed),
                carried_materials=tuple(_ref(e) for e in carried),
                student_stage_id=student_stage.stage_id if student_stage else None,
                absence_blocked_materials=tuple(_ref(e) for e in absent),
                annotations=(BLOCKED_BY_ABSENCE_NOTE,) if absent else (),
                carry_flag_updates=tuple(CarryFlagUpdate(enrollment_id=e.enrollment_id) for e in carried),
            )

        if not failed:
            return decide(PromotionOutcome.PROMOTED, DecisionReason.NO_FAILURES)

        ctx = RuleContext(failed=failed, policy=policy, student_stage=student_stage)
        for rule in self._rules:
            verdict = rule.check(ctx)
            if verdict is not None:
                return decide(verdict.outcome, verdict.reason)

        return decide(PromotionOutcome.PROMOTED_WITH_CARRY, DecisionReason.CARRIED_WITHIN_LIMIT, carried=failed)

    @staticmethod
    def _identity(enrollments: Sequence[Enrollment]) -> tuple[int, str]:
        pairs = {(e.student_id, e.academic_year) for e in enrollments}
        if len(pairs) != 1:
            raise DataIntegrityError(f"Enrollments mix several students/years: {sorted(pairs)}")
        return next(iter(pairs))

    @staticmethod
    def _check_unique_materials(student_id: int, enrollments: Sequence[Enrollment]) -> None:
        counts = Counter(e.material_id for e in enrollments)
        duplicated = sorted(mid for mid, n in counts.items() if n > 1)
        if not duplicated:
            return
        statuses = {
            mid: sorted({e.result_status.value for e in enrollments if e.material_id == mid}) for mid in duplicated
        }
        raise DataIntegrityError(f"Student {student_id} has duplicate enrollments for materials {statuses}")
