from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..academics.model import Material, Stage, Student, next_stage
from ..academics.repository import DepartmentRepository, MaterialRepository, StageRepository, StudentRepository
from ..common.academic_year import next_academic_year
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_BATCH_WORKERS, DEFAULT_HISTORY_LIMIT, DEFAULT_PROCESSED_BY
from ..core.enums import AcademicStatus, PromotionOutcome, RepeatMode
from ..core.exceptions import (
    BatchPreviewError,
    ConfigNotResolvable,
    DataIntegrityError,
    DomainError,
    InsufficientData,
    ValidationError,
)
from ..enrollments.aggregator import EnrollmentAggregator
from ..enrollments.model import Enrollment, NewEnrollment
from ..enrollments.repository import EnrollmentRepository
from .evaluator import PromotionEvaluator
from .model import (
    BatchReport,
    CommitPlan,
    CommitResult,
    PromotionConfig,
    PromotionDecision,
    PromotionPolicy,
    PromotionRecord,
    SkippedStudent,
    StudentCommitOutcome,
)
from .policy import PolicyResolver, merge_config
from .repository import PromotionConfigRepository, PromotionRecordRepository

logger = logging.getLogger(__name__)

_STATUS_FOR_OUTCOME = {
    PromotionOutcome.PROMOTED: AcademicStatus.REGULAR,
    PromotionOutcome.PROMOTED_WITH_CARRY: AcademicStatus.CARRYING,
    PromotionOutcome.REPEAT_YEAR: AcademicStatus.REPEATING,
}


def _find_stage(stages: Sequence[Stage], stage_id: Optional[int]) -> Optional[Stage]:
    if stage_id is None:
        return None
    for s in stages:
        if s.stage_id == int(stage_id):
            return s
    return None


def build_commit_plan(
    decision: PromotionDecision,
    *,
    policy: PromotionPolicy,
    to_year: str,
    processed_by: str,
    target_stage: Optional[Stage],
    target_stage_materials: Sequence[Material],
    current_stage_materials: Sequence[Material],
) -> CommitPlan:
    """Turn a decision into the writes that apply it.

    Promoted students move to ``target_stage`` (stay put when there is none,
    i.e. they finished the final stage) and are enrolled in its materials;
    carried materials are re-enrolled with ``is_carried``. Repeating students
    keep their stage and are re-enrolled per ``repeat_mode``; under
    ``repeat_failed_only`` that covers failed and absence-blocked materials.
    """
    sid = decision.student_id
    new_rows: dict[int, NewEnrollment] = {}
    stage_to_id = decision.student_stage_id
    carry_updates = ()

    if decision.outcome in (PromotionOutcome.PROMOTED, PromotionOutcome.PROMOTED_WITH_CARRY):
        if target_stage is not None:
            stage_to_id = target_stage.stage_id
            for m in target_stage_materials:
                new_rows[m.material_id] = NewEnrollment(student_id=sid, material_id=m.material_id, academic_year=to_year)
        if decision.outcome == PromotionOutcome.PROMOTED_WITH_CARRY:
            carry_updates = decision.carry_flag_updates
            for ref in decision.carried_materials:
                new_rows[ref.material_id] = NewEnrollment(
                    student_id=sid, material_id=ref.material_id, academic_year=to_year, is_carried=True
                )
    else:
        if policy.config.repeat_mode == RepeatMode.REPEAT_FULL_YEAR and current_stage_materials:
            material_ids = [m.material_id for m in current_stage_materials]
        else:
            # Absence-blocked materials were never passed: they are retaken too.
            material_ids = [
                ref.material_id for ref in (*decision.failed_materials, *decision.absence_blocked_materials)
            ]
        for mid in material_ids:
            new_rows[mid] = NewEnrollment(student_id=sid, material_id=mid, academic_year=to_year)

    return CommitPlan(
        student_id=sid,
        academic_year_from=decision.academic_year,
        academic_year_to=to_year,
        outcome=decision.outcome,
        reason=decision.reason,
        stage_from_id=decision.student_stage_id,
        stage_to_id=stage_to_id,
        academic_status=_STATUS_FOR_OUTCOME[decision.outcome],
        failed_count=decision.failed_count,
        carried_count=decision.carried_count,
        processed_by=processed_by,
        carry_flag_updates=tuple(carry_updates),
        new_enrollments=tuple(new_rows.values()),
    )


@dataclass(frozen=True)
class _BatchState:
    report: BatchReport
    policy: PromotionPolicy
    stages: Sequence[Stage]


class PromotionService:
    """Use cases around the promotion evaluator: single evaluation, batch
    preview/commit, department config and promotion history."""

    def __init__(
        self,
        departments: DepartmentRepository,
        stages: StageRepository,
        materials: MaterialRepository,
        students: StudentRepository,
        enrollments: EnrollmentRepository,
        configs: PromotionConfigRepository,
        records: PromotionRecordRepository,
        *,
        evaluator: Optional[PromotionEvaluator] = None,
        batch_workers: int = DEFAULT_BATCH_WORKERS,
    ):
        self._departments = departments
        self._stages = stages
        self._materials = materials
        self._students = students
        self._configs = configs
        self._records = records
        self._aggregator = EnrollmentAggregator(enrollments)
        self._resolver = PolicyResolver(departments, configs, stages)
        self._evaluator = evaluator or PromotionEvaluator()
        self._batch_workers = max(int(batch_workers), 1)

    # -- single student ----------------------------------------------------

    def evaluate(self, student_id: int, academic_year: str) -> PromotionDecision:
        year = require_non_empty(academic_year, "academic_year")
        student = self._students.get_by_id(int(student_id))
        if not student:
            raise ValidationError(f"Student {student_id} does not exist")
        if student.department_id is None:
            raise ValidationError(f"Student {student_id} is not assigned to a department")

        stages = self._stages.list_for_department(student.department_id)
        policy = self._resolver.resolve(student.department_id, stages=stages)
        enrollments = self._aggregator.for_student(student.student_id, year)
        return self._evaluate_student(student, enrollments, policy, _find_stage(stages, student.stage_id), year)

    def _evaluate_student(
        self,
        student: Student,
        enrollments: Sequence[Enrollment],
        policy: PromotionPolicy,
        stage: Optional[Stage],
        academic_year: str,
    ) -> PromotionDecision:
        try:
            return self._evaluator.evaluate(enrollments, policy, stage)
        except InsufficientData:
            raise InsufficientData(f"Student {student.student_id} has no enrollments for {academic_year}") from None

    # -- batch -------------------------------------------------------------

    def preview_batch(self, department_id: int, stage_id: int, academic_year: str) -> BatchReport:
        """Read-only: evaluate every student of (department, stage) for one year."""
        return self._run_batch(department_id, stage_id, academic_year).report

    def _run_batch(
        self,
        department_id: int,
        stage_id: int,
        academic_year: str,
        *,
        student_ids: Optional[set[int]] = None,
    ) -> _BatchState:
        year = require_non_empty(academic_year, "academic_year")
        department_id, stage_id = int(department_id), int(stage_id)

        # One fetch each for stages, policy, roster and enrollments.
        stages = self._stages.list_for_department(department_id)
        try:
            policy = self._resolver.resolve(department_id, stages=stages)
        except ConfigNotResolvable as e:
            raise BatchPreviewError([(None, e)]) from e
        stage = _find_stage(stages, stage_id)
        roster = list(self._students.list_for_stage(department_id=department_id, stage_id=stage_id))
        if student_ids is not None:
            roster = [s for s in roster if s.student_id in student_ids]
        by_student: Mapping[int, list[Enrollment]] = self._aggregator.for_students(
            [s.student_id for s in roster], year
        )

        def run_one(student: Student):
            try:
                return self._evaluate_student(student, by_student[student.student_id], policy, stage, year)
            except (InsufficientData, DataIntegrityError) as e:
                return e

        with ThreadPoolExecutor(max_workers=self._batch_workers) as pool:
            results = list(pool.map(run_one, roster))

        decisions: list[PromotionDecision] = []
        skipped: list[SkippedStudent] = []
        errors: list[tuple[Optional[int], DomainError]] = []
        for student, result in zip(roster, results):
            if isinstance(result, InsufficientData):
                skipped.append(SkippedStudent(student_id=student.student_id, reason=str(result)))
                logger.info("Skipping student %s: %s", student.student_id, result)
            elif isinstance(result, DataIntegrityError):
                errors.append((student.student_id, result))
            else:
                decisions.append(result)

        if errors:
            logger.warning("Batch preview dept=%s stage=%s year=%s failed: %d error(s)", department_id, stage_id, year, len(errors))
            raise BatchPreviewError(errors)

        counts = {outcome: 0 for outcome in PromotionOutcome}
        for d in decisions:
            counts[d.outcome] += 1

        logger.info(
            "Batch preview dept=%s stage=%s year=%s: %s, skipped=%d",
            department_id,
            stage_id,
            year,
            ", ".join(f"{o.value}={n}" for o, n in counts.items()),
            len(skipped),
        )
        report = BatchReport(
            department_id=department_id,
            stage_id=stage_id,
            academic_year=year,
            counts=counts,
            decisions=decisions,
            skipped=skipped,
        )
        return _BatchState(report=report, policy=policy, stages=stages)

    def commit_batch(
        self,
        department_id: int,
        stage_id: int,
        academic_year: str,
        *,
        to_year: Optional[str] = None,
        processed_by: str = DEFAULT_PROCESSED_BY,
        student_ids: Optional[Sequence[int]] = None,
    ) -> CommitResult:
        """Apply a fresh preview, one transaction per student.

        A failure for one student is recorded and the batch moves on; within a
        student nothing is written unless everything is. ``student_ids``
        restricts the commit to those students of the roster; ids outside the
        roster are reported as failed.
        """
        year = require_non_empty(academic_year, "academic_year")
        if to_year is not None and not isinstance(to_year, str):
            raise ValidationError("to_year must be a string like 2025-2026")
        to_year = (to_year or "").strip() or next_academic_year(year)
        if to_year == year:
            raise ValidationError("to_year must differ from the academic year being closed")
        processed_by = (processed_by or "").strip() or DEFAULT_PROCESSED_BY
        selected = {int(sid) for sid in student_ids} if student_ids is not None else None

        state = self._run_batch(department_id, stage_id, year, student_ids=selected)
        current = _find_stage(state.stages, stage_id)
        target = next_stage(state.stages, current)
        target_materials = (
            self._materials.list_for_stage(department_id=int(department_id), stage_id=target.stage_id) if target else []
        )
        current_materials = (
            self._materials.list_for_stage(department_id=int(department_id), stage_id=int(stage_id))
            if state.policy.config.repeat_mode == RepeatMode.REPEAT_FULL_YEAR
            else []
        )

        succeeded: list[StudentCommitOutcome] = []
        failed: list[StudentCommitOutcome] = []
        for decision in state.report.decisions:
            plan = build_commit_plan(
                decision,
                policy=state.policy,
                to_year=to_year,
                processed_by=processed_by,
                target_stage=target,
                target_stage_materials=target_materials,
                current_stage_materials=current_materials,
            )
            try:
                record_id = self._records.apply_commit(plan)
            except Exception as e:
                logger.exception("Promotion commit failed for student %s", decision.student_id)
                failed.append(
                    StudentCommitOutcome(student_id=decision.student_id, outcome=decision.outcome, success=False, error=str(e))
                )
                continue
            succeeded.append(
                StudentCommitOutcome(student_id=decision.student_id, outcome=decision.outcome, success=True, record_id=record_id)
            )

        if selected is not None:
            seen = {d.student_id for d in state.report.decisions} | {s.student_id for s in state.report.skipped}
            for sid in sorted(selected - seen):
                failed.append(
                    StudentCommitOutcome(
                        student_id=sid,
                        outcome=None,
                        success=False,
                        error=f"Student {sid} is not in department {department_id} stage {stage_id}",
                    )
                )

        logger.info(
            "Promotion commit dept=%s stage=%s %s->%s: ok=%d failed=%d skipped=%d",
            department_id,
            stage_id,
            year,
            to_year,
            len(succeeded),
            len(failed),
            len(state.report.skipped),
        )
        return CommitResult(
            academic_year_from=year,
            academic_year_to=to_year,
            succeeded=succeeded,
            failed=failed,
            skipped=list(state.report.skipped),
        )

    # -- config & history --------------------------------------------------

    def get_config(self, department_id: int) -> PromotionConfig:
        config, _ = self._resolver.resolve_config(department_id)
        return config

    def update_config(self, department_id: int, changes: Mapping[str, object]) -> PromotionConfig:
        """Partial update: fields not given keep their current effective value."""
        current, _ = self._resolver.resolve_config(department_id)
        config = merge_config(current, changes)
        self._configs.upsert_promotion_config(int(department_id), config)
        logger.info("Promotion config updated for department %s: %s", department_id, config)
        return config

    def get_history(self, student_id: int, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[PromotionRecord]:
        return self._records.list_for_student(int(student_id), int(limit))
