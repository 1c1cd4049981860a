from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..academics.model import Stage
from ..core.enums import AcademicStatus, DecisionReason, PromotionOutcome, RepeatMode
from ..enrollments.model import CarryFlagUpdate, NewEnrollment


@dataclass(frozen=True)
class PromotionConfig:
    """Department promotion policy as stored (or the defaults)."""

    max_carry_subjects: int
    fail_threshold_for_repeat: int
    disable_carry_for_final_year: bool
    block_carry_for_core: bool
    repeat_mode: RepeatMode


@dataclass(frozen=True)
class PromotionPolicy:
    """Effective policy for one department, ready for the evaluator.

    ``final_stage_level`` is None when the department has no stage metadata;
    the final-year rule then never triggers.
    """

    department_id: int
    config: PromotionConfig
    final_stage_level: Optional[int] = None
    is_default: bool = False

    def is_final_stage(self, stage: Optional[Stage]) -> bool:
        if stage is None or self.final_stage_level is None:
            return False
        return stage.level == self.final_stage_level


@dataclass(frozen=True)
class MaterialRef:
    material_id: int
    name: str
    is_core_subject: bool = False


@dataclass(frozen=True)
class PromotionDecision:
    student_id: int
    academic_year: str
    outcome: PromotionOutcome
    reason: DecisionReason
    failed_materials: tuple[MaterialRef, ...] = ()
    carried_materials: tuple[MaterialRef, ...] = ()
    student_stage_id: Optional[int] = None
    absence_blocked_materials: tuple[MaterialRef, ...] = ()
    annotations: tuple[str, ...] = ()
    # Instruction for the commit step; the evaluator never writes these itself.
    carry_flag_updates: tuple[CarryFlagUpdate, ...] = ()

    @property
    def failed_count(self) -> int:
        return len(self.failed_materials)

    @property
    def carried_count(self) -> int:
        return len(self.carried_materials)


@dataclass(frozen=True)
class SkippedStudent:
    student_id: int
    reason: str


@dataclass(frozen=True)
class BatchReport:
    department_id: int
    stage_id: int
    academic_year: str
    counts: dict[PromotionOutcome, int]
    decisions: list[PromotionDecision]
    skipped: list[SkippedStudent] = field(default_factory=list)

    @property
    def evaluated(self) -> int:
        return len(self.decisions)


@dataclass(frozen=True)
class CommitPlan:
    """Everything one student's commit writes, applied in one transaction."""

    student_id: int
    academic_year_from: str
    academic_year_to: str
    outcome: PromotionOutcome
    reason: DecisionReason
    stage_from_id: Optional[int]
    stage_to_id: Optional[int]
    academic_status: AcademicStatus
    failed_count: int
    carried_count: int
    processed_by: str
    carry_flag_updates: tuple[CarryFlagUpdate, ...] = ()
    new_enrollments: tuple[NewEnrollment, ...] = ()


@dataclass(frozen=True)
class StudentCommitOutcome:
    student_id: int
    outcome: Optional[PromotionOutcome]
    success: bool
    record_id: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class CommitResult:
    academic_year_from: str
    academic_year_to: str
    succeeded: list[StudentCommitOutcome]
    failed: list[StudentCommitOutcome]
    skipped: list[SkippedStudent]


@dataclass(frozen=True)
class PromotionRecord:
    record_id: int
    student_id: int
    academic_year_from: str
    academic_year_to: str
    stage_from_id: Optional[int]
    stage_to_id: Optional[int]
    outcome: PromotionOutcome
    reason: DecisionReason
    failed_count: int
    carried_count: int
    processed_by: str
    processed_at: datetime
