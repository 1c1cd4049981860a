from __future__ import annotations

from datetime import datetime
from typing import Optional

import pytest

from src.campus_attendance.campus_attendance.academics.model import Department, Material, Stage, Student
from src.campus_attendance.campus_attendance.core.enums import (
    AcademicStatus,
    DecisionReason,
    PromotionOutcome,
    RepeatMode,
    ResultStatus,
)
from src.campus_attendance.campus_attendance.core.exceptions import (
    BatchPreviewError,
    ConfigNotResolvable,
    InsufficientData,
    ValidationError,
)
from src.campus_attendance.campus_attendance.enrollments.model import CarryFlagUpdate, Enrollment, NewEnrollment
from src.campus_attendance.campus_attendance.promotion.model import PromotionConfig, PromotionRecord
from src.campus_attendance.campus_attendance.promotion.policy import DEFAULT_PROMOTION_CONFIG
from src.campus_attendance.campus_attendance.promotion.service import PromotionService

YEAR = "2024-2025"
P = ResultStatus.PASSED
F = ResultStatus.FAILED
ABS = ResultStatus.BLOCKED_BY_ABSENCE

SCENARIOS = {
    1: [P, P, P, P, P],  # full pass
    2: [P, P, P, P, P],  # full pass
    3: [P, F, P, P, P],  # carry 1
    4: [P, F, P, F, P],  # carry 2
    5: [F, F, F, P, P],  # repeat
    6: [F, F, F, P, P],  # repeat
}


class FakeDepartments:
    def get_by_id(self, department_id: int) -> Optional[Department]:
        return Department(1, "Computer Science") if department_id == 1 else None


class FakeStages:
    def __init__(self):
        self.calls = 0

    def list_for_department(self, department_id: int):
        self.calls += 1
        if department_id != 1:
            return []
        return [Stage(stage_id=lvl, department_id=1, name=f"Stage {lvl}", level=lvl) for lvl in (1, 2, 3, 4)]


class FakeMaterials:
    def list_for_stage(self, *, department_id: int, stage_id: int):
        count = 5 if stage_id == 3 else 3
        return [
            Material(material_id=stage_id * 100 + i, name=f"M{stage_id}{i}", department_id=department_id, stage_id=stage_id)
            for i in range(1, count + 1)
        ]


class FakeStudents:
    def __init__(self, student_ids):
        self._students = {
            sid: Student(
                student_id=sid,
                full_name=f"Student {sid}",
                student_number=f"CS2021{sid:03d}",
                department_id=1,
                stage_id=3,
                academic_year=YEAR,
            )
            for sid in student_ids
        }

    def get_by_id(self, student_id: int) -> Optional[Student]:
        return self._students.get(student_id)

    def list_for_stage(self, *, department_id: int, stage_id: int):
        return [s for s in self._students.values() if s.department_id == department_id and s.stage_id == stage_id]


class FakeEnrollments:
    def __init__(self, by_student: dict[int, list[Enrollment]]):
        self._by_student = by_student
        self.single_calls = 0
        self.bulk_calls = 0

    def get_enrollments(self, student_id: int, academic_year: str):
        self.single_calls += 1
        return [e for e in self._by_student.get(student_id, []) if e.academic_year == academic_year]

    def get_enrollments_for_students(self, student_ids, academic_year: str):
        self.bulk_calls += 1
        return {
            sid: [e for e in self._by_student.get(sid, []) if e.academic_year == academic_year]
            for sid in student_ids
            if sid in self._by_student
        }

    def bulk_update_carry_flags(self, updates):
        raise AssertionError("commit must go through the record repository")


class FakeConfigs:
    def __init__(self, config: Optional[PromotionConfig] = None):
        self._configs = {1: config} if config else {}
        self.upserts = []

    def get_promotion_config(self, department_id: int):
        return self._configs.get(department_id)

    def upsert_promotion_config(self, department_id: int, config: PromotionConfig) -> None:
        self.upserts.append((department_id, config))
        self._configs[department_id] = config


class FakeRecords:
    def __init__(self, failing_students=()):
        self.plans = []
        self._failing = set(failing_students)

    def apply_commit(self, plan) -> int:
        if plan.student_id in self._failing:
            raise RuntimeError("Duplicate entry for key 'uq_enrollment'")
        self.plans.append(plan)
        return len(self.plans)

    def list_for_student(self, student_id: int, limit: int):
        return [
            PromotionRecord(
                record_id=1,
                student_id=student_id,
                academic_year_from=YEAR,
                academic_year_to="2025-2026",
                stage_from_id=3,
                stage_to_id=4,
                outcome=PromotionOutcome.PROMOTED,
                reason=DecisionReason.NO_FAILURES,
                failed_count=0,
                carried_count=0,
                processed_by="Admin",
                processed_at=datetime(2025, 7, 1, 9, 0),
            )
        ][:limit]


def make_enrollments(student_id: int, statuses, *, year=YEAR):
    return [
        Enrollment(
            enrollment_id=student_id * 10 + i,
            student_id=student_id,
            material_id=301 + i,
            academic_year=year,
            result_status=s,
            material_name=f"M3{i + 1}",
            is_core_subject=True,
        )
        for i, s in enumerate(statuses)
    ]


def make_service(*, scenarios=None, extra_students=(), config=None, failing_students=(), workers=2):
    scenarios = SCENARIOS if scenarios is None else scenarios
    enrollments = FakeEnrollments({sid: make_enrollments(sid, st) for sid, st in scenarios.items()})
    records = FakeRecords(failing_students)
    configs = FakeConfigs(config)
    stages = FakeStages()
    service = PromotionService(
        FakeDepartments(),
        stages,
        FakeMaterials(),
        FakeStudents(list(scenarios) + list(extra_students)),
        enrollments,
        configs,
        records,
        batch_workers=workers,
    )
    return service, enrollments, records, configs, stages


# -- preview ---------------------------------------------------------------


def test_preview_counts_seeded_scenarios():
    service, *_ = make_service()

    report = service.preview_batch(1, 3, YEAR)

    assert report.counts == {
        PromotionOutcome.PROMOTED: 2,
        PromotionOutcome.PROMOTED_WITH_CARRY: 2,
        PromotionOutcome.REPEAT_YEAR: 2,
    }
    assert [d.student_id for d in report.decisions] == [1, 2, 3, 4, 5, 6]
    assert report.skipped == []


def test_preview_skips_students_without_enrollments():
    service, *_ = make_service(extra_students=(7,))

    report = service.preview_batch(1, 3, YEAR)

    assert [s.student_id for s in report.skipped] == [7]
    assert 7 not in [d.student_id for d in report.decisions]
    assert sum(report.counts.values()) == 6


def test_preview_fetches_shared_data_once():
    service, enrollments, _, _, stages = make_service()

    service.preview_batch(1, 3, YEAR)

    assert enrollments.bulk_calls == 1
    assert enrollments.single_calls == 0
    assert stages.calls == 1


def test_preview_ignores_other_years():
    scenarios = dict(SCENARIOS)
    service, *_ = make_service(scenarios=scenarios)

    report = service.preview_batch(1, 3, "2023-2024")

    assert report.decisions == []
    assert len(report.skipped) == 6


def test_preview_collates_integrity_errors():
    service, enrollments, *_ = make_service()
    for sid in (2, 5):
        rows = enrollments._by_student[sid]
        rows.append(Enrollment(enrollment_id=sid * 10 + 9, student_id=sid, material_id=rows[0].material_id,
                               academic_year=YEAR, result_status=F))

    with pytest.raises(BatchPreviewError) as exc:
        service.preview_batch(1, 3, YEAR)

    assert sorted(sid for sid, _ in exc.value.errors) == [2, 5]


def test_preview_unknown_department_fails_immediately():
    service, enrollments, *_ = make_service()

    with pytest.raises(BatchPreviewError) as exc:
        service.preview_batch(99, 3, YEAR)

    [(sid, err)] = exc.value.errors
    assert sid is None
    assert isinstance(err, ConfigNotResolvable)
    assert enrollments.bulk_calls == 0


def test_preview_requires_academic_year():
    service, *_ = make_service()

    with pytest.raises(ValidationError):
        service.preview_batch(1, 3, "  ")


def test_preview_applies_department_config():
    config = PromotionConfig(
        max_carry_subjects=0,
        fail_threshold_for_repeat=3,
        disable_carry_for_final_year=False,
        block_carry_for_core=False,
        repeat_mode=RepeatMode.REPEAT_FAILED_ONLY,
    )
    service, *_ = make_service(config=config)

    report = service.preview_batch(1, 3, YEAR)

    assert report.counts[PromotionOutcome.PROMOTED_WITH_CARRY] == 0
    assert report.counts[PromotionOutcome.REPEAT_YEAR] == 4


# -- single evaluate -------------------------------------------------------


def test_evaluate_single_student():
    service, *_ = make_service()

    d = service.evaluate(3, YEAR)

    assert d.outcome == PromotionOutcome.PROMOTED_WITH_CARRY
    assert d.student_stage_id == 3


def test_evaluate_without_enrollments_raises():
    service, *_ = make_service(extra_students=(7,))

    with pytest.raises(InsufficientData):
        service.evaluate(7, YEAR)


def test_evaluate_unknown_student_raises():
    service, *_ = make_service()

    with pytest.raises(ValidationError):
        service.evaluate(404, YEAR)


# -- commit ----------------------------------------------------------------


def test_commit_builds_plan_per_outcome():
    service, _, records, _, _ = make_service(extra_students=(7,))

    result = service.commit_batch(1, 3, YEAR, processed_by="Dean")

    assert result.academic_year_to == "2025-2026"
    assert [o.student_id for o in result.succeeded] == [1, 2, 3, 4, 5, 6]
    assert result.failed == []
    assert [s.student_id for s in result.skipped] == [7]

    plans = {p.student_id: p for p in records.plans}

    promoted = plans[1]
    assert promoted.stage_to_id == 4
    assert promoted.academic_status == AcademicStatus.REGULAR
    assert promoted.carry_flag_updates == ()
    assert [e.material_id for e in promoted.new_enrollments] == [401, 402, 403]
    assert promoted.processed_by == "Dean"

    carried = plans[3]
    assert carried.outcome == PromotionOutcome.PROMOTED_WITH_CARRY
    assert carried.academic_status == AcademicStatus.CARRYING
    assert carried.carry_flag_updates == (CarryFlagUpdate(enrollment_id=31, is_carried=True),)
    assert NewEnrollment(student_id=3, material_id=302, academic_year="2025-2026", is_carried=True) in carried.new_enrollments
    assert len(carried.new_enrollments) == 4

    repeating = plans[5]
    assert repeating.stage_to_id == 3
    assert repeating.academic_status == AcademicStatus.REPEATING
    assert sorted(e.material_id for e in repeating.new_enrollments) == [301, 302, 303]
    assert all(not e.is_carried for e in repeating.new_enrollments)


def test_commit_repeat_full_year_reenrolls_every_material():
    config = PromotionConfig(
        max_carry_subjects=2,
        fail_threshold_for_repeat=3,
        disable_carry_for_final_year=False,
        block_carry_for_core=False,
        repeat_mode=RepeatMode.REPEAT_FULL_YEAR,
    )
    service, _, records, _, _ = make_service(config=config)

    service.commit_batch(1, 3, YEAR, to_year="2025-2026")

    repeating = next(p for p in records.plans if p.student_id == 5)
    assert sorted(e.material_id for e in repeating.new_enrollments) == [301, 302, 303, 304, 305]


def test_commit_continues_after_a_student_fails():
    service, _, records, _, _ = make_service(failing_students=(3,))

    result = service.commit_batch(1, 3, YEAR)

    assert [o.student_id for o in result.failed] == [3]
    assert "uq_enrollment" in result.failed[0].error
    assert result.failed[0].success is False
    assert [o.student_id for o in result.succeeded] == [1, 2, 4, 5, 6]
    assert 3 not in [p.student_id for p in records.plans]


def test_commit_repeat_reenrolls_absence_blocked_materials():
    service, _, records, _, _ = make_service(scenarios={1: [F, F, F, ABS, P]})

    service.commit_batch(1, 3, YEAR)

    [plan] = records.plans
    assert plan.outcome == PromotionOutcome.REPEAT_YEAR
    assert plan.failed_count == 3
    assert sorted(e.material_id for e in plan.new_enrollments) == [301, 302, 303, 304]


def test_commit_only_selected_students():
    service, _, records, _, _ = make_service()

    result = service.commit_batch(1, 3, YEAR, student_ids=[5, 3])

    assert sorted(p.student_id for p in records.plans) == [3, 5]
    assert [o.student_id for o in result.succeeded] == [3, 5]
    assert result.failed == []


def test_commit_selected_student_outside_roster_fails():
    service, _, records, _, _ = make_service()

    result = service.commit_batch(1, 3, YEAR, student_ids=[1, 404])

    assert [p.student_id for p in records.plans] == [1]
    assert [o.student_id for o in result.failed] == [404]
    assert result.failed[0].outcome is None


@pytest.mark.parametrize("to_year", [2025, ["2025-2026"]])
def test_commit_rejects_non_string_target_year(to_year):
    service, _, records, _, _ = make_service()

    with pytest.raises(ValidationError):
        service.commit_batch(1, 3, YEAR, to_year=to_year)
    assert records.plans == []


def test_commit_rejects_same_target_year():
    service, *_ = make_service()

    with pytest.raises(ValidationError):
        service.commit_batch(1, 3, YEAR, to_year=YEAR)


def test_commit_needs_explicit_year_when_not_derivable():
    service, *_ = make_service()

    with pytest.raises(ValidationError):
        service.commit_batch(1, 3, "Fall term")


def test_commit_from_final_stage_keeps_stage():
    students = FakeStudents([])
    students._students[8] = Student(
        student_id=8, full_name="Final", student_number="CS2021008", department_id=1, stage_id=4, academic_year=YEAR
    )
    records = FakeRecords()
    service = PromotionService(
        FakeDepartments(),
        FakeStages(),
        FakeMaterials(),
        students,
        FakeEnrollments({8: make_enrollments(8, [P, P])}),
        FakeConfigs(),
        records,
    )

    service.commit_batch(1, 4, YEAR)

    assert records.plans[0].stage_to_id == 4
    assert records.plans[0].new_enrollments == ()


# -- config & history ------------------------------------------------------


def test_get_config_defaults_then_update():
    service, _, _, configs, _ = make_service()

    assert service.get_config(1) == DEFAULT_PROMOTION_CONFIG

    updated = service.update_config(1, {"block_carry_for_core": True, "repeat_mode": "repeat_full_year"})

    assert updated.block_carry_for_core is True
    assert updated.repeat_mode == RepeatMode.REPEAT_FULL_YEAR
    assert updated.max_carry_subjects == 2
    assert configs.upserts == [(1, updated)]
    assert service.get_config(1) == updated


def test_update_config_unknown_department():
    service, *_ = make_service()

    with pytest.raises(ConfigNotResolvable):
        service.update_config(99, {"max_carry_subjects": 1})


def test_history_is_forwarded():
    service, *_ = make_service()

    records = service.get_history(3)

    assert records[0].student_id == 3
