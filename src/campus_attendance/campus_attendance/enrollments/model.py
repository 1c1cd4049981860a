from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import ResultStatus


@dataclass(frozen=True)
class Enrollment:
    """One student's result in one material for one academic year.

    ``material_name`` and ``is_core_subject`` are copied from the material so
    the promotion evaluator never has to look materials up.
    """

    enrollment_id: int
    student_id: int
    material_id: int
    academic_year: str
    result_status: ResultStatus
    is_carried: bool = False
    material_name: str = ""
    is_core_subject: bool = False


@dataclass(frozen=True)
class CarryFlagUpdate:
    enrollment_id: int
    is_carried: bool = True


@dataclass(frozen=True)
class NewEnrollment:
    student_id: int
    material_id: int
    academic_year: str
    result_status: ResultStatus = ResultStatus.IN_PROGRESS
    is_carried: bool = False
