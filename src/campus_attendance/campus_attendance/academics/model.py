from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import AcademicStatus, Semester


@dataclass(frozen=True)
class Department:
    department_id: int
    name: str


@dataclass(frozen=True)
class Stage:
    """One year of study inside a department; ``level`` orders the stages."""

    stage_id: int
    department_id: int
    name: str
    level: int


@dataclass(frozen=True)
class Material:
    """A course offered within a department + stage (+ semester)."""

    material_id: int
    name: str
    department_id: int
    stage_id: int
    semester: Semester = Semester.FULL_YEAR
    is_core_subject: bool = False


@dataclass(frozen=True)
class Student:
    student_id: int
    full_name: str
    student_number: str
    department_id: Optional[int]
    stage_id: Optional[int]
    academic_status: AcademicStatus = AcademicStatus.REGULAR
    academic_year: Optional[str] = None


def final_stage_level(stages) -> Optional[int]:
    """Highest stage level configured for a department, None without stages."""
    levels = [s.level for s in stages]
    return max(levels) if levels else None


def next_stage(stages, current: Optional[Stage]) -> Optional[Stage]:
    if current is None:
        return None
    for s in stages:
        if s.level == current.level + 1:
            return s
    return None
