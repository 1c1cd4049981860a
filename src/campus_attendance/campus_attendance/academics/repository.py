from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Department, Material, Stage, Student


class DepartmentRepository(Protocol):
    def get_by_id(self, department_id: int) -> Optional[Department]:
        raise NotImplementedError


class StageRepository(Protocol):
    """Stage directory: the stages configured for a department."""

    def list_for_department(self, department_id: int) -> Sequence[Stage]:
        raise NotImplementedError


class MaterialRepository(Protocol):
    def list_for_stage(self, *, department_id: int, stage_id: int) -> Sequence[Material]:
        raise NotImplementedError


class StudentRepository(Protocol):
    """Student directory."""

    def get_by_id(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def list_for_stage(self, *, department_id: int, stage_id: int) -> Sequence[Student]:
        raise NotImplementedError
