from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.enums import AcademicStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Student
from .repository import StudentRepository

_COLUMNS = "student_id, full_name, student_number, department_id, stage_id, academic_status, academic_year"


def _to_student(r: Dict[str, Any]) -> Student:
    return Student(
        student_id=int(r["student_id"]),
        full_name=r["full_name"],
        student_number=r["student_number"],
        department_id=int(r["department_id"]) if r.get("department_id") is not None else None,
        stage_id=int(r["stage_id"]) if r.get("stage_id") is not None else None,
        academic_status=AcademicStatus(r.get("academic_status") or AcademicStatus.REGULAR.value),
        academic_year=r.get("academic_year"),
    )


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE student_id=%s", (student_id,))
            r = fetchone(cur)
            return _to_student(r) if r else None

    def list_for_stage(self, *, department_id: int, stage_id: int) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM students
                WHERE department_id=%s AND stage_id=%s
                ORDER BY student_id
                """,
                (department_id, stage_id),
            )
            return [_to_student(r) for r in fetchall(cur)]
