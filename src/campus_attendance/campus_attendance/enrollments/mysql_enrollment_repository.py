from __future__ import annotations

from typing import Any, Dict, Mapping, Sequence

from ..core.enums import ResultStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, db_cursor, fetchall, in_clause
from .model import CarryFlagUpdate, Enrollment, NewEnrollment
from .repository import EnrollmentRepository

_SELECT = """
    SELECT e.enrollment_id, e.student_id, e.material_id, e.academic_year, e.result_status, e.is_carried,
           m.name AS material_name, m.is_core_subject
    FROM enrollments e
    JOIN materials m ON m.material_id = e.material_id
"""


def _to_enrollment(r: Dict[str, Any]) -> Enrollment:
    return Enrollment(
        enrollment_id=int(r["enrollment_id"]),
        student_id=int(r["student_id"]),
        material_id=int(r["material_id"]),
        academic_year=r["academic_year"],
        result_status=ResultStatus(r["result_status"]),
        is_carried=as_bool(r.get("is_carried")),
        material_name=r.get("material_name") or "",
        is_core_subject=as_bool(r.get("is_core_subject")),
    )


def update_carry_flags(cur, updates: Sequence[CarryFlagUpdate]) -> None:
    """Apply carry flags on an open cursor (caller owns the transaction)."""
    if not updates:
        return
    cur.executemany(
        "UPDATE enrollments SET is_carried=%s WHERE enrollment_id=%s",
        [(1 if u.is_carried else 0, u.enrollment_id) for u in updates],
    )


def insert_enrollments(cur, rows: Sequence[NewEnrollment]) -> None:
    if not rows:
        return
    cur.executemany(
        """
        INSERT INTO enrollments(student_id, material_id, academic_year, result_status, is_carried)
        VALUES(%s,%s,%s,%s,%s)
        """,
        [(r.student_id, r.material_id, r.academic_year, r.result_status.value, 1 if r.is_carried else 0) for r in rows],
    )


class MySQLEnrollmentRepository(EnrollmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_enrollments(self, student_id: int, academic_year: str) -> Sequence[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE e.student_id=%s AND e.academic_year=%s ORDER BY e.enrollment_id",
                (student_id, academic_year),
            )
            return [_to_enrollment(r) for r in fetchall(cur)]

    def get_enrollments_for_students(
        self, student_ids: Sequence[int], academic_year: str
    ) -> Mapping[int, Sequence[Enrollment]]:
        if not student_ids:
            return {}
        ids = [int(s) for s in student_ids]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT
                + f" WHERE e.academic_year=%s AND e.student_id IN ({in_clause(ids)})"
                + " ORDER BY e.student_id, e.enrollment_id",
                (academic_year, *ids),
            )
            out: dict[int, list[Enrollment]] = {}
            for r in fetchall(cur):
                e = _to_enrollment(r)
                out.setdefault(e.student_id, []).append(e)
            return out

    def bulk_update_carry_flags(self, updates: Sequence[CarryFlagUpdate]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            update_carry_flags(cur, updates)
