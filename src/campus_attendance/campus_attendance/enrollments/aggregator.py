from __future__ import annotations

from typing import Mapping, Sequence

from ..common.validators import require_non_empty
from .model import Enrollment
from .repository import EnrollmentRepository


class EnrollmentAggregator:
    """Groups a student's enrollments for one academic year.

    An empty result is not an error here: it means "no data", and the caller
    decides what that implies (the evaluator raises ``InsufficientData``).
    Format of ``academic_year`` is owned by the store; only emptiness is checked.
    """

    def __init__(self, enrollments: EnrollmentRepository):
        self._enrollments = enrollments

    def for_student(self, student_id: int, academic_year: str) -> list[Enrollment]:
        year = require_non_empty(academic_year, "academic_year")
        rows = self._enrollments.get_enrollments(int(student_id), year)
        return sorted(rows, key=lambda e: e.enrollment_id)

    def for_students(self, student_ids: Sequence[int], academic_year: str) -> Mapping[int, list[Enrollment]]:
        """Fetch a whole roster in one store call.

        Every requested student gets an entry, empty when they have no rows.
        """
        year = require_non_empty(academic_year, "academic_year")
        ids = [int(s) for s in student_ids]
        fetched = self._enrollments.get_enrollments_for_students(ids, year) if ids else {}
        return {sid: sorted(fetched.get(sid, ()), key=lambda e: e.enrollment_id) for sid in ids}
