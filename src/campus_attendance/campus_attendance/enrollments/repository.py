from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from .model import CarryFlagUpdate, Enrollment


class EnrollmentRepository(Protocol):
    """Enrollment store.

    Reads return rows in registration order (ascending ``enrollment_id``).
    """

    def get_enrollments(self, student_id: int, academic_year: str) -> Sequence[Enrollment]:
        raise NotImplementedError

    def get_enrollments_for_students(
        self, student_ids: Sequence[int], academic_year: str
    ) -> Mapping[int, Sequence[Enrollment]]:
        """One query for a whole roster; students without rows may be absent."""

        raise NotImplementedError

    def bulk_update_carry_flags(self, updates: Sequence[CarryFlagUpdate]) -> None:
        """Apply carry flags on their own, outside a promotion commit.

        Part of the store contract for callers that only mark carries.
        ``PromotionRecordRepository.apply_commit`` writes the same flags inside
        the student's commit transaction instead.
        """

        raise NotImplementedError
