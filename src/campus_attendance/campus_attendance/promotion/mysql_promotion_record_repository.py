from __future__ import annotations

from typing import Sequence

from ..core.enums import DecisionReason, PromotionOutcome
from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from ..enrollments.mysql_enrollment_repository import insert_enrollments, update_carry_flags
from .model import CommitPlan, PromotionRecord
from .repository import PromotionRecordRepository


class MySQLPromotionRecordRepository(PromotionRecordRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def apply_commit(self, plan: CommitPlan) -> int:
        # One connection = one transaction: db_cursor rolls back on any error.
        with db_cursor(self._conn_factory) as (_, cur):
            update_carry_flags(cur, plan.carry_flag_updates)

            cur.execute(
                """
                UPDATE students
                SET stage_id=%s, academic_status=%s, academic_year=%s
                WHERE student_id=%s
                """,
                (plan.stage_to_id, plan.academic_status.value, plan.academic_year_to, plan.student_id),
            )
            if cur.rowcount == 0:
                raise ValidationError(f"Student {plan.student_id} does not exist")

            insert_enrollments(cur, plan.new_enrollments)

            cur.execute(
                """
                INSERT INTO promotion_records(
                    student_id, academic_year_from, academic_year_to, stage_from_id, stage_to_id,
                    outcome, reason, failed_count, carried_count, processed_by
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    plan.student_id,
                    plan.academic_year_from,
                    plan.academic_year_to,
                    plan.stage_from_id,
                    plan.stage_to_id,
                    plan.outcome.value,
                    plan.reason.value,
                    plan.failed_count,
                    plan.carried_count,
                    plan.processed_by,
                ),
            )
            return int(cur.lastrowid)

    def list_for_student(self, student_id: int, limit: int) -> Sequence[PromotionRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT record_id, student_id, academic_year_from, academic_year_to, stage_from_id, stage_to_id,
                       outcome, reason, failed_count, carried_count, processed_by, processed_at
                FROM promotion_records
                WHERE student_id=%s
                ORDER BY processed_at DESC, record_id DESC
                LIMIT %s
                """,
                (student_id, int(limit)),
            )
            return [
                PromotionRecord(
                    record_id=int(r["record_id"]),
                    student_id=int(r["student_id"]),
                    academic_year_from=r["academic_year_from"],
                    academic_year_to=r["academic_year_to"],
                    stage_from_id=int(r["stage_from_id"]) if r.get("stage_from_id") is not None else None,
                    stage_to_id=int(r["stage_to_id"]) if r.get("stage_to_id") is not None else None,
                    outcome=PromotionOutcome(r["outcome"]),
                    reason=DecisionReason(r["reason"]),
                    failed_count=int(r["failed_count"]),
                    carried_count=int(r["carried_count"]),
                    processed_by=r["processed_by"],
                    processed_at=r["processed_at"],
                )
                for r in fetchall(cur)
            ]
