from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import CommitPlan, PromotionConfig, PromotionRecord


class PromotionConfigRepository(Protocol):
    def get_promotion_config(self, department_id: int) -> Optional[PromotionConfig]:
        raise NotImplementedError

    def upsert_promotion_config(self, department_id: int, config: PromotionConfig) -> None:
        raise NotImplementedError


class PromotionRecordRepository(Protocol):
    def apply_commit(self, plan: CommitPlan) -> int:
        """Write one student's plan atomically and return the history record id.

        Either every change in the plan lands or none does.
        """

        raise NotImplementedError

    def list_for_student(self, student_id: int, limit: int) -> Sequence[PromotionRecord]:
        raise NotImplementedError
