from __future__ import annotations

from typing import Optional

from ..core.enums import RepeatMode
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, db_cursor, fetchone
from .model import PromotionConfig
from .repository import PromotionConfigRepository


class MySQLPromotionConfigRepository(PromotionConfigRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_promotion_config(self, department_id: int) -> Optional[PromotionConfig]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT max_carry_subjects, fail_threshold_for_repeat, disable_carry_for_final_year,
                       block_carry_for_core, repeat_mode
                FROM promotion_configs
                WHERE department_id=%s
                """,
                (department_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return PromotionConfig(
                max_carry_subjects=int(r["max_carry_subjects"]),
                fail_threshold_for_repeat=int(r["fail_threshold_for_repeat"]),
                disable_carry_for_final_year=as_bool(r["disable_carry_for_final_year"]),
                block_carry_for_core=as_bool(r["block_carry_for_core"]),
                repeat_mode=RepeatMode(r["repeat_mode"]),
            )

    def upsert_promotion_config(self, department_id: int, config: PromotionConfig) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO promotion_configs(
                    department_id, max_carry_subjects, fail_threshold_for_repeat,
                    disable_carry_for_final_year, block_carry_for_core, repeat_mode
                )
                VALUES(%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    max_carry_subjects=VALUES(max_carry_subjects),
                    fail_threshold_for_repeat=VALUES(fail_threshold_for_repeat),
                    disable_carry_for_final_year=VALUES(disable_carry_for_final_year),
                    block_carry_for_core=VALUES(block_carry_for_core),
                    repeat_mode=VALUES(repeat_mode)
                """,
                (
                    department_id,
                    config.max_carry_subjects,
                    config.fail_threshold_for_repeat,
                    1 if config.disable_carry_for_final_year else 0,
                    1 if config.block_carry_for_core else 0,
                    config.repeat_mode.value,
                ),
            )
