from __future__ import annotations

from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import Stage
from .repository import StageRepository


class MySQLStageRepository(StageRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_department(self, department_id: int) -> Sequence[Stage]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT stage_id, department_id, name, level
                FROM stages
                WHERE department_id=%s
                ORDER BY level
                """,
                (department_id,),
            )
            return [
                Stage(
                    stage_id=int(r["stage_id"]),
                    department_id=int(r["department_id"]),
                    name=r["name"],
                    level=int(r["level"]),
                )
                for r in fetchall(cur)
            ]
