from __future__ import annotations

from typing import Sequence

from ..core.enums import Semester
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, db_cursor, fetchall
from .model import Material
from .repository import MaterialRepository


class MySQLMaterialRepository(MaterialRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_stage(self, *, department_id: int, stage_id: int) -> Sequence[Material]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT material_id, name, department_id, stage_id, semester, is_core_subject
                FROM materials
                WHERE department_id=%s AND stage_id=%s
                ORDER BY material_id
                """,
                (department_id, stage_id),
            )
            return [
                Material(
                    material_id=int(r["material_id"]),
                    name=r["name"],
                    department_id=int(r["department_id"]),
                    stage_id=int(r["stage_id"]),
                    semester=Semester(r.get("semester") or Semester.FULL_YEAR.value),
                    is_core_subject=as_bool(r.get("is_core_subject")),
                )
                for r in fetchall(cur)
            ]
