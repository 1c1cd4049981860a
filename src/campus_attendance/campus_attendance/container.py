from __future__ import annotations

from dataclasses import dataclass

from .academics.mysql_department_repository import MySQLDepartmentRepository
from .academics.mysql_material_repository import MySQLMaterialRepository
from .academics.mysql_stage_repository import MySQLStageRepository
from .academics.mysql_student_repository import MySQLStudentRepository
from .core.constants import DEFAULT_BATCH_WORKERS
from .database.connection import DBConfig, DatabaseConnection
from .enrollments.mysql_enrollment_repository import MySQLEnrollmentRepository
from .promotion.mysql_promotion_config_repository import MySQLPromotionConfigRepository
from .promotion.mysql_promotion_record_repository import MySQLPromotionRecordRepository
from .promotion.service import PromotionService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    departments_repo: MySQLDepartmentRepository
    stages_repo: MySQLStageRepository
    materials_repo: MySQLMaterialRepository
    students_repo: MySQLStudentRepository
    enrollments_repo: MySQLEnrollmentRepository
    promotion_configs_repo: MySQLPromotionConfigRepository
    promotion_records_repo: MySQLPromotionRecordRepository

    promotion_service: PromotionService


def build_container(*, db_config: dict, batch_workers: int = DEFAULT_BATCH_WORKERS) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    departments_repo = MySQLDepartmentRepository(conn)
    stages_repo = MySQLStageRepository(conn)
    materials_repo = MySQLMaterialRepository(conn)
    students_repo = MySQLStudentRepository(conn)
    enrollments_repo = MySQLEnrollmentRepository(conn)
    promotion_configs_repo = MySQLPromotionConfigRepository(conn)
    promotion_records_repo = MySQLPromotionRecordRepository(conn)

    promotion_service = PromotionService(
        departments_repo,
        stages_repo,
        materials_repo,
        students_repo,
        enrollments_repo,
        promotion_configs_repo,
        promotion_records_repo,
        batch_workers=batch_workers,
    )

    return Container(
        conn=conn,
        departments_repo=departments_repo,
        stages_repo=stages_repo,
        materials_repo=materials_repo,
        students_repo=students_repo,
        enrollments_repo=enrollments_repo,
        promotion_configs_repo=promotion_configs_repo,
        promotion_records_repo=promotion_records_repo,
        promotion_service=promotion_service,
    )
