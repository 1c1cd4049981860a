"""Example: preview a promotion batch through the service layer (no Flask).

Controllers are a thin layer; the rules live in PromotionService/PromotionEvaluator.
"""

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.campus_attendance.campus_attendance.container import build_container


def main(department_id: int = 1, stage_id: int = 3, academic_year: str = "2024-2025"):
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    report = container.promotion_service.preview_batch(department_id, stage_id, academic_year)

    for outcome, n in report.counts.items():
        print(f"{outcome.value:<22} {n}")
    for d in report.decisions:
        print(d.student_id, d.outcome.value, d.reason.value, [m.name for m in d.failed_materials])
    for s in report.skipped:
        print("skipped", s.student_id, s.reason)


if __name__ == "__main__":
    args = sys.argv[1:]
    if len(args) == 3:
        main(int(args[0]), int(args[1]), args[2])
    else:
        main()
