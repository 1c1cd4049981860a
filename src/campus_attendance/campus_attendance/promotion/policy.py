from __future__ import annotations

import logging
from dataclasses import replace
from typing import Mapping, Optional, Sequence

from ..academics.model import Stage, final_stage_level
from ..academics.repository import DepartmentRepository, StageRepository
from ..common.validators import require_bool, require_min_value
from ..core.enums import RepeatMode
from ..core.exceptions import ConfigNotResolvable, ValidationError
from .model import PromotionConfig, PromotionPolicy
from .repository import PromotionConfigRepository

logger = logging.getLogger(__name__)

DEFAULT_PROMOTION_CONFIG = PromotionConfig(
    max_carry_subjects=2,
    fail_threshold_for_repeat=3,
    disable_carry_for_final_year=False,
    block_carry_for_core=False,
    repeat_mode=RepeatMode.REPEAT_FAILED_ONLY,
)

CONFIG_FIELDS = (
    "max_carry_subjects",
    "fail_threshold_for_repeat",
    "disable_carry_for_final_year",
    "block_carry_for_core",
    "repeat_mode",
)


def normalize_config(config: PromotionConfig, *, department_id: Optional[int] = None) -> PromotionConfig:
    """Clamp stored values into their valid ranges.

    Rows edited outside the admin UI can hold negatives; the evaluator must
    still receive ``max_carry_subjects >= 0`` and ``fail_threshold_for_repeat >= 1``.
    """
    max_carry = max(int(config.max_carry_subjects), 0)
    threshold = max(int(config.fail_threshold_for_repeat), 1)
    if (max_carry, threshold) != (config.max_carry_subjects, config.fail_threshold_for_repeat):
        logger.warning(
            "Clamped promotion config for department %s: max_carry=%s->%s threshold=%s->%s",
            department_id,
            config.max_carry_subjects,
            max_carry,
            config.fail_threshold_for_repeat,
            threshold,
        )
    return replace(config, max_carry_subjects=max_carry, fail_threshold_for_repeat=threshold)


def merge_config(base: PromotionConfig, changes: Mapping[str, object]) -> PromotionConfig:
    """Validate admin input and apply it on top of ``base``."""
    unknown = set(changes) - set(CONFIG_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown promotion config field(s): {', '.join(sorted(unknown))}")

    values = {}
    if "max_carry_subjects" in changes:
        values["max_carry_subjects"] = require_min_value(changes["max_carry_subjects"], "max_carry_subjects", 0)
    if "fail_threshold_for_repeat" in changes:
        values["fail_threshold_for_repeat"] = require_min_value(
            changes["fail_threshold_for_repeat"], "fail_threshold_for_repeat", 1
        )
    for flag in ("disable_carry_for_final_year", "block_carry_for_core"):
        if flag in changes:
            values[flag] = require_bool(changes[flag], flag)
    if "repeat_mode" in changes:
        try:
            values["repeat_mode"] = RepeatMode(changes["repeat_mode"])
        except ValueError:
            allowed = ", ".join(m.value for m in RepeatMode)
            raise ValidationError(f"repeat_mode must be one of: {allowed}")
    return replace(base, **values)


class PolicyResolver:
    """Turns a department's stored config (or the defaults) into a PromotionPolicy."""

    def __init__(
        self,
        departments: DepartmentRepository,
        configs: PromotionConfigRepository,
        stages: StageRepository,
    ):
        self._departments = departments
        self._configs = configs
        self._stages = stages

    def resolve_config(self, department_id: int) -> tuple[PromotionConfig, bool]:
        """Return ``(config, is_default)``; unknown department -> ConfigNotResolvable."""
        if not self._departments.get_by_id(int(department_id)):
            raise ConfigNotResolvable(f"Department {department_id} does not exist")

        stored = self._configs.get_promotion_config(int(department_id))
        if stored is None:
            return DEFAULT_PROMOTION_CONFIG, True
        return normalize_config(stored, department_id=department_id), False

    def resolve(self, department_id: int, *, stages: Optional[Sequence[Stage]] = None) -> PromotionPolicy:
        config, is_default = self.resolve_config(department_id)
        if stages is None:
            stages = self._stages.list_for_department(int(department_id))
        return PromotionPolicy(
            department_id=int(department_id),
            config=config,
            final_stage_level=final_stage_level(stages),
            is_default=is_default,
        )
