from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles stored in the Flask session."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class ResultStatus(str, Enum):
    """Result of one enrollment, entered by staff."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED_BY_ABSENCE = "BLOCKED_BY_ABSENCE"


class Semester(str, Enum):
    SEMESTER_1 = "SEMESTER_1"
    SEMESTER_2 = "SEMESTER_2"
    FULL_YEAR = "FULL_YEAR"


class PromotionOutcome(str, Enum):
    PROMOTED = "PROMOTED"
    PROMOTED_WITH_CARRY = "PROMOTED_WITH_CARRY"
    REPEAT_YEAR = "REPEAT_YEAR"


class RepeatMode(str, Enum):
    """How a REPEAT_YEAR decision is applied to next year's enrollments."""

    REPEAT_FAILED_ONLY = "repeat_failed_only"
    REPEAT_FULL_YEAR = "repeat_full_year"


class DecisionReason(str, Enum):
    NO_FAILURES = "no_failures"
    FAIL_COUNT_MEETS_THRESHOLD = "fail_count_meets_threshold"
    FINAL_YEAR_NO_CARRY = "final_year_no_carry"
    CORE_SUBJECT_FAILED_BLOCKS_CARRY = "core_subject_failed_blocks_carry"
    FAIL_COUNT_EXCEEDS_CARRY_LIMIT = "fail_count_exceeds_carry_limit"
    CARRIED_WITHIN_LIMIT = "carried_within_limit"


class AcademicStatus(str, Enum):
    """Student standing written when a promotion is committed."""

    REGULAR = "REGULAR"
    CARRYING = "CARRYING"
    REPEATING = "REPEATING"
