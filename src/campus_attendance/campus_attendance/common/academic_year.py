from __future__ import annotations

import re

from ..core.exceptions import ValidationError

_YEAR_RANGE = re.compile(r"^\s*(\d{4})\s*-\s*(\d{4})\s*$")


def next_academic_year(value: str) -> str:
    """Return the year range following ``value`` ("2024-2025" -> "2025-2026")."""
    m = _YEAR_RANGE.match(value or "")
    if not m:
        raise ValidationError(f"Cannot derive the next academic year from {value!r}; pass it explicitly")
    start, end = int(m.group(1)), int(m.group(2))
    return f"{start + 1}-{end + 1}"
