"""
Canonical period normalization module.
Month-scoped endpoints (dashboard, bonuses, calendar, payment summary)
take a 'YYYY-MM' period; everything is normalized here.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Tuple

from fastapi import HTTPException

# Strict YYYY-MM
_RE_YYYY_MM = re.compile(r"^\s*(\d{4})-(0[1-9]|1[0-2])\s*$")
# Compact YYYYMM
_RE_YYYYMM = re.compile(r"^\s*(\d{4})(0[1-9]|1[0-2])\s*$")


def canonicalize_period(value: Optional[str]) -> Optional[str]:
    """
    Convert any common period format to strict 'YYYY-MM'.

    Supported inputs (examples):
        '2025-06'        -> '2025-06'
        '2025-6'         -> '2025-06'
        '2025/06'        -> '2025-06'
        '202506'         -> '2025-06'
        'Jun 2025'       -> '2025-06'
        'June 2025'      -> '2025-06'
        '06.2025'        -> '2025-06'

    Returns:
        'YYYY-MM' or None if unparseable.
    """
    if value is None:
        return None

    s = str(value).strip()
    if not s:
        return None

    m = _RE_YYYY_MM.match(s)
    if m:
        return f"{m.group(1)}-{m.group(2)}"

    m = _RE_YYYYMM.match(s)
    if m:
        return f"{m.group(1)}-{m.group(2)}"

    # YYYY/MM, YYYY-M
    for sep in ("/", "-"):
        parts = s.split(sep)
        if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
            y, m_num = parts[0], int(parts[1])
            if len(y) == 4 and 1 <= m_num <= 12:
                return f"{y}-{m_num:02d}"

    # MM.YYYY
    parts = s.split(".")
    if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit() and len(parts[1]) == 4:
        m_num = int(parts[0])
        if 1 <= m_num <= 12:
            return f"{parts[1]}-{m_num:02d}"

    for fmt in ("%b %Y", "%B %Y"):
        try:
            dt = datetime.strptime(s, fmt)
            return f"{dt.year:04d}-{dt.month:02d}"
        except ValueError:
            pass

    return None


def is_yyyy_mm(s: Optional[str]) -> bool:
    """Return True if s is strictly 'YYYY-MM'."""
    if s is None:
        return False
    return bool(_RE_YYYY_MM.match(s))


def period_of(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def split_period(period: str) -> Tuple[int, int]:
    """'YYYY-MM' -> (year, month). The input must already be canonical."""
    y, m = period.split("-")
    return int(y), int(m)


def validate_period(month: str) -> str:
    """
    Validate and normalize period input (HTTP 400 on bad input).
    """
    if not month or not month.strip():
        raise HTTPException(status_code=400, detail="month is required")

    canonical = canonicalize_period(month)
    if canonical is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid month format: {month}. Expected YYYY-MM or 'Month YYYY'",
        )
    return canonical


def resolve_month(month: Optional[str], today: Optional[date] = None) -> Tuple[int, int]:
    """Query-param helper: (year, month) of `month`, or of today when omitted."""
    if month is None or not str(month).strip():
        today = today or date.today()
        return today.year, today.month
    return split_period(validate_period(month))
