# backoffice/common/date_rules.py
from __future__ import annotations

from datetime import datetime, date
from typing import Any, Optional, Tuple
import calendar


def month_range(y: int, m: int) -> Tuple[datetime, datetime]:
    """
    Return the inclusive [start, end] datetime range for a given year-month.
    End is 23:59:59 on the last day to simplify "in-month" comparisons.
    """
    first = datetime(y, m, 1, 0, 0, 0)
    last_day = calendar.monthrange(y, m)[1]
    last = datetime(y, m, last_day, 23, 59, 59)  # inclusive end
    return first, last


def last_day_of_month(y: int, m: int) -> int:
    return calendar.monthrange(y, m)[1]


def shift_month(y: int, m: int, months: int) -> Tuple[int, int]:
    """(year, month) moved by a signed number of calendar months."""
    idx = y * 12 + (m - 1) + months
    return idx // 12, idx % 12 + 1


def add_months(d: date, months: int, day: Optional[int] = None) -> date:
    """
    Move `d` by `months` calendar months.

    The day-of-month is `day` when given, otherwise the day of `d`; either way
    it is clamped to the last day of the target month (Jan 31 + 1 -> Feb 28/29).
    """
    y, m = shift_month(d.year, d.month, months)
    want = day if day is not None else d.day
    return date(y, m, min(want, last_day_of_month(y, m)))


def to_date(value: Any) -> Optional[date]:
    """Coerce DB/JSON values (date, datetime, ISO string) to a date; None if unusable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y"):
        try:
            return datetime.strptime(s[:10], fmt).date()
        except ValueError:
            continue
    return None


def is_in_month(value: Any, y: int, m: int) -> bool:
    """
    True if the date/timestamp falls within calendar month (y, m).
    Missing or unparseable values are 'not in month'.
    """
    d = to_date(value)
    if d is None:
        return False
    return d.year == y and d.month == m


def is_after_month(value: Any, y: int, m: int) -> bool:
    """True if the date/timestamp falls in a calendar month strictly after (y, m)."""
    d = to_date(value)
    if d is None:
        return False
    return (d.year, d.month) > (y, m)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (negative if end is earlier)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months
