"""
Client status classification.

Every list, detail and calendar view reads status from here. The classifier is
priority-ordered (first match wins):

    overdue      incomplete row with payment_number != 0 due before today,
                 while less than 100% of the contract is paid
    completed    >= 100%
    almost_done  >= 50%
    in_progress  > 0%
    not_started  0%

``schedule_lag`` is the older "expected paid by now" estimate from elapsed
months. It is informational and never changes the status.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from backoffice.common.date_rules import add_months, months_between, to_date
from backoffice.services.money import ZERO, money, percent, to_dec
from backoffice.services.reconciler import is_completed


class ClientStatus(str, Enum):
    OVERDUE = "overdue"
    COMPLETED = "completed"
    ALMOST_DONE = "almost_done"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"


class CalendarDayStatus(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


UPCOMING_WINDOW_DAYS = 7


def overdue_rows(ledger: Iterable[Mapping[str, Any]], today: date) -> List[Mapping[str, Any]]:
    """Incomplete monthly/additional rows whose due date is before today (row #0 excluded)."""
    out = []
    for row in ledger:
        if is_completed(row) or int(row.get("payment_number") or 0) == 0:
            continue
        due = to_date(row.get("due_date"))
        if due is not None and due < today:
            out.append(row)
    return out


def classify(contract_amount: Any, total_paid: Any,
             ledger: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> ClientStatus:
    today = today or date.today()
    pct = percent(total_paid, contract_amount)

    if pct < 100 and overdue_rows(ledger, today):
        return ClientStatus.OVERDUE
    if pct >= 100:
        return ClientStatus.COMPLETED
    if pct >= 50:
        return ClientStatus.ALMOST_DONE
    if pct > 0:
        return ClientStatus.IN_PROGRESS
    return ClientStatus.NOT_STARTED


def next_due_installment(ledger: Iterable[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Earliest incomplete row by due date (ties broken by payment_number)."""
    pending = [r for r in ledger if not is_completed(r) and to_date(r.get("due_date")) is not None]
    if not pending:
        return None
    return min(pending, key=lambda r: (to_date(r["due_date"]), int(r.get("payment_number") or 0)))


@dataclass(frozen=True)
class ScheduleLag:
    months_elapsed: int
    expected_paid: Decimal
    actual_paid: Decimal

    @property
    def behind(self) -> bool:
        return self.actual_paid < self.expected_paid

    def as_dict(self) -> Dict[str, Any]:
        return {
            "months_elapsed": self.months_elapsed,
            "expected_paid": money(self.expected_paid),
            "actual_paid": money(self.actual_paid),
            "behind": self.behind,
        }


def schedule_lag(client: Mapping[str, Any], today: Optional[date] = None) -> ScheduleLag:
    """
    Expected paid = first_payment + monthly_payment * months whose payment day has
    passed, capped at installment_period and the contract amount.
    """
    today = today or date.today()
    start = to_date(client.get("contract_date")) or today
    period = int(client.get("installment_period") or 0)
    payment_day = int(client.get("payment_day") or start.day)

    # a month only counts once its payment day has been reached
    elapsed = 0
    upper = min(period, max(0, months_between(start, today)) + 1)
    for i in range(1, upper + 1):
        if add_months(start, i, day=payment_day) <= today:
            elapsed = i

    expected = ZERO
    if today >= start:
        expected = to_dec(client.get("first_payment")) + to_dec(client.get("monthly_payment")) * elapsed
    expected = min(expected, to_dec(client.get("contract_amount")))
    return ScheduleLag(elapsed, expected, to_dec(client.get("total_paid")))


def calendar_day_status(rows: Iterable[Mapping[str, Any]], day: date,
                        today: Optional[date] = None) -> Optional[CalendarDayStatus]:
    """Status of one calendar day holding `rows` (all due on `day`); None for an empty day."""
    rows = list(rows)
    if not rows:
        return None
    today = today or date.today()
    pending = [r for r in rows if not is_completed(r)]
    if not pending:
        return CalendarDayStatus.COMPLETED
    if day < today:
        return CalendarDayStatus.OVERDUE
    if day == today:
        return CalendarDayStatus.DUE_TODAY
    if (day - today).days < UPCOMING_WINDOW_DAYS:
        return CalendarDayStatus.UPCOMING
    return CalendarDayStatus.SCHEDULED
