"""
Installment schedule generation.

A contract is expanded up-front into its full ledger:

    #0        due on contract_date, amount first_payment, type "first"
    #1..#N    due contract_date + i months on payment_day (clamped to the
              last day of short months), amount monthly_payment, type "monthly"

The generator is pure. Persisting the rows (and zeroing the contract's
aggregates) is done atomically by ``payments_store.replace_schedule``.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List

from backoffice.common.date_rules import add_months
from backoffice.services.errors import InvalidInputError
from backoffice.services.money import round_money, to_dec

PAYMENT_TYPE_FIRST = "first"
PAYMENT_TYPE_MONTHLY = "monthly"
PAYMENT_TYPE_DEPOSIT = "deposit"
PAYMENT_TYPE_ADDITIONAL = "additional"

PAYMENT_TYPES = (
    PAYMENT_TYPE_FIRST,
    PAYMENT_TYPE_MONTHLY,
    PAYMENT_TYPE_DEPOSIT,
    PAYMENT_TYPE_ADDITIONAL,
)


@dataclass(frozen=True)
class Installment:
    payment_number: int
    due_date: date
    original_amount: Decimal
    payment_type: str

    def as_row(self) -> Dict[str, Any]:
        return asdict(self)


def _validate_terms(first_payment: Decimal, monthly_payment: Decimal,
                    installment_period: int, payment_day: int) -> None:
    if installment_period is None or int(installment_period) < 1:
        raise InvalidInputError("installment_period must be at least 1")
    if payment_day is None or not 1 <= int(payment_day) <= 31:
        raise InvalidInputError("payment_day must be between 1 and 31")
    if first_payment < 0 or monthly_payment < 0:
        raise InvalidInputError("payment amounts must not be negative")


def generate_schedule(
    contract_date: date,
    first_payment: Any,
    monthly_payment: Any,
    installment_period: int,
    payment_day: int,
) -> List[Installment]:
    """Return installments #0..#installment_period in schedule order."""
    first = round_money(first_payment)
    monthly = round_money(monthly_payment)
    _validate_terms(first, monthly, installment_period, payment_day)

    rows = [Installment(0, contract_date, first, PAYMENT_TYPE_FIRST)]
    for i in range(1, int(installment_period) + 1):
        due = add_months(contract_date, i, day=int(payment_day))
        rows.append(Installment(i, due, monthly, PAYMENT_TYPE_MONTHLY))
    return rows


def schedule_total(rows: List[Installment]) -> Decimal:
    return sum((r.original_amount for r in rows), Decimal("0"))


def suggest_monthly_payment(contract_amount: Any, first_payment: Any, installment_period: int) -> Decimal:
    """(contract - first) / period, the auto-filled monthly amount for new contracts."""
    if not installment_period or int(installment_period) < 1:
        raise InvalidInputError("installment_period must be at least 1")
    rest = to_dec(contract_amount) - to_dec(first_payment)
    if rest < 0:
        raise InvalidInputError("first_payment exceeds contract_amount")
    return round_money(rest / Decimal(int(installment_period)))


def terms_mismatch(contract_amount: Any, first_payment: Any, monthly_payment: Any,
                   installment_period: int) -> Decimal:
    """
    Difference between the scheduled total and the contract amount.
    0 means the terms add up; the generator itself never enforces this.
    """
    scheduled = to_dec(first_payment) + to_dec(monthly_payment) * int(installment_period)
    return round_money(scheduled - to_dec(contract_amount))
