# backoffice/services/reconciler.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from backoffice.services.money import ZERO, money, percent, round_money, to_dec
from backoffice.services.schedule import PAYMENT_TYPE_DEPOSIT, PAYMENT_TYPE_FIRST

# Completed rows of these types also count towards deposit_paid.
DEPOSIT_TYPES = frozenset({PAYMENT_TYPE_FIRST, PAYMENT_TYPE_DEPOSIT})


@dataclass(frozen=True)
class Balance:
    total_paid: Decimal
    remaining_amount: Decimal
    deposit_paid: Decimal

    def as_dict(self) -> Dict[str, float]:
        return {
            "total_paid": money(self.total_paid),
            "remaining_amount": money(self.remaining_amount),
            "deposit_paid": money(self.deposit_paid),
        }


def is_completed(row: Mapping[str, Any]) -> bool:
    return bool(int(row.get("is_completed") or 0))


def effective_amount(row: Mapping[str, Any]) -> Decimal:
    """custom_amount when set (0 included), else original_amount."""
    custom = row.get("custom_amount")
    if custom is not None:
        return to_dec(custom)
    return to_dec(row.get("original_amount"))


def reconcile(contract_amount: Any, ledger: Iterable[Mapping[str, Any]]) -> Balance:
    total = ZERO
    deposit = ZERO
    for row in ledger:
        if not is_completed(row):
            continue
        amount = effective_amount(row)
        total += amount
        if str(row.get("payment_type") or "") in DEPOSIT_TYPES:
            deposit += amount
    remaining = max(ZERO, to_dec(contract_amount) - total)
    return Balance(round_money(total), round_money(remaining), round_money(deposit))


def progress(contract_amount: Any, total_paid: Any,
             deposit_paid: Any = None, deposit_target: Any = None) -> Dict[str, float]:
    """Completion and deposit progress in percent (deposit capped at 100)."""
    out = {"percentage": money(percent(total_paid, contract_amount))}
    if deposit_target is not None:
        dp = percent(deposit_paid or 0, deposit_target)
        out["deposit_percentage"] = money(min(dp, Decimal("100")))
    return out


def months_to_finish(remaining_amount: Any, monthly_payment: Any) -> Optional[int]:
    """Monthly installments still needed to clear the balance; None without a monthly amount."""
    remaining = to_dec(remaining_amount)
    monthly = to_dec(monthly_payment)
    if remaining <= 0:
        return 0
    if monthly <= 0:
        return None
    whole, rest = divmod(remaining, monthly)
    return int(whole) + (1 if rest > 0 else 0)


def ledger_view(ledger: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Ledger rows with their effective amount attached, in payment_number order."""
    rows = []
    for row in sorted(ledger, key=lambda r: int(r.get("payment_number") or 0)):
        item = dict(row)
        item["effective_amount"] = money(effective_amount(row))
        rows.append(item)
    return rows
