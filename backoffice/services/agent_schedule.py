# backoffice/services/agent_schedule.py
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from backoffice.common.date_rules import add_months, to_date
from backoffice.services.errors import ConflictError, InvalidInputError
from backoffice.services.money import ZERO, money, to_dec

INSTALLMENTS = (1, 2, 3)
PAYOUT_DAY = 3

FILTERS = (
    "all",
    "payment_pending_1", "payment_pending_2", "payment_pending_3",
    "pending_1", "pending_2", "pending_3",
    "all_pending", "all_completed",
)


def _check_k(k: int) -> int:
    if int(k) not in INSTALLMENTS:
        raise InvalidInputError("installment must be 1, 2 or 3")
    return int(k)


def payment_date(first_payment_date: Any, k: int) -> Optional[date]:
    """Client payment k is due k months after the first payment."""
    start = to_date(first_payment_date)
    if start is None:
        return None
    return add_months(start, _check_k(k))


def payout_date(first_payment_date: Any, k: int) -> Optional[date]:
    """Payout k goes out on the 3rd of the month following client payment k-1 (first payment for k=1)."""
    start = to_date(first_payment_date)
    if start is None:
        return None
    return add_months(start, _check_k(k), day=PAYOUT_DAY)


def _done(agent: Mapping[str, Any], key: str) -> bool:
    return bool(int(agent.get(key) or 0))


def payment_pending(agent: Mapping[str, Any], k: int) -> bool:
    return not _done(agent, f"payment_month_{k}_completed") and to_dec(agent.get(f"payment_month_{k}")) > 0


def payout_pending(agent: Mapping[str, Any], k: int) -> bool:
    return not _done(agent, f"payout_{k}_completed") and to_dec(agent.get(f"payout_{k}")) > 0


def matches_filter(agent: Mapping[str, Any], name: str) -> bool:
    if name == "all":
        return True
    if name.startswith("payment_pending_"):
        return payment_pending(agent, int(name[-1]))
    if name.startswith("pending_"):
        return payout_pending(agent, int(name[-1]))
    if name == "all_pending":
        return any(payout_pending(agent, k) for k in INSTALLMENTS)
    if name == "all_completed":
        return all(not payout_pending(agent, k) for k in INSTALLMENTS)
    raise InvalidInputError(f"Unknown filter '{name}'")


def apply_filter(agents: Iterable[Mapping[str, Any]], name: str) -> List[Mapping[str, Any]]:
    if name not in FILTERS:
        raise InvalidInputError(f"Unknown filter '{name}'. Expected one of: {', '.join(FILTERS)}")
    return [a for a in agents if matches_filter(a, name)]


def ensure_payout_toggle_allowed(agent: Mapping[str, Any], k: int) -> None:
    """A payout can be toggled only when it has an amount and its client payment is in."""
    k = _check_k(k)
    if to_dec(agent.get(f"payout_{k}")) <= 0:
        raise ConflictError(f"Payout {k} has no amount")
    if not _done(agent, f"payment_month_{k}_completed"):
        raise ConflictError(f"Client payment {k} is not completed yet")


def totals(agents: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
    reward = remaining = paid = pending = ZERO
    for a in agents:
        reward += to_dec(a.get("reward_amount"))
        remaining += to_dec(a.get("remaining_payment"))
        for k in INSTALLMENTS:
            amount = to_dec(a.get(f"payout_{k}"))
            if _done(a, f"payout_{k}_completed"):
                paid += amount
            else:
                pending += amount
    return {
        "total_reward": money(reward),
        "total_remaining": money(remaining),
        "paid_payouts": money(paid),
        "pending_payouts": money(pending),
    }


def with_dates(agent: Mapping[str, Any]) -> Dict[str, Any]:
    """Agent row plus computed payment_date_k / payout_date_k."""
    out = dict(agent)
    first = agent.get("first_payment_date")
    for k in INSTALLMENTS:
        out[f"payment_date_{k}"] = payment_date(first, k)
        out[f"payout_date_{k}"] = payout_date(first, k)
    return out
