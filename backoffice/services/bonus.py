"""
Employee monthly bonus calculation.

    clients_percent  = completed_clients / clients_total * 100
    payments_percent = min(total_payments / (clients_total * target_per_client) * 100, 100)
    average          = (clients_percent + payments_percent) / 2

The performance bonus comes from the incentive rule table: rules addressed to
the employee win over rules addressed to the employee's role, and among the
applicable rules the highest threshold not above `average` pays out.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from backoffice.common.date_rules import is_in_month
from backoffice.services import config
from backoffice.services.money import ZERO, money, round_money, to_dec
from backoffice.services.reconciler import effective_amount, is_completed

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class IncentiveRule:
    min_average_percent: Decimal
    bonus_amount: Decimal
    employee_id: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "IncentiveRule":
        return cls(
            min_average_percent=to_dec(row.get("min_average_percent")),
            bonus_amount=to_dec(row.get("bonus_amount")),
            employee_id=(str(row["employee_id"]) if row.get("employee_id") else None),
            role=(str(row["role"]).lower() if row.get("role") else None),
        )


@dataclass(frozen=True)
class BonusPlan:
    base_salary: Decimal = field(default_factory=lambda: config.BONUS_BASE_SALARY)
    payment_target_per_client: Decimal = field(default_factory=lambda: config.BONUS_PAYMENT_TARGET_PER_CLIENT)
    reviews_threshold: int = field(default_factory=lambda: config.BONUS_REVIEWS_THRESHOLD)
    reviews_amount: Decimal = field(default_factory=lambda: config.BONUS_REVIEWS_AMOUNT)
    per_agent: Decimal = field(default_factory=lambda: config.BONUS_PER_AGENT)


@dataclass(frozen=True)
class PerformanceStats:
    completed_clients: int
    clients_total: int
    total_payments: Decimal


def performance_stats(clients: Iterable[Mapping[str, Any]], payments: Iterable[Mapping[str, Any]],
                      employee_id: str, y: int, m: int) -> PerformanceStats:
    """
    Month stats for one employee: own clients, completed monthly rows due in
    the month (row #0 excluded), distinct clients behind them.
    """
    own_ids = {str(c.get("id")) for c in clients if str(c.get("employee_id") or "") == str(employee_id)}
    done = [
        p for p in payments
        if str(p.get("client_id")) in own_ids
        and int(p.get("payment_number") or 0) != 0
        and is_completed(p)
        and is_in_month(p.get("due_date"), y, m)
    ]
    return PerformanceStats(
        completed_clients=len({str(p.get("client_id")) for p in done}),
        clients_total=len(own_ids),
        total_payments=sum((effective_amount(p) for p in done), ZERO),
    )


def percentages(stats: PerformanceStats, plan: Optional[BonusPlan] = None) -> Dict[str, Decimal]:
    plan = plan or BonusPlan()
    if stats.clients_total <= 0:
        return {"clients_percent": ZERO, "payments_percent": ZERO, "average_percent": ZERO}
    clients_pct = Decimal(stats.completed_clients) / Decimal(stats.clients_total) * _HUNDRED
    target = Decimal(stats.clients_total) * plan.payment_target_per_client
    payments_pct = min(stats.total_payments / target * _HUNDRED, _HUNDRED) if target > 0 else ZERO
    return {
        "clients_percent": clients_pct,
        "payments_percent": payments_pct,
        "average_percent": (clients_pct + payments_pct) / 2,
    }


def applicable_rules(rules: Iterable[IncentiveRule], employee_id: str, role: Optional[str]) -> List[IncentiveRule]:
    rules = list(rules)
    personal = [r for r in rules if r.employee_id == str(employee_id)]
    if personal:
        return personal
    role_key = (role or "").lower()
    return [r for r in rules if r.employee_id is None and r.role and r.role == role_key]


def performance_bonus(average_percent: Decimal, rules: Sequence[IncentiveRule]) -> Decimal:
    best: Optional[IncentiveRule] = None
    for r in rules:
        if average_percent >= r.min_average_percent:
            if best is None or r.min_average_percent > best.min_average_percent:
                best = r
    return best.bonus_amount if best else ZERO


def calculate_bonus(stats: PerformanceStats, reviews_count: int, agents_count: int,
                    rules: Iterable[IncentiveRule], employee_id: str, role: Optional[str],
                    plan: Optional[BonusPlan] = None) -> Dict[str, Any]:
    plan = plan or BonusPlan()
    pct = percentages(stats, plan)
    perf = ZERO
    if stats.clients_total > 0:
        perf = performance_bonus(pct["average_percent"], applicable_rules(rules, employee_id, role))
    reviews = plan.reviews_amount if int(reviews_count or 0) >= plan.reviews_threshold else ZERO
    agents = plan.per_agent * int(agents_count or 0)
    total_bonus = perf + reviews + agents
    return {
        "completed_clients": stats.completed_clients,
        "clients_total": stats.clients_total,
        "total_payments": money(stats.total_payments),
        "clients_percent": float(round_money(pct["clients_percent"])),
        "payments_percent": float(round_money(pct["payments_percent"])),
        "average_percent": float(round_money(pct["average_percent"])),
        "performance_bonus": money(perf),
        "reviews_bonus": money(reviews),
        "agents_bonus": money(agents),
        "total_bonus": money(total_bonus),
        "base_salary": money(plan.base_salary),
        "total_salary": money(plan.base_salary + total_bonus),
    }
