"""
Month-scoped dashboard metrics.

Everything here is a pure function over rows already fetched from the
`clients` and `payments` tables (bulk fetch, aggregate in Python). Money
comes back as Decimal; callers convert with ``money()`` for JSON.

Active population of a month: clients neither terminated nor suspended, plus
clients whose terminated_at / suspended_at falls in a later month (they were
still active during the month being analysed).
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from backoffice.common.date_rules import is_after_month, is_in_month, to_date
from backoffice.services.errors import InvalidInputError
from backoffice.services.money import ZERO, dec_sum, money, to_dec
from backoffice.services.reconciler import effective_amount, is_completed

Row = Mapping[str, Any]


def _flag(row: Row, key: str) -> bool:
    return bool(int(row.get(key) or 0))


def is_active_in_month(client: Row, y: int, m: int) -> bool:
    terminated = _flag(client, "is_terminated")
    suspended = _flag(client, "is_suspended")
    if not terminated and not suspended:
        return True
    if terminated and not is_after_month(client.get("terminated_at"), y, m):
        return False
    if suspended and not is_after_month(client.get("suspended_at"), y, m):
        return False
    return True


def is_active_now(client: Row) -> bool:
    return not _flag(client, "is_terminated") and not _flag(client, "is_suspended")


def active_population(clients: Iterable[Row], y: int, m: int) -> List[Row]:
    return [c for c in clients if is_active_in_month(c, y, m)]


def group_payments(payments: Iterable[Row]) -> Dict[str, List[Row]]:
    by_client: Dict[str, List[Row]] = defaultdict(list)
    for p in payments:
        by_client[str(p.get("client_id"))].append(p)
    return by_client


def _plan_rows_in_month(rows: Iterable[Row], y: int, m: int) -> List[Row]:
    """Ledger rows due in the month, first/advance payment (#0) excluded."""
    return [
        r for r in rows
        if int(r.get("payment_number") or 0) != 0 and is_in_month(r.get("due_date"), y, m)
    ]


def last_completed_at(rows: Iterable[Row]) -> Optional[date]:
    stamps = [to_date(r.get("completed_at")) for r in rows if is_completed(r)]
    stamps = [s for s in stamps if s is not None]
    return max(stamps) if stamps else None


# ─────────────────────────────────────────────────────────────────────────────
# Metric groups
# ─────────────────────────────────────────────────────────────────────────────

def population_totals(active: Sequence[Row]) -> Dict[str, Any]:
    return {
        "total_clients": len(active),
        "total_contract_amount": dec_sum(c.get("contract_amount") for c in active),
        "total_remaining_amount": dec_sum(c.get("remaining_amount") for c in active),
        "active_cases": sum(
            1 for c in active if to_dec(c.get("total_paid")) < to_dec(c.get("contract_amount"))
        ),
    }


def new_clients(clients: Iterable[Row], y: int, m: int) -> List[Row]:
    return [c for c in clients if is_in_month(c.get("contract_date"), y, m)]


def completed_clients(active: Iterable[Row], by_client: Mapping[str, List[Row]], y: int, m: int) -> List[Row]:
    """Fully paid clients whose most recent completed payment is in the month."""
    out = []
    for c in active:
        if to_dec(c.get("total_paid")) < to_dec(c.get("contract_amount")):
            continue
        last = last_completed_at(by_client.get(str(c.get("id")), []))
        if last is not None and last.year == y and last.month == m:
            out.append(c)
    return out


def plan_breakdown(active: Iterable[Row], by_client: Mapping[str, List[Row]], y: int, m: int) -> List[Dict[str, Any]]:
    """
    One entry per active client explaining whether its monthly payment counts
    towards the month's plan: it must have a row due in the month and its
    contract must not have been signed in that same month.
    """
    entries = []
    for c in active:
        rows = _plan_rows_in_month(by_client.get(str(c.get("id")), []), y, m)
        is_new = is_in_month(c.get("contract_date"), y, m)
        has_payments = bool(rows)
        entries.append({
            "client_id": c.get("id"),
            "full_name": c.get("full_name"),
            "employee_id": c.get("employee_id"),
            "monthly_payment": to_dec(c.get("monthly_payment")),
            "contract_date": to_date(c.get("contract_date")),
            "is_new_client": is_new,
            "has_payments": has_payments,
            "included_in_plan": has_payments and not is_new,
        })
    entries.sort(key=lambda e: (not e["included_in_plan"], str(e["full_name"] or "")))
    return entries


def plan_sum(active: Iterable[Row], by_client: Mapping[str, List[Row]], y: int, m: int) -> Decimal:
    return dec_sum(
        e["monthly_payment"] for e in plan_breakdown(active, by_client, y, m) if e["included_in_plan"]
    )


def collected(active: Iterable[Row], by_client: Mapping[str, List[Row]], y: int, m: int) -> Dict[str, Any]:
    """Completed plan rows due in the month (effective amounts)."""
    total = ZERO
    count = 0
    for c in active:
        for r in _plan_rows_in_month(by_client.get(str(c.get("id")), []), y, m):
            if is_completed(r):
                total += effective_amount(r)
                count += 1
    return {"collected_sum": total, "collected_count": count}


def lifecycle_in_month(clients: Iterable[Row], y: int, m: int, kind: str) -> List[Row]:
    """Clients terminated (kind='terminated') or suspended (kind='suspended') during the month."""
    if kind not in ("terminated", "suspended"):
        raise InvalidInputError(f"Unknown lifecycle kind: {kind}")
    flag = "is_terminated" if kind == "terminated" else "is_suspended"
    stamp = "terminated_at" if kind == "terminated" else "suspended_at"
    return [c for c in clients if _flag(c, flag) and is_in_month(c.get(stamp), y, m)]


def remaining_payments_sum(clients: Iterable[Row]) -> Decimal:
    """Outstanding balance of clients that are active now and not yet paid off."""
    return dec_sum(
        c.get("remaining_amount") for c in clients
        if is_active_now(c) and to_dec(c.get("total_paid")) < to_dec(c.get("contract_amount"))
    )


# ─────────────────────────────────────────────────────────────────────────────
# Metric card drill-down
# ─────────────────────────────────────────────────────────────────────────────

METRICS: Tuple[str, ...] = (
    "total", "active", "remaining", "new", "completed", "plan", "terminated", "suspended",
)


def metric_clients(metric: str, clients: Sequence[Row], payments: Iterable[Row],
                   y: int, m: int) -> List[Row]:
    """The clients behind a dashboard card."""
    by_client = group_payments(payments)
    active = active_population(clients, y, m)
    pickers: Dict[str, Callable[[], List[Row]]] = {
        "total": lambda: list(active),
        "active": lambda: [
            c for c in active if to_dec(c.get("total_paid")) < to_dec(c.get("contract_amount"))
        ],
        "remaining": lambda: [c for c in active if to_dec(c.get("remaining_amount")) > ZERO],
        "new": lambda: new_clients(clients, y, m),
        "completed": lambda: completed_clients(active, by_client, y, m),
        "plan": lambda: _plan_clients(active, by_client, y, m),
        "terminated": lambda: lifecycle_in_month(clients, y, m, "terminated"),
        "suspended": lambda: lifecycle_in_month(clients, y, m, "suspended"),
    }
    if metric not in pickers:
        raise InvalidInputError(f"Unknown metric '{metric}'. Expected one of: {', '.join(METRICS)}")
    return pickers[metric]()


def _plan_clients(active: Sequence[Row], by_client: Mapping[str, List[Row]], y: int, m: int) -> List[Row]:
    included = {e["client_id"] for e in plan_breakdown(active, by_client, y, m) if e["included_in_plan"]}
    return [c for c in active if c.get("id") in included]


# ─────────────────────────────────────────────────────────────────────────────
# Per-employee and integration summaries
# ─────────────────────────────────────────────────────────────────────────────

def employee_stats(clients: Iterable[Row], employees: Iterable[Row]) -> List[Dict[str, Any]]:
    """Client counts and contract totals per employee (current, non-terminated/suspended clients)."""
    by_emp: Dict[str, List[Row]] = defaultdict(list)
    for c in clients:
        if is_active_now(c):
            by_emp[str(c.get("employee_id") or "")].append(c)
    out = []
    for e in employees:
        rows = by_emp.get(str(e.get("id")), [])
        totals = population_totals(rows)
        out.append({
            "employee_id": e.get("id"),
            "full_name": e.get("full_name"),
            "email": e.get("email"),
            "clients_count": totals["total_clients"],
            "active_cases": totals["active_cases"],
            "total_contract_amount": money(totals["total_contract_amount"]),
            "total_remaining_amount": money(totals["total_remaining_amount"]),
        })
    out.sort(key=lambda r: -r["clients_count"])
    return out


def payment_summary(clients: Iterable[Row], payments: Iterable[Row], y: int, m: int,
                    employee_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Scheduled vs completed monthly payments due in the month for currently
    active clients, optionally narrowed to one employee's clients.
    """
    active_ids = {
        str(c.get("id")) for c in clients
        if is_active_now(c) and (employee_id is None or str(c.get("employee_id")) == employee_id)
    }
    rows = [
        p for p in _plan_rows_in_month(payments, y, m)
        if str(p.get("client_id")) in active_ids
    ]
    done = [p for p in rows if is_completed(p)]
    return {
        "total_payments_sum": money(dec_sum(effective_amount(p) for p in rows)),
        "completed_payments_sum": money(dec_sum(effective_amount(p) for p in done)),
        "total_payments_count": len(rows),
        "completed_payments_count": len(done),
        "month": f"{y:04d}-{m:02d}",
        "employee_id": employee_id,
    }


def sync_snapshot(clients: Sequence[Row], payments: Iterable[Row], y: int, m: int) -> Dict[str, Any]:
    """Numbers pushed to the accounting system with the dashboard_metrics event."""
    by_client = group_payments(payments)
    new = new_clients(clients, y, m)
    done = completed_clients(active_population(clients, y, m), by_client, y, m)
    terminated = lifecycle_in_month(clients, y, m, "terminated")
    suspended = lifecycle_in_month(clients, y, m, "suspended")
    return {
        "new_clients_count": len(new),
        "new_clients_monthly_payment_sum": money(dec_sum(c.get("monthly_payment") for c in new)),
        "completed_clients_count": len(done),
        "completed_clients_monthly_payment_sum": money(dec_sum(c.get("monthly_payment") for c in done)),
        "remaining_payments_sum": money(remaining_payments_sum(clients)),
        "terminated_clients_count": len(terminated),
        "terminated_contract_amount": money(dec_sum(c.get("contract_amount") for c in terminated)),
        "suspended_clients_count": len(suspended),
        "suspended_contract_amount": money(dec_sum(c.get("contract_amount") for c in suspended)),
    }
