# backoffice/api/dashboard.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Annotated

from fastapi import APIRouter, Depends, HTTPException

from backoffice.services import metrics
from backoffice.services.money import money
from backoffice.services.periods import resolve_month
from backoffice.services.roles import Permission, Role, require_permission, scope_employee_id
from backoffice.storage import clients_store, payments_store, users_store
from backoffice.storage.db import get_conn
from backoffice.utils.csv_io import dicts_to_csv_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

Viewer = Annotated[Dict[str, Any], Depends(require_permission(Permission.VIEW_DASHBOARD))]
Overseer = Annotated[Dict[str, Any], Depends(require_permission(Permission.VIEW_ALL_METRICS))]

CSV_FIELDS = (
    "id", "full_name", "city", "manager", "contract_date", "contract_amount",
    "monthly_payment", "total_paid", "remaining_amount", "employee_id",
)


def _load(employee_id: Optional[str]):
    """All clients (inactive included) and all their payments for the scope."""
    conn = get_conn()
    try:
        clients = clients_store.list_clients(conn, employee_id=employee_id, include_inactive=True)
        payments = payments_store.list_payments(conn, employee_id=employee_id)
    finally:
        conn.close()
    return clients, payments


def _fetch(what: str, fn: Callable[[], List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    """Loads one dataset for the dashboard; a failing query logs and yields None."""
    try:
        return fn()
    except Exception:
        logger.exception("Dashboard could not load %s", what)
        return None


def _best_effort(
    group: str, fn: Callable[[], Dict[str, Any]], defaults: Dict[str, Any], ready: bool = True,
) -> Dict[str, Any]:
    """A failing metric group logs and falls back to zeros; the other groups still render."""
    if not ready:
        return dict(defaults)
    try:
        return fn()
    except Exception:
        logger.exception("Dashboard metric group '%s' failed", group)
        return dict(defaults)


def _jsonable(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (money(v) if k.endswith(("_sum", "_amount")) else v) for k, v in values.items()}


@router.get("/metrics")
def dashboard_metrics(user: Viewer, month: Optional[str] = None, employee_id: Optional[str] = None) -> Dict[str, Any]:
    y, m = resolve_month(month)
    scope = scope_employee_id(user, Permission.VIEW_ALL_METRICS, employee_id)
    conn = get_conn()
    try:
        loaded = _fetch(
            "clients", lambda: clients_store.list_clients(conn, employee_id=scope, include_inactive=True),
        )
        payments = _fetch("payments", lambda: payments_store.list_payments(conn, employee_id=scope))
    finally:
        conn.close()
    has_clients = loaded is not None
    has_payments = has_clients and payments is not None
    clients = loaded or []
    active = metrics.active_population(clients, y, m)
    by_client = metrics.group_payments(payments or [])

    def _new() -> Dict[str, Any]:
        rows = metrics.new_clients(clients, y, m)
        return {
            "new_clients_count": len(rows),
            "new_clients_sum": sum((money(c.get("monthly_payment")) for c in rows), 0.0),
        }

    def _completed() -> Dict[str, Any]:
        rows = metrics.completed_clients(active, by_client, y, m)
        return {
            "completed_clients_count": len(rows),
            "completed_clients_amount": sum((money(c.get("contract_amount")) for c in rows), 0.0),
        }

    def _lifecycle() -> Dict[str, Any]:
        terminated = metrics.lifecycle_in_month(clients, y, m, "terminated")
        suspended = metrics.lifecycle_in_month(clients, y, m, "suspended")
        return {
            "terminated_count": len(terminated),
            "terminated_amount": sum((money(c.get("contract_amount")) for c in terminated), 0.0),
            "suspended_count": len(suspended),
            "suspended_amount": sum((money(c.get("contract_amount")) for c in suspended), 0.0),
        }

    out: Dict[str, Any] = {"month": f"{y:04d}-{m:02d}", "employee_id": scope}
    out.update(_best_effort(
        "population", lambda: _jsonable(metrics.population_totals(active)),
        {"total_clients": 0, "total_contract_amount": 0.0, "total_remaining_amount": 0.0, "active_cases": 0},
        ready=has_clients,
    ))
    out.update(_best_effort("new", _new, {"new_clients_count": 0, "new_clients_sum": 0.0}, ready=has_clients))
    out.update(_best_effort(
        "completed", _completed, {"completed_clients_count": 0, "completed_clients_amount": 0.0},
        ready=has_payments,
    ))
    out.update(_best_effort(
        "plan", lambda: {"plan_sum": money(metrics.plan_sum(active, by_client, y, m))}, {"plan_sum": 0.0},
        ready=has_payments,
    ))
    out.update(_best_effort(
        "collected", lambda: _jsonable(metrics.collected(active, by_client, y, m)),
        {"collected_sum": 0.0, "collected_count": 0},
        ready=has_payments,
    ))
    out.update(_best_effort(
        "lifecycle", _lifecycle,
        {"terminated_count": 0, "terminated_amount": 0.0, "suspended_count": 0, "suspended_amount": 0.0},
        ready=has_clients,
    ))
    return out


@router.get("/plan-breakdown")
def plan_breakdown(user: Viewer, month: Optional[str] = None, employee_id: Optional[str] = None) -> Dict[str, Any]:
    y, m = resolve_month(month)
    scope = scope_employee_id(user, Permission.VIEW_ALL_METRICS, employee_id)
    clients, payments = _load(scope)
    entries = metrics.plan_breakdown(
        metrics.active_population(clients, y, m), metrics.group_payments(payments), y, m,
    )
    items = [dict(e, monthly_payment=money(e["monthly_payment"])) for e in entries]
    return {
        "month": f"{y:04d}-{m:02d}",
        "plan_sum": money(sum(e["monthly_payment"] for e in entries if e["included_in_plan"])),
        "count": len(items),
        "items": items,
    }


@router.get("/metric-clients/{metric}")
def metric_clients(
    metric: str,
    user: Viewer,
    month: Optional[str] = None,
    employee_id: Optional[str] = None,
    format: str = "json",
):
    if metric not in metrics.METRICS:
        raise HTTPException(status_code=404, detail=f"Unknown metric '{metric}'")
    y, m = resolve_month(month)
    scope = scope_employee_id(user, Permission.VIEW_ALL_METRICS, employee_id)
    clients, payments = _load(scope)
    rows: List[Dict[str, Any]] = [dict(c) for c in metrics.metric_clients(metric, clients, payments, y, m)]
    if format == "csv":
        return dicts_to_csv_stream(rows, field_order=CSV_FIELDS, filename=f"{metric}_{y:04d}-{m:02d}.csv")
    return {"metric": metric, "month": f"{y:04d}-{m:02d}", "count": len(rows), "items": rows}


@router.get("/employees")
def employees(user: Overseer) -> Dict[str, Any]:
    conn = get_conn()
    try:
        staff = users_store.list_users(conn, role=Role.EMPLOYEE.value, limit=1000)
        clients = clients_store.list_clients(conn, include_inactive=True)
    finally:
        conn.close()
    items = metrics.employee_stats(clients, staff)
    return {"count": len(items), "items": items}
