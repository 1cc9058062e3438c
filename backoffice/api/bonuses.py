# backoffice/api/bonuses.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backoffice.common.date_rules import month_range
from backoffice.services.bonus import IncentiveRule, calculate_bonus, performance_stats
from backoffice.services.money import money
from backoffice.services.periods import resolve_month
from backoffice.services.roles import Permission, Role, can, parse_role, require_permission, user_id
from backoffice.services.security import require_csrf
from backoffice.storage import bonuses_store, clients_store, payments_store, users_store
from backoffice.storage.db import get_conn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bonuses", tags=["Bonuses"])

Staff = Annotated[Dict[str, Any], Depends(require_permission(Permission.MANAGE_BONUSES))]
RuleAdmin = Annotated[Dict[str, Any], Depends(require_permission(Permission.MANAGE_INCENTIVE_RULES))]
CSRF = Annotated[None, Depends(require_csrf)]


class CountsIn(BaseModel):
    month: Optional[str] = None
    reviews_count: int = Field(default=0, ge=0)
    agents_count: int = Field(default=0, ge=0)


class RuleIn(BaseModel):
    employee_id: Optional[str] = None
    role: Optional[str] = None
    min_average_percent: float = Field(ge=0, le=100)
    bonus_amount: float = Field(ge=0)


def _ensure_self_or_all(user: Dict[str, Any], employee_id: str) -> None:
    if employee_id != user_id(user) and not can(user, Permission.VIEW_ALL_METRICS):
        raise HTTPException(status_code=403, detail="Employees can only see their own bonus")


def _bonus_for(employee_id: str, month: Optional[str]) -> Dict[str, Any]:
    y, m = resolve_month(month)
    start, end = month_range(y, m)
    conn = get_conn()
    try:
        employee = users_store.get_user(conn, employee_id)
        clients = clients_store.list_clients(conn, employee_id=employee_id)
        payments = payments_store.list_payments(
            conn, employee_id=employee_id, due_from=start.date(), due_to=end.date(),
        )
        counts = bonuses_store.get_counts(conn, employee_id, m, y)
        rules = [IncentiveRule.from_row(r) for r in bonuses_store.list_rules(conn)]
    finally:
        conn.close()

    stats = performance_stats(clients, payments, employee_id, y, m)
    result = calculate_bonus(
        stats,
        counts["reviews_count"],
        counts["agents_count"],
        rules,
        employee_id,
        employee.get("role"),
    )
    return {
        "employee_id": employee_id,
        "full_name": employee.get("full_name"),
        "month": f"{y:04d}-{m:02d}",
        **counts,
        **result,
    }


@router.get("/me")
def my_bonus(user: Staff, month: Optional[str] = None) -> Dict[str, Any]:
    return _bonus_for(user_id(user), month)


@router.get("/rules")
def list_rules(user: RuleAdmin) -> Dict[str, Any]:
    conn = get_conn()
    try:
        rows = bonuses_store.list_rules(conn)
    finally:
        conn.close()
    items = [
        dict(r, min_average_percent=money(r.get("min_average_percent")), bonus_amount=money(r.get("bonus_amount")))
        for r in rows
    ]
    return {"count": len(items), "items": items}


@router.post("/rules")
def create_rule(payload: RuleIn, user: RuleAdmin, _csrf_ok: CSRF) -> Dict[str, Any]:
    if bool(payload.employee_id) == bool(payload.role):
        raise HTTPException(status_code=400, detail="A rule targets either employee_id or role")
    role = None
    if payload.role:
        parsed = parse_role(payload.role)
        if parsed is None:
            raise HTTPException(status_code=400, detail=f"Unknown role '{payload.role}'")
        role = parsed.value
    conn = get_conn()
    try:
        rule_id = bonuses_store.create_rule(
            conn, payload.employee_id, role, payload.min_average_percent, payload.bonus_amount,
        )
    finally:
        conn.close()
    logger.info("Incentive rule %s created by %s", rule_id, user_id(user))
    return {"status": "SUCCESS", "id": rule_id}


@router.delete("/rules/{rule_id}")
def delete_rule(rule_id: str, user: RuleAdmin, _csrf_ok: CSRF) -> Dict[str, Any]:
    conn = get_conn()
    try:
        bonuses_store.delete_rule(conn, rule_id)
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": rule_id}


@router.get("/{employee_id}")
def employee_bonus(employee_id: str, user: Staff, month: Optional[str] = None) -> Dict[str, Any]:
    _ensure_self_or_all(user, employee_id)
    return _bonus_for(employee_id, month)


@router.put("/{employee_id}/counts")
def save_counts(employee_id: str, payload: CountsIn, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    _ensure_self_or_all(user, employee_id)
    y, m = resolve_month(payload.month)
    conn = get_conn()
    try:
        employee = users_store.get_user(conn, employee_id)
        if parse_role(employee.get("role")) is not Role.EMPLOYEE:
            raise HTTPException(status_code=400, detail="Bonuses are tracked for employees only")
        bonuses_store.upsert_counts(conn, employee_id, m, y, payload.reviews_count, payload.agents_count)
    finally:
        conn.close()
    return {"status": "SUCCESS", "employee_id": employee_id, "month": f"{y:04d}-{m:02d}"}
