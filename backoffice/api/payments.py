# backoffice/api/payments.py
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional, Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backoffice.api.clients import load_owned_client
from backoffice.common.date_rules import month_range, to_date
from backoffice.services import config
from backoffice.services.periods import resolve_month
from backoffice.services.reconciler import ledger_view
from backoffice.services.roles import Permission, require_permission, scope_employee_id, user_id
from backoffice.services.security import require_csrf
from backoffice.services.status import calendar_day_status
from backoffice.storage import payments_store
from backoffice.storage.db import get_conn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Payments"])

# ----- Annotated aliases -----
Staff = Annotated[Dict[str, Any], Depends(require_permission(Permission.MANAGE_PAYMENTS))]
Deleter = Annotated[Dict[str, Any], Depends(require_permission(Permission.DELETE_PAYMENTS))]
Auditor = Annotated[Dict[str, Any], Depends(require_permission(Permission.VIEW_PAYMENT_HISTORY))]
CSRF = Annotated[None, Depends(require_csrf)]


class CompletionChange(BaseModel):
    version: int
    completed: bool = True
    account: Optional[str] = None


class PaymentEdit(BaseModel):
    version: int
    custom_amount: Optional[float] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    account: Optional[str] = None


class AdditionalPayment(BaseModel):
    amount: float = Field(gt=0)
    due_date: date
    account: Optional[str] = None
    description: Optional[str] = None


def _check_account(account: Optional[str]) -> None:
    if account and config.PAYMENT_ACCOUNTS and account not in config.PAYMENT_ACCOUNTS:
        raise HTTPException(status_code=400, detail=f"Unknown account '{account}'")


def _owned_payment(conn, payment_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    payment = payments_store.get_payment(conn, payment_id)
    load_owned_client(conn, payment["client_id"], user)
    return payment


# --------------------------------------------------------------------
# Ledger
# --------------------------------------------------------------------
@router.get("/clients/{client_id}/payments", summary="Payment ledger of a client")
def list_client_payments(client_id: str, user: Staff) -> Dict[str, Any]:
    conn = get_conn()
    try:
        load_owned_client(conn, client_id, user)
        items = ledger_view(payments_store.list_ledger(conn, client_id))
    finally:
        conn.close()
    return {"count": len(items), "items": items}


@router.post("/clients/{client_id}/payments", summary="Add an additional payment")
def add_payment(client_id: str, payload: AdditionalPayment, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    _check_account(payload.account)
    conn = get_conn()
    try:
        load_owned_client(conn, client_id, user)
        row = payments_store.add_additional_payment(
            conn, client_id, payload.amount, payload.due_date, user_id(user),
            account=payload.account, description=payload.description,
        )
    finally:
        conn.close()
    logger.info("Additional payment #%s added to client %s", row.get("payment_number"), client_id)
    return {"status": "SUCCESS", "id": row["id"], "payment_number": row["payment_number"]}


@router.post("/payments/{payment_id}/complete", summary="Mark a payment completed or open again")
def set_completion(payment_id: str, payload: CompletionChange, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    _check_account(payload.account)
    changes: Dict[str, Any] = {"is_completed": payload.completed}
    if payload.completed and payload.account is not None:
        changes["account"] = payload.account
    conn = get_conn()
    try:
        _owned_payment(conn, payment_id, user)
        row, balance = payments_store.apply_payment_change(conn, payment_id, changes, payload.version, user_id(user))
    finally:
        conn.close()
    return {"status": "SUCCESS", "payment": row, "balance": balance.as_dict()}


@router.put("/payments/{payment_id}", summary="Edit amount, due date or account of a payment")
def edit_payment(payment_id: str, payload: PaymentEdit, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    version = changes.pop("version")
    if "due_date" in changes and changes["due_date"] is None:
        raise HTTPException(status_code=400, detail="due_date cannot be cleared")
    _check_account(changes.get("account"))
    if not changes:
        return {"status": "NOOP", "id": payment_id}
    conn = get_conn()
    try:
        _owned_payment(conn, payment_id, user)
        row, balance = payments_store.apply_payment_change(conn, payment_id, changes, version, user_id(user))
    finally:
        conn.close()
    return {"status": "SUCCESS", "payment": row, "balance": balance.as_dict()}


@router.delete("/payments/{payment_id}", summary="Delete an additional payment")
def delete_payment(payment_id: str, version: int, user: Deleter, _csrf_ok: CSRF) -> Dict[str, Any]:
    conn = get_conn()
    try:
        _owned_payment(conn, payment_id, user)
        balance = payments_store.delete_additional_payment(conn, payment_id, version)
    finally:
        conn.close()
    logger.info("Payment %s deleted by %s", payment_id, user_id(user))
    return {"status": "SUCCESS", "id": payment_id, "balance": balance.as_dict()}


# --------------------------------------------------------------------
# Calendar, accounts & audit
# --------------------------------------------------------------------
@router.get("/payments/calendar", summary="Payments due per day of a month")
def payments_calendar(user: Staff, month: Optional[str] = None, employee_id: Optional[str] = None) -> Dict[str, Any]:
    y, m = resolve_month(month)
    start, end = month_range(y, m)
    scope = scope_employee_id(user, Permission.VIEW_ALL_CLIENTS, employee_id)
    conn = get_conn()
    try:
        rows = payments_store.list_payments(conn, employee_id=scope, due_from=start.date(), due_to=end.date())
    finally:
        conn.close()

    by_day: Dict[date, List[Dict[str, Any]]] = defaultdict(list)
    for r in ledger_view(rows):
        d = to_date(r.get("due_date"))
        if d is not None:
            by_day[d].append(r)
    today = date.today()
    days = [
        {"date": d, "status": calendar_day_status(items, d, today).value, "payments": items}
        for d, items in sorted(by_day.items())
    ]
    return {"month": f"{y:04d}-{m:02d}", "count": len(days), "days": days}


@router.get("/payments/accounts", summary="Accounts a payment can be received on")
def payment_accounts(user: Staff) -> Dict[str, Any]:
    return {"count": len(config.PAYMENT_ACCOUNTS), "items": list(config.PAYMENT_ACCOUNTS)}


@router.get("/payments/history", summary="Audit trail of payment changes")
def payment_history(
    user: Auditor,
    client_id: Optional[str] = None,
    field_name: Optional[str] = None,
    limit: int = 200,
    offset: int = 0,
) -> Dict[str, Any]:
    if field_name and field_name not in payments_store.AUDITED_FIELDS:
        raise HTTPException(status_code=400, detail=f"Unknown field '{field_name}'")
    conn = get_conn()
    try:
        items = payments_store.list_history(conn, client_id=client_id, field_name=field_name,
                                            limit=limit, offset=offset)
    finally:
        conn.close()
    return {"count": len(items), "items": items}
