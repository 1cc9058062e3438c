# backoffice/api/clients.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from backoffice.common.date_rules import to_date
from backoffice.services import config
from backoffice.services.errors import PermissionDeniedError
from backoffice.services.metrics import group_payments
from backoffice.services.money import money
from backoffice.services.reconciler import effective_amount, ledger_view, months_to_finish, progress
from backoffice.services.roles import Permission, can, owns_or_can, require_permission, scope_employee_id, user_id
from backoffice.services.schedule import generate_schedule, suggest_monthly_payment, terms_mismatch
from backoffice.services.security import require_csrf
from backoffice.services.status import ClientStatus, classify, next_due_installment, schedule_lag
from backoffice.services.webhook import notify_new_client
from backoffice.storage import clients_store, payments_store
from backoffice.storage.db import get_conn, transaction

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/clients",
    tags=["Clients"],
)

# ----- Annotated aliases -----
Staff = Annotated[Dict[str, Any], Depends(require_permission(Permission.MANAGE_CLIENTS))]
Resetter = Annotated[Dict[str, Any], Depends(require_permission(Permission.RESET_SCHEDULE))]
AdminDelete = Annotated[Dict[str, Any], Depends(require_permission(Permission.DELETE_CLIENTS))]
CSRF = Annotated[None, Depends(require_csrf)]


class ClientCreate(BaseModel):
    full_name: str = Field(min_length=1)
    city: Optional[str] = None
    source: Optional[str] = None
    manager: Optional[str] = None
    contract_amount: float = Field(gt=0)
    first_payment: float = Field(ge=0)
    monthly_payment: Optional[float] = Field(default=None, ge=0)
    installment_period: int = Field(ge=1)
    payment_day: int = Field(ge=1, le=31)
    contract_date: date
    deposit_target: Optional[float] = Field(default=None, ge=0)
    employee_id: Optional[str] = None
    income_account: Optional[str] = None


class ClientUpdate(BaseModel):
    version: int
    full_name: Optional[str] = None
    city: Optional[str] = None
    source: Optional[str] = None
    manager: Optional[str] = None
    contract_amount: Optional[float] = Field(default=None, gt=0)
    deposit_target: Optional[float] = Field(default=None, ge=0)
    employee_id: Optional[str] = None
    # schedule-defining terms are listed so they can be refused explicitly
    contract_date: Optional[date] = None
    first_payment: Optional[float] = None
    monthly_payment: Optional[float] = None
    installment_period: Optional[int] = None
    payment_day: Optional[int] = None


class ScheduleReset(BaseModel):
    confirm: bool = False
    version: int
    contract_amount: Optional[float] = Field(default=None, gt=0)
    contract_date: date
    first_payment: float = Field(ge=0)
    monthly_payment: Optional[float] = Field(default=None, ge=0)
    installment_period: int = Field(ge=1)
    payment_day: int = Field(ge=1, le=31)


class LifecycleChange(BaseModel):
    version: int
    reason: Optional[str] = None


# --------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------
def load_owned_client(conn, client_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    """Client row, provided the caller may see it (admins: all, employees: their own)."""
    client = clients_store.get_client(conn, client_id)
    if not owns_or_can(user, client, Permission.VIEW_ALL_CLIENTS):
        raise PermissionDeniedError("Client is assigned to another employee")
    return client


def _summary(client: Dict[str, Any], ledger: List[Dict[str, Any]], today: date) -> Dict[str, Any]:
    item = dict(client)
    item.update(progress(client.get("contract_amount"), client.get("total_paid"),
                         client.get("deposit_paid"), client.get("deposit_target")))
    item["status"] = classify(client.get("contract_amount"), client.get("total_paid"), ledger, today).value
    nxt = next_due_installment(ledger)
    item["next_payment"] = None if nxt is None else {
        "id": nxt.get("id"),
        "payment_number": nxt.get("payment_number"),
        "due_date": to_date(nxt.get("due_date")),
        "amount": money(effective_amount(nxt)),
    }
    return item


def _resolve_monthly(contract_amount: Any, first_payment: Any, monthly_payment: Optional[float],
                     installment_period: int) -> Any:
    if monthly_payment is not None:
        return monthly_payment
    return suggest_monthly_payment(contract_amount, first_payment, installment_period)


def _warn_terms(client_ref: str, contract_amount: Any, first: Any, monthly: Any, period: int) -> Optional[float]:
    diff = terms_mismatch(contract_amount, first, monthly, period)
    if diff != 0:
        logger.warning("Schedule for %s does not add up to the contract amount (diff %s)", client_ref, diff)
        return money(diff)
    return None


# --------------------------------------------------------------------
# Listing & detail
# --------------------------------------------------------------------
@router.get("", summary="List active clients with status")
def list_clients(
    user: Staff,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    employee_id: Optional[str] = None,
    status: Optional[ClientStatus] = None,
) -> Dict[str, Any]:
    scope = scope_employee_id(user, Permission.VIEW_ALL_CLIENTS, employee_id)
    today = date.today()
    conn = get_conn()
    try:
        clients = clients_store.list_clients(conn, employee_id=scope, search=search,
                                             date_from=date_from, date_to=date_to)
        by_client = group_payments(payments_store.list_payments(conn, employee_id=scope))
    finally:
        conn.close()
    items = [_summary(c, by_client.get(str(c["id"]), []), today) for c in clients]
    if status is not None:
        items = [i for i in items if i["status"] == status.value]
    return {"count": len(items), "items": items}


@router.get("/history/{kind}", summary="Terminated or suspended clients")
def lifecycle_history(kind: str, user: Staff, employee_id: Optional[str] = None) -> Dict[str, Any]:
    if kind not in ("terminated", "suspended"):
        raise HTTPException(status_code=404, detail="Unknown history")
    scope = scope_employee_id(user, Permission.VIEW_ALL_CLIENTS, employee_id)
    conn = get_conn()
    try:
        items = clients_store.list_lifecycle(conn, kind, employee_id=scope)
    finally:
        conn.close()
    return {"count": len(items), "items": items}


@router.get("/{client_id}", summary="Client detail with ledger")
def get_client(client_id: str, user: Staff) -> Dict[str, Any]:
    today = date.today()
    conn = get_conn()
    try:
        client = load_owned_client(conn, client_id, user)
        ledger = payments_store.list_ledger(conn, client_id)
    finally:
        conn.close()
    item = _summary(client, ledger, today)
    item["payments"] = ledger_view(ledger)
    item["schedule_lag"] = schedule_lag(client, today).as_dict()
    item["months_to_finish"] = months_to_finish(client.get("remaining_amount"), client.get("monthly_payment"))
    return item


# --------------------------------------------------------------------
# Create / update
# --------------------------------------------------------------------
@router.post("", summary="Create client with its payment schedule")
def create_client(payload: ClientCreate, background: BackgroundTasks, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    creator = user_id(user)
    owner = scope_employee_id(user, Permission.VIEW_ALL_CLIENTS, payload.employee_id) or creator
    monthly = _resolve_monthly(payload.contract_amount, payload.first_payment, payload.monthly_payment,
                               payload.installment_period)
    rows = generate_schedule(payload.contract_date, payload.first_payment, monthly,
                             payload.installment_period, payload.payment_day)
    data: Dict[str, Any] = {
        "full_name": payload.full_name.strip(),
        "city": payload.city,
        "source": payload.source,
        "manager": payload.manager,
        "contract_amount": payload.contract_amount,
        "first_payment": payload.first_payment,
        "monthly_payment": monthly,
        "installment_period": payload.installment_period,
        "payment_day": payload.payment_day,
        "contract_date": payload.contract_date,
        "total_paid": 0,
        "deposit_paid": 0,
        "remaining_amount": payload.contract_amount,
        "deposit_target": payload.deposit_target if payload.deposit_target is not None else config.DEFAULT_DEPOSIT_TARGET,
        "employee_id": owner,
        "user_id": creator,
    }
    conn = get_conn()
    try:
        new_id = payments_store.create_client_with_schedule(conn, data, rows, creator)
        client = clients_store.get_client(conn, new_id)
    finally:
        conn.close()
    warning = _warn_terms(new_id, payload.contract_amount, payload.first_payment, monthly, payload.installment_period)
    logger.info("Client %s created by %s with %d scheduled payments", new_id, creator, len(rows))
    background.add_task(notify_new_client, client, creator, payload.income_account)
    return {"status": "SUCCESS", "id": new_id, "payments_created": len(rows), "terms_difference": warning}


@router.put("/{client_id}", summary="Update client details")
def update_client(client_id: str, payload: ClientUpdate, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    version = changes.pop("version")
    schedule_changes = [k for k in clients_store.SCHEDULE_FIELDS if k in changes]
    if schedule_changes:
        raise HTTPException(
            status_code=409,
            detail=f"{', '.join(schedule_changes)} can only change through POST /api/clients/{client_id}/schedule/reset",
        )
    if "employee_id" in changes:
        if not changes["employee_id"]:
            changes.pop("employee_id")
        elif not can(user, Permission.VIEW_ALL_CLIENTS):
            raise PermissionDeniedError("Only administrators can reassign clients")
    if not changes:
        return {"status": "NOOP", "id": client_id}

    conn = get_conn()
    try:
        load_owned_client(conn, client_id, user)
        balance = payments_store.update_contract(conn, client_id, changes, version)
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": client_id, "balance": balance.as_dict() if balance else None}


@router.post("/{client_id}/schedule/reset", summary="Replace the payment schedule (destroys payment history)")
def reset_schedule(client_id: str, payload: ScheduleReset, user: Resetter, _csrf_ok: CSRF) -> Dict[str, Any]:
    if not payload.confirm:
        raise HTTPException(
            status_code=400,
            detail="Resetting the schedule deletes all payments and completion history; send confirm=true",
        )
    conn = get_conn()
    try:
        current = load_owned_client(conn, client_id, user)
        contract_amount = payload.contract_amount if payload.contract_amount is not None else current["contract_amount"]
        monthly = _resolve_monthly(contract_amount, payload.first_payment, payload.monthly_payment,
                                   payload.installment_period)
        rows = generate_schedule(payload.contract_date, payload.first_payment, monthly,
                                 payload.installment_period, payload.payment_day)
        terms = {
            "contract_amount": contract_amount,
            "contract_date": payload.contract_date,
            "first_payment": payload.first_payment,
            "monthly_payment": monthly,
            "installment_period": payload.installment_period,
            "payment_day": payload.payment_day,
        }
        payments_store.replace_schedule(conn, client_id, terms, rows, user_id(user), payload.version)
    finally:
        conn.close()
    warning = _warn_terms(client_id, contract_amount, payload.first_payment, monthly, payload.installment_period)
    logger.warning("Schedule of client %s reset by %s (%d payments regenerated)", client_id, user_id(user), len(rows))
    return {"status": "SUCCESS", "id": client_id, "payments_created": len(rows), "terms_difference": warning}


# --------------------------------------------------------------------
# Lifecycle
# --------------------------------------------------------------------
def _lifecycle(client_id: str, kind: str, on: bool, payload: LifecycleChange, user: Dict[str, Any]) -> Dict[str, Any]:
    conn = get_conn()
    try:
        load_owned_client(conn, client_id, user)
        with transaction(conn) as cur:
            clients_store.set_lifecycle(cur, client_id, kind, on, payload.reason, payload.version)
    finally:
        conn.close()
    logger.info("Client %s %s=%s by %s", client_id, kind, on, user_id(user))
    return {"status": "SUCCESS", "id": client_id}


@router.post("/{client_id}/terminate", summary="Terminate contract")
def terminate_client(client_id: str, payload: LifecycleChange, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    return _lifecycle(client_id, "terminated", True, payload, user)


@router.post("/{client_id}/suspend", summary="Suspend contract")
def suspend_client(client_id: str, payload: LifecycleChange, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    return _lifecycle(client_id, "suspended", True, payload, user)


@router.post("/{client_id}/reinstate/{kind}", summary="Undo termination or suspension")
def reinstate_client(client_id: str, kind: str, payload: LifecycleChange, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    if kind not in ("terminated", "suspended"):
        raise HTTPException(status_code=404, detail="Unknown lifecycle state")
    return _lifecycle(client_id, kind, False, payload, user)


@router.delete("/{client_id}", summary="Delete client and its ledger")
def delete_client(client_id: str, user: AdminDelete, _csrf_ok: CSRF) -> Dict[str, Any]:
    conn = get_conn()
    try:
        n = clients_store.delete_client(conn, client_id)
    finally:
        conn.close()
    if not n:
        raise HTTPException(status_code=404, detail="Client not found")
    logger.warning("Client %s deleted by %s", client_id, user_id(user))
    return {"status": "SUCCESS", "id": client_id}
