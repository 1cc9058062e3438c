# backoffice/api/agents.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Optional, Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backoffice.services import agent_schedule
from backoffice.services.roles import Permission, owns_or_can, require_permission, scope_employee_id, user_id
from backoffice.services.security import require_csrf
from backoffice.storage import agents_store
from backoffice.storage.db import get_conn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agents", tags=["Agents"])

Staff = Annotated[Dict[str, Any], Depends(require_permission(Permission.MANAGE_AGENTS))]
CSRF = Annotated[None, Depends(require_csrf)]


class AgentIn(BaseModel):
    agent_full_name: str = Field(min_length=1)
    agent_phone: str = Field(min_length=1)
    recommendation_name: Optional[str] = None
    lead_link: Optional[str] = None
    mop_name: Optional[str] = None
    client_category: Optional[str] = None
    first_payment_date: Optional[date] = None
    first_payment_amount: float = Field(default=0, ge=0)
    reward_amount: float = Field(default=0, ge=0)
    remaining_payment: float = Field(default=0, ge=0)
    payment_month_1: float = Field(default=0, ge=0)
    payment_month_2: float = Field(default=0, ge=0)
    payment_month_3: float = Field(default=0, ge=0)
    payout_1: float = Field(default=0, ge=0)
    payout_2: float = Field(default=0, ge=0)
    payout_3: float = Field(default=0, ge=0)
    employee_id: Optional[str] = None


class AgentUpdate(BaseModel):
    agent_full_name: Optional[str] = None
    agent_phone: Optional[str] = Field(default=None, min_length=1)
    recommendation_name: Optional[str] = None
    lead_link: Optional[str] = None
    mop_name: Optional[str] = None
    client_category: Optional[str] = None
    first_payment_date: Optional[date] = None
    first_payment_amount: Optional[float] = Field(default=None, ge=0)
    reward_amount: Optional[float] = Field(default=None, ge=0)
    remaining_payment: Optional[float] = Field(default=None, ge=0)
    payment_month_1: Optional[float] = Field(default=None, ge=0)
    payment_month_2: Optional[float] = Field(default=None, ge=0)
    payment_month_3: Optional[float] = Field(default=None, ge=0)
    payout_1: Optional[float] = Field(default=None, ge=0)
    payout_2: Optional[float] = Field(default=None, ge=0)
    payout_3: Optional[float] = Field(default=None, ge=0)


def _load_owned(conn, agent_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    agent = agents_store.get_agent(conn, agent_id)
    if not owns_or_can(user, agent, Permission.VIEW_ALL_AGENTS):
        raise HTTPException(status_code=403, detail="Agent belongs to another employee")
    return agent


@router.get("")
def list_agents(user: Staff, filter: str = "all", employee_id: Optional[str] = None) -> Dict[str, Any]:
    if filter not in agent_schedule.FILTERS:
        raise HTTPException(status_code=400, detail=f"Unknown filter '{filter}'")
    scope = scope_employee_id(user, Permission.VIEW_ALL_AGENTS, employee_id)
    conn = get_conn()
    try:
        rows = agents_store.list_agents(conn, employee_id=scope)
    finally:
        conn.close()
    picked = agent_schedule.apply_filter(rows, filter)
    return {
        "count": len(picked),
        "items": [agent_schedule.with_dates(a) for a in picked],
        "totals": agent_schedule.totals(picked),
    }


@router.get("/{agent_id}")
def get_agent(agent_id: str, user: Staff) -> Dict[str, Any]:
    conn = get_conn()
    try:
        agent = _load_owned(conn, agent_id, user)
    finally:
        conn.close()
    return agent_schedule.with_dates(agent)


@router.post("")
def create_agent(payload: AgentIn, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    data = payload.model_dump()
    if data.get("employee_id") is None or not owns_or_can(user, data, Permission.VIEW_ALL_AGENTS):
        data["employee_id"] = user_id(user)
    conn = get_conn()
    try:
        agent_id = agents_store.create_agent(conn, data)
    finally:
        conn.close()
    logger.info("Agent %s created for employee %s", agent_id, data["employee_id"])
    return {"status": "SUCCESS", "id": agent_id}


@router.put("/{agent_id}")
def update_agent(agent_id: str, payload: AgentUpdate, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        return {"status": "NOOP", "id": agent_id}
    conn = get_conn()
    try:
        _load_owned(conn, agent_id, user)
        agents_store.update_agent(conn, agent_id, fields)
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": agent_id, "updated": sorted(fields)}


@router.post("/{agent_id}/payments/{k}/toggle")
def toggle_payment(agent_id: str, k: int, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    if k not in agent_schedule.INSTALLMENTS:
        raise HTTPException(status_code=400, detail="installment must be 1, 2 or 3")
    key = f"payment_month_{k}_completed"
    conn = get_conn()
    try:
        agent = _load_owned(conn, agent_id, user)
        done = not bool(int(agent.get(key) or 0))
        changes: Dict[str, Any] = {key: int(done)}
        # An undone client payment cannot keep a paid-out payout.
        if not done and int(agent.get(f"payout_{k}_completed") or 0):
            changes[f"payout_{k}_completed"] = 0
        agents_store.update_agent(conn, agent_id, changes)
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": agent_id, **changes}


@router.post("/{agent_id}/payouts/{k}/toggle")
def toggle_payout(agent_id: str, k: int, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    key = f"payout_{k}_completed"
    conn = get_conn()
    try:
        agent = _load_owned(conn, agent_id, user)
        agent_schedule.ensure_payout_toggle_allowed(agent, k)
        done = not bool(int(agent.get(key) or 0))
        agents_store.update_agent(conn, agent_id, {key: int(done)})
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": agent_id, key: int(done)}


@router.delete("/{agent_id}")
def delete_agent(agent_id: str, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    conn = get_conn()
    try:
        _load_owned(conn, agent_id, user)
        agents_store.delete_agent(conn, agent_id)
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": agent_id}
