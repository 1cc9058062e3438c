# backoffice/api/integrations.py
"""
Accounting-system integration.

* GET  /api/integrations/payment-summary : pulled by the accounting system,
  authenticated with the shared `x-api-key` header (no user session).
* GET  /api/integrations/clients         : client listing for the same
  system, behind the same key.
* POST /api/integrations/sync-metrics    : push the month's dashboard numbers
  as a dashboard_metrics webhook event.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Optional, Annotated

from fastapi import APIRouter, Depends, Header, HTTPException

from backoffice.common.date_rules import month_range
from backoffice.services import config, metrics, webhook
from backoffice.services.errors import ConfigurationError
from backoffice.services.periods import resolve_month
from backoffice.services.roles import Permission, require_permission, user_id
from backoffice.services.security import api_key_matches, require_csrf
from backoffice.storage import clients_store, payments_store
from backoffice.storage.db import get_conn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrations", tags=["Integrations"])

Syncer = Annotated[Dict[str, Any], Depends(require_permission(Permission.SYNC_METRICS))]
CSRF = Annotated[None, Depends(require_csrf)]


def _require_api_key(x_api_key: Optional[str]) -> None:
    if not config.ACCOUNTING_API_KEY:
        logger.error("Integration API called but ACCOUNTING_API_KEY is not configured")
        raise ConfigurationError("API key is not configured")
    if not api_key_matches(x_api_key, config.ACCOUNTING_API_KEY):
        raise HTTPException(status_code=401, detail="Invalid API key")


@router.get("/payment-summary")
def payment_summary(
    employee_id: Optional[str] = None,
    x_api_key: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    _require_api_key(x_api_key)
    today = date.today()
    conn = get_conn()
    try:
        clients = clients_store.list_clients(conn, employee_id=employee_id)
        payments = payments_store.list_payments(conn, employee_id=employee_id)
    finally:
        conn.close()
    return metrics.payment_summary(clients, payments, today.year, today.month, employee_id=employee_id)


@router.get("/clients")
def list_clients(
    employee_id: Optional[str] = None,
    month: Optional[str] = None,
    include_terminated: bool = False,
    include_suspended: bool = False,
    x_api_key: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    """Client rows for the accounting system; `month` narrows to contracts signed in that month."""
    _require_api_key(x_api_key)
    date_from = date_to = None
    if month:
        start, end = month_range(*resolve_month(month))
        date_from, date_to = start.date(), end.date()
    conn = get_conn()
    try:
        rows = clients_store.list_clients(
            conn, employee_id=employee_id, include_inactive=True, date_from=date_from, date_to=date_to,
        )
    finally:
        conn.close()
    rows = [
        c for c in rows
        if (include_terminated or not int(c.get("is_terminated") or 0))
        and (include_suspended or not int(c.get("is_suspended") or 0))
    ]
    return {"count": len(rows), "items": rows}


@router.post("/sync-metrics")
def sync_metrics(user: Syncer, _csrf_ok: CSRF, month: Optional[str] = None) -> Dict[str, Any]:
    y, m = resolve_month(month)
    conn = get_conn()
    try:
        clients = clients_store.list_clients(conn, include_inactive=True)
        payments = payments_store.list_payments(conn)
    finally:
        conn.close()
    result = webhook.sync_month_metrics(clients, payments, y, m, user_id=user_id(user))
    return {"status": "SUCCESS" if result["delivered"] else "NOT_DELIVERED", **result}
