"""
Outbound events to the accounting (PnL tracker) system.

Delivery is fire-and-forget: one POST with a timeout, failures are logged and
reported as False, never retried and never raised to the caller.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import requests

from backoffice.services import config
from backoffice.services.metrics import sync_snapshot
from backoffice.services.money import money

logger = logging.getLogger(__name__)

EVENT_NEW_CLIENT = "new_client"
EVENT_DASHBOARD_METRICS = "dashboard_metrics"
AUTO_SYNC_USER = "auto-sync"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def send_event(payload: Dict[str, Any], url: Optional[str] = None) -> bool:
    target = url if url is not None else config.ACCOUNTING_WEBHOOK_URL
    event = payload.get("event_type")
    if not target:
        logger.info("Accounting webhook not configured; skipping %s event", event)
        return False
    try:
        resp = requests.post(target, json=payload, timeout=config.WEBHOOK_TIMEOUT_SEC)
    except requests.RequestException as e:
        logger.warning("Accounting webhook %s failed: %s", event, e)
        return False
    if not resp.ok:
        logger.warning("Accounting webhook %s rejected: HTTP %s %s", event, resp.status_code, resp.text[:500])
        return False
    logger.info("Accounting webhook %s delivered", event)
    return True


def new_client_payload(client: Mapping[str, Any], user_id: str,
                       income_account: Optional[str] = None,
                       description: Optional[str] = None) -> Dict[str, Any]:
    contract_date = client.get("contract_date")
    payload: Dict[str, Any] = {
        "event_type": EVENT_NEW_CLIENT,
        "client_name": client.get("full_name"),
        "contract_amount": money(client.get("contract_amount")),
        "total_paid": money(client.get("total_paid")),
        "installment_period": int(client.get("installment_period") or 0),
        "first_payment": money(client.get("first_payment")),
        "monthly_payment": money(client.get("monthly_payment")),
        "manager": client.get("manager") or "",
        "city": client.get("city") or "",
        "source": client.get("source") or "",
        "contract_date": contract_date.isoformat() if hasattr(contract_date, "isoformat") else contract_date,
        "payment_day": int(client.get("payment_day") or 0),
        "date": _now_iso(),
        "income_account": income_account or "",
        "company": config.COMPANY_NAME,
        "user_id": str(user_id),
    }
    if description:
        payload["description"] = description
    return payload


def metrics_payload(snapshot: Mapping[str, Any], month: str, user_id: str = AUTO_SYNC_USER) -> Dict[str, Any]:
    return {
        "event_type": EVENT_DASHBOARD_METRICS,
        **snapshot,
        "company": config.COMPANY_NAME,
        "user_id": str(user_id),
        "date": _now_iso(),
        "month": month,
    }


def notify_new_client(client: Mapping[str, Any], user_id: str, income_account: Optional[str] = None) -> bool:
    return send_event(new_client_payload(client, user_id, income_account=income_account))


def sync_month_metrics(clients: Sequence[Mapping[str, Any]], payments: Iterable[Mapping[str, Any]],
                       y: int, m: int, user_id: str = AUTO_SYNC_USER) -> Dict[str, Any]:
    """Build the month snapshot and push it as a dashboard_metrics event."""
    payload = metrics_payload(sync_snapshot(clients, payments, y, m), f"{y:04d}-{m:02d}", user_id)
    return {"delivered": send_event(payload), "payload": payload}
