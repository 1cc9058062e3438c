# tests/test_webhook.py
from __future__ import annotations
from datetime import date
from decimal import Decimal

import pytest
import requests

from backoffice.services import config, webhook
from tests.helpers import EMPLOYEE_ID, client_row, payment_row

pytestmark = pytest.mark.unit


class _Resp:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


@pytest.fixture
def sent(monkeypatch):
    calls = []

    def _post(url, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        return _Resp()

    monkeypatch.setattr(config, "ACCOUNTING_WEBHOOK_URL", "https://pnl.example.com/hook")
    monkeypatch.setattr(webhook.requests, "post", _post)
    return calls


def test_unconfigured_webhook_is_skipped(monkeypatch):
    monkeypatch.setattr(config, "ACCOUNTING_WEBHOOK_URL", "")

    def _boom(*a, **k):
        raise AssertionError("must not be called")

    monkeypatch.setattr(webhook.requests, "post", _boom)
    assert webhook.send_event({"event_type": "new_client"}) is False


def test_new_client_event(sent):
    client = client_row(city="Kazan", source="site")
    assert webhook.notify_new_client(client, EMPLOYEE_ID, income_account="Sberbank") is True

    assert len(sent) == 1
    body = sent[0]["json"]
    assert sent[0]["url"] == "https://pnl.example.com/hook"
    assert body["event_type"] == "new_client"
    assert body["client_name"] == "Ivan Petrov"
    assert body["contract_amount"] == 120000.0
    assert body["contract_date"] == "2024-01-15"
    assert body["income_account"] == "Sberbank"
    assert body["user_id"] == EMPLOYEE_ID
    assert "description" not in body


def test_transport_failure_is_reported_not_raised(monkeypatch):
    monkeypatch.setattr(config, "ACCOUNTING_WEBHOOK_URL", "https://pnl.example.com/hook")

    def _fail(*a, **k):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(webhook.requests, "post", _fail)
    assert webhook.send_event({"event_type": "dashboard_metrics"}) is False


def test_rejected_event_returns_false(monkeypatch):
    monkeypatch.setattr(config, "ACCOUNTING_WEBHOOK_URL", "https://pnl.example.com/hook")
    monkeypatch.setattr(webhook.requests, "post", lambda *a, **k: _Resp(502, "bad gateway"))
    assert webhook.send_event({"event_type": "dashboard_metrics"}) is False


def test_sync_month_metrics_pushes_snapshot(sent):
    clients = [client_row(contract_date=date(2024, 3, 2), monthly_payment=Decimal("9000"))]
    payments = [payment_row(1, date(2024, 4, 2))]
    result = webhook.sync_month_metrics(clients, payments, 2024, 3, user_id="u-1")

    assert result["delivered"] is True
    payload = result["payload"]
    assert payload["event_type"] == "dashboard_metrics"
    assert payload["month"] == "2024-03"
    assert payload["new_clients_count"] == 1
    assert payload["new_clients_monthly_payment_sum"] == 9000.0
    assert payload["user_id"] == "u-1"
    assert sent[0]["json"] == payload
