# tests/test_payments_api.py
from __future__ import annotations
from datetime import date
from http import HTTPStatus

import pytest

from backoffice.services import config
from tests.helpers import (
    CLIENT_BY_ID,
    LEDGER_OF_CLIENT,
    OTHER_EMPLOYEE_ID,
    PAYMENT_BY_ID,
    client_row,
    payment_row,
)


@pytest.fixture
def ledger_db(fake_db, monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_ACCOUNTS", ["Sberbank", "Safe"])
    fake_db.on(PAYMENT_BY_ID, rows=[payment_row(1, date(2024, 2, 15))])
    fake_db.on(CLIENT_BY_ID, rows=[client_row()])
    fake_db.on(LEDGER_OF_CLIENT, rows=[
        payment_row(0, date(2024, 1, 15), "20000.00", is_completed=1),
        payment_row(1, date(2024, 2, 15), is_completed=1),
    ])
    return fake_db


def test_complete_payment_returns_new_balance(client, ledger_db, employee_headers):
    r = client.post("/api/payments/p-1/complete", json={"version": 1, "account": "Sberbank"},
                    headers=employee_headers)
    assert r.status_code == HTTPStatus.OK, r.text
    body = r.json()
    assert body["status"] == "SUCCESS"
    assert body["balance"] == {"total_paid": 30000.0, "remaining_amount": 90000.0, "deposit_paid": 20000.0}
    assert len(ledger_db.statements("INSERT INTO `payment_history`")) == 2


def test_unknown_account_is_rejected(client, ledger_db, employee_headers):
    r = client.post("/api/payments/p-1/complete", json={"version": 1, "account": "Cayman"},
                    headers=employee_headers)
    assert r.status_code == HTTPStatus.BAD_REQUEST
    assert ledger_db.executed == []


def test_stale_completion_is_conflict(client, ledger_db, employee_headers):
    r = client.post("/api/payments/p-1/complete", json={"version": 3}, headers=employee_headers)
    assert r.status_code == HTTPStatus.CONFLICT
    assert ledger_db.rollbacks == 1


def test_foreign_payment_is_forbidden(client, fake_db, employee_headers):
    fake_db.on(PAYMENT_BY_ID, rows=[payment_row(1, date(2024, 2, 15))])
    fake_db.on(CLIENT_BY_ID, rows=[client_row(employee_id=OTHER_EMPLOYEE_ID)])
    r = client.post("/api/payments/p-1/complete", json={"version": 1}, headers=employee_headers)
    assert r.status_code == HTTPStatus.FORBIDDEN


def test_edit_payment(client, ledger_db, employee_headers):
    r = client.put("/api/payments/p-1", json={"version": 1}, headers=employee_headers)
    assert r.json() == {"status": "NOOP", "id": "p-1"}

    r = client.put("/api/payments/p-1", json={"version": 1, "due_date": None}, headers=employee_headers)
    assert r.status_code == HTTPStatus.BAD_REQUEST

    r = client.put("/api/payments/p-1", json={"version": 1, "custom_amount": 12500, "due_date": "2024-02-20"},
                   headers=employee_headers)
    assert r.status_code == HTTPStatus.OK
    fields = sorted(p[3] for _, p in ledger_db.statements("INSERT INTO `payment_history`"))
    assert fields == ["custom_amount", "due_date"]


def test_add_additional_payment(client, ledger_db, employee_headers):
    ledger_db.on("COALESCE(MAX(`payment_number`)", rows=[{"last_no": 10}])
    r = client.post("/api/clients/c-1/payments", json={"amount": 5000, "due_date": "2024-06-01"},
                    headers=employee_headers)
    assert r.status_code == HTTPStatus.OK
    (_, params), = ledger_db.statements("INSERT INTO `payments`")
    assert params[3] == 11

    r = client.post("/api/clients/c-1/payments", json={"amount": 0, "due_date": "2024-06-01"},
                    headers=employee_headers)
    assert r.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_only_admin_deletes_payments(client, ledger_db, admin_headers, employee_headers):
    r = client.delete("/api/payments/p-1", params={"version": 1}, headers=employee_headers)
    assert r.status_code == HTTPStatus.FORBIDDEN
    # scheduled rows cannot be deleted, even by an admin
    r = client.delete("/api/payments/p-1", params={"version": 1}, headers=admin_headers)
    assert r.status_code == HTTPStatus.CONFLICT


def test_client_ledger(client, ledger_db, employee_headers):
    r = client.get("/api/clients/c-1/payments", headers=employee_headers)
    assert r.status_code == HTTPStatus.OK
    assert [p["effective_amount"] for p in r.json()["items"]] == [20000.0, 10000.0]


def test_calendar_groups_by_day(client, fake_db, admin_headers):
    fake_db.on("FROM `payments` p JOIN", rows=[
        payment_row(1, date(2024, 2, 15)),
        payment_row(1, date(2024, 2, 15), id="p-x", client_id="c-2"),
        payment_row(2, date(2024, 2, 20), is_completed=1),
    ])
    r = client.get("/api/payments/calendar", params={"month": "2024-02"}, headers=admin_headers)
    assert r.status_code == HTTPStatus.OK
    body = r.json()
    assert body["month"] == "2024-02"
    assert [(d["date"], d["status"], len(d["payments"])) for d in body["days"]] == [
        ("2024-02-15", "overdue", 2),
        ("2024-02-20", "completed", 1),
    ]
    (_, params), = fake_db.statements("FROM `payments` p JOIN")
    assert params == (date(2024, 2, 1), date(2024, 2, 29))


def test_calendar_rejects_bad_month(client, fake_db, admin_headers):
    r = client.get("/api/payments/calendar", params={"month": "someday"}, headers=admin_headers)
    assert r.status_code == HTTPStatus.BAD_REQUEST


def test_accounts(client, employee_headers, monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_ACCOUNTS", ["Sberbank", "Safe"])
    assert client.get("/api/payments/accounts", headers=employee_headers).json() == {
        "count": 2, "items": ["Sberbank", "Safe"],
    }


def test_history_is_admin_only_and_checks_field(client, fake_db, admin_headers, employee_headers):
    assert client.get("/api/payments/history", headers=employee_headers).status_code == HTTPStatus.FORBIDDEN
    r = client.get("/api/payments/history", params={"field_name": "payment_type"}, headers=admin_headers)
    assert r.status_code == HTTPStatus.BAD_REQUEST

    fake_db.on("FROM `payment_history` h", rows=[{"id": "h-1", "field_name": "is_completed"}])
    r = client.get("/api/payments/history", params={"field_name": "is_completed", "client_id": "c-1"},
                   headers=admin_headers)
    assert r.json()["count"] == 1
    (_, params), = fake_db.statements("FROM `payment_history` h")
    assert params == ("c-1", "is_completed", 200, 0)
