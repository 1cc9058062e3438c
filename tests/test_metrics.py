# tests/test_metrics.py
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal

import pytest

from backoffice.services import metrics
from backoffice.services.errors import InvalidInputError
from tests.helpers import EMPLOYEE_ID, OTHER_EMPLOYEE_ID, client_row, payment_row

pytestmark = pytest.mark.unit


def _p(client_id, n, due, amount, done_at=None):
    return payment_row(
        n, due, amount,
        id=f"{client_id}-{n}", client_id=client_id,
        is_completed=1 if done_at else 0, completed_at=done_at,
    )


@pytest.fixture
def book():
    clients = [
        # signed in March: new in March, in the plan from April
        client_row(id="c-a", full_name="A", contract_date=date(2024, 3, 10), monthly_payment=Decimal("8000"),
                   payment_day=10),
        client_row(id="c-b", full_name="B", total_paid=Decimal("30000"), remaining_amount=Decimal("90000")),
        # fully paid, last payment in March
        client_row(id="c-d", full_name="D", contract_date=date(2024, 2, 1), contract_amount=Decimal("50000"),
                   monthly_payment=Decimal("30000"), total_paid=Decimal("50000"), remaining_amount=Decimal("0"),
                   employee_id=OTHER_EMPLOYEE_ID),
        # terminated in April: still active through March
        client_row(id="c-t", full_name="T", contract_date=date(2024, 1, 1), contract_amount=Decimal("60000"),
                   monthly_payment=Decimal("5000"), is_terminated=1, terminated_at=datetime(2024, 4, 5, 12, 0)),
        # suspended without a timestamp: never counted as active
        client_row(id="c-s", full_name="S", is_suspended=1, suspended_at=None),
    ]
    payments = [
        _p("c-a", 0, date(2024, 3, 10), "20000.00"),
        _p("c-a", 1, date(2024, 4, 10), "8000.00"),
        _p("c-b", 0, date(2024, 1, 15), "20000.00", datetime(2024, 1, 15, 9, 0)),
        _p("c-b", 1, date(2024, 2, 15), "10000.00"),
        _p("c-b", 2, date(2024, 3, 15), "10000.00", datetime(2024, 3, 16, 9, 0)),
        _p("c-b", 3, date(2024, 4, 15), "10000.00"),
        _p("c-d", 0, date(2024, 2, 1), "20000.00", datetime(2024, 2, 1, 9, 0)),
        _p("c-d", 1, date(2024, 3, 1), "30000.00", datetime(2024, 3, 20, 9, 0)),
        _p("c-t", 1, date(2024, 3, 1), "5000.00"),
    ]
    return clients, payments


def _ids(rows):
    return {r["id"] if "id" in r else r["client_id"] for r in rows}


def test_active_population_respects_lifecycle_dates(book):
    clients, _ = book
    assert _ids(metrics.active_population(clients, 2024, 3)) == {"c-a", "c-b", "c-d", "c-t"}
    assert _ids(metrics.active_population(clients, 2024, 4)) == {"c-a", "c-b", "c-d"}


def test_population_totals(book):
    clients, _ = book
    totals = metrics.population_totals(metrics.active_population(clients, 2024, 3))
    assert totals["total_clients"] == 4
    assert totals["total_contract_amount"] == Decimal("350000.00")
    # D is paid off
    assert totals["active_cases"] == 3


def test_new_client_is_excluded_from_its_signing_month_plan(book):
    clients, payments = book
    by_client = metrics.group_payments(payments)

    march = metrics.plan_breakdown(metrics.active_population(clients, 2024, 3), by_client, 2024, 3)
    entry_a = next(e for e in march if e["client_id"] == "c-a")
    assert entry_a["is_new_client"] is True
    assert entry_a["included_in_plan"] is False
    assert metrics.plan_sum(metrics.active_population(clients, 2024, 3), by_client, 2024, 3) == Decimal("45000.00")

    april_active = metrics.active_population(clients, 2024, 4)
    april = metrics.plan_breakdown(april_active, by_client, 2024, 4)
    assert next(e for e in april if e["client_id"] == "c-a")["included_in_plan"] is True
    assert metrics.plan_sum(april_active, by_client, 2024, 4) == Decimal("18000.00")


def test_client_with_a_plan_row_in_its_signing_month_is_still_excluded():
    clients = [client_row(id="c-n", contract_date=date(2024, 3, 10), monthly_payment=Decimal("8000"))]
    payments = [
        _p("c-n", 0, date(2024, 3, 10), "20000.00"),
        _p("c-n", 1, date(2024, 3, 20), "8000.00"),
        _p("c-n", 2, date(2024, 4, 20), "8000.00"),
    ]
    by_client = metrics.group_payments(payments)

    (march,) = metrics.plan_breakdown(clients, by_client, 2024, 3)
    assert march["has_payments"] is True
    assert march["is_new_client"] is True
    assert march["included_in_plan"] is False
    assert metrics.plan_sum(clients, by_client, 2024, 3) == Decimal("0")
    assert metrics.plan_sum(clients, by_client, 2024, 4) == Decimal("8000")


def test_new_drill_down_keeps_clients_terminated_in_their_signing_month(book):
    clients, payments = book
    clients = clients + [
        client_row(id="c-x", contract_date=date(2024, 3, 5), is_terminated=1, terminated_at=date(2024, 3, 25)),
    ]
    card = metrics.new_clients(clients, 2024, 3)
    drill = metrics.metric_clients("new", clients, payments, 2024, 3)
    assert _ids(drill) == _ids(card) == {"c-a", "c-x"}


def test_new_clients_by_contract_date(book):
    clients, _ = book
    assert _ids(metrics.new_clients(clients, 2024, 3)) == {"c-a"}
    assert metrics.new_clients(clients, 2024, 4) == []


def test_collected_counts_completed_plan_rows_only(book):
    clients, payments = book
    active = metrics.active_population(clients, 2024, 3)
    got = metrics.collected(active, metrics.group_payments(payments), 2024, 3)
    assert got == {"collected_sum": Decimal("40000.00"), "collected_count": 2}


def test_completed_clients_by_last_completion_month(book):
    clients, payments = book
    by_client = metrics.group_payments(payments)
    assert _ids(metrics.completed_clients(metrics.active_population(clients, 2024, 3), by_client, 2024, 3)) == {"c-d"}
    assert metrics.completed_clients(metrics.active_population(clients, 2024, 4), by_client, 2024, 4) == []


def test_lifecycle_in_month(book):
    clients, _ = book
    assert _ids(metrics.lifecycle_in_month(clients, 2024, 4, "terminated")) == {"c-t"}
    assert metrics.lifecycle_in_month(clients, 2024, 3, "terminated") == []
    with pytest.raises(InvalidInputError):
        metrics.lifecycle_in_month(clients, 2024, 4, "archived")


def test_metric_clients_drill_down(book):
    clients, payments = book
    assert _ids(metrics.metric_clients("plan", clients, payments, 2024, 3)) == {"c-b", "c-d", "c-t"}
    assert _ids(metrics.metric_clients("new", clients, payments, 2024, 3)) == {"c-a"}
    assert _ids(metrics.metric_clients("remaining", clients, payments, 2024, 3)) == {"c-a", "c-b", "c-t"}
    with pytest.raises(InvalidInputError):
        metrics.metric_clients("bogus", clients, payments, 2024, 3)


def test_payment_summary_uses_currently_active_clients(book):
    clients, payments = book
    summary = metrics.payment_summary(clients, payments, 2024, 3)
    assert summary == {
        "total_payments_sum": 40000.0,
        "completed_payments_sum": 40000.0,
        "total_payments_count": 2,
        "completed_payments_count": 2,
        "month": "2024-03",
        "employee_id": None,
    }


def test_sync_snapshot(book):
    clients, payments = book
    snap = metrics.sync_snapshot(clients, payments, 2024, 4)
    assert snap["new_clients_count"] == 0
    assert snap["terminated_clients_count"] == 1
    assert snap["terminated_contract_amount"] == 60000.0
    assert snap["suspended_clients_count"] == 0
    # A and B are active and still owe money
    assert snap["remaining_payments_sum"] == 210000.0


def test_employee_stats(book):
    clients, _ = book
    staff = [
        {"id": OTHER_EMPLOYEE_ID, "full_name": "Other", "email": "o@example.com"},
        {"id": EMPLOYEE_ID, "full_name": "Emp", "email": "e@example.com"},
    ]
    rows = metrics.employee_stats(clients, staff)
    assert [r["employee_id"] for r in rows] == [EMPLOYEE_ID, OTHER_EMPLOYEE_ID]
    assert rows[0]["clients_count"] == 2
    assert rows[1]["active_cases"] == 0


def test_payment_summary_for_one_employee(book):
    clients, payments = book
    summary = metrics.payment_summary(clients, payments, 2024, 3, employee_id=OTHER_EMPLOYEE_ID)
    assert summary["employee_id"] == OTHER_EMPLOYEE_ID
    assert summary["total_payments_count"] == 1
    assert summary["completed_payments_sum"] == 30000.0
