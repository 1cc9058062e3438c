# tests/test_bonus.py
from __future__ import annotations
from datetime import date
from decimal import Decimal

import pytest

from backoffice.services.bonus import (
    BonusPlan,
    IncentiveRule,
    PerformanceStats,
    applicable_rules,
    calculate_bonus,
    percentages,
    performance_bonus,
    performance_stats,
)
from tests.helpers import EMPLOYEE_ID, OTHER_EMPLOYEE_ID, client_row, payment_row

pytestmark = pytest.mark.unit

PLAN = BonusPlan(
    base_salary=Decimal("30000"),
    payment_target_per_client=Decimal("50000"),
    reviews_threshold=5,
    reviews_amount=Decimal("5000"),
    per_agent=Decimal("3000"),
)


def _rule(pct, amount, employee_id=None, role=None):
    return IncentiveRule.from_row(
        {"min_average_percent": pct, "bonus_amount": amount, "employee_id": employee_id, "role": role}
    )


def test_performance_stats_counts_own_completed_monthly_rows():
    clients = [
        client_row(id="c-1"),
        client_row(id="c-2"),
        client_row(id="c-x", employee_id=OTHER_EMPLOYEE_ID),
    ]
    payments = [
        payment_row(0, date(2024, 3, 1), "20000.00", client_id="c-1", is_completed=1),
        payment_row(2, date(2024, 3, 15), client_id="c-1", is_completed=1),
        payment_row(2, date(2024, 3, 15), client_id="c-2"),
        payment_row(2, date(2024, 3, 15), client_id="c-x", is_completed=1),
        payment_row(3, date(2024, 4, 15), client_id="c-1", is_completed=1),
    ]
    stats = performance_stats(clients, payments, EMPLOYEE_ID, 2024, 3)
    assert stats == PerformanceStats(completed_clients=1, clients_total=2, total_payments=Decimal("10000.00"))


def test_percentages():
    pct = percentages(PerformanceStats(1, 2, Decimal("10000")), PLAN)
    assert pct["clients_percent"] == Decimal("50")
    assert pct["payments_percent"] == Decimal("10")
    assert pct["average_percent"] == Decimal("30")


def test_payments_percent_is_capped():
    pct = percentages(PerformanceStats(2, 2, Decimal("500000")), PLAN)
    assert pct["payments_percent"] == Decimal("100")
    assert pct["average_percent"] == Decimal("100")


def test_no_clients_means_zero_percentages():
    pct = percentages(PerformanceStats(0, 0, Decimal("0")), PLAN)
    assert set(pct.values()) == {Decimal("0")}


def test_personal_rules_win_over_role_rules():
    rules = [_rule(50, 10000, role="employee"), _rule(50, 25000, employee_id=EMPLOYEE_ID)]
    assert applicable_rules(rules, EMPLOYEE_ID, "employee") == [rules[1]]
    assert applicable_rules(rules, OTHER_EMPLOYEE_ID, "Employee") == [rules[0]]
    assert applicable_rules(rules, OTHER_EMPLOYEE_ID, "admin") == []


def test_highest_reached_threshold_pays():
    rules = [_rule(50, 5000), _rule(70, 10000), _rule(90, 20000)]
    assert performance_bonus(Decimal("75"), rules) == Decimal("10000")
    assert performance_bonus(Decimal("90"), rules) == Decimal("20000")
    assert performance_bonus(Decimal("49.99"), rules) == Decimal("0")


def test_calculate_bonus_totals():
    rules = [_rule(25, 7000, role="employee"), _rule(60, 15000, role="employee")]
    out = calculate_bonus(PerformanceStats(1, 2, Decimal("10000")), 5, 2, rules, EMPLOYEE_ID, "employee", PLAN)
    assert out["average_percent"] == 30.0
    assert out["performance_bonus"] == 7000.0
    assert out["reviews_bonus"] == 5000.0
    assert out["agents_bonus"] == 6000.0
    assert out["total_bonus"] == 18000.0
    assert out["total_salary"] == 48000.0


def test_no_performance_bonus_without_clients():
    rules = [_rule(0, 7000, role="employee")]
    out = calculate_bonus(PerformanceStats(0, 0, Decimal("0")), 4, 0, rules, EMPLOYEE_ID, "employee", PLAN)
    assert out["performance_bonus"] == 0.0
    assert out["reviews_bonus"] == 0.0
    assert out["total_salary"] == 30000.0
