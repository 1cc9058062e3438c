# tests/test_schedule.py
from __future__ import annotations
from datetime import date
from decimal import Decimal

import pytest

from backoffice.services.errors import InvalidInputError
from backoffice.services.schedule import (
    PAYMENT_TYPE_FIRST,
    PAYMENT_TYPE_MONTHLY,
    generate_schedule,
    schedule_total,
    suggest_monthly_payment,
    terms_mismatch,
)

pytestmark = pytest.mark.unit


def test_contract_expands_into_first_plus_monthly_rows():
    rows = generate_schedule(date(2024, 1, 15), 20000, 10000, 10, 15)

    assert len(rows) == 11
    assert [r.payment_number for r in rows] == list(range(11))
    assert rows[0].due_date == date(2024, 1, 15)
    assert rows[0].original_amount == Decimal("20000.00")
    assert rows[0].payment_type == PAYMENT_TYPE_FIRST
    assert rows[1].due_date == date(2024, 2, 15)
    assert rows[10].due_date == date(2024, 11, 15)
    assert all(r.payment_type == PAYMENT_TYPE_MONTHLY for r in rows[1:])
    assert schedule_total(rows) == Decimal("120000.00")


def test_payment_day_is_clamped_to_short_months():
    rows = generate_schedule(date(2024, 1, 31), 0, 5000, 3, 31)
    assert [r.due_date for r in rows[1:]] == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_payment_day_can_differ_from_contract_day():
    rows = generate_schedule(date(2024, 1, 15), 1000, 1000, 2, 5)
    assert rows[0].due_date == date(2024, 1, 15)
    assert [r.due_date for r in rows[1:]] == [date(2024, 2, 5), date(2024, 3, 5)]


def test_generation_is_deterministic():
    a = generate_schedule(date(2024, 5, 20), "15000.50", "7000", 6, 20)
    b = generate_schedule(date(2024, 5, 20), "15000.50", "7000", 6, 20)
    assert a == b
    assert a[0].as_row()["original_amount"] == Decimal("15000.50")


@pytest.mark.parametrize(
    "period,day,first,monthly",
    [
        (0, 15, 1000, 1000),
        (3, 0, 1000, 1000),
        (3, 32, 1000, 1000),
        (3, 15, -1, 1000),
        (3, 15, 1000, -5),
    ],
)
def test_invalid_terms_are_rejected(period, day, first, monthly):
    with pytest.raises(InvalidInputError):
        generate_schedule(date(2024, 1, 15), first, monthly, period, day)


def test_suggested_monthly_payment_spreads_the_rest():
    assert suggest_monthly_payment(120000, 20000, 10) == Decimal("10000.00")
    assert suggest_monthly_payment(100000, 0, 3) == Decimal("33333.33")


def test_suggested_monthly_payment_refuses_first_above_contract():
    with pytest.raises(InvalidInputError):
        suggest_monthly_payment(10000, 20000, 5)


def test_terms_mismatch_reports_difference():
    assert terms_mismatch(120000, 20000, 10000, 10) == Decimal("0.00")
    assert terms_mismatch(100000, 20000, 10000, 10) == Decimal("20000.00")
    assert terms_mismatch(130000, 20000, 10000, 10) == Decimal("-10000.00")
