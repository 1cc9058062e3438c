# tests/test_periods.py
from datetime import date

import pytest
from fastapi import HTTPException

from backoffice.services.periods import canonicalize_period, is_yyyy_mm, resolve_month, validate_period

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2025-6",   "2025-06"),
        ("2025/06",  "2025-06"),
        ("202506",   "2025-06"),
        ("06.2025",  "2025-06"),
        ("Jun 2025", "2025-06"),
        ("June 2025", "2025-06"),
        ("2025-06",  "2025-06"),   # idempotent
        ("  Jun 2025  ", "2025-06"),
    ],
)
def test_various_inputs_to_canonical(raw, expected):
    assert canonicalize_period(raw) == expected


@pytest.mark.parametrize("bad", [None, "", "2025-13", "2025-00", "2025/00", "Foo 2025", "2025--06"])
def test_invalid_inputs_return_none(bad):
    assert canonicalize_period(bad) is None


def test_strict_check():
    assert is_yyyy_mm("2025-06")
    assert not is_yyyy_mm("2025-6")
    assert not is_yyyy_mm(None)


def test_validate_period_raises_400():
    with pytest.raises(HTTPException) as exc:
        validate_period("not a month")
    assert exc.value.status_code == 400


def test_resolve_month_defaults_to_today():
    assert resolve_month(None, today=date(2024, 7, 3)) == (2024, 7)
    assert resolve_month("  ", today=date(2024, 7, 3)) == (2024, 7)
    assert resolve_month("Mar 2024") == (2024, 3)
