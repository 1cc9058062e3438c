# tests/test_roles_and_auth.py
from __future__ import annotations

import pytest

from backoffice.services.auth_service import (
    create_token,
    decode_token,
    hash_password,
    normalize_samesite,
    verify_and_upgrade_password,
    verify_password,
)
from backoffice.services.roles import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    can,
    owns_or_can,
    parse_role,
    scope_employee_id,
)
from backoffice.services import security
from backoffice.services.security import api_key_matches
from tests.helpers import ADMIN_ID, EMPLOYEE_ID, OTHER_EMPLOYEE_ID

pytestmark = pytest.mark.unit

ADMIN = {"sub": ADMIN_ID, "role": "admin"}
EMPLOYEE = {"sub": EMPLOYEE_ID, "role": "employee"}


def test_admin_holds_every_permission():
    assert ROLE_PERMISSIONS[Role.ADMIN] == frozenset(Permission)
    assert all(can(ADMIN, p) for p in Permission)


@pytest.mark.parametrize(
    "permission",
    [
        Permission.VIEW_ALL_CLIENTS,
        Permission.DELETE_CLIENTS,
        Permission.DELETE_PAYMENTS,
        Permission.VIEW_ALL_METRICS,
        Permission.MANAGE_INCENTIVE_RULES,
        Permission.VIEW_PAYMENT_HISTORY,
        Permission.MANAGE_USERS,
        Permission.SYNC_METRICS,
    ],
)
def test_employee_lacks_admin_permissions(permission):
    assert not can(EMPLOYEE, permission)


def test_employee_works_on_own_records():
    assert can(EMPLOYEE, Permission.MANAGE_PAYMENTS)
    assert scope_employee_id(EMPLOYEE, Permission.VIEW_ALL_CLIENTS, OTHER_EMPLOYEE_ID) == EMPLOYEE_ID
    assert scope_employee_id(ADMIN, Permission.VIEW_ALL_CLIENTS, OTHER_EMPLOYEE_ID) == OTHER_EMPLOYEE_ID
    assert scope_employee_id(ADMIN, Permission.VIEW_ALL_CLIENTS) is None
    assert owns_or_can(EMPLOYEE, {"employee_id": EMPLOYEE_ID}, Permission.VIEW_ALL_CLIENTS)
    assert not owns_or_can(EMPLOYEE, {"employee_id": OTHER_EMPLOYEE_ID}, Permission.VIEW_ALL_CLIENTS)


def test_unknown_role_has_no_permissions():
    assert parse_role(" Admin ") is Role.ADMIN
    assert parse_role("superuser") is None
    assert not can({"sub": "x", "role": "superuser"}, Permission.VIEW_DASHBOARD)
    assert not can(None, Permission.VIEW_DASHBOARD)


def test_token_roundtrip_and_tampering():
    token = create_token({"sub": EMPLOYEE_ID, "role": "employee"})
    claims = decode_token(token)
    assert claims["sub"] == EMPLOYEE_ID
    assert claims["role"] == "employee"
    header, body, _sig = token.split(".")
    assert decode_token(f"{header}.{body}.{'A' * 43}") is None
    assert decode_token(None) is None
    with pytest.raises(ValueError):
        create_token({"role": "admin"})


def test_password_hashing():
    hashed = hash_password("s3cret!")
    assert verify_password("s3cret!", hashed)
    assert not verify_password("wrong", hashed)
    assert verify_and_upgrade_password("wrong", hashed) == (False, None)
    assert verify_password("s3cret!", "not-a-hash") is False


def test_api_key_comparison():
    assert api_key_matches("k-123", "k-123")
    assert not api_key_matches("k-124", "k-123")
    assert not api_key_matches(None, "k-123")
    assert not api_key_matches("k-123", "")


def test_samesite_normalization():
    assert normalize_samesite("STRICT") == "strict"
    assert normalize_samesite("none") == "none"
    assert normalize_samesite("whatever") == "lax"


def test_login_windows_drop_idle_keys(monkeypatch):
    monkeypatch.setattr(security, "_login_user", {})
    now = 10_000.0
    for n in range(50):
        security._login_user[f"user-{n}@example.com"] = [now - 5000]

    for n in range(50):
        security._prune(security._login_user, f"user-{n}@example.com", now, 60)
    assert security._login_user == {}

    security._prune(security._login_user, "never-seen@example.com", now, 60)
    assert security._login_user == {}

    security._login_user["active@example.com"] = [now - 5000, now - 10]
    security._prune(security._login_user, "active@example.com", now, 60)
    assert security._login_user == {"active@example.com": [now - 10]}
