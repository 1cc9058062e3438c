# tests/conftest.py
from __future__ import annotations
import importlib
import os

os.environ.setdefault("JWT_SECRET", "backoffice-test-secret-0123456789abcdef")
os.environ.setdefault("RATE_LIMIT_DISABLED", "1")
os.environ["ACCOUNTING_WEBHOOK_URL"] = ""

import pytest
from starlette.testclient import TestClient

from backoffice.main import app
from tests.helpers import ADMIN_ID, EMPLOYEE_ID, FakeConn, bearer

API_MODULES = (
    "backoffice.api.clients",
    "backoffice.api.payments",
    "backoffice.api.receipts",
    "backoffice.api.dashboard",
    "backoffice.api.bonuses",
    "backoffice.api.agents",
    "backoffice.api.integrations",
    "backoffice.api.admin_users",
    "backoffice.api.auth_api",
)


@pytest.fixture
def fake_conn() -> FakeConn:
    return FakeConn()


@pytest.fixture
def fake_db(monkeypatch, fake_conn):
    """Every router's get_conn() hands out the same FakeConn."""
    for name in API_MODULES:
        monkeypatch.setattr(importlib.import_module(name), "get_conn", lambda: fake_conn, raising=True)
    return fake_conn


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers():
    return bearer(ADMIN_ID, "admin", email="admin@example.com")


@pytest.fixture
def employee_headers():
    return bearer(EMPLOYEE_ID, "employee", email="emp@example.com")
