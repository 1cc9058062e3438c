# tests/test_health.py
from __future__ import annotations
from http import HTTPStatus

from backoffice.api import health


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == HTTPStatus.OK
    assert r.json()["status"] == "ok"


def test_root(client):
    assert client.get("/").json() == {"status": "OK", "docs": "/docs"}


def test_readyz_ok(client, monkeypatch):
    monkeypatch.setattr(health, "ping", lambda: {"ok": 1})
    r = client.get("/readyz")
    assert r.status_code == HTTPStatus.OK
    assert r.json()["db"] == {"ok": 1}


def test_readyz_db_down(client, monkeypatch):
    def _down():
        raise ConnectionError("connection refused")

    monkeypatch.setattr(health, "ping", _down)
    r = client.get("/readyz")
    assert r.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    assert "connection refused" in r.json()["detail"]
