# tests/test_cli.py
from __future__ import annotations
import json
from datetime import date

import pandas as pd
import pytest
from sqlalchemy import create_engine

from backoffice.cli import create_user, export_tables, sync_metrics
from tests.helpers import FakeConn, client_row


@pytest.fixture(autouse=True)
def _keep_test_logging(monkeypatch):
    for mod in (sync_metrics, export_tables):
        monkeypatch.setattr(mod, "setup_logging", lambda *a, **kw: None)


@pytest.fixture
def cli_conn(monkeypatch):
    conn = FakeConn()
    for mod in (create_user, sync_metrics):
        monkeypatch.setattr(mod, "get_conn", lambda: conn)
    return conn


def test_sync_metrics_dry_run_prints_payload(cli_conn, capsys):
    cli_conn.on("`updated_at` FROM `clients`", rows=[client_row(contract_date=date(2024, 3, 5))])
    assert sync_metrics.main(["--month", "2024-03", "--dry-run"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["event_type"] == "dashboard_metrics"
    assert payload["month"] == "2024-03"
    assert payload["user_id"] == "auto-sync"
    assert payload["new_clients_count"] == 1
    assert cli_conn.closed


def test_sync_metrics_exit_code_follows_delivery(cli_conn, monkeypatch):
    monkeypatch.setattr(sync_metrics, "sync_month_metrics", lambda *a, **kw: {"delivered": False, "payload": {}})
    assert sync_metrics.main(["--month", "2024-03"]) == 1
    monkeypatch.setattr(sync_metrics, "sync_month_metrics", lambda *a, **kw: {"delivered": True, "payload": {}})
    assert sync_metrics.main(["--month", "2024-03"]) == 0


def test_create_user_command(cli_conn, capsys):
    create_user.main(["create", "--email", "Boss@Example.com", "--password", "secret123", "--full-name", "Boss"])
    assert "[OK] Created user" in capsys.readouterr().out
    (_, params), = cli_conn.statements("INSERT INTO `user_roles`")
    assert params[2:] == ("admin", None)
    assert cli_conn.commits == 1


def test_create_user_rejects_short_password_and_unknown_role(cli_conn):
    with pytest.raises(SystemExit):
        create_user.main(["create", "--email", "a@example.com", "--password", "123"])
    with pytest.raises(SystemExit):
        create_user.main(["create", "--email", "a@example.com", "--password", "secret123", "--role", "root"])
    assert cli_conn.executed == []


def test_create_user_conflict_exits(cli_conn):
    cli_conn.on("WHERE u.`email`=%s FOR UPDATE", rows=[{"id": "u-1", "role": "employee"}])
    with pytest.raises(SystemExit) as exc:
        create_user.main(["create", "--email", "emp@example.com", "--password", "secret123"])
    assert "already exists" in str(exc.value.code)
    assert cli_conn.closed


def test_reset_password(cli_conn, capsys):
    cli_conn.on("WHERE u.`email`=%s", rows=[{"id": "u-1", "email": "emp@example.com", "is_active": 0}])
    cli_conn.on("SELECT `id` FROM `users`", rows=[{"id": "u-1"}])
    create_user.main(["reset-password", "--email", "emp@example.com", "--password", "newsecret"])
    assert "[OK] Password reset" in capsys.readouterr().out
    (_, params), = cli_conn.statements("UPDATE `users` SET")
    assert params[1:] == (1, "u-1")
    assert params[0].startswith("$argon2")


def test_export_unknown_table_is_refused(tmp_path):
    assert export_tables.main(["--csv-dir", str(tmp_path), "--tables", "secrets"]) == 2


def test_export_writers(tmp_path):
    frames = {
        "clients": pd.DataFrame([{"id": "c-1", "full_name": "Ivan Petrov", "contract_amount": 120000.0}]),
        "payments": pd.DataFrame([{"id": "p-0", "client_id": "c-1", "payment_number": 0}]),
    }
    export_tables.write_csv(frames, tmp_path / "out")
    assert (tmp_path / "out" / "clients.csv").read_text().splitlines()[0] == "id,full_name,contract_amount"

    target = create_engine("sqlite://")
    export_tables.write_sql(frames, target)
    with target.connect() as conn:
        copied = pd.read_sql("SELECT * FROM payments", conn)
    assert copied.to_dict("records") == [{"id": "p-0", "client_id": "c-1", "payment_number": 0}]
