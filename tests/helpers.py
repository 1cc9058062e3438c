# tests/helpers.py
# Shared fakes and row builders for the test-suite.
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from backoffice.services.auth_service import create_token

ADMIN_ID = "00000000-0000-0000-0000-00000000a001"
EMPLOYEE_ID = "00000000-0000-0000-0000-00000000e001"
OTHER_EMPLOYEE_ID = "00000000-0000-0000-0000-00000000e002"


# ─────────────────────────────────────────────────────────────────────────────
# Fake pymysql connection: records SQL, answers from registered handlers
# ─────────────────────────────────────────────────────────────────────────────
class FakeCursor:
    def __init__(self, conn: "FakeConn"):
        self.conn = conn
        self.rowcount = 0
        self._rows: List[Dict[str, Any]] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql: str, params: Any = None) -> int:
        flat = " ".join(sql.split())
        self.conn.executed.append((flat, params))
        rows, rowcount = self.conn.respond(flat)
        self._rows = [dict(r) for r in rows]
        self.rowcount = rowcount
        return rowcount

    def executemany(self, sql: str, seq: Any) -> int:
        flat = " ".join(sql.split())
        seq = list(seq)
        self.conn.executed.append((flat, seq))
        self.conn.respond(flat)
        self.rowcount = len(seq)
        return self.rowcount

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._rows)


class FakeConn:
    """
    `on(fragment, rows=..., rowcount=..., raises=..., once=...)` registers an
    answer for every statement containing `fragment`; the first match wins.
    Unmatched statements return no rows and rowcount 1.
    """

    def __init__(self):
        self.executed: List[tuple] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self._handlers: List[Dict[str, Any]] = []

    def on(self, fragment: str, rows: Optional[List[Dict[str, Any]]] = None, rowcount: Optional[int] = None,
           raises: Optional[Exception] = None, once: bool = False) -> "FakeConn":
        self._handlers.append(
            {"fragment": fragment, "rows": rows or [], "rowcount": rowcount, "raises": raises, "once": once}
        )
        return self

    def respond(self, sql: str):
        for h in self._handlers:
            if h["fragment"] in sql:
                if h["once"]:
                    self._handlers.remove(h)
                if h["raises"] is not None:
                    raise h["raises"]
                rowcount = h["rowcount"] if h["rowcount"] is not None else (len(h["rows"]) or 1)
                return h["rows"], rowcount
        return [], 1

    def statements(self, fragment: str) -> List[tuple]:
        return [(sql, params) for sql, params in self.executed if fragment in sql]

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


# SELECT fragments of the stores' full-row queries
CLIENT_BY_ID = "`updated_at` FROM `clients` WHERE `id`=%s"
PAYMENT_BY_ID = "`updated_at` FROM `payments` WHERE `id`=%s"
LEDGER_OF_CLIENT = "`updated_at` FROM `payments` WHERE `client_id`=%s"


def bearer(sub: str, role: str, **extra: Any) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_token({'sub': sub, 'role': role, **extra})}"}


def client_row(**overrides: Any) -> Dict[str, Any]:
    """A clients row as the store returns it (120000 / 20000 / 10000 x 10 contract by default)."""
    row: Dict[str, Any] = {
        "id": "c-1",
        "full_name": "Ivan Petrov",
        "city": "Kazan",
        "source": "site",
        "manager": "Anna",
        "contract_amount": Decimal("120000.00"),
        "first_payment": Decimal("20000.00"),
        "monthly_payment": Decimal("10000.00"),
        "installment_period": 10,
        "payment_day": 15,
        "contract_date": date(2024, 1, 15),
        "total_paid": Decimal("0.00"),
        "remaining_amount": Decimal("120000.00"),
        "deposit_paid": Decimal("0.00"),
        "deposit_target": Decimal("50000.00"),
        "is_terminated": 0,
        "terminated_at": None,
        "termination_reason": None,
        "is_suspended": 0,
        "suspended_at": None,
        "suspension_reason": None,
        "employee_id": EMPLOYEE_ID,
        "user_id": EMPLOYEE_ID,
        "version": 1,
        "created_at": datetime(2024, 1, 15, 10, 0, 0),
        "updated_at": datetime(2024, 1, 15, 10, 0, 0),
    }
    row.update(overrides)
    return row


def payment_row(number: int, due: date, amount: str = "10000.00", **overrides: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "id": f"p-{number}",
        "client_id": "c-1",
        "user_id": EMPLOYEE_ID,
        "payment_number": number,
        "original_amount": Decimal(amount),
        "custom_amount": None,
        "due_date": due,
        "is_completed": 0,
        "completed_at": None,
        "account": None,
        "description": None,
        "payment_type": "first" if number == 0 else "monthly",
        "version": 1,
        "created_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row
