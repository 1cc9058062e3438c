# backoffice/storage/clients_store.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from backoffice.services.errors import InvalidInputError, NotFoundError, StaleWriteError
from backoffice.services.reconciler import Balance

CLIENT_COLUMNS = (
    "id", "full_name", "city", "source", "manager",
    "contract_amount", "first_payment", "monthly_payment", "installment_period", "payment_day",
    "contract_date", "total_paid", "remaining_amount", "deposit_paid", "deposit_target",
    "is_terminated", "terminated_at", "termination_reason",
    "is_suspended", "suspended_at", "suspension_reason",
    "employee_id", "user_id", "version", "created_at", "updated_at",
)

# Fields a plain edit may touch. Schedule-defining terms go through replace_schedule.
EDITABLE_FIELDS = ("full_name", "city", "source", "manager", "contract_amount", "deposit_target", "employee_id")
SCHEDULE_FIELDS = ("contract_date", "first_payment", "monthly_payment", "installment_period", "payment_day")

_LIFECYCLE = {
    "terminated": ("is_terminated", "terminated_at", "termination_reason"),
    "suspended": ("is_suspended", "suspended_at", "suspension_reason"),
}

_SELECT = "SELECT " + ",".join(f"`{c}`" for c in CLIENT_COLUMNS) + " FROM `clients`"


def new_id() -> str:
    return str(uuid.uuid4())


def list_clients(
    conn,
    employee_id: Optional[str] = None,
    include_inactive: bool = False,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Clients ordered by newest contract first; terminated/suspended excluded unless asked."""
    where: List[str] = []
    vals: List[Any] = []
    if employee_id:
        where.append("`employee_id`=%s")
        vals.append(employee_id)
    if not include_inactive:
        where.append("`is_terminated`=0 AND `is_suspended`=0")
    if search:
        where.append("(`full_name` LIKE %s OR `city` LIKE %s OR `manager` LIKE %s)")
        like = f"%{search.strip()}%"
        vals.extend([like, like, like])
    if date_from:
        where.append("`contract_date` >= %s")
        vals.append(date_from)
    if date_to:
        where.append("`contract_date` <= %s")
        vals.append(date_to)
    sql = _SELECT
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY `contract_date` DESC, `created_at` DESC"
    with conn.cursor() as cur:
        cur.execute(sql, tuple(vals))
        return list(cur.fetchall() or [])


def list_lifecycle(conn, kind: str, employee_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """History view: terminated or suspended clients, most recent first."""
    if kind not in _LIFECYCLE:
        raise InvalidInputError(f"Unknown lifecycle kind: {kind}")
    flag, stamp, _ = _LIFECYCLE[kind]
    sql = f"{_SELECT} WHERE `{flag}`=1"
    vals: List[Any] = []
    if employee_id:
        sql += " AND `employee_id`=%s"
        vals.append(employee_id)
    sql += f" ORDER BY `{stamp}` DESC"
    with conn.cursor() as cur:
        cur.execute(sql, tuple(vals))
        return list(cur.fetchall() or [])


def get_client(conn, client_id: str, cur=None, for_update: bool = False) -> Dict[str, Any]:
    sql = f"{_SELECT} WHERE `id`=%s" + (" FOR UPDATE" if for_update else "")
    if cur is not None:
        cur.execute(sql, (client_id,))
        row = cur.fetchone()
    else:
        with conn.cursor() as c:
            c.execute(sql, (client_id,))
            row = c.fetchone()
    if not row:
        raise NotFoundError(f"Client {client_id} not found")
    return row


def insert_client(cur, data: Mapping[str, Any]) -> str:
    """INSERT inside the caller's transaction; aggregates start at zero paid."""
    client_id = data.get("id") or new_id()
    cols = ["id"] + [c for c in data.keys() if c != "id" and c in CLIENT_COLUMNS]
    vals = [client_id] + [data[c] for c in cols[1:]]
    placeholders = ",".join(["%s"] * len(cols))
    cur.execute(
        f"INSERT INTO `clients` ({','.join(f'`{c}`' for c in cols)}, `created_at`, `updated_at`) "
        f"VALUES ({placeholders}, NOW(), NOW())",
        tuple(vals),
    )
    return client_id


def _conditional_update(cur, client_id: str, sets: List[str], vals: List[Any],
                        expected_version: Optional[int]) -> None:
    sql = f"UPDATE `clients` SET {', '.join(sets)}, `version`=`version`+1, `updated_at`=NOW() WHERE `id`=%s"
    params = list(vals) + [client_id]
    if expected_version is not None:
        sql += " AND `version`=%s"
        params.append(int(expected_version))
    cur.execute(sql, tuple(params))
    if cur.rowcount == 0:
        # either the row is gone or someone else wrote first
        cur.execute("SELECT `version` FROM `clients` WHERE `id`=%s", (client_id,))
        if not cur.fetchone():
            raise NotFoundError(f"Client {client_id} not found")
        raise StaleWriteError("Client was modified by someone else; reload and retry")


def update_fields(cur, client_id: str, fields: Mapping[str, Any], expected_version: Optional[int]) -> None:
    unknown = [k for k in fields if k not in EDITABLE_FIELDS]
    if unknown:
        raise InvalidInputError(f"Fields not editable here: {', '.join(sorted(unknown))}")
    sets = [f"`{k}`=%s" for k in fields]
    _conditional_update(cur, client_id, sets, list(fields.values()), expected_version)


def update_terms(cur, client_id: str, terms: Mapping[str, Any], expected_version: Optional[int]) -> None:
    """Store new schedule terms and reset paid aggregates (schedule reset)."""
    allowed = SCHEDULE_FIELDS + ("contract_amount",)
    sets = [f"`{k}`=%s" for k in terms if k in allowed]
    vals = [terms[k] for k in terms if k in allowed]
    sets += ["`total_paid`=0", "`deposit_paid`=0", "`remaining_amount`=`contract_amount`"]
    _conditional_update(cur, client_id, sets, vals, expected_version)


def write_balance(cur, client_id: str, balance: Balance) -> None:
    cur.execute(
        "UPDATE `clients` SET `total_paid`=%s, `remaining_amount`=%s, `deposit_paid`=%s, "
        "`version`=`version`+1, `updated_at`=NOW() WHERE `id`=%s",
        (balance.total_paid, balance.remaining_amount, balance.deposit_paid, client_id),
    )


def set_lifecycle(cur, client_id: str, kind: str, on: bool, reason: Optional[str],
                  expected_version: Optional[int], when: Optional[datetime] = None) -> None:
    """Terminate/suspend (on=True) or reinstate (on=False) a client."""
    if kind not in _LIFECYCLE:
        raise InvalidInputError(f"Unknown lifecycle kind: {kind}")
    flag, stamp, reason_col = _LIFECYCLE[kind]
    if on:
        sets = [f"`{flag}`=1", f"`{stamp}`=%s", f"`{reason_col}`=%s"]
        vals: List[Any] = [when or datetime.now(), reason]
    else:
        sets = [f"`{flag}`=0", f"`{stamp}`=NULL", f"`{reason_col}`=NULL"]
        vals = []
    _conditional_update(cur, client_id, sets, vals, expected_version)


def delete_client(conn, client_id: str) -> int:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM `clients` WHERE `id`=%s", (client_id,))
        n = cur.rowcount
    conn.commit()
    return n
