"""
Payment ledger persistence.

Every multi-step mutation runs inside ``transaction(conn)``: the ledger write,
the audit rows and the contract aggregates are committed together or not at
all. Ledger rows carry a `version`; writes are conditional on the version the
caller last read and a mismatch raises StaleWriteError.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from backoffice.common.date_rules import to_date
from backoffice.services.errors import ConflictError, InvalidInputError, NotFoundError, StaleWriteError
from backoffice.services.money import round_money, to_dec
from backoffice.services.reconciler import Balance, reconcile
from backoffice.services.schedule import PAYMENT_TYPE_ADDITIONAL, Installment
from backoffice.storage import clients_store
from backoffice.storage.db import transaction

PAYMENT_COLUMNS = (
    "id", "client_id", "user_id", "payment_number", "original_amount", "custom_amount",
    "due_date", "is_completed", "completed_at", "account", "description", "payment_type",
    "version", "created_at", "updated_at",
)

# Fields whose changes are written to payment_history.
AUDITED_FIELDS = ("is_completed", "custom_amount", "due_date", "account")

_SELECT = "SELECT " + ",".join(f"`{c}`" for c in PAYMENT_COLUMNS) + " FROM `payments`"


def _insert_installments(cur, client_id: str, rows: Sequence[Installment], user_id: str) -> None:
    cur.executemany(
        "INSERT INTO `payments` (`id`,`client_id`,`user_id`,`payment_number`,`original_amount`,"
        "`due_date`,`payment_type`,`is_completed`,`version`,`created_at`,`updated_at`) "
        "VALUES (%s,%s,%s,%s,%s,%s,%s,0,1,NOW(),NOW())",
        [
            (str(uuid.uuid4()), client_id, user_id, r.payment_number, r.original_amount,
             r.due_date, r.payment_type)
            for r in rows
        ],
    )


def list_ledger(conn, client_id: str, cur=None, for_update: bool = False) -> List[Dict[str, Any]]:
    sql = f"{_SELECT} WHERE `client_id`=%s ORDER BY `payment_number`" + (" FOR UPDATE" if for_update else "")
    if cur is not None:
        cur.execute(sql, (client_id,))
        return list(cur.fetchall() or [])
    with conn.cursor() as c:
        c.execute(sql, (client_id,))
        return list(c.fetchall() or [])


def list_payments(conn, employee_id: Optional[str] = None,
                  due_from: Optional[date] = None, due_to: Optional[date] = None) -> List[Dict[str, Any]]:
    """Bulk fetch for dashboard/calendar aggregation, optionally limited to one employee's clients."""
    cols = ",".join(f"p.`{c}`" for c in PAYMENT_COLUMNS)
    sql = (
        f"SELECT {cols}, c.`full_name` AS `client_name`, c.`employee_id` "
        "FROM `payments` p JOIN `clients` c ON c.`id` = p.`client_id`"
    )
    where: List[str] = []
    vals: List[Any] = []
    if employee_id:
        where.append("c.`employee_id`=%s")
        vals.append(employee_id)
    if due_from:
        where.append("p.`due_date` >= %s")
        vals.append(due_from)
    if due_to:
        where.append("p.`due_date` <= %s")
        vals.append(due_to)
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY p.`due_date`, p.`payment_number`"
    with conn.cursor() as cur:
        cur.execute(sql, tuple(vals))
        return list(cur.fetchall() or [])


def get_payment(conn, payment_id: str, cur=None, for_update: bool = False) -> Dict[str, Any]:
    sql = f"{_SELECT} WHERE `id`=%s" + (" FOR UPDATE" if for_update else "")
    if cur is not None:
        cur.execute(sql, (payment_id,))
        row = cur.fetchone()
    else:
        with conn.cursor() as c:
            c.execute(sql, (payment_id,))
            row = c.fetchone()
    if not row:
        raise NotFoundError(f"Payment {payment_id} not found")
    return row


def _reconcile_client(cur, client_id: str) -> Balance:
    client = clients_store.get_client(None, client_id, cur=cur, for_update=True)
    ledger = list_ledger(None, client_id, cur=cur, for_update=True)
    balance = reconcile(client.get("contract_amount"), ledger)
    clients_store.write_balance(cur, client_id, balance)
    return balance


# ─────────────────────────────────────────────────────────────────────────────
# Schedule creation / replacement
# ─────────────────────────────────────────────────────────────────────────────

def create_client_with_schedule(conn, client: Mapping[str, Any], rows: Sequence[Installment],
                                user_id: str) -> str:
    """Insert a contract and its full initial ledger as one unit."""
    with transaction(conn) as cur:
        client_id = clients_store.insert_client(cur, client)
        _insert_installments(cur, client_id, rows, user_id)
    return client_id


def replace_schedule(conn, client_id: str, terms: Mapping[str, Any], rows: Sequence[Installment],
                     user_id: str, expected_version: Optional[int]) -> None:
    """
    Atomic schedule reset: drop the ledger, insert the regenerated rows, store
    the new terms and zero the paid aggregates. Nothing is kept on failure.
    """
    with transaction(conn) as cur:
        clients_store.get_client(None, client_id, cur=cur, for_update=True)
        clients_store.update_terms(cur, client_id, terms, expected_version)
        cur.execute("DELETE FROM `payments` WHERE `client_id`=%s", (client_id,))
        _insert_installments(cur, client_id, rows, user_id)


def update_contract(conn, client_id: str, changes: Mapping[str, Any],
                    expected_version: Optional[int]) -> Optional[Balance]:
    """
    Plain field edit of a contract. A new contract_amount re-derives the
    remaining balance in the same transaction; returns the new balance then.
    """
    with transaction(conn) as cur:
        current = clients_store.get_client(None, client_id, cur=cur, for_update=True)
        clients_store.update_fields(cur, client_id, changes, expected_version)
        if "contract_amount" in changes and to_dec(changes["contract_amount"]) != to_dec(current.get("contract_amount")):
            return _reconcile_client(cur, client_id)
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Row changes
# ─────────────────────────────────────────────────────────────────────────────

def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(round_money(value))
    return str(value)


def _normalize(field: str, value: Any) -> Any:
    if field == "is_completed":
        return bool(int(value or 0))
    if field == "custom_amount":
        return None if value is None else round_money(value)
    if field == "due_date":
        return to_date(value)
    if field == "account":
        return (str(value).strip() or None) if value is not None else None
    return value


def _write_history(cur, payment: Mapping[str, Any], field: str, old: Any, new: Any, changed_by: str) -> None:
    cur.execute(
        "INSERT INTO `payment_history` (`id`,`payment_id`,`client_id`,`field_name`,`old_value`,"
        "`new_value`,`changed_by`,`changed_at`) VALUES (%s,%s,%s,%s,%s,%s,%s,NOW())",
        (str(uuid.uuid4()), payment["id"], payment["client_id"], field,
         _as_text(old), _as_text(new), changed_by),
    )


def apply_payment_change(conn, payment_id: str, changes: Mapping[str, Any], expected_version: int,
                         changed_by: str) -> Tuple[Dict[str, Any], Balance]:
    """
    Conditionally update one ledger row, audit the changed fields and
    reconcile the owning contract, all in one transaction.

    `changes` may hold is_completed, custom_amount, due_date and account.
    Returns the updated row and the new contract balance.
    """
    unknown = [k for k in changes if k not in AUDITED_FIELDS]
    if unknown:
        raise InvalidInputError(f"Unsupported payment fields: {', '.join(sorted(unknown))}")
    if "custom_amount" in changes and changes["custom_amount"] is not None and to_dec(changes["custom_amount"]) < 0:
        raise InvalidInputError("custom_amount must not be negative")

    with transaction(conn) as cur:
        current = get_payment(None, payment_id, cur=cur, for_update=True)
        if int(current.get("version") or 0) != int(expected_version):
            raise StaleWriteError("Payment was modified by someone else; reload and retry")

        diffs: Dict[str, Tuple[Any, Any]] = {}
        for field, value in changes.items():
            old = _normalize(field, current.get(field))
            new = _normalize(field, value)
            if old != new:
                diffs[field] = (old, new)

        if diffs:
            sets: List[str] = []
            vals: List[Any] = []
            for field, (_, new) in diffs.items():
                sets.append(f"`{field}`=%s")
                vals.append(int(new) if field == "is_completed" else new)
            if "is_completed" in diffs:
                sets.append("`completed_at`=%s")
                vals.append(datetime.now() if diffs["is_completed"][1] else None)
            cur.execute(
                f"UPDATE `payments` SET {', '.join(sets)}, `version`=`version`+1, `updated_at`=NOW() "
                "WHERE `id`=%s AND `version`=%s",
                tuple(vals) + (payment_id, int(expected_version)),
            )
            if cur.rowcount == 0:
                raise StaleWriteError("Payment was modified by someone else; reload and retry")
            for field, (old, new) in diffs.items():
                _write_history(cur, current, field, old, new, changed_by)

        balance = _reconcile_client(cur, current["client_id"])
        updated = get_payment(None, payment_id, cur=cur)
    return updated, balance


def add_additional_payment(conn, client_id: str, amount: Any, due_date: date, user_id: str,
                           account: Optional[str] = None, description: Optional[str] = None) -> Dict[str, Any]:
    """Append an ad-hoc row numbered after the current last row."""
    amt = round_money(amount)
    if amt <= 0:
        raise InvalidInputError("amount must be greater than zero")
    with transaction(conn) as cur:
        clients_store.get_client(None, client_id, cur=cur, for_update=True)
        cur.execute(
            "SELECT COALESCE(MAX(`payment_number`), -1) AS `last_no` FROM `payments` WHERE `client_id`=%s",
            (client_id,),
        )
        last_no = int((cur.fetchone() or {}).get("last_no", -1))
        payment_id = str(uuid.uuid4())
        cur.execute(
            "INSERT INTO `payments` (`id`,`client_id`,`user_id`,`payment_number`,`original_amount`,"
            "`due_date`,`payment_type`,`account`,`description`,`is_completed`,`version`,`created_at`,`updated_at`) "
            "VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,0,1,NOW(),NOW())",
            (payment_id, client_id, user_id, last_no + 1, amt, due_date, PAYMENT_TYPE_ADDITIONAL,
             account, description),
        )
        row = get_payment(None, payment_id, cur=cur)
    return row


def delete_additional_payment(conn, payment_id: str, expected_version: int) -> Balance:
    with transaction(conn) as cur:
        current = get_payment(None, payment_id, cur=cur, for_update=True)
        if current.get("payment_type") != PAYMENT_TYPE_ADDITIONAL:
            raise ConflictError("Only additional payments can be deleted; reset the schedule instead")
        cur.execute("DELETE FROM `payments` WHERE `id`=%s AND `version`=%s", (payment_id, int(expected_version)))
        if cur.rowcount == 0:
            raise StaleWriteError("Payment was modified by someone else; reload and retry")
        return _reconcile_client(cur, current["client_id"])


# ─────────────────────────────────────────────────────────────────────────────
# Audit trail
# ─────────────────────────────────────────────────────────────────────────────

def list_history(conn, client_id: Optional[str] = None, field_name: Optional[str] = None,
                 limit: int = 200, offset: int = 0) -> List[Dict[str, Any]]:
    sql = (
        "SELECT h.`id`, h.`payment_id`, h.`client_id`, c.`full_name` AS `client_name`, "
        "p.`payment_number`, h.`field_name`, h.`old_value`, h.`new_value`, h.`changed_by`, "
        "pr.`full_name` AS `changed_by_name`, h.`changed_at` "
        "FROM `payment_history` h "
        "LEFT JOIN `clients` c ON c.`id` = h.`client_id` "
        "LEFT JOIN `payments` p ON p.`id` = h.`payment_id` "
        "LEFT JOIN `profiles` pr ON pr.`user_id` = h.`changed_by`"
    )
    where: List[str] = []
    vals: List[Any] = []
    if client_id:
        where.append("h.`client_id`=%s")
        vals.append(client_id)
    if field_name:
        where.append("h.`field_name`=%s")
        vals.append(field_name)
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY h.`changed_at` DESC LIMIT %s OFFSET %s"
    vals.extend([int(limit), int(offset)])
    with conn.cursor() as cur:
        cur.execute(sql, tuple(vals))
        return list(cur.fetchall() or [])
