# backoffice/storage/agents_store.py
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Mapping, Optional

from backoffice.services.errors import InvalidInputError, NotFoundError

AGENT_FIELDS = (
    "agent_full_name", "agent_phone", "recommendation_name", "lead_link", "mop_name",
    "client_category", "first_payment_date", "first_payment_amount", "reward_amount",
    "remaining_payment",
    "payment_month_1", "payment_month_1_completed",
    "payment_month_2", "payment_month_2_completed",
    "payment_month_3", "payment_month_3_completed",
    "payout_1", "payout_1_completed",
    "payout_2", "payout_2_completed",
    "payout_3", "payout_3_completed",
    "employee_id",
)

_SELECT = (
    "SELECT `id`," + ",".join(f"`{c}`" for c in AGENT_FIELDS) + ",`created_at`,`updated_at` FROM `agents`"
)


def list_agents(conn, employee_id: Optional[str] = None) -> List[Dict[str, Any]]:
    sql = _SELECT
    vals: List[Any] = []
    if employee_id:
        sql += " WHERE `employee_id`=%s"
        vals.append(employee_id)
    sql += " ORDER BY `created_at` DESC"
    with conn.cursor() as cur:
        cur.execute(sql, tuple(vals))
        return list(cur.fetchall() or [])


def get_agent(conn, agent_id: str) -> Dict[str, Any]:
    with conn.cursor() as cur:
        cur.execute(f"{_SELECT} WHERE `id`=%s", (agent_id,))
        row = cur.fetchone()
    if not row:
        raise NotFoundError(f"Agent {agent_id} not found")
    return row


def create_agent(conn, data: Mapping[str, Any]) -> str:
    agent_id = str(uuid.uuid4())
    cols = [c for c in AGENT_FIELDS if c in data]
    with conn.cursor() as cur:
        cur.execute(
            f"INSERT INTO `agents` (`id`,{','.join(f'`{c}`' for c in cols)},`created_at`,`updated_at`) "
            f"VALUES (%s,{','.join(['%s'] * len(cols))},NOW(),NOW())",
            tuple([agent_id] + [data[c] for c in cols]),
        )
    conn.commit()
    return agent_id


def update_agent(conn, agent_id: str, fields: Mapping[str, Any]) -> int:
    unknown = [k for k in fields if k not in AGENT_FIELDS]
    if unknown:
        raise InvalidInputError(f"Unknown agent fields: {', '.join(sorted(unknown))}")
    if not fields:
        return 0
    sets = [f"`{k}`=%s" for k in fields]
    with conn.cursor() as cur:
        cur.execute(
            f"UPDATE `agents` SET {', '.join(sets)}, `updated_at`=NOW() WHERE `id`=%s",
            tuple(list(fields.values()) + [agent_id]),
        )
        n = cur.rowcount
    conn.commit()
    return n


def delete_agent(conn, agent_id: str) -> int:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM `agents` WHERE `id`=%s", (agent_id,))
        n = cur.rowcount
    conn.commit()
    return n
