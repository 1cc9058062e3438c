# backoffice/storage/bonuses_store.py
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from backoffice.services.errors import NotFoundError


def get_counts(conn, employee_id: str, month: int, year: int) -> Dict[str, int]:
    """reviews_count / agents_count recorded for the month (zeros when nothing was saved yet)."""
    with conn.cursor() as cur:
        cur.execute(
            "SELECT `reviews_count`,`agents_count` FROM `employee_bonuses` "
            "WHERE `employee_id`=%s AND `month`=%s AND `year`=%s",
            (employee_id, month, year),
        )
        row = cur.fetchone() or {}
    return {
        "reviews_count": int(row.get("reviews_count") or 0),
        "agents_count": int(row.get("agents_count") or 0),
    }


def upsert_counts(conn, employee_id: str, month: int, year: int, reviews_count: int, agents_count: int) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO `employee_bonuses`
              (`id`,`employee_id`,`month`,`year`,`reviews_count`,`agents_count`,`created_at`,`updated_at`)
            VALUES (%s,%s,%s,%s,%s,%s,NOW(),NOW())
            ON DUPLICATE KEY UPDATE
              `reviews_count`=VALUES(`reviews_count`),
              `agents_count`=VALUES(`agents_count`),
              `updated_at`=NOW()
            """,
            (str(uuid.uuid4()), employee_id, month, year, int(reviews_count), int(agents_count)),
        )
    conn.commit()


def list_rules(conn) -> List[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT `id`,`employee_id`,`role`,`min_average_percent`,`bonus_amount`,`created_at` "
            "FROM `incentive_rules` ORDER BY `employee_id`, `role`, `min_average_percent` DESC"
        )
        return list(cur.fetchall() or [])


def create_rule(conn, employee_id: Optional[str], role: Optional[str],
                min_average_percent: Any, bonus_amount: Any) -> str:
    rule_id = str(uuid.uuid4())
    with conn.cursor() as cur:
        cur.execute(
            "INSERT INTO `incentive_rules` (`id`,`employee_id`,`role`,`min_average_percent`,`bonus_amount`,`created_at`) "
            "VALUES (%s,%s,%s,%s,%s,NOW())",
            (rule_id, employee_id, role, min_average_percent, bonus_amount),
        )
    conn.commit()
    return rule_id


def delete_rule(conn, rule_id: str) -> None:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM `incentive_rules` WHERE `id`=%s", (rule_id,))
        n = cur.rowcount
    conn.commit()
    if not n:
        raise NotFoundError(f"Incentive rule {rule_id} not found")
