# backoffice/storage/receipts_store.py
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from backoffice.services.errors import NotFoundError


def list_receipts(conn, client_id: str, payment_id: Optional[str] = None) -> List[Dict[str, Any]]:
    sql = (
        "SELECT `id`,`client_id`,`payment_id`,`file_name`,`file_path`,`file_size`,`mime_type`,"
        "`user_id`,`uploaded_at` FROM `payment_receipts` WHERE `client_id`=%s"
    )
    vals: List[Any] = [client_id]
    if payment_id:
        sql += " AND `payment_id`=%s"
        vals.append(payment_id)
    sql += " ORDER BY `uploaded_at` DESC"
    with conn.cursor() as cur:
        cur.execute(sql, tuple(vals))
        return list(cur.fetchall() or [])


def register_receipt(conn, client_id: str, payment_id: Optional[str], file_name: str, file_path: str,
                     file_size: int, mime_type: str, user_id: str) -> str:
    receipt_id = str(uuid.uuid4())
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO `payment_receipts`
              (`id`,`client_id`,`payment_id`,`file_name`,`file_path`,`file_size`,`mime_type`,
               `user_id`,`uploaded_at`,`created_at`,`updated_at`)
            VALUES (%s,%s,%s,%s,%s,%s,%s,%s,NOW(),NOW(),NOW())
            """,
            (receipt_id, client_id, payment_id, file_name, file_path, int(file_size), mime_type, user_id),
        )
    conn.commit()
    return receipt_id


def delete_receipt(conn, client_id: str, receipt_id: str) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "DELETE FROM `payment_receipts` WHERE `id`=%s AND `client_id`=%s",
            (receipt_id, client_id),
        )
        n = cur.rowcount
    conn.commit()
    if not n:
        raise NotFoundError(f"Receipt {receipt_id} not found")
