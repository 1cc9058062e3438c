# backoffice/storage/users_store.py
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from backoffice.services.errors import ConflictError, NotFoundError
from backoffice.storage.db import transaction

_SELECT = (
    "SELECT u.`id`, u.`email`, u.`is_active`, u.`last_login`, u.`created_at`, "
    "r.`role`, p.`full_name` "
    "FROM `users` u "
    "LEFT JOIN `user_roles` r ON r.`user_id` = u.`id` "
    "LEFT JOIN `profiles` p ON p.`user_id` = u.`id`"
)


def list_users(conn, role: Optional[str] = None, limit: int = 200, offset: int = 0) -> List[Dict[str, Any]]:
    sql = _SELECT
    vals: List[Any] = []
    if role:
        sql += " WHERE r.`role`=%s"
        vals.append(role)
    sql += " ORDER BY u.`created_at` DESC LIMIT %s OFFSET %s"
    vals.extend([int(limit), int(offset)])
    with conn.cursor() as cur:
        cur.execute(sql, tuple(vals))
        return list(cur.fetchall() or [])


def get_user(conn, user_id: str) -> Dict[str, Any]:
    with conn.cursor() as cur:
        cur.execute(f"{_SELECT} WHERE u.`id`=%s", (user_id,))
        row = cur.fetchone()
    if not row:
        raise NotFoundError(f"User {user_id} not found")
    return row


def get_login_row(conn, email: str) -> Optional[Dict[str, Any]]:
    """User with password hash and role for login; None if the email is unknown."""
    with conn.cursor() as cur:
        cur.execute(
            "SELECT u.`id`, u.`email`, u.`password_hash`, u.`is_active`, r.`role`, p.`full_name` "
            "FROM `users` u "
            "LEFT JOIN `user_roles` r ON r.`user_id` = u.`id` "
            "LEFT JOIN `profiles` p ON p.`user_id` = u.`id` "
            "WHERE u.`email`=%s",
            (email.strip().lower(),),
        )
        return cur.fetchone() or None


def record_login(conn, user_id: str, new_hash: Optional[str]) -> None:
    """Update last_login; persist an upgraded password hash when one was produced."""
    with conn.cursor() as cur:
        if new_hash:
            cur.execute(
                "UPDATE `users` SET `password_hash`=%s, `last_login`=NOW() WHERE `id`=%s",
                (new_hash, user_id),
            )
        else:
            cur.execute("UPDATE `users` SET `last_login`=NOW() WHERE `id`=%s", (user_id,))
    conn.commit()


def create_user(conn, email: str, password_hash: str, full_name: Optional[str], role: str,
                created_by: Optional[str]) -> Dict[str, Any]:
    """
    Create the account, or attach a role to an existing account that has none.
    Raises ConflictError when the email already carries a role.
    """
    email_norm = email.strip().lower()
    with transaction(conn) as cur:
        cur.execute(
            "SELECT u.`id`, r.`role` FROM `users` u LEFT JOIN `user_roles` r ON r.`user_id` = u.`id` "
            "WHERE u.`email`=%s FOR UPDATE",
            (email_norm,),
        )
        existing = cur.fetchone()
        if existing and existing.get("role"):
            raise ConflictError(f"User {email_norm} already exists with role {existing['role']}")

        if existing:
            user_id = existing["id"]
            created = False
        else:
            user_id = str(uuid.uuid4())
            created = True
            cur.execute(
                "INSERT INTO `users` (`id`,`email`,`password_hash`,`is_active`,`created_at`) "
                "VALUES (%s,%s,%s,1,NOW())",
                (user_id, email_norm, password_hash),
            )
        cur.execute(
            "INSERT INTO `user_roles` (`id`,`user_id`,`role`,`created_by`,`created_at`,`updated_at`) "
            "VALUES (%s,%s,%s,%s,NOW(),NOW())",
            (str(uuid.uuid4()), user_id, role, created_by),
        )
        cur.execute(
            "INSERT INTO `profiles` (`id`,`user_id`,`full_name`,`created_at`,`updated_at`) "
            "VALUES (%s,%s,%s,NOW(),NOW()) "
            "ON DUPLICATE KEY UPDATE `full_name`=VALUES(`full_name`), `updated_at`=NOW()",
            (str(uuid.uuid4()), user_id, full_name),
        )
    return {"id": user_id, "created": created}


def update_user(conn, user_id: str, role: Optional[str] = None, full_name: Optional[str] = None,
                password_hash: Optional[str] = None, is_active: Optional[bool] = None) -> bool:
    """Apply the given changes; False when there was nothing to change."""
    if role is None and full_name is None and password_hash is None and is_active is None:
        return False
    with transaction(conn) as cur:
        cur.execute("SELECT `id` FROM `users` WHERE `id`=%s FOR UPDATE", (user_id,))
        if not cur.fetchone():
            raise NotFoundError(f"User {user_id} not found")
        sets: List[str] = []
        vals: List[Any] = []
        if password_hash is not None:
            sets.append("`password_hash`=%s")
            vals.append(password_hash)
        if is_active is not None:
            sets.append("`is_active`=%s")
            vals.append(int(bool(is_active)))
        if sets:
            cur.execute(f"UPDATE `users` SET {', '.join(sets)} WHERE `id`=%s", tuple(vals + [user_id]))
        if role is not None:
            cur.execute(
                "INSERT INTO `user_roles` (`id`,`user_id`,`role`,`created_at`,`updated_at`) "
                "VALUES (%s,%s,%s,NOW(),NOW()) "
                "ON DUPLICATE KEY UPDATE `role`=VALUES(`role`), `updated_at`=NOW()",
                (str(uuid.uuid4()), user_id, role),
            )
        if full_name is not None:
            cur.execute(
                "INSERT INTO `profiles` (`id`,`user_id`,`full_name`,`created_at`,`updated_at`) "
                "VALUES (%s,%s,%s,NOW(),NOW()) "
                "ON DUPLICATE KEY UPDATE `full_name`=VALUES(`full_name`), `updated_at`=NOW()",
                (str(uuid.uuid4()), user_id, full_name),
            )
    return True


def delete_user(conn, user_id: str) -> None:
    """Remove the account; roles and profile go with it (FK cascade)."""
    with transaction(conn) as cur:
        cur.execute("DELETE FROM `users` WHERE `id`=%s", (user_id,))
        if cur.rowcount == 0:
            raise NotFoundError(f"User {user_id} not found")
