# backoffice/api/admin_users.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backoffice.services.auth_service import hash_password
from backoffice.services.roles import Permission, Role, parse_role, require_permission, user_id
from backoffice.services.security import require_csrf
from backoffice.storage import users_store
from backoffice.storage.db import get_conn

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/users",
    tags=["Admin Users"],
)

# ----- Annotated aliases -----
AdminOnly = Annotated[Dict[str, Any], Depends(require_permission(Permission.MANAGE_USERS))]
CSRF = Annotated[None, Depends(require_csrf)]


class UserCreate(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    full_name: Optional[str] = None
    role: str = Role.EMPLOYEE.value


class UserUpdate(BaseModel):
    role: Optional[str] = None
    full_name: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    is_active: Optional[bool] = None


def _role_or_400(value: str) -> str:
    role = parse_role(value)
    if role is None:
        raise HTTPException(status_code=400, detail=f"Unknown role '{value}'")
    return role.value


@router.get("", summary="List users")
def list_users(_current_user: AdminOnly, role: Optional[str] = None, limit: int = 200, offset: int = 0) -> Dict[str, Any]:
    conn = get_conn()
    try:
        items = users_store.list_users(conn, role=_role_or_400(role) if role else None, limit=limit, offset=offset)
    finally:
        conn.close()
    return {"count": len(items), "items": items}


@router.post("", summary="Create user")
def create_user(payload: UserCreate, _csrf_ok: CSRF, current_user: AdminOnly) -> Dict[str, Any]:
    if "@" not in payload.email:
        raise HTTPException(status_code=400, detail="A valid email is required")
    role = _role_or_400(payload.role)
    conn = get_conn()
    try:
        result = users_store.create_user(
            conn,
            payload.email,
            hash_password(payload.password),
            payload.full_name,
            role,
            created_by=user_id(current_user),
        )
    finally:
        conn.close()
    logger.info("User %s given role %s by %s", result["id"], role, user_id(current_user))
    return {"status": "SUCCESS", "role": role, **result}


@router.put("/{target_id}", summary="Update user")
def update_user(target_id: str, payload: UserUpdate, _csrf_ok: CSRF, current_user: AdminOnly) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return {"status": "NOOP", "id": target_id}
    if target_id == user_id(current_user) and (
        changes.get("is_active") is False
        or ("role" in changes and parse_role(changes["role"]) is not Role.ADMIN)
    ):
        raise HTTPException(status_code=400, detail="Admins cannot demote or deactivate themselves")
    conn = get_conn()
    try:
        users_store.update_user(
            conn,
            target_id,
            role=_role_or_400(changes["role"]) if changes.get("role") else None,
            full_name=changes.get("full_name"),
            password_hash=hash_password(changes["password"]) if changes.get("password") else None,
            is_active=changes.get("is_active"),
        )
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": target_id}


@router.delete("/{target_id}", summary="Delete user")
def delete_user(target_id: str, _csrf_ok: CSRF, current_user: AdminOnly) -> Dict[str, Any]:
    if target_id == user_id(current_user):
        raise HTTPException(status_code=400, detail="Admins cannot delete themselves")
    conn = get_conn()
    try:
        users_store.delete_user(conn, target_id)
    finally:
        conn.close()
    logger.info("User %s deleted by %s", target_id, user_id(current_user))
    return {"status": "SUCCESS", "id": target_id}
