# backoffice/api/auth_api.py
from __future__ import annotations

from typing import Any, Dict, Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse

from backoffice.services.auth_service import (
    TOKEN_COOKIE_NAME,
    cookie_args,
    create_token,
    verify_and_upgrade_password,
)
from backoffice.services.config import AUTH_EXP_MINUTES
from backoffice.services.roles import parse_role, require_user
from backoffice.services.security import (
    CSRF_COOKIE,
    check_login_rate_limit,
    issue_csrf_token,
    register_login_failure,
    require_csrf,
    reset_login_attempts,
)
from backoffice.storage import users_store
from backoffice.storage.db import get_conn

router = APIRouter(prefix="/api/auth", tags=["Auth"])

CSRF = Annotated[None, Depends(require_csrf)]
CurrentUser = Annotated[Dict[str, Any], Depends(require_user)]


# --------------------------------------------------------------------
# CSRF Token
# --------------------------------------------------------------------
@router.get("/csrf")
def get_csrf() -> JSONResponse:
    """
    Issue a CSRF token and set a readable cookie "csrf_token".
    Client JS echoes this value in the "X-CSRF-Token" header for state-changing calls.
    """
    token = issue_csrf_token()
    resp = JSONResponse({"status": "OK", "csrf_token": token})
    resp.set_cookie(CSRF_COOKIE, token, **cookie_args(httponly=False))
    return resp


# --------------------------------------------------------------------
# Login (email + password)
# --------------------------------------------------------------------
@router.post("/login")
def login(
    request: Request,
    _csrf_ok: CSRF,
    email: str = Form(...),
    password: str = Form(...),
) -> JSONResponse:
    if not email.strip() or not password:
        raise HTTPException(status_code=422, detail="email and password are required")

    user_key = f"email:{email.strip().lower()}"
    check_login_rate_limit(request, user_key)

    conn = get_conn()
    try:
        u = users_store.get_login_row(conn, email)
        if not u:
            register_login_failure(user_key)
            raise HTTPException(status_code=401, detail="Invalid credentials")

        if int(u.get("is_active") or 0) != 1:
            register_login_failure(user_key)
            raise HTTPException(status_code=403, detail="User inactive")

        role = parse_role(u.get("role"))
        if role is None:
            register_login_failure(user_key)
            raise HTTPException(status_code=403, detail="User has no role assigned")

        ok, maybe_new_hash = verify_and_upgrade_password(password, u.get("password_hash") or "")
        if not ok:
            register_login_failure(user_key)
            raise HTTPException(status_code=401, detail="Invalid credentials")

        users_store.record_login(conn, u["id"], maybe_new_hash)
    finally:
        conn.close()

    identity: Dict[str, Any] = {
        "sub": str(u["id"]),
        "role": role.value,
        "email": u.get("email"),
        "full_name": u.get("full_name"),
    }
    token = create_token(identity, AUTH_EXP_MINUTES)
    resp = JSONResponse({"status": "OK", **identity})
    resp.set_cookie(TOKEN_COOKIE_NAME, token, **cookie_args(max_age=AUTH_EXP_MINUTES * 60))
    reset_login_attempts(user_key)
    return resp


# --------------------------------------------------------------------
# Logout & Identity
# --------------------------------------------------------------------
@router.post("/logout")
def logout() -> JSONResponse:
    resp = JSONResponse({"status": "OK"})
    resp.delete_cookie(TOKEN_COOKIE_NAME, path="/")
    return resp


@router.get("/me")
def me(user: CurrentUser) -> Dict[str, Any]:
    return {
        "status": "OK",
        "identity": {k: user.get(k) for k in ("sub", "role", "email", "full_name")},
    }
