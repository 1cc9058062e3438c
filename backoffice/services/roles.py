# backoffice/services/roles.py
"""
Roles and the permission predicate per operation.

A user carries exactly one role. Routes ask for a Permission, never for a
role name; ROLE_PERMISSIONS is the single place that decides who may do what.
Employees work on their own records only: routes narrow queries with
``scope_employee_id``.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional
from fastapi import Request, HTTPException, status

from backoffice.services.auth_service import decode_token, TOKEN_COOKIE_NAME


class Role(str, Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


class Permission(str, Enum):
    VIEW_ALL_CLIENTS = "view_all_clients"
    MANAGE_CLIENTS = "manage_clients"
    DELETE_CLIENTS = "delete_clients"
    RESET_SCHEDULE = "reset_schedule"
    MANAGE_PAYMENTS = "manage_payments"
    DELETE_PAYMENTS = "delete_payments"
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_ALL_METRICS = "view_all_metrics"
    MANAGE_AGENTS = "manage_agents"
    VIEW_ALL_AGENTS = "view_all_agents"
    MANAGE_BONUSES = "manage_bonuses"
    MANAGE_INCENTIVE_RULES = "manage_incentive_rules"
    VIEW_PAYMENT_HISTORY = "view_payment_history"
    MANAGE_USERS = "manage_users"
    SYNC_METRICS = "sync_metrics"


_EMPLOYEE: FrozenSet[Permission] = frozenset({
    Permission.MANAGE_CLIENTS,
    Permission.RESET_SCHEDULE,
    Permission.MANAGE_PAYMENTS,
    Permission.VIEW_DASHBOARD,
    Permission.MANAGE_AGENTS,
    Permission.MANAGE_BONUSES,
})

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.EMPLOYEE: _EMPLOYEE,
}


def parse_role(value: Any) -> Optional[Role]:
    try:
        return Role(str(value or "").lower().strip())
    except ValueError:
        return None


def can(user: Optional[Mapping[str, Any]], permission: Permission) -> bool:
    role = parse_role((user or {}).get("role"))
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS[role]


def user_id(user: Mapping[str, Any]) -> str:
    return str(user.get("sub") or "")


def scope_employee_id(user: Mapping[str, Any], all_permission: Permission,
                      requested: Optional[str] = None) -> Optional[str]:
    """
    Employee filter for a query: whatever was requested when the user may see
    everyone's records, otherwise always the user's own id.
    """
    if can(user, all_permission):
        return requested or None
    return user_id(user)


def owns_or_can(user: Mapping[str, Any], record: Mapping[str, Any], all_permission: Permission) -> bool:
    if can(user, all_permission):
        return True
    return str(record.get("employee_id") or "") == user_id(user)


def _bearer(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def _current_user(request: Request) -> dict | None:
    tok = _bearer(request) or request.cookies.get(TOKEN_COOKIE_NAME)
    return decode_token(tok) if tok else None


def require_user(request: Request) -> dict:
    user = _current_user(request)
    if not user or parse_role(user.get("role")) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def require_permission(permission: Permission) -> Callable[[Request], dict]:
    """Dependency factory: authenticated user whose role grants `permission`."""

    def _dep(request: Request) -> dict:
        user = require_user(request)
        if not can(user, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission",
            )
        return user

    return _dep
