# backoffice/services/auth_service.py
from __future__ import annotations
from typing import Any, Dict, Literal, Optional, Tuple, cast
from datetime import datetime, timedelta, timezone
import uuid
import jwt  # PyJWT
from passlib.hash import argon2
from backoffice.services.config import (
    JWT_SECRET, AUTH_EXP_MINUTES, TOKEN_ISSUER,
    AUTH_COOKIE_SECURE, AUTH_COOKIE_SAMESITE, COOKIE_DOMAIN,
)

TOKEN_COOKIE_NAME = "access_token"

ALG = "HS256"

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

# ───────────────────────────────────────────────────────────────────────────────
# Password hashing (Argon2)
# ───────────────────────────────────────────────────────────────────────────────
def hash_password(plaintext: str) -> str:
    return argon2.hash(plaintext)

def verify_password(plaintext: str, hashed: str) -> bool:
    try:
        return argon2.verify(plaintext, hashed)
    except (ValueError, TypeError):
        return False

def verify_and_upgrade_password(plaintext: str, hashed: str) -> Tuple[bool, Optional[str]]:
    """
    Verify and optionally upgrade hash params. Returns (ok, new_hash_or_None).
    """
    try:
        ok = argon2.verify(plaintext, hashed)
        if not ok:
            return False, None
        if argon2.identify(hashed) and argon2.needs_update(hashed):
            return True, argon2.hash(plaintext)
        return True, None
    except (ValueError, TypeError):
        return False, None

# ───────────────────────────────────────────────────────────────────────────────
# JWT helpers
# ───────────────────────────────────────────────────────────────────────────────
def _encode(payload: Dict[str, Any], expires_in: timedelta) -> str:
    now = _utcnow()
    to_encode = {
        "iss": TOKEN_ISSUER,
        **payload,
        "jti": str(uuid.uuid4()),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=ALG)

def _decode(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALG], options={"require": ["exp", "iat", "sub"]},
                          issuer=TOKEN_ISSUER)
    except jwt.PyJWTError:
        return None

def create_token(identity: Dict[str, Any], ttl_minutes: int = AUTH_EXP_MINUTES) -> str:
    """
    Access token for an identity; `identity` must carry `sub` (user id) and `role`.
    """
    if not identity.get("sub"):
        raise ValueError("identity requires 'sub'")
    return _encode({"typ": "access", **identity}, timedelta(minutes=int(ttl_minutes)))

def decode_token(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode an access token; None when missing, expired, tampered or not an access token."""
    if not token:
        return None
    claims = _decode(token)
    if not claims or claims.get("typ") != "access":
        return None
    return claims

# ───────────────────────────────────────────────────────────────────────────────
# Cookie helpers
# ───────────────────────────────────────────────────────────────────────────────
def normalize_samesite(val: str) -> Literal["lax", "strict", "none"]:
    v = (val or "").lower().strip()
    if v == "strict":
        return cast(Literal["strict"], "strict")
    if v == "none":
        return cast(Literal["none"], "none")
    return cast(Literal["lax"], "lax")

def cookie_args(max_age: Optional[int] = None, httponly: bool = True) -> Dict[str, Any]:
    args: Dict[str, Any] = {
        "httponly": httponly,
        "secure": AUTH_COOKIE_SECURE,
        "samesite": normalize_samesite(AUTH_COOKIE_SAMESITE),
        "path": "/",
    }
    if max_age is not None:
        args["max_age"] = max_age
    if COOKIE_DOMAIN:
        args["domain"] = COOKIE_DOMAIN
    return args
