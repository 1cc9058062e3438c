# backoffice/services/config.py
from __future__ import annotations
import os
from decimal import Decimal, InvalidOperation
from typing import List

from dotenv import load_dotenv

# Load .env if present (local/dev). Hosted environments already export their vars.
load_dotenv()


def env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None: return default
    try:
        return bool(int(v))
    except ValueError:
        return str(v).strip().lower() in ("true", "yes", "y", "on")

def env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None: return default
    try:
        return int(v)
    except ValueError:
        return default

def env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return v if v is not None else default

def env_decimal(name: str, default: str) -> Decimal:
    v = os.getenv(name)
    try:
        return Decimal(str(v if v is not None else default).strip())
    except InvalidOperation:
        return Decimal(default)

def env_list(name: str, default: str = "") -> List[str]:
    raw = env_str(name, default)
    return [p.strip() for p in raw.split(",") if p.strip()]

# Environment
ENV = env_str("APP_ENV", env_str("ENV", "development")).lower().strip()   # development | dev | prod

# JWT & Cookies
JWT_SECRET = env_str("JWT_SECRET", "dev-secret-please-change")
AUTH_EXP_MINUTES = env_int("AUTH_EXP_MINUTES", 60 * 24 * 7)   # 7 days
TOKEN_ISSUER = env_str("TOKEN_ISSUER", "backoffice.local")

AUTH_COOKIE_SECURE = env_bool("AUTH_COOKIE_SECURE", False)
AUTH_COOKIE_SAMESITE = env_str("AUTH_COOKIE_SAMESITE", "lax").lower()  # lax|strict|none
COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN")  # optional in local

# Rate limits
RL_LOGIN_IP_MAX = env_int("RL_LOGIN_IP_MAX", 50)      # per window
RL_LOGIN_USER_MAX = env_int("RL_LOGIN_USER_MAX", 10)  # per window
RL_LOGIN_WINDOW_SEC = env_int("RL_LOGIN_WINDOW_SEC", 15 * 60)

# CORS
CORS_ORIGINS = env_list(
    "CORS_ORIGINS",
    "http://localhost,http://127.0.0.1,http://localhost:5173,http://127.0.0.1:5173",
)

# Logging
LOG_LEVEL = env_str("LOG_LEVEL", "INFO")
LOG_FORMAT = env_str("LOG_FORMAT", "standard")   # standard | json

# Accounting integration (outbound webhook + inbound summary API)
COMPANY_NAME = env_str("COMPANY_NAME", "backoffice")
ACCOUNTING_WEBHOOK_URL = env_str("ACCOUNTING_WEBHOOK_URL", "")
ACCOUNTING_API_KEY = env_str("ACCOUNTING_API_KEY", "")
WEBHOOK_TIMEOUT_SEC = env_int("WEBHOOK_TIMEOUT_SEC", 10)

# Contracts
DEFAULT_DEPOSIT_TARGET = env_decimal("DEFAULT_DEPOSIT_TARGET", "50000")
PAYMENT_ACCOUNTS = env_list(
    "PAYMENT_ACCOUNTS",
    "Sberbank,Alfa,Tinkoff,Safe,Settlement account",
)

# Employee bonus plan
BONUS_BASE_SALARY = env_decimal("BONUS_BASE_SALARY", "30000")
BONUS_PAYMENT_TARGET_PER_CLIENT = env_decimal("BONUS_PAYMENT_TARGET_PER_CLIENT", "50000")
BONUS_REVIEWS_THRESHOLD = env_int("BONUS_REVIEWS_THRESHOLD", 5)
BONUS_REVIEWS_AMOUNT = env_decimal("BONUS_REVIEWS_AMOUNT", "5000")
BONUS_PER_AGENT = env_decimal("BONUS_PER_AGENT", "3000")
