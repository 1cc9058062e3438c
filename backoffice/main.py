# backoffice/main.py
from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ── Cookie guardrails BEFORE importing config/auth (they read env at import time) ──
APP_ENV = os.getenv("APP_ENV", os.getenv("ENV", "development")).lower().strip()
if APP_ENV in {"prod", "production"}:
    # Enforce: SameSite=None + Secure=True for prod
    os.environ["AUTH_COOKIE_SAMESITE"] = "none"
    os.environ["AUTH_COOKIE_SECURE"] = "1"
else:
    os.environ.setdefault("AUTH_COOKIE_SAMESITE", "lax")
    os.environ.setdefault("AUTH_COOKIE_SECURE", "0")

from backoffice.api import (  # noqa: E402
    admin_users,
    agents,
    auth_api,
    bonuses,
    clients,
    dashboard,
    integrations,
    payments,
    receipts,
    health as health_api,
)
from backoffice.logging_config import setup_logging  # noqa: E402
from backoffice.services import config  # noqa: E402
from backoffice.services.errors import setup_exception_handlers  # noqa: E402
from backoffice.utils.request_id import RequestIDMiddleware  # noqa: E402

setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
logger = logging.getLogger("backoffice")

# ── App ──
app = FastAPI(title="Installment Back-Office", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)
setup_exception_handlers(app)


# ── Startup: validate cookie guardrails ──
@app.on_event("startup")
async def on_startup() -> None:
    if APP_ENV in {"prod", "production"}:
        if not config.AUTH_COOKIE_SECURE or config.AUTH_COOKIE_SAMESITE.lower() != "none":
            raise RuntimeError("Cookie settings invalid for production (require SameSite=None and Secure=True).")
        if config.JWT_SECRET in ("", "dev-secret-please-change"):
            raise RuntimeError("JWT_SECRET must be set in production.")
    if not config.ACCOUNTING_WEBHOOK_URL:
        logger.info("ACCOUNTING_WEBHOOK_URL not set; accounting events are disabled")
    logger.info("Back-office API started (env=%s)", APP_ENV)


# ── Routers carry their full /api/... prefixes ──
app.include_router(auth_api.router)
app.include_router(admin_users.router)
app.include_router(clients.router)
app.include_router(payments.router)
app.include_router(receipts.router)
app.include_router(dashboard.router)
app.include_router(bonuses.router)
app.include_router(agents.router)
app.include_router(integrations.router)
app.include_router(health_api.router)   # /healthz, /readyz


@app.get("/")
def root() -> dict:
    return {"status": "OK", "docs": "/docs"}
