# backoffice/api/health.py
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from backoffice.storage.db import ping

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Health"])


@router.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"status": "ok", "service": "backoffice"}


@router.get("/readyz")
def readyz() -> Dict[str, Any]:
    try:
        db = ping()
    except Exception as e:
        logger.warning("Readiness DB ping failed: %s", e)
        raise HTTPException(status_code=503, detail=f"DB ping failed: {e}")
    return {"status": "ok", "db": db}
