# backoffice/api/receipts.py
from __future__ import annotations

from typing import Any, Dict, Optional, Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backoffice.api.clients import load_owned_client
from backoffice.services.roles import Permission, require_permission, user_id
from backoffice.services.security import require_csrf
from backoffice.storage import payments_store, receipts_store
from backoffice.storage.db import get_conn

router = APIRouter(prefix="/api/clients", tags=["Receipts"])

Staff = Annotated[Dict[str, Any], Depends(require_permission(Permission.MANAGE_PAYMENTS))]
CSRF = Annotated[None, Depends(require_csrf)]

ALLOWED_MIME = {"application/pdf", "image/jpeg", "image/png", "image/webp"}


class ReceiptIn(BaseModel):
    payment_id: Optional[str] = None
    file_name: str = Field(min_length=1, max_length=255)
    file_path: str = Field(min_length=1, max_length=1024)
    file_size: int = Field(ge=0)
    mime_type: str


@router.get("/{client_id}/receipts")
def list_receipts(client_id: str, user: Staff, payment_id: Optional[str] = None) -> Dict[str, Any]:
    conn = get_conn()
    try:
        load_owned_client(conn, client_id, user)
        items = receipts_store.list_receipts(conn, client_id, payment_id=payment_id)
    finally:
        conn.close()
    return {"count": len(items), "items": items}


@router.post("/{client_id}/receipts")
def register_receipt(client_id: str, payload: ReceiptIn, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    if payload.mime_type not in ALLOWED_MIME:
        raise HTTPException(status_code=400, detail=f"Unsupported receipt type '{payload.mime_type}'")
    conn = get_conn()
    try:
        load_owned_client(conn, client_id, user)
        if payload.payment_id:
            payment = payments_store.get_payment(conn, payload.payment_id)
            if str(payment.get("client_id")) != client_id:
                raise HTTPException(status_code=400, detail="Payment belongs to another client")
        receipt_id = receipts_store.register_receipt(
            conn, client_id, payload.payment_id, payload.file_name, payload.file_path,
            payload.file_size, payload.mime_type, user_id(user),
        )
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": receipt_id}


@router.delete("/{client_id}/receipts/{receipt_id}")
def delete_receipt(client_id: str, receipt_id: str, user: Staff, _csrf_ok: CSRF) -> Dict[str, Any]:
    conn = get_conn()
    try:
        load_owned_client(conn, client_id, user)
        receipts_store.delete_receipt(conn, client_id, receipt_id)
    finally:
        conn.close()
    return {"status": "SUCCESS", "id": receipt_id}
