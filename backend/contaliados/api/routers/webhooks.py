from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Any, Dict, Optional
from ...dependencies import get_db
from ...security.auth import get_current_user, check_company_access, require_role, ROLES_CONTABLES
from ...domain.models import User
from ...domain.models_eventos import ExternalEvent
from ...infrastructure.logging_config import get_logger
from ...application.services_webhooks import (
    verificar_secreto, registrar_evento, procesar_evento, reintentar_evento, listar_eventos,
    WebhookAuthError, WebhookError,
)

router = APIRouter(tags=["webhooks"])
logger = get_logger("webhooks")

class EventOut(BaseModel):
    id: int
    company_id: int | None = None
    event_type: str
    source: str
    payload: Dict[str, Any]
    processed: bool
    processed_at: datetime | None = None
    retries: int
    error: str | None = None
    sales_invoice_id: int | None = None
    credit_note_id: int | None = None
    created_at: datetime
    class Config:
        from_attributes = True

@router.post("/webhooks-orders")
def webhook_orders(
    payload: Dict[str, Any] = Body(...),
    x_webhook_secret: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    """
    Recibe pedidos de la tienda externa. El evento se guarda antes de
    procesarse; si el proceso falla queda con el error para reintento.
    """
    try:
        verificar_secreto(x_webhook_secret)
    except WebhookAuthError as e:
        logger.warning(f"Webhook rechazado: {e}")
        return JSONResponse(status_code=401, content={"error": str(e)})

    evento = registrar_evento(db, payload)
    try:
        resultado = procesar_evento(db, evento.id)
    except Exception as e:
        return JSONResponse(status_code=500, content={"error": str(e), "evento_id": evento.id})
    return {"success": True, "data": resultado}

@router.get("/webhooks/events", response_model=list[EventOut])
def list_events(
    company_id: int,
    pending_only: bool = Query(default=False),
    limit: int = Query(default=100, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    check_company_access(current_user, company_id)
    return listar_eventos(db, company_id, solo_pendientes=pending_only, limit=limit)

@router.post("/webhooks/events/{event_id}/retry")
def retry_event(event_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_CONTABLES, "reintentar eventos")
    evento = db.get(ExternalEvent, event_id)
    if not evento:
        raise HTTPException(404, detail="Evento no encontrado")
    if evento.company_id is not None:
        check_company_access(current_user, evento.company_id)
    try:
        resultado = reintentar_evento(db, event_id, current_user.id)
    except WebhookError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    return {"success": True, "data": resultado}
