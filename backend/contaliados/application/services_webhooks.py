"""
Ingesta de webhooks de pedidos (order.paid / order.cancelled)
=============================================================

El payload crudo se guarda en external_events y se confirma antes de
procesarlo, de modo que un fallo posterior deja el evento disponible para
reintento. El procesamiento de negocio corre en una sola transacción.

La autenticación es un secreto compartido en X-Webhook-Secret, sin firma del
cuerpo ni protección contra replay.
"""
import hmac
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.models_eventos import ExternalEvent
from ..domain.models_partners import PartnerCommission
from ..domain.enums import EstadoFactura, EstadoComision, EstadoPagoComision, TipoNotaCredito
from ..infrastructure.unit_of_work import UnitOfWork
from ..infrastructure.logging_config import get_logger
from .services_ledger import money, generar_asiento_cobro
from .services_ventas import upsert_cliente, crear_factura_venta, crear_nota_credito, eliminar_factura_no_enviada
from .services_comisiones import upsert_partner, tasa_iva

logger = get_logger("webhooks")

EVENTO_PEDIDO_PAGADO = "order.paid"
EVENTO_PEDIDO_CANCELADO = "order.cancelled"


class WebhookError(Exception):
    """Excepción base de la ingesta de webhooks"""
    pass


class WebhookAuthError(WebhookError):
    pass


class EventoNoSoportadoError(WebhookError):
    pass


# ===== PAYLOAD (versión 2.0) =====

class PartnerPayload(BaseModel):
    documento: str
    razon_social: str
    email: Optional[str] = None
    telefono: Optional[str] = None
    comision_porcentaje: Optional[float] = None
    external_id: Optional[str] = None


class CustomerPayload(BaseModel):
    documento: str
    nombre: str
    tipo_documento: str = "CI"
    email: Optional[str] = None
    telefono: Optional[str] = None
    direccion: Optional[str] = None


class ItemPayload(BaseModel):
    codigo: Optional[str] = None
    descripcion: str
    cantidad: float = 1
    precio_unitario: float
    tasa_iva: Optional[float] = None
    partner: Optional[PartnerPayload] = None


class AmountsPayload(BaseModel):
    subtotal: float = 0
    tax: float = 0
    total: float = 0
    gateway_fee: Optional[float] = None


class PaymentPayload(BaseModel):
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None


class OrderWebhookPayload(BaseModel):
    version: str = "2.0"
    event: str
    empresa_id: int
    order_id: str
    customer: Optional[CustomerPayload] = None
    items: List[ItemPayload] = Field(default_factory=list)
    amounts: Optional[AmountsPayload] = None
    payment: Optional[PaymentPayload] = None
    reason: Optional[str] = None


def verificar_secreto(recibido: Optional[str]):
    esperado = settings.webhook_secret
    if not esperado:
        logger.warning("WEBHOOK_SECRET no configurado: se rechazan todos los webhooks")
        raise WebhookAuthError("Invalid webhook secret")
    if not recibido or not hmac.compare_digest(recibido, esperado):
        raise WebhookAuthError("Invalid webhook secret")


def registrar_evento(db: Session, payload: Dict[str, Any]) -> ExternalEvent:
    """Guarda el payload crudo y confirma de inmediato."""
    empresa_id = payload.get("empresa_id")
    evento = ExternalEvent(
        company_id=empresa_id if isinstance(empresa_id, int) else None,
        event_type=str(payload.get("event") or "desconocido"),
        payload=payload,
    )
    db.add(evento)
    db.commit()
    db.refresh(evento)
    logger.info(f"Evento {evento.id} ({evento.event_type}) registrado, pedido {payload.get('order_id')}")
    return evento


def _fecha_pedido(p: OrderWebhookPayload) -> date:
    if p.payment and p.payment.paid_at:
        return p.payment.paid_at.date()
    return date.today()


def _procesar_pedido_pagado(uow: UnitOfWork, p: OrderWebhookPayload, evento: ExternalEvent,
                            actor_id: Optional[int]) -> Dict[str, Any]:
    existente = uow.sales.by_order(p.empresa_id, p.order_id)
    if existente is not None:
        logger.info(f"Pedido {p.order_id} ya facturado en {existente.full_number}; evento {evento.id} sin efecto")
        evento.sales_invoice_id = existente.id
        return {
            "factura_id": existente.id,
            "numero_factura": existente.full_number,
            "cliente_id": existente.customer_id,
            "comisiones_registradas": 0,
            "duplicado": True,
        }
    if p.customer is None:
        raise WebhookError("El pedido no incluye datos del cliente")
    if not p.items:
        raise WebhookError("El pedido no incluye items")

    company = uow.companies.get(p.empresa_id)
    if company is None:
        raise WebhookError(f"Empresa {p.empresa_id} no encontrada")
    iva_defecto = tasa_iva(uow, company.country_code)

    c = p.customer
    cliente = upsert_cliente(
        uow, p.empresa_id, c.documento, c.nombre, tipo_documento=c.tipo_documento,
        email=c.email, telefono=c.telefono, direccion=c.direccion,
    )

    lineas = []
    for item in p.items:
        partner_id = None
        if item.partner is not None:
            partner = upsert_partner(
                uow, p.empresa_id, item.partner.documento, item.partner.razon_social,
                email=item.partner.email, telefono=item.partner.telefono,
                comision_porcentaje=item.partner.comision_porcentaje,
                external_id=item.partner.external_id,
            )
            partner_id = partner.id
        lineas.append({
            "codigo": item.codigo,
            "descripcion": item.descripcion,
            "cantidad": item.cantidad,
            "precio_unitario": item.precio_unitario,
            "tasa_iva": item.tasa_iva if item.tasa_iva is not None else iva_defecto,
            "partner_id": partner_id,
        })

    fecha = _fecha_pedido(p)
    metodo = p.payment.method if p.payment else None
    factura = crear_factura_venta(
        uow, p.empresa_id, cliente.id, lineas, fecha, actor_id,
        estado=EstadoFactura.PAGADA.value,
        external_order_id=p.order_id,
        payment_method=metodo,
    )

    comisiones = 0
    for linea in factura.lines:
        if not linea.partner_id:
            continue
        partner = uow.partners.get(linea.partner_id)
        tasa = Decimal(str(partner.commission_rate))
        uow.commissions.add(PartnerCommission(
            company_id=p.empresa_id,
            partner_id=partner.id,
            sales_invoice_id=factura.id,
            sales_invoice_line_id=linea.id,
            order_id=p.order_id,
            sale_date=fecha,
            sale_amount=linea.subtotal,
            commission_rate=tasa,
            commission_amount=money(Decimal(str(linea.subtotal)) * tasa / 100),
            commission_status=EstadoComision.PENDIENTE.value,
            payment_status=EstadoPagoComision.PENDIENTE.value,
        ))
        comisiones += 1

    cobro = generar_asiento_cobro(uow, factura, metodo, fecha, actor_id)
    factura.payment_entry_id = cobro.id
    evento.sales_invoice_id = factura.id
    uow.db.flush()

    if p.amounts and money(p.amounts.total) != money(factura.total):
        logger.warning(
            f"Pedido {p.order_id}: total informado {p.amounts.total} difiere del calculado {factura.total}"
        )

    return {
        "factura_id": factura.id,
        "numero_factura": factura.full_number,
        "cliente_id": cliente.id,
        "comisiones_registradas": comisiones,
    }


def _procesar_pedido_cancelado(uow: UnitOfWork, p: OrderWebhookPayload, evento: ExternalEvent,
                               actor_id: Optional[int]) -> Dict[str, Any]:
    factura = uow.sales.by_order(p.empresa_id, p.order_id)
    if factura is None:
        raise WebhookError(f"No existe factura para el pedido {p.order_id}")
    if factura.status == EstadoFactura.ANULADA.value:
        return {"factura_id": factura.id, "numero_factura": factura.full_number, "accion": "ya_anulada"}

    numero = factura.full_number
    if not factura.dgi_sent:
        factura_id = factura.id
        uow.db.query(ExternalEvent).filter(ExternalEvent.sales_invoice_id == factura_id).update(
            {"sales_invoice_id": None}, synchronize_session="fetch"
        )
        eliminar_factura_no_enviada(uow, factura_id)
        return {"factura_id": factura_id, "numero_factura": numero, "accion": "eliminada"}

    nota = crear_nota_credito(
        uow, factura.id, TipoNotaCredito.TOTAL.value,
        p.reason or f"Cancelación del pedido {p.order_id}", actor_id,
    )
    evento.sales_invoice_id = factura.id
    evento.credit_note_id = nota.id
    return {
        "factura_id": factura.id,
        "numero_factura": numero,
        "accion": "nota_credito",
        "nota_credito_id": nota.id,
        "numero_nota_credito": f"{nota.series}-{nota.number}",
    }


PROCESADORES = {
    EVENTO_PEDIDO_PAGADO: _procesar_pedido_pagado,
    EVENTO_PEDIDO_CANCELADO: _procesar_pedido_cancelado,
}


def procesar_evento(db: Session, evento_id: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Procesa un evento registrado. En error revierte lo de negocio, guarda el
    mensaje en el evento, incrementa reintentos y relanza la excepción.
    """
    uow = UnitOfWork(db)
    evento = uow.events.get(evento_id)
    if evento is None:
        raise WebhookError(f"Evento {evento_id} no encontrado")
    try:
        p = OrderWebhookPayload.model_validate(evento.payload)
        procesador = PROCESADORES.get(p.event)
        if procesador is None:
            raise EventoNoSoportadoError(f"Evento no soportado: {p.event}")
        resultado = procesador(uow, p, evento, actor_id)
        evento.processed = True
        evento.processed_at = datetime.now()
        evento.error = None
        uow.commit()
        logger.info(f"Evento {evento_id} procesado: {resultado}")
        return resultado
    except Exception as e:
        uow.rollback()
        evento = uow.events.get(evento_id)
        evento.error = str(e)
        evento.retries = (evento.retries or 0) + 1
        uow.commit()
        logger.error(f"Error procesando evento {evento_id} (reintento {evento.retries}): {e}", exc_info=True)
        raise


def reintentar_evento(db: Session, evento_id: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
    evento = db.get(ExternalEvent, evento_id)
    if evento is None:
        raise WebhookError(f"Evento {evento_id} no encontrado")
    if evento.processed:
        raise WebhookError(f"El evento {evento_id} ya fue procesado")
    logger.info(f"Reintento manual del evento {evento_id}")
    return procesar_evento(db, evento_id, actor_id)


def listar_eventos(db: Session, company_id: int, solo_pendientes: bool = False, limit: int = 100) -> List[ExternalEvent]:
    q = db.query(ExternalEvent).filter(ExternalEvent.company_id == company_id)
    if solo_pendientes:
        q = q.filter(ExternalEvent.processed == False)  # noqa: E712
    return q.order_by(ExternalEvent.created_at.desc(), ExternalEvent.id.desc()).limit(limit).all()
