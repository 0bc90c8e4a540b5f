from fastapi import APIRouter, HTTPException, Query, Depends
from pydantic import BaseModel
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
from ...dependencies import get_db
from ...security.auth import get_current_user, check_company_access, require_role, ROLES_OPERATIVOS, ROLES_CONTABLES
from ...domain.models import User
from ...domain.models_ventas import Customer, SalesInvoice, CreditNote
from ...domain.enums import EstadoFactura
from ...infrastructure.unit_of_work import UnitOfWork
from ...infrastructure.dgi_client import DGIError
from ...infrastructure.logging_config import get_logger
from ...application.services_ledger import LedgerError
from ...application.services_ventas import (
    upsert_cliente, crear_factura_venta, registrar_cobro, crear_nota_credito, enviar_factura_dgi,
    VentasError, DocumentoNoEncontradoError,
)

router = APIRouter(prefix="/ventas", tags=["ventas"])
logger = get_logger("ventas")

class CustomerIn(BaseModel):
    company_id: int
    document_number: str
    name: str
    document_type: str = "CI"
    email: str | None = None
    phone: str | None = None
    address: str | None = None

class CustomerOut(BaseModel):
    id: int
    company_id: int
    document_type: str
    document_number: str
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    class Config:
        from_attributes = True

class InvoiceLineIn(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal
    tax_rate: Decimal = Decimal("22")
    code: str | None = None
    partner_id: int | None = None

class InvoiceIn(BaseModel):
    company_id: int
    customer_id: int
    issue_date: date
    series: str = "A"
    due_days: int = 30
    lines: list[InvoiceLineIn]

class InvoiceLineOut(BaseModel):
    id: int
    line_number: int
    code: str | None = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    partner_id: int | None = None
    class Config:
        from_attributes = True

class InvoiceOut(BaseModel):
    id: int
    company_id: int
    customer_id: int
    series: str
    number: str
    issue_date: date
    due_date: date | None = None
    currency: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    status: str
    payment_method: str | None = None
    external_order_id: str | None = None
    dgi_sent: bool
    dgi_cae: str | None = None
    journal_entry_id: int | None = None
    payment_entry_id: int | None = None
    credit_note_id: int | None = None
    lines: list[InvoiceLineOut] = []
    class Config:
        from_attributes = True

class CobroIn(BaseModel):
    payment_type: str
    payment_date: date

class CreditNoteItemIn(BaseModel):
    linea_id: int
    cantidad: Decimal

class CreditNoteIn(BaseModel):
    type: str = "total"  # total / parcial
    reason: str
    issue_date: Optional[date] = None
    items: List[CreditNoteItemIn] | None = None

class CreditNoteOut(BaseModel):
    id: int
    sales_invoice_id: int
    series: str
    number: str
    issue_date: date
    type: str
    reason: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    status: str
    journal_entry_id: int | None = None
    class Config:
        from_attributes = True


def _error(e: Exception, accion: str):
    if isinstance(e, DocumentoNoEncontradoError):
        raise HTTPException(404, detail=str(e))
    if isinstance(e, (VentasError, LedgerError, DGIError)):
        raise HTTPException(400, detail=str(e))
    logger.error(f"Error al {accion}: {e}", exc_info=True)
    raise HTTPException(500, detail=f"Error al {accion}: {str(e)}")

def _invoice(db: Session, invoice_id: int, current_user: User) -> SalesInvoice:
    factura = db.get(SalesInvoice, invoice_id)
    if not factura:
        raise HTTPException(404, detail="Factura no encontrada")
    check_company_access(current_user, factura.company_id)
    return factura

# ===== CLIENTES =====

@router.post("/clientes", response_model=CustomerOut)
def upsert_customer(payload: CustomerIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_OPERATIVOS, "registrar clientes")
    check_company_access(current_user, payload.company_id)
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            cliente = upsert_cliente(
                uow, payload.company_id, payload.document_number, payload.name,
                tipo_documento=payload.document_type, email=payload.email,
                telefono=payload.phone, direccion=payload.address,
            )
            cliente_id = cliente.id
    except Exception as e:
        _error(e, "guardar cliente")
    return db.get(Customer, cliente_id)

@router.get("/clientes", response_model=list[CustomerOut])
def list_customers(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    check_company_access(current_user, company_id)
    return db.query(Customer).filter(Customer.company_id == company_id).order_by(Customer.name).all()

# ===== FACTURAS =====

@router.post("/facturas", response_model=InvoiceOut)
def create_invoice(payload: InvoiceIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_OPERATIVOS, "emitir facturas")
    check_company_access(current_user, payload.company_id)
    cliente = db.get(Customer, payload.customer_id)
    if not cliente or cliente.company_id != payload.company_id:
        raise HTTPException(404, detail="Cliente no encontrado")
    lineas = [
        {
            "descripcion": l.description, "cantidad": l.quantity, "precio_unitario": l.unit_price,
            "tasa_iva": l.tax_rate, "codigo": l.code, "partner_id": l.partner_id,
        }
        for l in payload.lines
    ]
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            factura = crear_factura_venta(
                uow, payload.company_id, payload.customer_id, lineas, payload.issue_date,
                current_user.id, serie=payload.series, dias_vencimiento=payload.due_days,
            )
            factura_id = factura.id
    except Exception as e:
        _error(e, "crear factura")
    return db.get(SalesInvoice, factura_id)

@router.get("/facturas", response_model=list[InvoiceOut])
def list_invoices(
    company_id: int,
    status: str | None = Query(default=None),
    include_hidden: bool = Query(default=False, description="Incluir documentos de períodos cerrados"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    check_company_access(current_user, company_id)
    q = db.query(SalesInvoice).options(selectinload(SalesInvoice.lines)).filter(SalesInvoice.company_id == company_id)
    if status:
        q = q.filter(SalesInvoice.status == status)
    if not include_hidden:
        q = q.filter(SalesInvoice.hidden_in_lists == False)  # noqa: E712
    return q.order_by(SalesInvoice.issue_date.desc(), SalesInvoice.id.desc()).all()

@router.get("/facturas/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _invoice(db, invoice_id, current_user)

@router.post("/facturas/{invoice_id}/cobro", response_model=InvoiceOut)
def register_payment(invoice_id: int, payload: CobroIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_OPERATIVOS, "registrar cobros")
    _invoice(db, invoice_id, current_user)
    if not payload.payment_type:
        raise HTTPException(400, detail="El tipo de pago es obligatorio")
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            registrar_cobro(uow, invoice_id, payload.payment_type, payload.payment_date, current_user.id)
    except Exception as e:
        _error(e, "registrar cobro")
    return db.get(SalesInvoice, invoice_id)

@router.post("/facturas/{invoice_id}/nota-credito", response_model=CreditNoteOut)
def create_credit_note(invoice_id: int, payload: CreditNoteIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_CONTABLES, "emitir notas de crédito")
    _invoice(db, invoice_id, current_user)
    items = [{"linea_id": i.linea_id, "cantidad": i.cantidad} for i in payload.items] if payload.items else None
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            nota = crear_nota_credito(
                uow, invoice_id, payload.type, payload.reason, current_user.id,
                items=items, fecha=payload.issue_date,
            )
            nota_id = nota.id
    except Exception as e:
        _error(e, "crear nota de crédito")
    return db.get(CreditNote, nota_id)

@router.post("/facturas/{invoice_id}/enviar-dgi")
def send_to_dgi(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_OPERATIVOS, "enviar facturas a DGI")
    factura = _invoice(db, invoice_id, current_user)
    if factura.status == EstadoFactura.ANULADA.value:
        raise HTTPException(400, detail="La factura ya está anulada")
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            resultado = enviar_factura_dgi(uow, invoice_id)
    except Exception as e:
        _error(e, "enviar factura a DGI")
    return {
        "success": True,
        "cae": resultado["cae"],
        "simulado": resultado.get("simulado", False),
        "mensaje": resultado.get("mensaje"),
        "enviado_el": datetime.now().isoformat(),
    }
