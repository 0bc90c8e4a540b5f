from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from ...dependencies import get_db
from ...security.auth import get_current_user, check_company_access, require_role, ROLES_CONTABLES, ROLES_OPERATIVOS
from ...domain.models import User
from ...domain.models_partners import Partner, PartnerCommission
from ...domain.models_compras import AccountsPayable
from ...infrastructure.unit_of_work import UnitOfWork
from ...infrastructure.logging_config import get_logger
from ...application.services_ledger import LedgerError
from ...application.services_comisiones import (
    upsert_partner, liquidar_comisiones, procesar_pago_partner, revertir_liquidacion, registrar_gasto_comision,
    ComisionesError, PartnerNoEncontradoError, CuentaPorPagarNoEncontradaError,
)

router = APIRouter(tags=["partners"])
logger = get_logger("comisiones")

class PartnerIn(BaseModel):
    company_id: int
    document_number: str
    legal_name: str
    email: str | None = None
    phone: str | None = None
    commission_rate: Decimal | None = None
    billing_frequency: str | None = None
    external_id: str | None = None

class PartnerOut(BaseModel):
    id: int
    company_id: int
    document_number: str
    legal_name: str
    email: str | None = None
    phone: str | None = None
    commission_rate: Decimal
    billing_frequency: str
    next_billing_date: datetime | None = None
    last_billing_date: datetime | None = None
    supplier_id: int | None = None
    active: bool
    class Config:
        from_attributes = True

class CommissionOut(BaseModel):
    id: int
    partner_id: int
    sales_invoice_id: int | None = None
    purchase_invoice_id: int | None = None
    order_id: str | None = None
    sale_date: date
    sale_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    commission_status: str
    payment_status: str
    class Config:
        from_attributes = True

class PayableOut(BaseModel):
    id: int
    supplier_id: int
    purchase_invoice_id: int
    number: str
    issue_date: date
    due_date: date | None = None
    amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: str
    class Config:
        from_attributes = True

class GenerarFacturasIn(BaseModel):
    empresaId: int
    partnerId: Optional[int] = None
    forzar: bool = False

class PagoPartnerIn(BaseModel):
    cuentaPorPagarId: int
    monto: Decimal
    fecha_pago: date
    tipo_pago: str = "TRANSFERENCIA"
    cuentaBancariaId: Optional[int] = None
    referencia: Optional[str] = None
    observaciones: Optional[str] = None


# ===== PARTNERS =====

@router.post("/partners", response_model=PartnerOut)
def save_partner(payload: PartnerIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_OPERATIVOS, "registrar partners")
    check_company_access(current_user, payload.company_id)
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            partner = upsert_partner(
                uow, payload.company_id, payload.document_number, payload.legal_name,
                email=payload.email, telefono=payload.phone,
                comision_porcentaje=payload.commission_rate, external_id=payload.external_id,
            )
            if payload.billing_frequency:
                partner.billing_frequency = payload.billing_frequency
            partner_id = partner.id
    except ComisionesError as e:
        raise HTTPException(400, detail=str(e))
    return db.get(Partner, partner_id)

@router.get("/partners", response_model=list[PartnerOut])
def list_partners(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    check_company_access(current_user, company_id)
    return db.query(Partner).filter(Partner.company_id == company_id).order_by(Partner.legal_name).all()

@router.get("/partners/comisiones", response_model=list[CommissionOut])
def list_commissions(
    company_id: int,
    partner_id: int | None = Query(default=None),
    commission_status: str | None = Query(default=None),
    include_hidden: bool = Query(default=False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    check_company_access(current_user, company_id)
    q = db.query(PartnerCommission).filter(PartnerCommission.company_id == company_id)
    if partner_id:
        q = q.filter(PartnerCommission.partner_id == partner_id)
    if commission_status:
        q = q.filter(PartnerCommission.commission_status == commission_status)
    if not include_hidden:
        q = q.filter(PartnerCommission.hidden_in_lists == False)  # noqa: E712
    return q.order_by(PartnerCommission.sale_date.desc(), PartnerCommission.id.desc()).all()

@router.post("/partners/comisiones/{commission_id}/asiento-gasto")
def commission_expense(commission_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_CONTABLES, "registrar gastos de comisión")
    comision = db.get(PartnerCommission, commission_id)
    if not comision:
        raise HTTPException(404, detail="Comisión no encontrada")
    check_company_access(current_user, comision.company_id)
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            entry = registrar_gasto_comision(uow, commission_id, current_user.id)
            numero = entry.number
    except (ComisionesError, LedgerError) as e:
        raise HTTPException(400, detail=str(e))
    return {"success": True, "asiento": numero}

@router.get("/cuentas-por-pagar", response_model=list[PayableOut])
def list_payables(company_id: int, status: str | None = Query(default=None), db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    check_company_access(current_user, company_id)
    q = db.query(AccountsPayable).filter(AccountsPayable.company_id == company_id)
    if status:
        q = q.filter(AccountsPayable.status == status)
    return q.order_by(AccountsPayable.due_date, AccountsPayable.id).all()

# ===== LIQUIDACIÓN (procesos batch) =====

def _generar_facturas(payload: GenerarFacturasIn, db: Session, current_user: User):
    require_role(current_user, ROLES_CONTABLES, "generar facturas de partners")
    check_company_access(current_user, payload.empresaId)
    try:
        resultado = liquidar_comisiones(
            UnitOfWork(db), payload.empresaId, current_user.id,
            partner_id=payload.partnerId, forzar=payload.forzar,
        )
    except PartnerNoEncontradoError as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    except ComisionesError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        db.rollback()
        logger.error(f"Error al generar facturas de partners: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})
    return {"success": True, "data": resultado}

@router.post("/generar-facturas-partners")
def generar_facturas_partners(payload: GenerarFacturasIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Liquida las comisiones de los partners cuya fecha de facturación llegó."""
    return _generar_facturas(payload, db, current_user)

@router.post("/generar-facturas-compra-partners")
def generar_facturas_compra_partners(payload: GenerarFacturasIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Mismo proceso que /generar-facturas-partners: ambos usan la estrategia configurada."""
    return _generar_facturas(payload, db, current_user)

@router.post("/procesar-pago-partner")
def procesar_pago(payload: PagoPartnerIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_CONTABLES, "registrar pagos a partners")
    payable = db.get(AccountsPayable, payload.cuentaPorPagarId)
    if payable is not None:
        check_company_access(current_user, payable.company_id)
    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            resultado = procesar_pago_partner(
                uow, payload.cuentaPorPagarId, payload.monto, payload.fecha_pago, payload.tipo_pago,
                current_user.id, cuenta_bancaria_id=payload.cuentaBancariaId,
                referencia=payload.referencia, observaciones=payload.observaciones,
            )
    except CuentaPorPagarNoEncontradaError as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    except (ComisionesError, LedgerError) as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Error al procesar pago de partner: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})
    return {"success": True, "data": resultado}

@router.post("/facturas-compra/{purchase_invoice_id}/revertir")
def revertir(purchase_invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Deshace una liquidación sin pagos registrados."""
    require_role(current_user, ROLES_CONTABLES, "revertir liquidaciones")
    uow = UnitOfWork(db)
    factura = uow.purchases.get(purchase_invoice_id)
    if factura is None:
        raise HTTPException(404, detail="Factura de compra no encontrada")
    check_company_access(current_user, factura.company_id)
    try:
        with uow.transaction():
            resultado = revertir_liquidacion(uow, purchase_invoice_id)
    except (ComisionesError, LedgerError) as e:
        raise HTTPException(400, detail=str(e))
    return {"success": True, "data": resultado}
