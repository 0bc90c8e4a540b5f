from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from datetime import date
from ...dependencies import get_db
from ...application.dtos import TrialBalanceOut, LedgerOut
from ...application.services_balance import (
    generar_balance_comprobacion, exportar_balance_csv, exportar_balance_pdf, get_libro_mayor,
)
from ...domain.models import User
from ...security.auth import get_current_user, check_company_access

router = APIRouter(prefix="/reports", tags=["reports"])


def _balance(db: Session, company_id: int, fecha_inicio, fecha_fin, nivel) -> TrialBalanceOut:
    if fecha_inicio and fecha_fin and fecha_inicio > fecha_fin:
        raise HTTPException(400, detail="La fecha de inicio es posterior a la fecha de fin")
    return generar_balance_comprobacion(db, company_id, fecha_inicio, fecha_fin, nivel)

@router.get("/trial-balance", response_model=TrialBalanceOut)
def trial_balance(
    company_id: int = Query(..., description="ID de la empresa"),
    fecha_inicio: date | None = Query(default=None),
    fecha_fin: date | None = Query(default=None),
    nivel: int | None = Query(default=None, ge=1, description="Nivel de cuenta a reportar"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    check_company_access(current_user, company_id)
    return _balance(db, company_id, fecha_inicio, fecha_fin, nivel)

@router.get("/trial-balance/export")
def trial_balance_export(
    company_id: int = Query(..., description="ID de la empresa"),
    formato: str = Query(default="csv", pattern="^(csv|pdf)$"),
    fecha_inicio: date | None = Query(default=None),
    fecha_fin: date | None = Query(default=None),
    nivel: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    check_company_access(current_user, company_id)
    balance = _balance(db, company_id, fecha_inicio, fecha_fin, nivel)
    sufijo = f"{fecha_inicio or 'inicio'}_{fecha_fin or 'hoy'}"
    if formato == "pdf":
        return Response(
            content=exportar_balance_pdf(db, balance),
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="balance_comprobacion_{sufijo}.pdf"'},
        )
    return Response(
        content=exportar_balance_csv(balance).encode("utf-8-sig"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="balance_comprobacion_{sufijo}.csv"'},
    )

@router.get("/ledger", response_model=LedgerOut)
def ledger(
    company_id: int = Query(..., description="ID de la empresa"),
    account_code: str = Query(..., description="Código de cuenta"),
    fecha_inicio: date | None = Query(default=None),
    fecha_fin: date | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    check_company_access(current_user, company_id)
    mayor = get_libro_mayor(db, company_id, account_code, fecha_inicio, fecha_fin)
    if mayor is None:
        raise HTTPException(404, detail=f"Cuenta {account_code} no encontrada")
    return mayor
