from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime
from ...dependencies import get_db
from ...domain.models import Period, FiscalYear, Company, User
from ...domain.enums import UserRole
from ...security.auth import get_current_user, check_company_access, require_role, ROLES_CONTABLES
from ...application.dtos import ClosureAuditOut
from ...application.services_cierre_periodo import (
	crear_ejercicio,
	validate_period_before_close,
	close_period,
	reopen_period,
	close_fiscal_year,
	definitive_close_fiscal_year,
	historial_cierres,
	validar_fecha_en_periodo_abierto,
	periodo_actual,
	dias_restantes_periodo_actual,
	PeriodValidationError
)
from ...infrastructure.logging_config import get_logger

router = APIRouter(prefix="/periods", tags=["periods"])
logger = get_logger("periodos")

class FiscalYearIn(BaseModel):
	company_id: int
	year: int
	start_date: Optional[date] = None
	end_date: Optional[date] = None

class PeriodOut(BaseModel):
	id: int
	company_id: int
	fiscal_year_id: int
	number: int
	name: str
	start_date: date
	end_date: date
	status: str
	allows_entries: bool
	total_debit: float
	total_credit: float
	entry_count: int
	closed_at: Optional[datetime] = None
	closed_by: Optional[int] = None
	close_reason: Optional[str] = None
	reopened_at: Optional[datetime] = None
	reopened_by: Optional[int] = None
	reopen_reason: Optional[str] = None
	class Config:
		from_attributes = True

class FiscalYearOut(BaseModel):
	id: int
	company_id: int
	year: int
	name: str
	start_date: date
	end_date: date
	status: str
	closed_at: Optional[datetime] = None
	closed_by: Optional[int] = None
	periods: list[PeriodOut] = []
	class Config:
		from_attributes = True

class ClosePeriodRequest(BaseModel):
	reason: Optional[str] = None
	observations: Optional[str] = None

class ReopenPeriodRequest(BaseModel):
	reason: Optional[str] = None
	observations: Optional[str] = None


def _get_period(db: Session, period_id: int, current_user: User) -> Period:
	p = db.get(Period, period_id)
	if not p:
		raise HTTPException(404, "Periodo no encontrado")
	check_company_access(current_user, p.company_id)
	return p

def _get_fiscal_year(db: Session, fiscal_year_id: int, current_user: User) -> FiscalYear:
	fy = db.get(FiscalYear, fiscal_year_id)
	if not fy:
		raise HTTPException(404, "Ejercicio no encontrado")
	check_company_access(current_user, fy.company_id)
	return fy

# ===== EJERCICIOS =====

@router.post("/fiscal-years", response_model=FiscalYearOut)
def create_fiscal_year(payload: FiscalYearIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
	require_role(current_user, ROLES_CONTABLES, "crear ejercicios")
	check_company_access(current_user, payload.company_id)
	if not db.get(Company, payload.company_id):
		raise HTTPException(404, "Empresa no encontrada")
	try:
		fy = crear_ejercicio(db, payload.company_id, payload.year, payload.start_date, payload.end_date)
		db.commit()
		db.refresh(fy)
		return fy
	except PeriodValidationError as e:
		db.rollback()
		raise HTTPException(400, detail=str(e))

@router.get("/fiscal-years", response_model=list[FiscalYearOut])
def list_fiscal_years(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
	check_company_access(current_user, company_id)
	return db.query(FiscalYear).filter(FiscalYear.company_id == company_id).order_by(FiscalYear.year.desc()).all()

@router.post("/fiscal-years/{fiscal_year_id}/close", response_model=FiscalYearOut)
def close_fiscal_year_endpoint(
	fiscal_year_id: int,
	request: ClosePeriodRequest,
	db: Session = Depends(get_db),
	current_user: User = Depends(get_current_user)
):
	require_role(current_user, ROLES_CONTABLES, "cerrar ejercicios")
	_get_fiscal_year(db, fiscal_year_id, current_user)
	try:
		fy = close_fiscal_year(db, fiscal_year_id, current_user.id, request.reason)
		db.commit()
		db.refresh(fy)
		return fy
	except PeriodValidationError as e:
		db.rollback()
		raise HTTPException(400, detail=str(e))
	except Exception as e:
		db.rollback()
		logger.error(f"Error al cerrar ejercicio {fiscal_year_id}: {e}", exc_info=True)
		raise HTTPException(500, detail=f"Error al cerrar ejercicio: {str(e)}")

@router.post("/fiscal-years/{fiscal_year_id}/definitive-close", response_model=FiscalYearOut)
def definitive_close_endpoint(
	fiscal_year_id: int,
	request: ClosePeriodRequest,
	db: Session = Depends(get_db),
	current_user: User = Depends(get_current_user)
):
	"""Cierre definitivo: el ejercicio y sus períodos ya no pueden reabrirse."""
	if current_user.role != UserRole.ADMINISTRADOR.value:
		raise HTTPException(403, "Solo un administrador puede hacer el cierre definitivo")
	_get_fiscal_year(db, fiscal_year_id, current_user)
	try:
		fy = definitive_close_fiscal_year(db, fiscal_year_id, current_user.id, request.reason)
		db.commit()
		db.refresh(fy)
		return fy
	except PeriodValidationError as e:
		db.rollback()
		raise HTTPException(400, detail=str(e))

# ===== PERÍODOS =====

@router.get("", response_model=list[PeriodOut])
def list_periods(company_id: int, fiscal_year_id: Optional[int] = None, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
	check_company_access(current_user, company_id)
	q = db.query(Period).filter(Period.company_id == company_id)
	if fiscal_year_id:
		q = q.filter(Period.fiscal_year_id == fiscal_year_id)
	return q.order_by(Period.start_date.desc()).all()

@router.get("/current")
def current_period(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
	check_company_access(current_user, company_id)
	p = periodo_actual(db, company_id)
	if not p:
		return {"period": None, "dias_restantes": None}
	return {
		"period": PeriodOut.model_validate(p),
		"dias_restantes": dias_restantes_periodo_actual(db, company_id),
	}

@router.get("/validate-date")
def validate_date(company_id: int, fecha: date, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
	check_company_access(current_user, company_id)
	return validar_fecha_en_periodo_abierto(db, company_id, fecha)

@router.get("/history", response_model=list[ClosureAuditOut])
def closure_history(
	company_id: int,
	period_id: Optional[int] = Query(default=None),
	fiscal_year_id: Optional[int] = Query(default=None),
	db: Session = Depends(get_db),
	current_user: User = Depends(get_current_user)
):
	check_company_access(current_user, company_id)
	return historial_cierres(db, company_id, period_id, fiscal_year_id)

# ===== CIERRE DE PERÍODO =====

@router.get("/{period_id}/close-validation")
def get_close_validation(
	period_id: int,
	db: Session = Depends(get_db),
	current_user: User = Depends(get_current_user)
):
	"""
	Valida un período antes de cerrarlo.
	Retorna información detallada sobre las validaciones.
	"""
	require_role(current_user, ROLES_CONTABLES, "validar cierre de períodos")
	_get_period(db, period_id, current_user)
	try:
		return validate_period_before_close(db, period_id)
	except PeriodValidationError as e:
		raise HTTPException(400, detail=str(e))

@router.post("/{period_id}/close", response_model=PeriodOut)
def close_period_endpoint(
	period_id: int,
	request: ClosePeriodRequest,
	db: Session = Depends(get_db),
	current_user: User = Depends(get_current_user)
):
	"""
	Cierra un período contable.
	Realiza todas las validaciones necesarias antes de cerrar.
	"""
	require_role(current_user, ROLES_CONTABLES, "cerrar períodos")
	_get_period(db, period_id, current_user)
	try:
		period = close_period(db, period_id, current_user.id, request.reason, request.observations)
		db.commit()
		db.refresh(period)
		return period
	except PeriodValidationError as e:
		db.rollback()
		raise HTTPException(400, detail=str(e))
	except Exception as e:
		db.rollback()
		logger.error(f"Error al cerrar período {period_id}: {e}", exc_info=True)
		raise HTTPException(500, detail=f"Error al cerrar período: {str(e)}")

@router.post("/{period_id}/reopen", response_model=PeriodOut)
def reopen_period_endpoint(
	period_id: int,
	request: ReopenPeriodRequest,
	db: Session = Depends(get_db),
	current_user: User = Depends(get_current_user)
):
	"""
	Reabre un período cerrado. El motivo es obligatorio.
	"""
	require_role(current_user, ROLES_CONTABLES, "reabrir períodos")
	_get_period(db, period_id, current_user)
	try:
		period = reopen_period(db, period_id, current_user.id, request.reason, request.observations)
		db.commit()
		db.refresh(period)
		return period
	except PeriodValidationError as e:
		db.rollback()
		raise HTTPException(400, detail=str(e))
	except Exception as e:
		db.rollback()
		logger.error(f"Error al reabrir período {period_id}: {e}", exc_info=True)
		raise HTTPException(500, detail=f"Error al reabrir período: {str(e)}")
