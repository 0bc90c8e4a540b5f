from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Any, Dict
from ...dependencies import get_db
from ...domain.models import Company, User
from ...domain.enums import UserRole
from ...security.auth import get_current_user, check_company_access
from ...infrastructure.unit_of_work import UnitOfWork
from ...application.services_ledger import cargar_plan_base

router = APIRouter(prefix="/companies", tags=["companies"])

class CompanyIn(BaseModel):
    name: str  # Razón Social (obligatorio)
    rut: str | None = None
    country_code: str = "UY"
    # retencion_pasarela, comision_sistema, split_pasarela_partner (porcentajes)
    settings: Dict[str, Any] | None = None
    load_base_chart: bool = True

class CompanyUpdate(BaseModel):
    name: str | None = None
    rut: str | None = None
    settings: Dict[str, Any] | None = None
    active: bool | None = None

class CompanyOut(BaseModel):
    id: int
    name: str
    rut: str | None = None
    country_code: str
    settings: Dict[str, Any] | None = None
    active: bool
    class Config:
        from_attributes = True

@router.get("", response_model=list[CompanyOut])
def list_companies(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if current_user.role == UserRole.ADMINISTRADOR.value:
        return db.query(Company).order_by(Company.name).all()
    return sorted(current_user.companies, key=lambda c: c.name)

@router.post("", response_model=CompanyOut)
def create_company(payload: CompanyIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if current_user.role != UserRole.ADMINISTRADOR.value:
        raise HTTPException(403, "No autorizado a crear empresas")
    if db.query(Company).filter(Company.name == payload.name).first():
        raise HTTPException(400, "Ya existe una empresa con ese nombre")
    uow = UnitOfWork(db)
    with uow.transaction():
        company = Company(name=payload.name, rut=payload.rut, country_code=payload.country_code, settings=payload.settings or {})
        db.add(company)
        db.flush()
        company.users.append(current_user)
        if payload.load_base_chart:
            cargar_plan_base(uow, company.id)
        company_id = company.id
    return db.get(Company, company_id)

@router.patch("/{company_id}", response_model=CompanyOut)
def update_company(company_id: int, payload: CompanyUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if current_user.role != UserRole.ADMINISTRADOR.value:
        raise HTTPException(403, "No autorizado a editar empresas")
    check_company_access(current_user, company_id)
    company = db.get(Company, company_id)
    if not company:
        raise HTTPException(404, "Empresa no encontrada")
    if payload.name is not None:
        company.name = payload.name
    if payload.rut is not None:
        company.rut = payload.rut
    if payload.settings is not None:
        company.settings = {**(company.settings or {}), **payload.settings}
    if payload.active is not None:
        company.active = payload.active
    db.commit()
    db.refresh(company)
    return company
