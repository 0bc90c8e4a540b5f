from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...dependencies import get_db
from ...domain.models import Account, User
from ...domain.enums import AccountType
from ...application.dtos import AccountIn, AccountOut
from ...application.services_ledger import cargar_plan_base
from ...infrastructure.unit_of_work import UnitOfWork
from ...security.auth import get_current_user, check_company_access, require_role, ROLES_CONTABLES

router = APIRouter(prefix="/accounts", tags=["accounts"])


def _to_out(acc: Account) -> AccountOut:
    return AccountOut(
        id=acc.id,
        company_id=acc.company_id,
        code=acc.code,
        name=acc.name,
        level=acc.level,
        type=acc.type.value,
        parent_code=acc.parent_code,
        active=acc.active,
    )

@router.post("", response_model=AccountOut)
def create_account(payload: AccountIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    require_role(current_user, ROLES_CONTABLES, "crear cuentas")
    check_company_access(current_user, payload.company_id)
    uow = UnitOfWork(db)
    if uow.accounts.by_code(payload.company_id, payload.code):
        raise HTTPException(400, detail="La cuenta ya existe")
    try:
        tipo = AccountType(payload.type)
    except ValueError:
        raise HTTPException(400, detail=f"Tipo de cuenta inválido: {payload.type}")
    acc = Account(
        company_id=payload.company_id,
        code=payload.code,
        name=payload.name,
        level=payload.level,
        type=tipo,
        parent_code=payload.parent_code,
    )
    uow.accounts.add(acc)
    db.commit()
    db.refresh(acc)
    return _to_out(acc)

@router.get("", response_model=list[AccountOut])
def list_accounts(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    check_company_access(current_user, company_id)
    return [_to_out(a) for a in UnitOfWork(db).accounts.list(company_id)]

@router.post("/plan-base")
def load_base_chart(company_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Carga las cuentas que usan los asientos automáticos (idempotente)."""
    require_role(current_user, ROLES_CONTABLES, "cargar el plan de cuentas")
    check_company_access(current_user, company_id)
    uow = UnitOfWork(db)
    if uow.companies.get(company_id) is None:
        raise HTTPException(404, detail="Empresa no encontrada")
    with uow.transaction():
        created = cargar_plan_base(uow, company_id)
    return {"created": created}
