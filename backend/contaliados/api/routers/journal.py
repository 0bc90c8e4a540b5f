from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from datetime import date
from decimal import Decimal
from ...dependencies import get_db
from ...application.dtos import JournalEntryIn, JournalEntryOut, EntryLineOut
from ...application.services_ledger import contabilizar, LineaPlantilla, LedgerError, DEBE, HABER, money
from ...domain.models import JournalEntry, EntryLine, User
from ...infrastructure.unit_of_work import UnitOfWork
from ...infrastructure.logging_config import get_logger
from ...security.auth import get_current_user, check_company_access, require_role, ROLES_CONTABLES

router = APIRouter(prefix="/journal", tags=["journal"])
logger = get_logger("ledger")


def _entry_out(entry: JournalEntry) -> JournalEntryOut:
    lines = [
        EntryLineOut(
            line_number=l.line_number,
            account_code=l.account.code,
            account_name=l.account.name,
            debit=float(l.debit),
            credit=float(l.credit),
            memo=l.memo,
        )
        for l in entry.lines
    ]
    return JournalEntryOut(
        id=entry.id,
        company_id=entry.company_id,
        number=entry.number,
        date=entry.date,
        description=entry.description or "",
        reference=entry.reference,
        status=entry.status,
        origin=entry.origin,
        period_id=entry.period_id,
        supporting_document=entry.supporting_document,
        created_by=entry.created_by,
        total_debit=float(sum(Decimal(str(l.debit)) for l in entry.lines)),
        total_credit=float(sum(Decimal(str(l.credit)) for l in entry.lines)),
        lines=lines,
    )

@router.post("/entries", response_model=JournalEntryOut)
def create_entry(payload: JournalEntryIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Asiento manual. Cada línea va al debe o al haber, nunca a ambos."""
    require_role(current_user, ROLES_CONTABLES, "registrar asientos")
    check_company_access(current_user, payload.company_id)

    plantilla = []
    for l in payload.lines:
        if l.debit and l.credit:
            raise HTTPException(400, detail=f"La línea de la cuenta {l.account_code} tiene debe y haber a la vez")
        side = DEBE if l.debit else HABER
        plantilla.append(LineaPlantilla(
            account_code=l.account_code,
            side=side,
            amount=money(l.debit or l.credit),
            description=l.memo or "",
        ))

    uow = UnitOfWork(db)
    try:
        with uow.transaction():
            entry = contabilizar(
                uow, payload.company_id, plantilla,
                fecha=payload.date,
                descripcion=payload.description,
                actor_id=current_user.id,
                referencia=payload.reference,
            )
            entry_id = entry.id
    except LedgerError as e:
        raise HTTPException(400, detail=str(e))
    except Exception as e:
        logger.error(f"Error al registrar asiento manual: {e}", exc_info=True)
        raise HTTPException(500, detail=f"Error al registrar asiento: {str(e)}")
    return _entry_out(db.get(JournalEntry, entry_id))

@router.get("/entries", response_model=list[JournalEntryOut])
def list_entries(
    company_id: int = Query(..., description="ID de la empresa"),
    period_id: int | None = Query(default=None, description="Filtrar por periodo"),
    date_from: date | None = Query(default=None, description="Fecha desde (YYYY-MM-DD)"),
    date_to: date | None = Query(default=None, description="Fecha hasta (YYYY-MM-DD)"),
    origin: str | None = Query(default=None, description="Filtrar por origen (MANUAL, VENTAS, COMPRAS...)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    check_company_access(current_user, company_id)
    query = db.query(JournalEntry).options(
        joinedload(JournalEntry.lines).joinedload(EntryLine.account)
    ).filter(JournalEntry.company_id == company_id)
    if period_id:
        query = query.filter(JournalEntry.period_id == period_id)
    if date_from:
        query = query.filter(JournalEntry.date >= date_from)
    if date_to:
        query = query.filter(JournalEntry.date <= date_to)
    if origin:
        query = query.filter(JournalEntry.origin == origin)
    entries = query.order_by(JournalEntry.date, JournalEntry.id).all()
    return [_entry_out(e) for e in entries]

@router.get("/entries/{entry_id}", response_model=JournalEntryOut)
def get_entry(entry_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    entry = db.get(JournalEntry, entry_id)
    if not entry:
        raise HTTPException(404, detail="Asiento no encontrado")
    check_company_access(current_user, entry.company_id)
    return _entry_out(entry)
