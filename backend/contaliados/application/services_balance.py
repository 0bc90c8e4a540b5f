"""
Balance de comprobación y libro mayor

Solo se consideran asientos confirmados. Por cuenta:
- saldo inicial: líneas con fecha estrictamente anterior a fecha_inicio
- movimiento: líneas dentro de [fecha_inicio, fecha_fin]
- saldo final: saldo inicial + movimiento, con el signo de la naturaleza
  de la cuenta (ACTIVO/GASTO: debe - haber; el resto: haber - debe)

Los saldos se presentan en la columna natural de la cuenta, así la suma de
saldos finales deudores coincide con la de acreedores.
"""
import csv
import io
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..domain.models import Account, EntryLine, JournalEntry, Company
from ..domain.enums import AccountType, EstadoAsiento
from ..infrastructure.logging_config import get_logger
from ..infrastructure.pdf_utils import create_report_pdf
from .dtos import TrialBalanceItem, TrialBalanceTotals, TrialBalanceOut, LedgerRow, LedgerOut
from .services_ledger import money

logger = get_logger("balance")

CERO = Decimal("0")


def _sumas_por_cuenta(db: Session, company_id: int, desde: Optional[date] = None, hasta: Optional[date] = None,
                      antes_de: Optional[date] = None) -> Dict[int, Tuple[Decimal, Decimal]]:
    q = (
        db.query(
            EntryLine.account_id,
            func.coalesce(func.sum(EntryLine.debit), 0),
            func.coalesce(func.sum(EntryLine.credit), 0),
        )
        .join(JournalEntry, JournalEntry.id == EntryLine.entry_id)
        .filter(JournalEntry.company_id == company_id)
        .filter(JournalEntry.status == EstadoAsiento.CONFIRMADO.value)
    )
    if desde is not None:
        q = q.filter(JournalEntry.date >= desde)
    if hasta is not None:
        q = q.filter(JournalEntry.date <= hasta)
    if antes_de is not None:
        q = q.filter(JournalEntry.date < antes_de)
    return {account_id: (money(d), money(c)) for account_id, d, c in q.group_by(EntryLine.account_id).all()}


def _saldo(tipo: AccountType, debe: Decimal, haber: Decimal) -> Decimal:
    return debe - haber if AccountType(tipo).saldo_deudor else haber - debe


def _columnas(tipo: AccountType, saldo: Decimal) -> Tuple[Decimal, Decimal]:
    """Reparte un saldo con signo en (columna debe, columna haber)."""
    if AccountType(tipo).saldo_deudor:
        return (saldo, CERO) if saldo >= 0 else (CERO, -saldo)
    return (CERO, saldo) if saldo >= 0 else (-saldo, CERO)


def _tipo_str(tipo) -> str:
    return tipo.value if isinstance(tipo, AccountType) else str(tipo)


def generar_balance_comprobacion(
    db: Session,
    company_id: int,
    fecha_inicio: Optional[date] = None,
    fecha_fin: Optional[date] = None,
    nivel: Optional[int] = None,
) -> TrialBalanceOut:
    q = db.query(Account).filter(Account.company_id == company_id, Account.active == True)  # noqa: E712
    if nivel is not None:
        q = q.filter(Account.level == nivel)
    cuentas = q.order_by(Account.code).all()

    iniciales = _sumas_por_cuenta(db, company_id, antes_de=fecha_inicio) if fecha_inicio else {}
    movimientos = _sumas_por_cuenta(db, company_id, desde=fecha_inicio, hasta=fecha_fin)

    # Con filtro de nivel cada cuenta acumula las de su rama (código como prefijo)
    codigos = {}
    if nivel is not None:
        codigos = {a.id: a.code for a in db.query(Account).filter(Account.company_id == company_id).all()}

    def _acumular(sumas: Dict[int, Tuple[Decimal, Decimal]], cuenta: Account) -> Tuple[Decimal, Decimal]:
        if nivel is None:
            return sumas.get(cuenta.id, (CERO, CERO))
        d, c = CERO, CERO
        for account_id, (sd, sc) in sumas.items():
            if codigos.get(account_id, "").startswith(cuenta.code):
                d += sd
                c += sc
        return d, c

    items: List[TrialBalanceItem] = []
    t = {k: CERO for k in TrialBalanceTotals.model_fields}
    for cuenta in cuentas:
        ini_d, ini_c = _acumular(iniciales, cuenta)
        mov_d, mov_c = _acumular(movimientos, cuenta)
        saldo_inicial = _saldo(cuenta.type, ini_d, ini_c)
        saldo_final = saldo_inicial + _saldo(cuenta.type, mov_d, mov_c)
        if saldo_inicial == 0 and mov_d == 0 and mov_c == 0 and saldo_final == 0:
            continue
        si_d, si_h = _columnas(cuenta.type, saldo_inicial)
        sf_d, sf_h = _columnas(cuenta.type, saldo_final)
        t["saldo_inicial_debe"] += si_d
        t["saldo_inicial_haber"] += si_h
        t["debe"] += mov_d
        t["haber"] += mov_c
        t["saldo_final_debe"] += sf_d
        t["saldo_final_haber"] += sf_h
        items.append(TrialBalanceItem(
            account_id=cuenta.id, code=cuenta.code, name=cuenta.name,
            type=_tipo_str(cuenta.type), level=cuenta.level,
            saldo_inicial=float(saldo_inicial),
            saldo_inicial_debe=float(si_d), saldo_inicial_haber=float(si_h),
            debe=float(mov_d), haber=float(mov_c),
            saldo_final=float(saldo_final),
            saldo_final_debe=float(sf_d), saldo_final_haber=float(sf_h),
        ))

    logger.info(f"Balance de comprobación empresa {company_id} ({fecha_inicio} - {fecha_fin}, nivel {nivel}): {len(items)} cuentas")
    return TrialBalanceOut(
        company_id=company_id, fecha_inicio=fecha_inicio, fecha_fin=fecha_fin, nivel=nivel,
        items=items, totales=TrialBalanceTotals(**{k: float(v) for k, v in t.items()}),
    )


CSV_HEADERS = [
    "Código", "Cuenta", "Tipo",
    "Saldo Inicial Debe", "Saldo Inicial Haber",
    "Debe", "Haber",
    "Saldo Final Debe", "Saldo Final Haber",
]


def _filas(balance: TrialBalanceOut) -> List[List[str]]:
    filas = []
    for i in balance.items:
        filas.append([
            i.code, i.name, i.type,
            f"{i.saldo_inicial_debe:.2f}", f"{i.saldo_inicial_haber:.2f}",
            f"{i.debe:.2f}", f"{i.haber:.2f}",
            f"{i.saldo_final_debe:.2f}", f"{i.saldo_final_haber:.2f}",
        ])
    t = balance.totales
    filas.append([
        "", "TOTALES", "",
        f"{t.saldo_inicial_debe:.2f}", f"{t.saldo_inicial_haber:.2f}",
        f"{t.debe:.2f}", f"{t.haber:.2f}",
        f"{t.saldo_final_debe:.2f}", f"{t.saldo_final_haber:.2f}",
    ])
    return filas


def exportar_balance_csv(balance: TrialBalanceOut) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADERS)
    writer.writerows(_filas(balance))
    return buffer.getvalue()


def exportar_balance_pdf(db: Session, balance: TrialBalanceOut) -> bytes:
    company = db.get(Company, balance.company_id)
    rango = f"{balance.fecha_inicio or 'inicio'} al {balance.fecha_fin or 'hoy'}"
    pdf = create_report_pdf(
        company_name=company.name if company else f"Empresa {balance.company_id}",
        company_rut=company.rut if company else None,
        report_title="Balance de Comprobación",
        subtitle=f"Período: {rango}",
        headers=CSV_HEADERS,
        rows=_filas(balance),
    )
    return pdf.getvalue()


def get_libro_mayor(
    db: Session,
    company_id: int,
    account_code: str,
    fecha_inicio: Optional[date] = None,
    fecha_fin: Optional[date] = None,
) -> Optional[LedgerOut]:
    cuenta = db.query(Account).filter_by(company_id=company_id, code=account_code).first()
    if not cuenta:
        return None

    saldo = CERO
    if fecha_inicio:
        ini_d, ini_c = _sumas_por_cuenta(db, company_id, antes_de=fecha_inicio).get(cuenta.id, (CERO, CERO))
        saldo = _saldo(cuenta.type, ini_d, ini_c)
    saldo_inicial = saldo

    q = (
        db.query(EntryLine, JournalEntry)
        .join(JournalEntry, JournalEntry.id == EntryLine.entry_id)
        .filter(EntryLine.account_id == cuenta.id)
        .filter(JournalEntry.status == EstadoAsiento.CONFIRMADO.value)
    )
    if fecha_inicio:
        q = q.filter(JournalEntry.date >= fecha_inicio)
    if fecha_fin:
        q = q.filter(JournalEntry.date <= fecha_fin)

    rows = []
    for line, entry in q.order_by(JournalEntry.date, JournalEntry.id, EntryLine.line_number).all():
        saldo += _saldo(cuenta.type, money(line.debit), money(line.credit))
        rows.append(LedgerRow(
            entry_id=entry.id, entry_number=entry.number, date=entry.date,
            description=entry.description, reference=entry.reference,
            debit=float(line.debit), credit=float(line.credit),
            balance=float(saldo), memo=line.memo,
        ))
    return LedgerOut(
        account_code=cuenta.code, account_name=cuenta.name,
        saldo_inicial=float(saldo_inicial), rows=rows, saldo_final=float(saldo),
    )
