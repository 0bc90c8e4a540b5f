"""
Servicios de ejercicios y períodos contables

Estados: abierto -> cerrado -> (reapertura con motivo) -> abierto.
cerrado_definitivo solo se alcanza desde el ejercicio, cuando todos sus
períodos están cerrados. Cada cierre y reapertura deja una fila en
closure_audits (solo inserción).
"""
import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..domain.models import Period, FiscalYear, JournalEntry, ClosureAudit
from ..domain.models_ventas import SalesInvoice
from ..domain.models_compras import PurchaseInvoice
from ..domain.models_partners import PartnerCommission
from ..domain.enums import EstadoPeriodo, EstadoAsiento, TipoCierre, AccionCierre
from ..infrastructure.logging_config import get_logger
from .services_ledger import money

logger = get_logger("periodos")

MESES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]

CERRADOS = (EstadoPeriodo.CERRADO.value, EstadoPeriodo.CERRADO_DEFINITIVO.value)


class PeriodValidationError(Exception):
    """Excepción para errores de validación de período"""
    pass


def _get_period(db: Session, period_id: int) -> Period:
    period = db.get(Period, period_id)
    if not period:
        raise PeriodValidationError(f"Período {period_id} no encontrado")
    return period


def _get_fiscal_year(db: Session, fiscal_year_id: int) -> FiscalYear:
    fy = db.get(FiscalYear, fiscal_year_id)
    if not fy:
        raise PeriodValidationError(f"Ejercicio {fiscal_year_id} no encontrado")
    return fy


def _fin_de_mes(anio: int, mes: int) -> date:
    return date(anio, mes, calendar.monthrange(anio, mes)[1])


def crear_ejercicio(
    db: Session,
    company_id: int,
    anio: int,
    fecha_inicio: Optional[date] = None,
    fecha_fin: Optional[date] = None,
) -> FiscalYear:
    """
    Crea el ejercicio y un período abierto por cada mes calendario.
    El último período se recorta a la fecha de fin del ejercicio.
    """
    fecha_inicio = fecha_inicio or date(anio, 1, 1)
    fecha_fin = fecha_fin or date(anio, 12, 31)
    if fecha_fin <= fecha_inicio:
        raise PeriodValidationError("La fecha de fin del ejercicio debe ser posterior a la de inicio")
    if db.query(FiscalYear).filter_by(company_id=company_id, year=anio).first():
        raise PeriodValidationError(f"El ejercicio {anio} ya existe")

    fy = FiscalYear(
        company_id=company_id, year=anio, name=f"Ejercicio {anio}",
        start_date=fecha_inicio, end_date=fecha_fin, status=EstadoPeriodo.ABIERTO.value,
    )
    db.add(fy)

    numero = 1
    inicio = fecha_inicio
    while inicio <= fecha_fin:
        fin = min(_fin_de_mes(inicio.year, inicio.month), fecha_fin)
        fy.periods.append(Period(
            company_id=company_id,
            number=numero,
            name=f"{MESES[inicio.month - 1]} {inicio.year}",
            start_date=inicio,
            end_date=fin,
            status=EstadoPeriodo.ABIERTO.value,
            allows_entries=True,
            total_debit=Decimal("0"),
            total_credit=Decimal("0"),
            entry_count=0,
        ))
        numero += 1
        inicio = date(fin.year + (fin.month // 12), fin.month % 12 + 1, 1)

    db.flush()
    logger.info(f"Ejercicio {anio} creado para empresa {company_id} con {len(fy.periods)} períodos")
    return fy


def _asientos_en_rango(db: Session, period: Period) -> List[JournalEntry]:
    return db.query(JournalEntry).filter(
        JournalEntry.company_id == period.company_id,
        JournalEntry.date >= period.start_date,
        JournalEntry.date <= period.end_date,
    ).all()


def validate_period_before_close(db: Session, period_id: int) -> Dict:
    """
    Valida un período antes de cerrarlo sin modificar nada.

    Validaciones:
    1. Asientos pendientes: todos deben estar confirmados
    2. Partida doble: Debe = Haber en cada asiento
    """
    period = _get_period(db, period_id)
    if period.status in CERRADOS:
        raise PeriodValidationError("El periodo ya está cerrado")

    entries = _asientos_en_rango(db, period)
    result = {
        "period_id": period.id,
        "period": period.name,
        "valid": True,
        "errors": [],
        "warnings": [],
        "entry_count": len(entries),
        "pending_entries": [],
        "unbalanced_entries": [],
        "total_debit": 0.0,
        "total_credit": 0.0,
    }
    if not entries:
        result["warnings"].append("No hay asientos contables en este período")
        return result

    total_debit = Decimal("0")
    total_credit = Decimal("0")
    for entry in entries:
        if entry.status != EstadoAsiento.CONFIRMADO.value:
            result["pending_entries"].append({"entry_id": entry.id, "number": entry.number, "status": entry.status})
            continue
        d = sum((money(l.debit) for l in entry.lines), Decimal("0"))
        c = sum((money(l.credit) for l in entry.lines), Decimal("0"))
        if d != c:
            result["unbalanced_entries"].append({
                "entry_id": entry.id, "number": entry.number,
                "debit": float(d), "credit": float(c), "difference": float(abs(d - c)),
            })
        total_debit += d
        total_credit += c

    if result["pending_entries"]:
        result["valid"] = False
        result["errors"].append(f"Hay {len(result['pending_entries'])} asiento(s) no confirmado(s) en este periodo")
    if result["unbalanced_entries"]:
        result["valid"] = False
        result["errors"].append(f"Hay {len(result['unbalanced_entries'])} asiento(s) descuadrado(s) en este periodo")

    result["entry_count"] = len(entries) - len(result["pending_entries"])
    result["total_debit"] = float(total_debit)
    result["total_credit"] = float(total_credit)
    return result


def close_period(
    db: Session,
    period_id: int,
    user_id: Optional[int],
    reason: Optional[str] = None,
    observations: Optional[str] = None,
) -> Period:
    """
    Cierra un período contable.

    Si la validación falla no se modifica nada. El commit es del llamador.
    """
    logger.info(f"Cerrando período {period_id} por usuario {user_id}")
    validation = validate_period_before_close(db, period_id)
    if not validation["valid"]:
        raise PeriodValidationError("; ".join(validation["errors"]))

    period = _get_period(db, period_id)
    previous = period.status
    period.status = EstadoPeriodo.CERRADO.value
    period.allows_entries = False
    period.total_debit = money(validation["total_debit"])
    period.total_credit = money(validation["total_credit"])
    period.entry_count = validation["entry_count"]
    period.closed_at = datetime.now()
    period.closed_by = user_id
    period.close_reason = reason

    db.add(ClosureAudit(
        company_id=period.company_id,
        closure_type=TipoCierre.PERIODO.value,
        action=AccionCierre.CIERRE.value,
        period_id=period.id,
        fiscal_year_id=period.fiscal_year_id,
        user_id=user_id,
        reason=reason,
        observations=observations,
        previous_status=previous,
        new_status=period.status,
        total_debit=period.total_debit,
        total_credit=period.total_credit,
        entry_count=period.entry_count,
    ))
    db.flush()
    sincronizar_visibilidad(db, period.company_id)
    logger.info(f"Período {period.name} cerrado: {period.entry_count} asientos, Debe={period.total_debit} Haber={period.total_credit}")
    return period


def reopen_period(
    db: Session,
    period_id: int,
    user_id: Optional[int],
    reason: Optional[str],
    observations: Optional[str] = None,
) -> Period:
    """Reabre un período cerrado. El motivo es obligatorio."""
    if not reason or not reason.strip():
        raise PeriodValidationError("El motivo de reapertura es obligatorio")

    period = _get_period(db, period_id)
    if period.status == EstadoPeriodo.CERRADO_DEFINITIVO.value:
        raise PeriodValidationError("No se puede reabrir un periodo con cierre definitivo")
    if period.status == EstadoPeriodo.ABIERTO.value:
        raise PeriodValidationError("El periodo ya está abierto")

    previous = period.status
    period.status = EstadoPeriodo.ABIERTO.value
    period.allows_entries = True
    period.reopened_at = datetime.now()
    period.reopened_by = user_id
    period.reopen_reason = reason.strip()

    db.add(ClosureAudit(
        company_id=period.company_id,
        closure_type=TipoCierre.PERIODO.value,
        action=AccionCierre.REAPERTURA.value,
        period_id=period.id,
        fiscal_year_id=period.fiscal_year_id,
        user_id=user_id,
        reason=period.reopen_reason,
        observations=observations,
        previous_status=previous,
        new_status=period.status,
        total_debit=period.total_debit,
        total_credit=period.total_credit,
        entry_count=period.entry_count,
    ))
    db.flush()
    sincronizar_visibilidad(db, period.company_id)
    logger.info(f"Período {period.name} reabierto por usuario {user_id}: {period.reopen_reason}")
    return period


def close_fiscal_year(
    db: Session,
    fiscal_year_id: int,
    user_id: Optional[int],
    reason: Optional[str] = None,
) -> FiscalYear:
    fy = _get_fiscal_year(db, fiscal_year_id)
    if fy.status in CERRADOS:
        raise PeriodValidationError(f"El ejercicio {fy.year} ya está cerrado")
    abiertos = [p for p in fy.periods if p.status != EstadoPeriodo.CERRADO.value]
    if abiertos:
        raise PeriodValidationError("Todos los periodos deben estar cerrados antes de cerrar el ejercicio")

    total_debit = sum((money(p.total_debit) for p in fy.periods), Decimal("0"))
    total_credit = sum((money(p.total_credit) for p in fy.periods), Decimal("0"))
    entry_count = sum(p.entry_count or 0 for p in fy.periods)

    previous = fy.status
    fy.status = EstadoPeriodo.CERRADO.value
    fy.closed_at = datetime.now()
    fy.closed_by = user_id
    db.add(ClosureAudit(
        company_id=fy.company_id,
        closure_type=TipoCierre.EJERCICIO.value,
        action=AccionCierre.CIERRE.value,
        fiscal_year_id=fy.id,
        user_id=user_id,
        reason=reason,
        previous_status=previous,
        new_status=fy.status,
        total_debit=total_debit,
        total_credit=total_credit,
        entry_count=entry_count,
    ))
    db.flush()
    logger.info(f"Ejercicio {fy.year} cerrado (empresa {fy.company_id})")
    return fy


def definitive_close_fiscal_year(
    db: Session,
    fiscal_year_id: int,
    user_id: Optional[int],
    reason: Optional[str] = None,
) -> FiscalYear:
    """Cierre definitivo: el ejercicio y todos sus períodos quedan en cerrado_definitivo."""
    fy = _get_fiscal_year(db, fiscal_year_id)
    if fy.status == EstadoPeriodo.CERRADO_DEFINITIVO.value:
        raise PeriodValidationError(f"El ejercicio {fy.year} ya tiene cierre definitivo")
    if fy.status != EstadoPeriodo.CERRADO.value:
        raise PeriodValidationError("El ejercicio debe estar cerrado antes del cierre definitivo")

    previous = fy.status
    fy.status = EstadoPeriodo.CERRADO_DEFINITIVO.value
    for p in fy.periods:
        p.status = EstadoPeriodo.CERRADO_DEFINITIVO.value
        p.allows_entries = False
    db.add(ClosureAudit(
        company_id=fy.company_id,
        closure_type=TipoCierre.EJERCICIO.value,
        action=AccionCierre.CIERRE.value,
        fiscal_year_id=fy.id,
        user_id=user_id,
        reason=reason,
        observations="Cierre definitivo",
        previous_status=previous,
        new_status=fy.status,
        total_debit=sum((money(p.total_debit) for p in fy.periods), Decimal("0")),
        total_credit=sum((money(p.total_credit) for p in fy.periods), Decimal("0")),
        entry_count=sum(p.entry_count or 0 for p in fy.periods),
    ))
    db.flush()
    logger.info(f"Ejercicio {fy.year} con cierre definitivo (empresa {fy.company_id})")
    return fy


def historial_cierres(
    db: Session,
    company_id: int,
    period_id: Optional[int] = None,
    fiscal_year_id: Optional[int] = None,
) -> List[ClosureAudit]:
    q = db.query(ClosureAudit).filter(ClosureAudit.company_id == company_id)
    if period_id is not None:
        q = q.filter(ClosureAudit.period_id == period_id)
    if fiscal_year_id is not None:
        q = q.filter(ClosureAudit.fiscal_year_id == fiscal_year_id)
    return q.order_by(ClosureAudit.created_at.desc(), ClosureAudit.id.desc()).all()


def validar_fecha_en_periodo_abierto(db: Session, company_id: int, fecha: date) -> Dict:
    period = db.query(Period).filter(
        Period.company_id == company_id, Period.start_date <= fecha, Period.end_date >= fecha
    ).first()
    if not period:
        return {"valido": False, "mensaje": f"No existe un período contable para la fecha {fecha.isoformat()}", "period_id": None}
    if period.status != EstadoPeriodo.ABIERTO.value or not period.allows_entries:
        return {"valido": False, "mensaje": f"El período {period.name} está {period.status}", "period_id": period.id}
    return {"valido": True, "mensaje": None, "period_id": period.id}


def periodo_actual(db: Session, company_id: int, hoy: Optional[date] = None) -> Optional[Period]:
    hoy = hoy or date.today()
    return db.query(Period).filter(
        Period.company_id == company_id, Period.start_date <= hoy, Period.end_date >= hoy
    ).first()


def dias_restantes_periodo_actual(db: Session, company_id: int, hoy: Optional[date] = None) -> Optional[int]:
    hoy = hoy or date.today()
    period = periodo_actual(db, company_id, hoy)
    if not period:
        return None
    return (period.end_date - hoy).days


def sincronizar_visibilidad(db: Session, company_id: int) -> Dict[str, int]:
    """
    Oculta de los listados las facturas y comisiones con fecha dentro de
    períodos no abiertos, y vuelve a mostrar las de períodos abiertos.
    """
    periods = db.query(Period).filter(Period.company_id == company_id).all()
    counts = {"facturas_venta": 0, "facturas_compra": 0, "comisiones": 0}
    for p in periods:
        ocultar = p.status != EstadoPeriodo.ABIERTO.value
        for key, model, date_col in (
            ("facturas_venta", SalesInvoice, SalesInvoice.issue_date),
            ("facturas_compra", PurchaseInvoice, PurchaseInvoice.issue_date),
            ("comisiones", PartnerCommission, PartnerCommission.sale_date),
        ):
            counts[key] += (
                db.query(model)
                .filter(model.company_id == company_id, date_col >= p.start_date, date_col <= p.end_date,
                        model.hidden_in_lists != ocultar)
                .update({model.hidden_in_lists: ocultar}, synchronize_session="fetch")
            )
    db.flush()
    logger.debug(f"Visibilidad sincronizada empresa {company_id}: {counts}")
    return counts
