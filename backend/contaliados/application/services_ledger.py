"""
Servicio de contabilización (asientos automáticos)

Cada evento de negocio (venta, cobro, comisión, liquidación de partner, pago
a proveedor, nota de crédito) se traduce en una plantilla: una lista
ordenada de líneas {cuenta, lado, monto, descripción}. contabilizar()
resuelve los códigos contra el plan de cuentas de la empresa, verifica la
partida doble y el período, numera el asiento y lo inserta con sus líneas.

No hace commit: el llamador decide la frontera transaccional
(uow.transaction()), de modo que el asiento y el documento que lo origina se
confirman o se descartan juntos.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Dict, Any, Optional

from ..domain.models import Account, JournalEntry, EntryLine
from ..domain.enums import AccountType, EstadoAsiento, EstadoPeriodo
from ..infrastructure.unit_of_work import UnitOfWork
from ..infrastructure.logging_config import get_logger
from .services_correlative import generar_numero_asiento

logger = get_logger("ledger")

DEBE = "DEBE"
HABER = "HABER"
CENTAVO = Decimal("0.01")


class LedgerError(Exception):
    """Excepción base de contabilización"""
    pass


class CuentaNoEncontradaError(LedgerError):
    """El código de cuenta no existe (o está inactivo) en el plan de la empresa"""
    pass


class AsientoDescuadradoError(LedgerError):
    pass


class PeriodoCerradoError(LedgerError):
    pass


class PlantillaInvalidaError(LedgerError):
    pass


def money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTAVO, rounding=ROUND_HALF_UP)


# Cuentas que usan las plantillas
CUENTA_CAJA = "1011"
CUENTA_BANCOS = "1041"
CUENTA_TARJETAS = "1042"
CUENTA_BANCO_PAGOS = "1111"
CUENTA_IVA_COMPRAS = "1151"
CUENTA_DEUDORES_VENTAS = "1212"
CUENTA_PROVEEDORES_COMISIONES = "2111"
CUENTA_IVA_POR_PAGAR = "2113"
CUENTA_POR_PAGAR_PARTNERS = "2211"
CUENTA_GASTO_COMISIONES = "5211"
CUENTA_GASTO_COMPRAS = "6001"
CUENTA_GASTO_COMISIONES_PARTNERS = "6011"
CUENTA_VENTAS = "7011"
CUENTA_INGRESO_COMISION_SISTEMA = "7031"
CUENTA_INGRESO_RETENCION_PASARELA = "7032"

# (código, nombre, tipo, nivel, código padre)
PLAN_BASE = [
    ("1", "Activo", AccountType.ACTIVO, 1, None),
    ("1011", "Caja", AccountType.ACTIVO, 4, "1"),
    ("1041", "Bancos", AccountType.ACTIVO, 4, "1"),
    ("1042", "Tarjetas y medios de pago electrónicos", AccountType.ACTIVO, 4, "1"),
    ("1111", "Banco - cuenta de pagos", AccountType.ACTIVO, 4, "1"),
    ("1151", "IVA Compras", AccountType.ACTIVO, 4, "1"),
    ("1212", "Deudores por ventas", AccountType.ACTIVO, 4, "1"),
    ("2", "Pasivo", AccountType.PASIVO, 1, None),
    ("2111", "Proveedores - comisiones", AccountType.PASIVO, 4, "2"),
    ("2113", "IVA por Pagar", AccountType.PASIVO, 4, "2"),
    ("2211", "Cuentas por pagar - partners", AccountType.PASIVO, 4, "2"),
    ("3", "Patrimonio", AccountType.PATRIMONIO, 1, None),
    ("3111", "Capital", AccountType.PATRIMONIO, 4, "3"),
    ("5", "Gastos de ventas", AccountType.GASTO, 1, None),
    ("5211", "Comisiones sobre ventas", AccountType.GASTO, 4, "5"),
    ("6", "Gastos", AccountType.GASTO, 1, None),
    ("6001", "Gastos de compras", AccountType.GASTO, 4, "6"),
    ("6011", "Gastos por comisiones de partners", AccountType.GASTO, 4, "6"),
    ("7", "Ingresos", AccountType.INGRESO, 1, None),
    ("7011", "Ventas", AccountType.INGRESO, 4, "7"),
    ("7031", "Ingresos por comisión del sistema", AccountType.INGRESO, 4, "7"),
    ("7032", "Ingresos por retención de pasarela", AccountType.INGRESO, 4, "7"),
]


def cargar_plan_base(uow: UnitOfWork, company_id: int) -> int:
    """Crea las cuentas del plan base que falten. Devuelve cuántas creó."""
    existing_codes = {acc.code for acc in uow.accounts.list(company_id)}
    created = 0
    for code, name, typ, level, parent_code in PLAN_BASE:
        if code in existing_codes:
            continue
        uow.accounts.add(Account(
            company_id=company_id, code=code, name=name, type=typ,
            level=level, parent_code=parent_code, active=True,
        ))
        created += 1
    uow.db.flush()
    logger.info(f"Plan base cargado para empresa {company_id}: {created} cuentas nuevas")
    return created


@dataclass
class LineaPlantilla:
    account_code: str
    side: str  # DEBE / HABER
    amount: Decimal
    description: str = ""


def _linea(code: str, side: str, amount, description: str) -> LineaPlantilla:
    return LineaPlantilla(account_code=code, side=side, amount=money(amount), description=description)


def _sin_ceros(lineas: List[LineaPlantilla]) -> List[LineaPlantilla]:
    return [l for l in lineas if l.amount != 0]


def cuenta_por_tipo_pago(tipo_pago: Optional[str]) -> str:
    """
    Cuenta de caja/bancos según el medio de cobro:
    EFECTIVO -> Caja; TRANSFERENCIA / CHEQUE -> Bancos; TARJETA -> Tarjetas.
    Cualquier otro medio va a Caja.
    """
    tipo = (tipo_pago or "").strip().upper().replace("_", " ")
    if tipo in ("TRANSFERENCIA", "TRANSFERENCIA BANCARIA", "CHEQUE"):
        return CUENTA_BANCOS
    if tipo in ("TARJETA", "TARJETA DE CREDITO", "TARJETA DE CRÉDITO", "TARJETA DE DEBITO", "TARJETA DE DÉBITO"):
        return CUENTA_TARJETAS
    return CUENTA_CAJA


# ===== PLANTILLAS =====

def plantilla_factura_venta(subtotal, iva, total, numero: str) -> List[LineaPlantilla]:
    return _sin_ceros([
        _linea(CUENTA_DEUDORES_VENTAS, DEBE, total, f"Venta factura {numero}"),
        _linea(CUENTA_VENTAS, HABER, subtotal, f"Ingreso por venta {numero}"),
        _linea(CUENTA_IVA_POR_PAGAR, HABER, iva, f"IVA factura {numero}"),
    ])


def plantilla_cobro(total, tipo_pago: Optional[str], numero: str) -> List[LineaPlantilla]:
    return [
        _linea(cuenta_por_tipo_pago(tipo_pago), DEBE, total, f"Cobro factura {numero}"),
        _linea(CUENTA_DEUDORES_VENTAS, HABER, total, f"Cancelación deudor factura {numero}"),
    ]


def plantilla_comision(monto, descripcion: str) -> List[LineaPlantilla]:
    return [
        _linea(CUENTA_GASTO_COMISIONES, DEBE, monto, descripcion),
        _linea(CUENTA_PROVEEDORES_COMISIONES, HABER, monto, descripcion),
    ]


def plantilla_factura_compra_partner(total_ventas, comision_sistema, retencion_pasarela,
                                     neto, iva, numero: str) -> List[LineaPlantilla]:
    """
    Liquidación a un partner: el gasto es el total vendido; se reconocen como
    ingresos la comisión del sistema y la parte de la pasarela que asume el
    partner, y el resto (más IVA) queda a pagar.
    """
    return _sin_ceros([
        _linea(CUENTA_GASTO_COMISIONES_PARTNERS, DEBE, total_ventas, f"Liquidación partner {numero}"),
        _linea(CUENTA_IVA_COMPRAS, DEBE, iva, f"IVA liquidación {numero}"),
        _linea(CUENTA_INGRESO_COMISION_SISTEMA, HABER, comision_sistema, f"Comisión sistema {numero}"),
        _linea(CUENTA_INGRESO_RETENCION_PASARELA, HABER, retencion_pasarela, f"Retención pasarela {numero}"),
        _linea(CUENTA_POR_PAGAR_PARTNERS, HABER, money(neto) + money(iva), f"A pagar al partner {numero}"),
    ])


def plantilla_factura_compra(subtotal, iva, total, numero: str) -> List[LineaPlantilla]:
    return _sin_ceros([
        _linea(CUENTA_GASTO_COMPRAS, DEBE, subtotal, f"Compra {numero}"),
        _linea(CUENTA_IVA_COMPRAS, DEBE, iva, f"IVA compra {numero}"),
        _linea(CUENTA_POR_PAGAR_PARTNERS, HABER, total, f"Proveedor {numero}"),
    ])


def plantilla_pago_proveedor(monto, cuenta_banco: Optional[str], numero: str) -> List[LineaPlantilla]:
    return [
        _linea(CUENTA_POR_PAGAR_PARTNERS, DEBE, monto, f"Pago {numero}"),
        _linea(cuenta_banco or CUENTA_BANCO_PAGOS, HABER, monto, f"Salida de fondos {numero}"),
    ]


def plantilla_nota_credito(subtotal, iva, total, numero: str) -> List[LineaPlantilla]:
    """Importes en positivo: revierte la plantilla de venta."""
    return _sin_ceros([
        _linea(CUENTA_VENTAS, DEBE, subtotal, f"Anulación venta {numero}"),
        _linea(CUENTA_IVA_POR_PAGAR, DEBE, iva, f"Anulación IVA {numero}"),
        _linea(CUENTA_DEUDORES_VENTAS, HABER, total, f"Nota de crédito {numero}"),
    ])


# ===== VALIDACIONES =====

def validar_cuadre(plantilla: List[LineaPlantilla]) -> tuple[Decimal, Decimal]:
    if not plantilla:
        raise PlantillaInvalidaError("El asiento debe tener al menos una línea")
    total_debe = Decimal("0")
    total_haber = Decimal("0")
    for linea in plantilla:
        if linea.side not in (DEBE, HABER):
            raise PlantillaInvalidaError(f"Lado inválido '{linea.side}' en cuenta {linea.account_code}")
        if linea.amount < 0:
            raise PlantillaInvalidaError(f"Monto negativo en cuenta {linea.account_code}: {linea.amount}")
        if linea.side == DEBE:
            total_debe += linea.amount
        else:
            total_haber += linea.amount
    if total_debe != total_haber:
        raise AsientoDescuadradoError(
            f"Asiento descuadrado: Debe={total_debe} Haber={total_haber} (diferencia {total_debe - total_haber})"
        )
    return total_debe, total_haber


def validar_periodo_abierto(uow: UnitOfWork, company_id: int, fecha: date):
    """
    Devuelve el período de la fecha (o None si no hay período configurado).
    Lanza PeriodoCerradoError si el período no admite asientos.
    """
    periodo = uow.periods.for_date(company_id, fecha)
    if periodo is None:
        return None
    if not periodo.allows_entries or periodo.status != EstadoPeriodo.ABIERTO.value:
        raise PeriodoCerradoError(
            f"El periodo {periodo.name} está {periodo.status}; no admite asientos con fecha {fecha.isoformat()}"
        )
    return periodo


def _resolver_cuentas(uow: UnitOfWork, company_id: int, plantilla: List[LineaPlantilla]) -> Dict[str, Account]:
    codes = {l.account_code for l in plantilla}
    cuentas = uow.accounts.by_codes(company_id, codes)
    faltantes = sorted(c for c in codes if c not in cuentas)
    if faltantes:
        raise CuentaNoEncontradaError(
            f"Cuenta(s) {', '.join(faltantes)} no existen en el plan de cuentas de la empresa {company_id}"
        )
    inactivas = sorted(c for c, a in cuentas.items() if not a.active)
    if inactivas:
        raise CuentaNoEncontradaError(f"Cuenta(s) inactiva(s): {', '.join(inactivas)}")
    return cuentas


def contabilizar(
    uow: UnitOfWork,
    company_id: int,
    plantilla: List[LineaPlantilla],
    fecha: date,
    descripcion: str,
    actor_id: Optional[int],
    referencia: Optional[str] = None,
    documento_soporte: Optional[Dict[str, Any]] = None,
    origin: str = "MANUAL",
) -> JournalEntry:
    """
    Registra un asiento confirmado a partir de una plantilla.

    Orden de validación: cuadre, cuentas, período. Nada se escribe si alguna
    falla. El número se toma del contador de la empresa con bloqueo.
    """
    total_debe, _ = validar_cuadre(plantilla)
    cuentas = _resolver_cuentas(uow, company_id, plantilla)
    periodo = validar_periodo_abierto(uow, company_id, fecha)

    numero = generar_numero_asiento(uow.db, company_id)
    entry = JournalEntry(
        company_id=company_id,
        number=numero,
        date=fecha,
        period_id=periodo.id if periodo else None,
        description=descripcion,
        reference=referencia,
        status=EstadoAsiento.CONFIRMADO.value,
        origin=origin,
        supporting_document=documento_soporte,
        created_by=actor_id,
    )
    for idx, linea in enumerate(plantilla, start=1):
        entry.lines.append(EntryLine(
            line_number=idx,
            account_id=cuentas[linea.account_code].id,
            debit=linea.amount if linea.side == DEBE else Decimal("0"),
            credit=linea.amount if linea.side == HABER else Decimal("0"),
            memo=linea.description[:250] if linea.description else None,
        ))
    uow.journal.add_entry(entry)
    uow.db.flush()
    logger.info(
        f"Asiento {numero} registrado (empresa {company_id}, ref {referencia}, "
        f"{len(plantilla)} líneas, total {total_debe}, actor {actor_id})"
    )
    return entry


def eliminar_asiento(uow: UnitOfWork, entry_id: Optional[int]):
    """Borra un asiento automático y sus líneas (reversión de un documento no pagado)."""
    if not entry_id:
        return
    entry = uow.journal.get(entry_id)
    if entry is None:
        return
    validar_periodo_abierto(uow, entry.company_id, entry.date)
    logger.info(f"Eliminando asiento {entry.number} (ref {entry.reference})")
    uow.db.delete(entry)
    uow.db.flush()


# ===== ASIENTOS DE DOCUMENTOS =====

def generar_asiento_factura_venta(uow: UnitOfWork, factura, actor_id: Optional[int]) -> JournalEntry:
    numero = factura.full_number
    return contabilizar(
        uow, factura.company_id,
        plantilla_factura_venta(factura.subtotal, factura.tax_amount, factura.total, numero),
        fecha=factura.issue_date,
        descripcion=f"Factura de venta {numero}",
        actor_id=actor_id,
        referencia=f"FACT-{numero}",
        documento_soporte={"tipo": "factura_venta", "id": factura.id, "numero": numero},
        origin="VENTAS",
    )


def generar_asiento_cobro(uow: UnitOfWork, factura, tipo_pago: Optional[str], fecha: date,
                          actor_id: Optional[int]) -> JournalEntry:
    numero = factura.full_number
    return contabilizar(
        uow, factura.company_id,
        plantilla_cobro(factura.total, tipo_pago, numero),
        fecha=fecha,
        descripcion=f"Cobro de factura {numero}",
        actor_id=actor_id,
        referencia=f"COBRO-{numero}",
        documento_soporte={"tipo": "pago_factura", "id": factura.id, "numero": numero, "tipo_pago": tipo_pago},
        origin="TESORERIA",
    )


def generar_asiento_comision(uow: UnitOfWork, comision, actor_id: Optional[int]) -> JournalEntry:
    return contabilizar(
        uow, comision.company_id,
        plantilla_comision(comision.commission_amount, f"Comisión partner {comision.partner_id}"),
        fecha=comision.sale_date,
        descripcion=f"Comisión de partner sobre pedido {comision.order_id or comision.id}",
        actor_id=actor_id,
        referencia=f"COMISION-{comision.id}",
        documento_soporte={"tipo": "comision_partner", "id": comision.id, "partner_id": comision.partner_id},
        origin="COMISIONES",
    )


def generar_asiento_factura_compra_partner(uow: UnitOfWork, factura, liquidacion,
                                           actor_id: Optional[int]) -> JournalEntry:
    numero = factura.full_number
    return contabilizar(
        uow, factura.company_id,
        plantilla_factura_compra_partner(
            liquidacion.total_ventas, liquidacion.comision_sistema,
            liquidacion.retencion_partner, liquidacion.neto, liquidacion.iva, numero,
        ),
        fecha=factura.issue_date,
        descripcion=f"Factura de compra por comisiones {numero}",
        actor_id=actor_id,
        referencia=f"FC-COMISION-{numero}",
        documento_soporte={
            "tipo": "factura_compra_comisiones", "id": factura.id, "numero": numero,
            "partner_id": factura.partner_id,
        },
        origin="COMPRAS",
    )


def generar_asiento_factura_compra(uow: UnitOfWork, factura, actor_id: Optional[int]) -> JournalEntry:
    numero = factura.full_number
    return contabilizar(
        uow, factura.company_id,
        plantilla_factura_compra(factura.subtotal, factura.tax_amount, factura.total, numero),
        fecha=factura.issue_date,
        descripcion=f"Factura de compra {numero}",
        actor_id=actor_id,
        referencia=f"FC-{numero}",
        documento_soporte={"tipo": "factura_compra", "id": factura.id, "numero": numero},
        origin="COMPRAS",
    )


def generar_asiento_pago_proveedor(uow: UnitOfWork, pago, cuenta_por_pagar, cuenta_banco: Optional[str],
                                   actor_id: Optional[int]) -> JournalEntry:
    numero = cuenta_por_pagar.number
    return contabilizar(
        uow, pago.company_id,
        plantilla_pago_proveedor(pago.amount, cuenta_banco, numero),
        fecha=pago.payment_date,
        descripcion=f"Pago de factura de compra {numero}",
        actor_id=actor_id,
        referencia=f"PAGO-FC-{numero}",
        documento_soporte={
            "tipo": "pago_factura_compra", "id": pago.id, "numero": numero,
            "cuenta_por_pagar_id": cuenta_por_pagar.id, "tipo_pago": pago.payment_type,
        },
        origin="TESORERIA",
    )


def generar_asiento_nota_credito(uow: UnitOfWork, nota, factura, actor_id: Optional[int]) -> JournalEntry:
    numero = f"{nota.series}-{nota.number}"
    # La nota guarda importes negativos; la plantilla trabaja con su valor absoluto
    return contabilizar(
        uow, nota.company_id,
        plantilla_nota_credito(abs(money(nota.subtotal)), abs(money(nota.tax_amount)), abs(money(nota.total)), numero),
        fecha=nota.issue_date,
        descripcion=f"Nota de crédito {numero} sobre factura {factura.full_number}",
        actor_id=actor_id,
        referencia=f"NC-{numero}",
        documento_soporte={"tipo": "nota_credito", "id": nota.id, "numero": numero, "factura_id": factura.id},
        origin="VENTAS",
    )
