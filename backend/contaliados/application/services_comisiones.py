"""
Liquidación de comisiones de partners y pagos de cuentas por pagar

Flujo de una comisión:
  webhook order.paid -> PartnerCommission (pendiente / pago pendiente)
  liquidar_comisiones -> PurchaseInvoice + AccountsPayable, comisión facturada
  procesar_pago_partner -> SupplierPayment; al saldar, comisión pagada

El cálculo del importe a pagar lo hace una EstrategiaLiquidacion elegida por
configuración (settings.commission_strategy). Ambos endpoints de generación
usan la misma estrategia.
"""
import calendar
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..config import settings
from ..domain.models import BankAccount, TaxConfig
from ..domain.models_compras import Supplier, PurchaseInvoice, PurchaseInvoiceLine, AccountsPayable, SupplierPayment
from ..domain.models_partners import Partner, PartnerCommission
from ..domain.enums import (
    EstadoComision, EstadoPagoComision, EstadoCuentaPorPagar, EstadoFactura, FrecuenciaFacturacion,
)
from ..infrastructure.unit_of_work import UnitOfWork
from ..infrastructure.logging_config import get_logger
from .services_correlative import generar_numero_comprobante
from .services_ledger import (
    money, validar_periodo_abierto, eliminar_asiento,
    generar_asiento_factura_compra_partner, generar_asiento_pago_proveedor, generar_asiento_comision,
)

logger = get_logger("comisiones")

SERIE_LIQUIDACION = "PART"
DIAS_VENCIMIENTO_LIQUIDACION = 15
TOLERANCIA_SALDO = Decimal("0.01")


class ComisionesError(Exception):
    """Excepción base de comisiones y cuentas por pagar"""
    pass


class PartnerNoEncontradoError(ComisionesError):
    pass


class CuentaPorPagarNoEncontradaError(ComisionesError):
    pass


class PagoInvalidoError(ComisionesError):
    pass


class LiquidacionError(ComisionesError):
    pass


# ===== ESTRATEGIA DE LIQUIDACIÓN =====

@dataclass
class ConfiguracionLiquidacion:
    retencion_pasarela_pct: Decimal
    split_partner_pct: Decimal
    iva_pct: Decimal


@dataclass
class Liquidacion:
    total_ventas: Decimal
    comision_sistema: Decimal
    retencion_pasarela: Decimal  # costo total de la pasarela
    retencion_partner: Decimal  # parte de la pasarela que asume el partner
    neto: Decimal  # a pagar antes de impuestos
    iva: Decimal
    total: Decimal
    comisiones_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in data.items()}


class EstrategiaLiquidacion(ABC):
    nombre: str = ""

    @abstractmethod
    def calcular(self, comisiones: List[PartnerCommission], config: ConfiguracionLiquidacion) -> Liquidacion:
        ...


class LiquidacionMarketplace(EstrategiaLiquidacion):
    """
    total ventas - comisión del sistema - parte del partner en la pasarela = neto
    neto + IVA = total a pagar

    Ej: 1000 - 150 (15%) - 35 (50% de 7%) = 815; con IVA 22% = 994.30
    """
    nombre = "marketplace"

    def calcular(self, comisiones: List[PartnerCommission], config: ConfiguracionLiquidacion) -> Liquidacion:
        total_ventas = sum((money(c.sale_amount) for c in comisiones), Decimal("0"))
        comision_sistema = sum((money(c.commission_amount) for c in comisiones), Decimal("0"))
        retencion_pasarela = money(total_ventas * config.retencion_pasarela_pct / 100)
        retencion_partner = money(retencion_pasarela * config.split_partner_pct / 100)
        neto = total_ventas - comision_sistema - retencion_partner
        iva = money(neto * config.iva_pct / 100)
        return Liquidacion(
            total_ventas=total_ventas,
            comision_sistema=comision_sistema,
            retencion_pasarela=retencion_pasarela,
            retencion_partner=retencion_partner,
            neto=neto,
            iva=iva,
            total=neto + iva,
            comisiones_ids=[c.id for c in comisiones],
        )


ESTRATEGIAS = {
    LiquidacionMarketplace.nombre: LiquidacionMarketplace,
}


def obtener_estrategia(nombre: Optional[str] = None) -> EstrategiaLiquidacion:
    nombre = nombre or settings.commission_strategy
    cls = ESTRATEGIAS.get(nombre)
    if cls is None:
        raise LiquidacionError(f"Estrategia de liquidación desconocida: {nombre}")
    return cls()


def tasa_iva(uow: UnitOfWork, country_code: Optional[str]) -> Decimal:
    tax = (
        uow.db.query(TaxConfig)
        .filter(TaxConfig.country_code == (country_code or "UY"), TaxConfig.code == "IVA_BASICO", TaxConfig.active == True)  # noqa: E712
        .first()
    )
    return Decimal(str(tax.rate)) if tax else Decimal(str(settings.default_iva_rate))


def configuracion_empresa(uow: UnitOfWork, company_id: int) -> ConfiguracionLiquidacion:
    company = uow.companies.get(company_id)
    if company is None:
        raise LiquidacionError(f"Empresa {company_id} no encontrada")
    conf = company.settings or {}
    return ConfiguracionLiquidacion(
        retencion_pasarela_pct=Decimal(str(conf.get("retencion_pasarela", settings.default_retencion_pasarela))),
        split_partner_pct=Decimal(str(conf.get("split_pasarela_partner", settings.default_split_pasarela_partner))),
        iva_pct=tasa_iva(uow, company.country_code),
    )


# ===== PROGRAMACIÓN DE FACTURACIÓN =====

def _sumar_meses(d: datetime, meses: int) -> datetime:
    mes = d.month - 1 + meses
    anio = d.year + mes // 12
    mes = mes % 12 + 1
    dia = min(d.day, calendar.monthrange(anio, mes)[1])
    return d.replace(year=anio, month=mes, day=dia)


def calcular_proxima_facturacion(frecuencia: Optional[str], desde: datetime) -> datetime:
    if frecuencia == FrecuenciaFacturacion.SEMANAL.value:
        return desde + timedelta(days=7)
    if frecuencia == FrecuenciaFacturacion.QUINCENAL.value:
        return desde + timedelta(days=15)
    if frecuencia == FrecuenciaFacturacion.MENSUAL.value:
        return _sumar_meses(desde, 1)
    if frecuencia == FrecuenciaFacturacion.BIMENSUAL.value:
        return _sumar_meses(desde, 2)
    return desde + timedelta(days=15)


def debe_facturar_partner(partner: Partner, ahora: Optional[datetime] = None) -> bool:
    """Sin fecha programada se factura; si la hay, solo cuando ya llegó."""
    ahora = ahora or datetime.now()
    if partner.next_billing_date is None:
        return True
    return partner.next_billing_date <= ahora


# ===== PARTNERS Y PROVEEDORES =====

def upsert_partner(
    uow: UnitOfWork,
    company_id: int,
    documento: str,
    razon_social: str,
    email: Optional[str] = None,
    telefono: Optional[str] = None,
    comision_porcentaje=None,
    external_id: Optional[str] = None,
) -> Partner:
    if not documento:
        raise ComisionesError("El documento del partner es obligatorio")
    partner = uow.partners.by_document(company_id, documento)
    if partner is None:
        if comision_porcentaje is None:
            company = uow.companies.get(company_id)
            conf = (company.settings or {}) if company else {}
            comision_porcentaje = conf.get("comision_sistema", settings.default_comision_sistema)
        partner = uow.partners.add(Partner(
            company_id=company_id, document_number=documento, legal_name=razon_social,
            email=email, phone=telefono, external_id=external_id,
            commission_rate=Decimal(str(comision_porcentaje)),
        ))
        uow.db.flush()
        logger.info(f"Partner {documento} creado (empresa {company_id})")
        return partner
    partner.legal_name = razon_social or partner.legal_name
    partner.email = email or partner.email
    partner.phone = telefono or partner.phone
    partner.external_id = external_id or partner.external_id
    if comision_porcentaje is not None:
        partner.commission_rate = Decimal(str(comision_porcentaje))
    return partner


def upsert_proveedor(
    uow: UnitOfWork,
    company_id: int,
    documento: str,
    razon_social: str,
    email: Optional[str] = None,
    telefono: Optional[str] = None,
    tipo: str = "general",
) -> Supplier:
    proveedor = uow.suppliers.by_document(company_id, documento)
    if proveedor is None:
        proveedor = uow.suppliers.add(Supplier(
            company_id=company_id, document_number=documento, name=razon_social,
            email=email, phone=telefono, supplier_type=tipo,
        ))
        uow.db.flush()
        return proveedor
    proveedor.name = razon_social or proveedor.name
    proveedor.email = email or proveedor.email
    proveedor.phone = telefono or proveedor.phone
    return proveedor


# ===== LIQUIDACIÓN =====

def _liquidar_partner(
    uow: UnitOfWork,
    partner: Partner,
    comisiones: List[PartnerCommission],
    estrategia: EstrategiaLiquidacion,
    config: ConfiguracionLiquidacion,
    fecha: date,
    ahora: datetime,
    actor_id: Optional[int],
) -> Dict[str, Any]:
    proveedor = upsert_proveedor(
        uow, partner.company_id, partner.document_number, partner.legal_name,
        email=partner.email, telefono=partner.phone, tipo="partner",
    )
    partner.supplier_id = proveedor.id

    liq = estrategia.calcular(comisiones, config)
    if liq.total <= 0:
        raise LiquidacionError(f"El importe a liquidar del partner {partner.document_number} no es positivo ({liq.total})")

    numero = generar_numero_comprobante(uow.db, partner.company_id, PurchaseInvoice, SERIE_LIQUIDACION)
    desde = min(c.sale_date for c in comisiones)
    hasta = max(c.sale_date for c in comisiones)
    factura = PurchaseInvoice(
        company_id=partner.company_id,
        supplier_id=proveedor.id,
        partner_id=partner.id,
        series=SERIE_LIQUIDACION,
        number=numero,
        invoice_type="partner_pago",
        issue_date=fecha,
        due_date=fecha + timedelta(days=DIAS_VENCIMIENTO_LIQUIDACION),
        subtotal=liq.neto,
        tax_amount=liq.iva,
        total=liq.total,
        status=EstadoFactura.PENDIENTE.value,
        settlement_data={"estrategia": estrategia.nombre, **liq.to_dict()},
        created_by=actor_id,
    )
    factura.lines.append(PurchaseInvoiceLine(
        line_number=1,
        description=f"Liquidación de comisiones {desde.isoformat()} a {hasta.isoformat()} ({len(comisiones)} ventas)",
        quantity=Decimal("1"),
        unit_price=liq.neto,
        tax_rate=config.iva_pct,
        subtotal=liq.neto,
        tax_amount=liq.iva,
        total=liq.total,
    ))
    uow.purchases.add(factura)
    uow.db.flush()

    payable = AccountsPayable(
        company_id=partner.company_id,
        supplier_id=proveedor.id,
        purchase_invoice_id=factura.id,
        number=f"{SERIE_LIQUIDACION}-{numero}",
        issue_date=fecha,
        due_date=factura.due_date,
        amount=liq.total,
        amount_paid=Decimal("0"),
        balance=liq.total,
        status=EstadoCuentaPorPagar.PENDIENTE.value,
    )
    uow.db.add(payable)

    for c in comisiones:
        c.commission_status = EstadoComision.FACTURADA.value
        c.purchase_invoice_id = factura.id

    entry = generar_asiento_factura_compra_partner(uow, factura, liq, actor_id)
    factura.journal_entry_id = entry.id

    partner.last_billing_date = ahora
    partner.next_billing_date = calcular_proxima_facturacion(partner.billing_frequency, ahora)
    uow.db.flush()

    return {
        "partner_id": partner.id,
        "partner": partner.legal_name,
        "factura_compra_id": factura.id,
        "numero_factura": factura.full_number,
        "cuenta_por_pagar_id": payable.id,
        "asiento": entry.number,
        "comisiones": len(comisiones),
        "total_ventas": float(liq.total_ventas),
        "neto": float(liq.neto),
        "iva": float(liq.iva),
        "total": float(liq.total),
    }


def liquidar_comisiones(
    uow: UnitOfWork,
    company_id: int,
    actor_id: Optional[int],
    partner_id: Optional[int] = None,
    forzar: bool = False,
    estrategia: Optional[EstrategiaLiquidacion] = None,
    ahora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Genera una factura de compra por partner con sus comisiones pendientes.

    Cada partner se confirma en su propia transacción: un error en uno se
    registra en "errores" y no detiene a los demás.
    """
    ahora = ahora or datetime.now()
    estrategia = estrategia or obtener_estrategia()
    config = configuracion_empresa(uow, company_id)

    if partner_id is not None:
        partner = uow.partners.get(partner_id)
        if partner is None or partner.company_id != company_id:
            raise PartnerNoEncontradoError(f"Partner {partner_id} no encontrado")
        partner_ids = [partner.id]
    else:
        partner_ids = [p.id for p in uow.partners.active(company_id)]

    logger.info(f"Liquidación de comisiones empresa {company_id}: {len(partner_ids)} partners (forzar={forzar}, estrategia={estrategia.nombre})")
    generadas, errores, omitidos = [], [], []
    for pid in partner_ids:
        partner = uow.partners.get(pid)
        if not forzar and not debe_facturar_partner(partner, ahora):
            omitidos.append({"partner_id": pid, "motivo": f"Próxima facturación {partner.next_billing_date}"})
            continue
        comisiones = uow.commissions.pending_settlement(company_id, pid)
        if not comisiones:
            omitidos.append({"partner_id": pid, "motivo": "Sin comisiones pendientes"})
            continue
        try:
            resultado = _liquidar_partner(uow, partner, comisiones, estrategia, config, ahora.date(), ahora, actor_id)
            uow.commit()
            generadas.append(resultado)
            logger.info(f"Partner {pid}: factura {resultado['numero_factura']} por {resultado['total']}")
        except Exception as e:
            uow.rollback()
            logger.error(f"Error liquidando comisiones del partner {pid}: {e}", exc_info=True)
            errores.append({"partner_id": pid, "error": str(e)})

    return {"facturas_generadas": generadas, "errores": errores, "omitidos": omitidos}


def revertir_liquidacion(uow: UnitOfWork, purchase_invoice_id: int) -> Dict[str, Any]:
    """Deshace una liquidación sin pagos: borra asiento, cuenta por pagar y factura; las comisiones vuelven a pendiente."""
    factura = uow.purchases.get(purchase_invoice_id)
    if factura is None or factura.invoice_type != "partner_pago":
        raise LiquidacionError(f"Factura de liquidación {purchase_invoice_id} no encontrada")
    payable = uow.purchases.payable_for_invoice(factura.id)
    if payable is not None and payable.payments:
        raise LiquidacionError(f"La factura {factura.full_number} tiene pagos registrados; no se puede revertir")

    comisiones = uow.commissions.by_purchase_invoice(factura.id)
    for c in comisiones:
        c.commission_status = EstadoComision.PENDIENTE.value
        c.purchase_invoice_id = None
    if payable is not None:
        uow.db.delete(payable)
    entry_id = factura.journal_entry_id
    numero = factura.full_number
    uow.db.delete(factura)
    uow.db.flush()
    eliminar_asiento(uow, entry_id)
    logger.info(f"Liquidación {numero} revertida: {len(comisiones)} comisiones vuelven a pendiente")
    return {"factura": numero, "comisiones_revertidas": len(comisiones)}


def registrar_gasto_comision(uow: UnitOfWork, comision_id: int, actor_id: Optional[int]):
    comision = uow.commissions.get(comision_id)
    if comision is None:
        raise ComisionesError(f"Comisión {comision_id} no encontrada")
    if comision.expense_entry_id:
        raise ComisionesError(f"La comisión {comision_id} ya tiene asiento de gasto")
    entry = generar_asiento_comision(uow, comision, actor_id)
    comision.expense_entry_id = entry.id
    uow.db.flush()
    return entry


# ===== PAGOS =====

def procesar_pago_partner(
    uow: UnitOfWork,
    cuenta_por_pagar_id: int,
    monto,
    fecha_pago: date,
    tipo_pago: str,
    actor_id: Optional[int],
    cuenta_bancaria_id: Optional[int] = None,
    referencia: Optional[str] = None,
    observaciones: Optional[str] = None,
) -> Dict[str, Any]:
    payable = uow.purchases.payable(cuenta_por_pagar_id)
    if payable is None:
        raise CuentaPorPagarNoEncontradaError(f"Cuenta por pagar {cuenta_por_pagar_id} no encontrada")
    if payable.status == EstadoCuentaPorPagar.PAGADA.value:
        raise PagoInvalidoError("La cuenta por pagar ya está pagada")
    monto = money(monto)
    if monto <= 0:
        raise PagoInvalidoError("El monto del pago debe ser mayor a cero")
    saldo = money(payable.balance)
    if monto > saldo:
        raise PagoInvalidoError(f"El monto ({monto}) excede el saldo pendiente ({saldo})")
    validar_periodo_abierto(uow, payable.company_id, fecha_pago)

    cuenta_banco = None
    if cuenta_bancaria_id is not None:
        banco = uow.db.get(BankAccount, cuenta_bancaria_id)
        if banco is None or banco.company_id != payable.company_id:
            raise PagoInvalidoError(f"Cuenta bancaria {cuenta_bancaria_id} no encontrada")
        cuenta_banco = banco.account.code

    pago = SupplierPayment(
        company_id=payable.company_id,
        payable_id=payable.id,
        supplier_id=payable.supplier_id,
        bank_account_id=cuenta_bancaria_id,
        payment_date=fecha_pago,
        amount=monto,
        payment_type=tipo_pago,
        reference=referencia,
        notes=observaciones,
        created_by=actor_id,
    )
    uow.db.add(pago)
    uow.db.flush()

    payable.amount_paid = money(payable.amount_paid) + monto
    nuevo_saldo = money(payable.amount) - payable.amount_paid
    if nuevo_saldo <= TOLERANCIA_SALDO:
        payable.balance = Decimal("0")
        payable.status = EstadoCuentaPorPagar.PAGADA.value
        factura = payable.purchase_invoice
        if factura is not None:
            factura.status = EstadoFactura.PAGADA.value
            for c in uow.commissions.by_purchase_invoice(factura.id):
                c.payment_status = EstadoPagoComision.PAGADA.value
    else:
        payable.balance = nuevo_saldo
        payable.status = EstadoCuentaPorPagar.PARCIAL.value

    entry = generar_asiento_pago_proveedor(uow, pago, payable, cuenta_banco, actor_id)
    pago.journal_entry_id = entry.id
    uow.db.flush()
    logger.info(f"Pago {monto} registrado sobre {payable.number}: saldo {payable.balance}, estado {payable.status}")
    return {
        "pago_id": pago.id,
        "cuenta_por_pagar_id": payable.id,
        "monto": float(monto),
        "saldo_pendiente": float(payable.balance),
        "estado": payable.status,
        "asiento": entry.number,
    }
