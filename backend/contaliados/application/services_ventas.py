"""
Servicio de ventas: clientes, facturas de venta, cobros, notas de crédito y
envío a DGI.

PRINCIPIOS:
- Cada documento genera su propio asiento (no se editan asientos existentes)
- La nota de crédito siempre referencia una única factura
- Las funciones no hacen commit; el llamador usa uow.transaction()
"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..domain.models_ventas import Customer, SalesInvoice, SalesInvoiceLine, CreditNote, CreditNoteLine
from ..domain.models_partners import PartnerCommission
from ..domain.enums import EstadoFactura, EstadoComision, TipoNotaCredito
from ..infrastructure.unit_of_work import UnitOfWork
from ..infrastructure.dgi_client import DGIClient
from ..infrastructure.logging_config import get_logger
from .services_correlative import generar_numero_comprobante
from .services_ledger import (
    money, generar_asiento_factura_venta, generar_asiento_cobro, generar_asiento_nota_credito, eliminar_asiento,
)

logger = get_logger("ventas")


class VentasError(Exception):
    """Excepción base del módulo de ventas"""
    pass


class DocumentoNoEncontradoError(VentasError):
    pass


class FacturaAnuladaError(VentasError):
    pass


class NotaCreditoInvalidaError(VentasError):
    pass


def upsert_cliente(
    uow: UnitOfWork,
    company_id: int,
    documento: str,
    nombre: str,
    tipo_documento: str = "CI",
    email: Optional[str] = None,
    telefono: Optional[str] = None,
    direccion: Optional[str] = None,
) -> Customer:
    """Busca el cliente por documento dentro de la empresa; lo crea o actualiza sus datos."""
    if not documento:
        raise VentasError("El documento del cliente es obligatorio")
    cliente = uow.customers.by_document(company_id, documento)
    if cliente is None:
        cliente = uow.customers.add(Customer(
            company_id=company_id, document_number=documento, document_type=tipo_documento,
            name=nombre, email=email, phone=telefono, address=direccion,
        ))
        uow.db.flush()
        logger.info(f"Cliente {documento} creado (empresa {company_id})")
        return cliente
    cliente.name = nombre or cliente.name
    cliente.email = email or cliente.email
    cliente.phone = telefono or cliente.phone
    cliente.address = direccion or cliente.address
    return cliente


def calcular_linea(cantidad, precio_unitario, tasa_iva) -> Dict[str, Decimal]:
    subtotal = money(Decimal(str(cantidad)) * Decimal(str(precio_unitario)))
    iva = money(subtotal * Decimal(str(tasa_iva)) / Decimal("100"))
    return {"subtotal": subtotal, "iva": iva, "total": subtotal + iva}


def crear_factura_venta(
    uow: UnitOfWork,
    company_id: int,
    customer_id: int,
    lineas: List[Dict[str, Any]],
    fecha: date,
    actor_id: Optional[int],
    serie: str = "A",
    estado: str = EstadoFactura.PENDIENTE.value,
    dias_vencimiento: int = 30,
    external_order_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    contabilizar: bool = True,
) -> SalesInvoice:
    """
    Crea la factura con sus líneas y, si corresponde, su asiento de venta.

    Cada línea: {descripcion, cantidad, precio_unitario, tasa_iva, codigo?, partner_id?}
    """
    if not lineas:
        raise VentasError("La factura debe tener al menos una línea")

    numero = generar_numero_comprobante(uow.db, company_id, SalesInvoice, serie)
    factura = SalesInvoice(
        company_id=company_id,
        customer_id=customer_id,
        series=serie,
        number=numero,
        issue_date=fecha,
        due_date=fecha + timedelta(days=dias_vencimiento),
        status=estado,
        external_order_id=external_order_id,
        payment_method=payment_method,
        created_by=actor_id,
    )
    subtotal = Decimal("0")
    iva = Decimal("0")
    for idx, l in enumerate(lineas, start=1):
        montos = calcular_linea(l.get("cantidad", 1), l.get("precio_unitario", 0), l.get("tasa_iva", 0))
        factura.lines.append(SalesInvoiceLine(
            line_number=idx,
            code=l.get("codigo"),
            description=l.get("descripcion") or f"Item {idx}",
            quantity=Decimal(str(l.get("cantidad", 1))),
            unit_price=money(l.get("precio_unitario", 0)),
            tax_rate=Decimal(str(l.get("tasa_iva", 0))),
            subtotal=montos["subtotal"],
            tax_amount=montos["iva"],
            total=montos["total"],
            partner_id=l.get("partner_id"),
        ))
        subtotal += montos["subtotal"]
        iva += montos["iva"]
    factura.subtotal = subtotal
    factura.tax_amount = iva
    factura.total = subtotal + iva
    uow.sales.add(factura)
    uow.db.flush()

    if contabilizar:
        entry = generar_asiento_factura_venta(uow, factura, actor_id)
        factura.journal_entry_id = entry.id
    logger.info(f"Factura de venta {factura.full_number} creada: total {factura.total}")
    return factura


def _get_factura(uow: UnitOfWork, factura_id: int) -> SalesInvoice:
    factura = uow.sales.get(factura_id)
    if not factura:
        raise DocumentoNoEncontradoError(f"Factura de venta {factura_id} no encontrada")
    return factura


def registrar_cobro(
    uow: UnitOfWork,
    factura_id: int,
    tipo_pago: Optional[str],
    fecha: date,
    actor_id: Optional[int],
) -> SalesInvoice:
    factura = _get_factura(uow, factura_id)
    if factura.status == EstadoFactura.ANULADA.value:
        raise FacturaAnuladaError("La factura ya está anulada")
    if factura.payment_entry_id:
        raise VentasError(f"La factura {factura.full_number} ya tiene un cobro registrado")
    entry = generar_asiento_cobro(uow, factura, tipo_pago, fecha, actor_id)
    factura.payment_entry_id = entry.id
    factura.payment_method = tipo_pago
    factura.status = EstadoFactura.PAGADA.value
    uow.db.flush()
    logger.info(f"Cobro de factura {factura.full_number} registrado ({tipo_pago})")
    return factura


_SIN_ACREDITAR = {"cantidad": Decimal("0"), "subtotal": Decimal("0"), "iva": Decimal("0")}


def _acreditado_por_linea(uow: UnitOfWork, factura_id: int) -> Dict[int, Dict[str, Decimal]]:
    """Cantidad e importes ya acreditados por línea de factura, en positivo."""
    acreditado: Dict[int, Dict[str, Decimal]] = {}
    notas = uow.db.query(CreditNote).filter(CreditNote.sales_invoice_id == factura_id).all()
    for nota in notas:
        for linea in nota.lines:
            if linea.invoice_line_id is None:
                continue
            acum = acreditado.setdefault(linea.invoice_line_id, dict(_SIN_ACREDITAR))
            acum["cantidad"] -= Decimal(str(linea.quantity))
            acum["subtotal"] -= money(linea.subtotal)
            acum["iva"] -= money(linea.tax_amount)
    return acreditado


def crear_nota_credito(
    uow: UnitOfWork,
    factura_id: int,
    tipo: str,
    motivo: str,
    actor_id: Optional[int],
    items: Optional[List[Dict[str, Any]]] = None,
    fecha: Optional[date] = None,
) -> CreditNote:
    """
    Nota de crédito sobre una factura de venta.

    total: acredita lo pendiente de cada línea y anula la factura. Sin notas
    previas es la negación exacta de la factura.
    parcial: items = [{linea_id, cantidad}] con la cantidad a anular de cada línea,
    nunca más de lo que las notas anteriores dejaron sin acreditar.
    """
    factura = _get_factura(uow, factura_id)
    if factura.status == EstadoFactura.ANULADA.value:
        raise FacturaAnuladaError("La factura ya está anulada")
    if not motivo or not motivo.strip():
        raise NotaCreditoInvalidaError("El motivo de la nota de crédito es obligatorio")
    if tipo not in (TipoNotaCredito.TOTAL.value, TipoNotaCredito.PARCIAL.value):
        raise NotaCreditoInvalidaError(f"Tipo de nota de crédito inválido: {tipo}")

    acreditado = _acreditado_por_linea(uow, factura.id)
    lineas_nota: List[CreditNoteLine] = []

    if tipo == TipoNotaCredito.TOTAL.value:
        for linea in factura.lines:
            previo = acreditado.get(linea.id, _SIN_ACREDITAR)
            pendiente = Decimal(str(linea.quantity)) - previo["cantidad"]
            if pendiente <= 0:
                continue
            # resto exacto de importes: todas las notas juntas suman la factura
            sub = money(linea.subtotal) - previo["subtotal"]
            iva = money(linea.tax_amount) - previo["iva"]
            lineas_nota.append(CreditNoteLine(
                invoice_line_id=linea.id, description=linea.description,
                quantity=-pendiente, unit_price=money(linea.unit_price), tax_rate=linea.tax_rate,
                subtotal=-sub, tax_amount=-iva, total=-(sub + iva),
            ))
        if not lineas_nota:
            raise NotaCreditoInvalidaError("La factura no tiene cantidades pendientes de acreditar")
    else:
        if not items:
            raise NotaCreditoInvalidaError("Debe indicar las líneas y cantidades a anular")
        lineas = {l.id: l for l in factura.lines}
        en_esta_nota: Dict[int, Decimal] = {}
        for item in items:
            linea = lineas.get(item.get("linea_id"))
            if linea is None:
                raise NotaCreditoInvalidaError(f"La línea {item.get('linea_id')} no pertenece a la factura")
            cantidad = Decimal(str(item.get("cantidad", 0)))
            pendiente = (
                Decimal(str(linea.quantity))
                - acreditado.get(linea.id, _SIN_ACREDITAR)["cantidad"]
                - en_esta_nota.get(linea.id, Decimal("0"))
            )
            if cantidad <= 0 or cantidad > pendiente:
                raise NotaCreditoInvalidaError(
                    f"Cantidad a anular inválida para la línea {linea.line_number}: {cantidad} "
                    f"(pendiente de acreditar: {pendiente})"
                )
            en_esta_nota[linea.id] = en_esta_nota.get(linea.id, Decimal("0")) + cantidad
            montos = calcular_linea(cantidad, linea.unit_price, linea.tax_rate)
            lineas_nota.append(CreditNoteLine(
                invoice_line_id=linea.id, description=linea.description,
                quantity=-cantidad, unit_price=money(linea.unit_price), tax_rate=linea.tax_rate,
                subtotal=-montos["subtotal"], tax_amount=-montos["iva"], total=-montos["total"],
            ))

    nota = CreditNote(
        company_id=factura.company_id,
        sales_invoice_id=factura.id,
        customer_id=factura.customer_id,
        series="NC",
        number=generar_numero_comprobante(uow.db, factura.company_id, CreditNote, "NC"),
        issue_date=fecha or date.today(),
        type=tipo,
        reason=motivo.strip(),
        created_by=actor_id,
    )
    for idx, linea_nota in enumerate(lineas_nota, start=1):
        linea_nota.line_number = idx
        nota.lines.append(linea_nota)
    nota.subtotal = sum((l.subtotal for l in lineas_nota), Decimal("0"))
    nota.tax_amount = sum((l.tax_amount for l in lineas_nota), Decimal("0"))
    nota.total = nota.subtotal + nota.tax_amount

    uow.db.add(nota)
    uow.db.flush()

    if factura.journal_entry_id:
        entry = generar_asiento_nota_credito(uow, nota, factura, actor_id)
        nota.journal_entry_id = entry.id

    factura.credit_note_id = nota.id
    if tipo == TipoNotaCredito.TOTAL.value:
        factura.status = EstadoFactura.ANULADA.value
    uow.db.flush()
    logger.info(f"Nota de crédito NC-{nota.number} ({tipo}) sobre factura {factura.full_number}: {nota.total}")
    return nota


def eliminar_factura_no_enviada(uow: UnitOfWork, factura_id: int):
    """
    Elimina una factura que nunca se envió a DGI, junto con sus asientos y
    sus comisiones aún pendientes.
    """
    factura = _get_factura(uow, factura_id)
    if factura.dgi_sent:
        raise VentasError(f"La factura {factura.full_number} ya fue enviada a DGI; debe emitirse nota de crédito")
    comisiones = uow.db.query(PartnerCommission).filter_by(sales_invoice_id=factura.id).all()
    if any(c.commission_status != EstadoComision.PENDIENTE.value for c in comisiones):
        raise VentasError(f"La factura {factura.full_number} tiene comisiones ya liquidadas")
    for c in comisiones:
        uow.db.delete(c)
    payment_entry_id, sale_entry_id = factura.payment_entry_id, factura.journal_entry_id
    uow.db.delete(factura)
    uow.db.flush()
    eliminar_asiento(uow, payment_entry_id)
    eliminar_asiento(uow, sale_entry_id)
    logger.info(f"Factura {factura.full_number} eliminada (no enviada a DGI)")


def construir_cfe(factura: SalesInvoice) -> Dict[str, Any]:
    cliente = factura.customer
    return {
        "tipo_cfe": "e-Factura" if cliente and cliente.document_type == "RUT" else "e-Ticket",
        "serie": factura.series,
        "numero": factura.number,
        "fecha": factura.issue_date.isoformat(),
        "moneda": factura.currency,
        "receptor": {
            "documento": cliente.document_number if cliente else None,
            "tipo_documento": cliente.document_type if cliente else None,
            "nombre": cliente.name if cliente else None,
        },
        "items": [
            {
                "descripcion": l.description,
                "cantidad": float(l.quantity),
                "precio_unitario": float(l.unit_price),
                "tasa_iva": float(l.tax_rate),
                "total": float(l.total),
            }
            for l in factura.lines
        ],
        "totales": {
            "subtotal": float(factura.subtotal),
            "iva": float(factura.tax_amount),
            "total": float(factura.total),
        },
    }


def enviar_factura_dgi(uow: UnitOfWork, factura_id: int, client: Optional[DGIClient] = None) -> Dict[str, Any]:
    """Envía la factura a DGI y guarda el CAE. Reenvíos manuales permitidos mientras no tenga CAE."""
    factura = _get_factura(uow, factura_id)
    if factura.dgi_cae:
        raise VentasError(f"La factura {factura.full_number} ya tiene CAE {factura.dgi_cae}")
    client = client or DGIClient()
    resultado = client.enviar_cfe(construir_cfe(factura))
    factura.dgi_sent = True
    factura.dgi_cae = resultado["cae"]
    factura.dgi_response = resultado
    factura.dgi_sent_at = datetime.now()
    uow.db.flush()
    return resultado
