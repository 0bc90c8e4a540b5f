"""
Tests de liquidación de comisiones de partners

Cubre:
- Estrategia marketplace: 1000 - 150 - 35 = 815; con IVA 22% = 994.30
- Programación de la próxima facturación por frecuencia
- Liquidación completa: factura de compra, cuenta por pagar, asiento
- Pagos parciales y totales; reversión
"""
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from contaliados.domain.models import JournalEntry, TaxConfig
from contaliados.domain.models_partners import Partner, PartnerCommission
from contaliados.domain.models_compras import PurchaseInvoice, AccountsPayable, Supplier
from contaliados.domain.enums import (
    EstadoComision, EstadoPagoComision, EstadoCuentaPorPagar, EstadoFactura, FrecuenciaFacturacion,
)
from contaliados.application.services_comisiones import (
    LiquidacionMarketplace, ConfiguracionLiquidacion, obtener_estrategia, configuracion_empresa,
    calcular_proxima_facturacion, debe_facturar_partner, upsert_partner,
    liquidar_comisiones, procesar_pago_partner, revertir_liquidacion, registrar_gasto_comision,
    LiquidacionError, PagoInvalidoError, CuentaPorPagarNoEncontradaError, PartnerNoEncontradoError, ComisionesError,
)

AHORA = datetime(2025, 3, 1, 10, 0)


def _config(iva="22"):
    return ConfiguracionLiquidacion(
        retencion_pasarela_pct=Decimal("7"), split_partner_pct=Decimal("50"), iva_pct=Decimal(iva),
    )


class TestEstrategiaMarketplace:

    def test_escenario_de_referencia(self):
        comision = PartnerCommission(sale_amount=Decimal("1000"), commission_amount=Decimal("150"))
        liq = LiquidacionMarketplace().calcular([comision], _config())
        assert liq.retencion_pasarela == Decimal("70.00")
        assert liq.retencion_partner == Decimal("35.00")
        assert liq.neto == Decimal("815.00")
        assert liq.iva == Decimal("179.30")
        assert liq.total == Decimal("994.30")

    def test_varias_comisiones_se_suman(self):
        comisiones = [
            PartnerCommission(sale_amount=Decimal("600"), commission_amount=Decimal("90")),
            PartnerCommission(sale_amount=Decimal("400"), commission_amount=Decimal("60")),
        ]
        liq = LiquidacionMarketplace().calcular(comisiones, _config())
        assert liq.total_ventas == Decimal("1000")
        assert liq.total == Decimal("994.30")

    def test_to_dict_serializa_decimales(self):
        comision = PartnerCommission(sale_amount=Decimal("1000"), commission_amount=Decimal("150"))
        data = LiquidacionMarketplace().calcular([comision], _config()).to_dict()
        assert data["total"] == "994.30"

    def test_estrategia_desconocida(self):
        with pytest.raises(LiquidacionError):
            obtener_estrategia("suscripcion")

    def test_estrategia_por_defecto(self):
        assert obtener_estrategia().nombre == "marketplace"


class TestConfiguracion:

    def test_desde_settings_de_empresa(self, uow, company):
        config = configuracion_empresa(uow, company.id)
        assert config.retencion_pasarela_pct == Decimal("7")
        assert config.iva_pct == Decimal("22.0")

    def test_iva_de_tax_config(self, db, uow, company):
        db.add(TaxConfig(country_code="UY", code="IVA_BASICO", rate=Decimal("10"), active=True))
        db.flush()
        assert configuracion_empresa(uow, company.id).iva_pct == Decimal("10.00")


class TestProgramacion:

    @pytest.mark.parametrize("frecuencia,desde,esperado", [
        (FrecuenciaFacturacion.SEMANAL.value, datetime(2025, 1, 1), datetime(2025, 1, 8)),
        (FrecuenciaFacturacion.QUINCENAL.value, datetime(2025, 1, 1), datetime(2025, 1, 16)),
        (FrecuenciaFacturacion.MENSUAL.value, datetime(2025, 1, 31), datetime(2025, 2, 28)),
        (FrecuenciaFacturacion.BIMENSUAL.value, datetime(2024, 12, 31), datetime(2025, 2, 28)),
        ("otra", datetime(2025, 1, 1), datetime(2025, 1, 16)),
        (None, datetime(2025, 1, 1), datetime(2025, 1, 16)),
    ])
    def test_proxima_facturacion(self, frecuencia, desde, esperado):
        assert calcular_proxima_facturacion(frecuencia, desde) == esperado

    def test_debe_facturar(self):
        p = Partner(next_billing_date=None)
        assert debe_facturar_partner(p, AHORA) is True
        p.next_billing_date = datetime(2025, 3, 1, 9, 0)
        assert debe_facturar_partner(p, AHORA) is True
        p.next_billing_date = datetime(2025, 3, 2)
        assert debe_facturar_partner(p, AHORA) is False


class TestUpsertPartner:

    def test_comision_por_defecto_de_la_empresa(self, db, uow, company):
        company.settings = {**company.settings, "comision_sistema": 12}
        db.flush()
        p = upsert_partner(uow, company.id, "21000", "Nuevo partner")
        assert p.commission_rate == Decimal("12")

    def test_actualiza_existente(self, uow, company, partner):
        p = upsert_partner(uow, company.id, partner.document_number, "Nombre nuevo", comision_porcentaje=20)
        assert p.id == partner.id
        assert p.legal_name == "Nombre nuevo"
        assert p.commission_rate == Decimal("20")

    def test_documento_obligatorio(self, uow, company):
        with pytest.raises(ComisionesError):
            upsert_partner(uow, company.id, "", "Sin documento")


class TestLiquidacion:

    def test_liquidacion_completa(self, db, uow, company, partner, venta_con_comision):
        _, comision = venta_con_comision
        resultado = liquidar_comisiones(uow, company.id, None, ahora=AHORA)

        assert resultado["errores"] == []
        assert len(resultado["facturas_generadas"]) == 1
        generada = resultado["facturas_generadas"][0]
        assert generada["total"] == 994.30
        assert generada["numero_factura"] == "PART-00000001"

        factura = db.get(PurchaseInvoice, generada["factura_compra_id"])
        assert factura.invoice_type == "partner_pago"
        assert factura.settlement_data["estrategia"] == "marketplace"
        assert factura.due_date == date(2025, 3, 16)
        payable = db.get(AccountsPayable, generada["cuenta_por_pagar_id"])
        assert payable.balance == Decimal("994.30")
        assert payable.status == EstadoCuentaPorPagar.PENDIENTE.value

        db.refresh(comision)
        assert comision.commission_status == EstadoComision.FACTURADA.value
        assert comision.purchase_invoice_id == factura.id

        entry = db.get(JournalEntry, factura.journal_entry_id)
        assert sum(l.debit for l in entry.lines) == sum(l.credit for l in entry.lines)

        db.refresh(partner)
        assert partner.supplier_id is not None
        assert partner.next_billing_date == datetime(2025, 3, 16, 10, 0)

    def test_no_factura_antes_de_la_fecha_programada(self, db, uow, company, partner, venta_con_comision):
        partner.next_billing_date = datetime(2025, 3, 10)
        db.commit()
        resultado = liquidar_comisiones(uow, company.id, None, ahora=AHORA)
        assert resultado["facturas_generadas"] == []
        assert resultado["omitidos"][0]["partner_id"] == partner.id

        forzado = liquidar_comisiones(uow, company.id, None, forzar=True, ahora=AHORA)
        assert len(forzado["facturas_generadas"]) == 1

    def test_sin_comisiones_pendientes(self, uow, company, partner):
        resultado = liquidar_comisiones(uow, company.id, None, ahora=AHORA)
        assert resultado["omitidos"] == [{"partner_id": partner.id, "motivo": "Sin comisiones pendientes"}]

    def test_comisiones_ya_facturadas_no_se_repiten(self, db, uow, company, partner, venta_con_comision):
        liquidar_comisiones(uow, company.id, None, ahora=AHORA)
        segunda = liquidar_comisiones(uow, company.id, None, forzar=True, ahora=AHORA)
        assert segunda["facturas_generadas"] == []
        assert db.query(PurchaseInvoice).count() == 1

    def test_error_de_un_partner_no_detiene_el_lote(self, db, uow, company, partner, venta_con_comision):
        with patch(
            "contaliados.application.services_comisiones.generar_asiento_factura_compra_partner",
            side_effect=RuntimeError("fallo contable"),
        ):
            resultado = liquidar_comisiones(uow, company.id, None, ahora=AHORA)
        assert resultado["errores"] == [{"partner_id": partner.id, "error": "fallo contable"}]
        assert db.query(PurchaseInvoice).count() == 0
        _, comision = venta_con_comision
        db.refresh(comision)
        assert comision.commission_status == EstadoComision.PENDIENTE.value

    def test_partner_de_otra_empresa(self, uow, company):
        with pytest.raises(PartnerNoEncontradoError):
            liquidar_comisiones(uow, company.id, None, partner_id=999, ahora=AHORA)


class TestPagos:

    @pytest.fixture
    def cuenta_por_pagar(self, uow, company, partner, venta_con_comision):
        resultado = liquidar_comisiones(uow, company.id, None, ahora=AHORA)
        return resultado["facturas_generadas"][0]["cuenta_por_pagar_id"]

    def test_pago_parcial_y_total(self, db, uow, cuenta_por_pagar, venta_con_comision):
        parcial = procesar_pago_partner(uow, cuenta_por_pagar, Decimal("500"), date(2025, 3, 20), "TRANSFERENCIA", None)
        db.commit()
        assert parcial["estado"] == EstadoCuentaPorPagar.PARCIAL.value
        assert parcial["saldo_pendiente"] == 494.30

        total = procesar_pago_partner(uow, cuenta_por_pagar, Decimal("494.30"), date(2025, 3, 25), "TRANSFERENCIA", None)
        db.commit()
        assert total["estado"] == EstadoCuentaPorPagar.PAGADA.value
        assert total["saldo_pendiente"] == 0.0

        payable = db.get(AccountsPayable, cuenta_por_pagar)
        assert payable.amount_paid == Decimal("994.30")
        assert payable.purchase_invoice.status == EstadoFactura.PAGADA.value
        _, comision = venta_con_comision
        db.refresh(comision)
        assert comision.payment_status == EstadoPagoComision.PAGADA.value

        with pytest.raises(PagoInvalidoError, match="ya está pagada"):
            procesar_pago_partner(uow, cuenta_por_pagar, Decimal("1"), date(2025, 3, 26), "EFECTIVO", None)

    @pytest.mark.parametrize("monto", [Decimal("0"), Decimal("-5"), Decimal("1000")])
    def test_monto_invalido(self, uow, cuenta_por_pagar, monto):
        with pytest.raises(PagoInvalidoError):
            procesar_pago_partner(uow, cuenta_por_pagar, monto, date(2025, 3, 20), "TRANSFERENCIA", None)

    def test_cuenta_inexistente(self, uow):
        with pytest.raises(CuentaPorPagarNoEncontradaError):
            procesar_pago_partner(uow, 12345, Decimal("10"), date(2025, 3, 20), "TRANSFERENCIA", None)

    def test_revertir_con_pagos_no_permitido(self, db, uow, cuenta_por_pagar):
        procesar_pago_partner(uow, cuenta_por_pagar, Decimal("10"), date(2025, 3, 20), "TRANSFERENCIA", None)
        db.commit()
        payable = db.get(AccountsPayable, cuenta_por_pagar)
        with pytest.raises(LiquidacionError):
            revertir_liquidacion(uow, payable.purchase_invoice_id)

    def test_revertir_liquidacion(self, db, uow, cuenta_por_pagar, venta_con_comision):
        payable = db.get(AccountsPayable, cuenta_por_pagar)
        resultado = revertir_liquidacion(uow, payable.purchase_invoice_id)
        db.commit()
        assert resultado["comisiones_revertidas"] == 1
        assert db.query(PurchaseInvoice).count() == 0
        assert db.query(AccountsPayable).count() == 0
        _, comision = venta_con_comision
        db.refresh(comision)
        assert comision.commission_status == EstadoComision.PENDIENTE.value
        assert comision.purchase_invoice_id is None

    def test_pago_total_sin_factura_de_compra(self, db, uow, company):
        proveedor = Supplier(company_id=company.id, document_number="210000000011", name="Papelera del Este")
        db.add(proveedor)
        db.flush()
        # la factura de compra ya no existe
        payable = AccountsPayable(
            company_id=company.id, supplier_id=proveedor.id, purchase_invoice_id=99999, number="PART-00000099",
            issue_date=date(2025, 3, 1), amount=Decimal("100.00"), amount_paid=Decimal("0"), balance=Decimal("100.00"),
        )
        db.add(payable)
        db.flush()
        resultado = procesar_pago_partner(uow, payable.id, Decimal("100"), date(2025, 3, 20), "TRANSFERENCIA", None)
        assert resultado["estado"] == EstadoCuentaPorPagar.PAGADA.value
        assert payable.balance == Decimal("0")


class TestGastoComision:

    def test_asiento_de_gasto(self, uow, venta_con_comision):
        _, comision = venta_con_comision
        entry = registrar_gasto_comision(uow, comision.id, None)
        assert entry.reference == f"COMISION-{comision.id}"
        assert comision.expense_entry_id == entry.id
        with pytest.raises(ComisionesError):
            registrar_gasto_comision(uow, comision.id, None)
