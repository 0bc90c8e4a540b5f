"""
Tests del servicio de contabilización

Cubre:
- Cuadre de todas las plantillas automáticas
- Asiento confirmado con número correlativo y líneas
- Cuenta inexistente, asiento descuadrado, período cerrado: nada se escribe
- Cuenta de cobro según medio de pago
"""
from datetime import date
from decimal import Decimal

import pytest

from contaliados.domain.models import Company, JournalEntry, SequenceCounter
from contaliados.domain.enums import EstadoAsiento
from contaliados.application.services_ledger import (
    contabilizar, validar_cuadre, cuenta_por_tipo_pago, money, LineaPlantilla, DEBE, HABER,
    plantilla_factura_venta, plantilla_cobro, plantilla_comision, plantilla_factura_compra_partner,
    plantilla_factura_compra, plantilla_pago_proveedor, plantilla_nota_credito, cargar_plan_base, PLAN_BASE,
    CuentaNoEncontradaError, AsientoDescuadradoError, PeriodoCerradoError, PlantillaInvalidaError,
    CUENTA_CAJA, CUENTA_BANCOS, CUENTA_TARJETAS, generar_asiento_factura_compra,
)
from contaliados.domain.models_compras import Supplier, PurchaseInvoice
from contaliados.application.services_cierre_periodo import crear_ejercicio, close_period


def _totales(plantilla):
    debe = sum((l.amount for l in plantilla if l.side == DEBE), Decimal("0"))
    haber = sum((l.amount for l in plantilla if l.side == HABER), Decimal("0"))
    return debe, haber


class TestPlantillas:
    """Property: "Debe == Haber" en todas las plantillas"""

    @pytest.mark.parametrize("subtotal,iva", [(1000, 220), (123.45, 27.16), (10, 0)])
    def test_venta_y_nota_credito_cuadran(self, subtotal, iva):
        total = money(subtotal) + money(iva)
        for plantilla in (
            plantilla_factura_venta(subtotal, iva, total, "A-1"),
            plantilla_nota_credito(subtotal, iva, total, "NC-1"),
            plantilla_factura_compra(subtotal, iva, total, "FC-1"),
        ):
            debe, haber = _totales(plantilla)
            assert debe == haber == total

    def test_venta_sin_iva_omite_linea(self):
        plantilla = plantilla_factura_venta(100, 0, 100, "A-1")
        assert len(plantilla) == 2

    def test_cobro_comision_y_pago_cuadran(self):
        for plantilla in (
            plantilla_cobro(1220, "EFECTIVO", "A-1"),
            plantilla_comision(150, "Comisión"),
            plantilla_pago_proveedor(994.30, None, "PART-1"),
        ):
            debe, haber = _totales(plantilla)
            assert debe == haber

    def test_liquidacion_partner_cuadra(self):
        """1000 vendidos, 150 comisión, 35 retención del partner, 815 neto + 179.30 IVA"""
        plantilla = plantilla_factura_compra_partner(
            Decimal("1000"), Decimal("150"), Decimal("35"), Decimal("815"), Decimal("179.30"), "PART-1",
        )
        debe, haber = _totales(plantilla)
        assert debe == haber == Decimal("1179.30")
        por_pagar = [l for l in plantilla if l.account_code == "2211"][0]
        assert por_pagar.amount == Decimal("994.30")

    def test_plantilla_vacia_invalida(self):
        with pytest.raises(PlantillaInvalidaError):
            validar_cuadre([])


class TestCuentaPorTipoPago:

    @pytest.mark.parametrize("tipo,cuenta", [
        ("EFECTIVO", CUENTA_CAJA),
        ("transferencia", CUENTA_BANCOS),
        ("CHEQUE", CUENTA_BANCOS),
        ("TARJETA", CUENTA_TARJETAS),
        ("tarjeta_de_credito", CUENTA_TARJETAS),
        (None, CUENTA_CAJA),
        ("CRIPTO", CUENTA_CAJA),
    ])
    def test_mapeo(self, tipo, cuenta):
        assert cuenta_por_tipo_pago(tipo) == cuenta


class TestContabilizar:

    def test_asiento_confirmado(self, uow, company, admin):
        entry = contabilizar(
            uow, company.id, plantilla_factura_venta(1000, 220, 1220, "A-00000001"),
            fecha=date(2025, 3, 1), descripcion="Venta", actor_id=admin.id, referencia="FACT-A-00000001",
        )
        assert entry.number == "ASI-00001"
        assert entry.status == EstadoAsiento.CONFIRMADO.value
        assert entry.created_by == admin.id
        assert [l.line_number for l in entry.lines] == [1, 2, 3]
        assert sum(l.debit for l in entry.lines) == sum(l.credit for l in entry.lines) == Decimal("1220.00")

    def test_descuadrado_no_escribe(self, db, uow, company):
        plantilla = [
            LineaPlantilla("1011", DEBE, Decimal("100")),
            LineaPlantilla("7011", HABER, Decimal("90")),
        ]
        with pytest.raises(AsientoDescuadradoError):
            contabilizar(uow, company.id, plantilla, date(2025, 3, 1), "x", None)
        assert db.query(JournalEntry).count() == 0
        assert db.query(SequenceCounter).count() == 0

    def test_cuenta_inexistente(self, db, uow):
        vacia = Company(name="Sin plan")
        db.add(vacia)
        db.flush()
        with pytest.raises(CuentaNoEncontradaError) as exc:
            contabilizar(uow, vacia.id, plantilla_comision(10, "x"), date(2025, 3, 1), "x", None)
        assert "5211" in str(exc.value)
        assert db.query(JournalEntry).count() == 0

    def test_cuenta_inactiva(self, db, uow, company):
        uow.accounts.by_code(company.id, "5211").active = False
        db.flush()
        with pytest.raises(CuentaNoEncontradaError):
            contabilizar(uow, company.id, plantilla_comision(10, "x"), date(2025, 3, 1), "x", None)

    def test_periodo_cerrado(self, db, uow, company):
        fy = crear_ejercicio(db, company.id, 2025)
        close_period(db, fy.periods[0].id, None, "Cierre de enero")
        with pytest.raises(PeriodoCerradoError):
            contabilizar(uow, company.id, plantilla_comision(10, "x"), date(2025, 1, 20), "x", None)
        # Febrero sigue abierto y el asiento queda ligado a su período
        entry = contabilizar(uow, company.id, plantilla_comision(10, "x"), date(2025, 2, 3), "x", None)
        assert entry.period_id == fy.periods[1].id

    def test_fecha_sin_periodo_configurado(self, uow, company):
        entry = contabilizar(uow, company.id, plantilla_comision(10, "x"), date(2030, 1, 1), "x", None)
        assert entry.period_id is None

    def test_factura_de_compra(self, db, uow, company):
        proveedor = Supplier(company_id=company.id, document_number="210000000011", name="Papelera del Este")
        db.add(proveedor)
        db.flush()
        factura = PurchaseInvoice(
            company_id=company.id, supplier_id=proveedor.id, series="B", number="00000012",
            issue_date=date(2025, 3, 5), subtotal=Decimal("100.00"), tax_amount=Decimal("22.00"), total=Decimal("122.00"),
        )
        db.add(factura)
        db.flush()
        entry = generar_asiento_factura_compra(uow, factura, None)
        assert entry.reference == "FC-B-00000012"
        assert entry.origin == "COMPRAS"
        assert [(l.account.code, l.debit, l.credit) for l in entry.lines] == [
            ("6001", Decimal("100.00"), Decimal("0.00")),
            ("1151", Decimal("22.00"), Decimal("0.00")),
            ("2211", Decimal("0.00"), Decimal("122.00")),
        ]


class TestPlanBase:

    def test_carga_idempotente(self, uow, company):
        assert cargar_plan_base(uow, company.id) == 0
        assert len(uow.accounts.list(company.id)) == len(PLAN_BASE)
