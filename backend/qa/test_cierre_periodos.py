"""
Tests de ejercicios y períodos: creación, cierre, reapertura y cierre definitivo
"""
from datetime import date
from decimal import Decimal

import pytest

from contaliados.domain.models import JournalEntry, ClosureAudit
from contaliados.domain.enums import EstadoPeriodo, EstadoAsiento, AccionCierre
from contaliados.application.services_ledger import contabilizar, plantilla_comision
from contaliados.application.services_ventas import crear_factura_venta
from contaliados.application.services_cierre_periodo import (
    crear_ejercicio, validate_period_before_close, close_period, reopen_period,
    close_fiscal_year, definitive_close_fiscal_year, historial_cierres,
    validar_fecha_en_periodo_abierto, dias_restantes_periodo_actual, PeriodValidationError,
)


@pytest.fixture
def ejercicio(db, company):
    fy = crear_ejercicio(db, company.id, 2025)
    db.commit()
    return fy


def _enero(fy):
    return fy.periods[0]


class TestCrearEjercicio:

    def test_doce_periodos_mensuales(self, ejercicio):
        assert len(ejercicio.periods) == 12
        febrero = ejercicio.periods[1]
        assert (febrero.start_date, febrero.end_date) == (date(2025, 2, 1), date(2025, 2, 28))
        assert febrero.name == "Febrero 2025"
        assert all(p.status == EstadoPeriodo.ABIERTO.value for p in ejercicio.periods)

    def test_ejercicio_duplicado(self, db, company, ejercicio):
        with pytest.raises(PeriodValidationError):
            crear_ejercicio(db, company.id, 2025)

    def test_ejercicio_irregular(self, db, company):
        fy = crear_ejercicio(db, company.id, 2026, date(2026, 7, 1), date(2027, 6, 30))
        assert len(fy.periods) == 12
        assert fy.periods[-1].end_date == date(2027, 6, 30)


class TestCierrePeriodo:

    def test_cierre_con_asientos(self, db, uow, company, admin, ejercicio):
        contabilizar(uow, company.id, plantilla_comision(100, "x"), date(2025, 1, 15), "x", admin.id)
        contabilizar(uow, company.id, plantilla_comision(50, "y"), date(2025, 1, 20), "y", admin.id)
        periodo = close_period(db, _enero(ejercicio).id, admin.id, "Fin de mes")
        db.commit()
        assert periodo.status == EstadoPeriodo.CERRADO.value
        assert periodo.allows_entries is False
        assert periodo.entry_count == 2
        assert periodo.total_debit == periodo.total_credit == Decimal("150.00")
        assert periodo.closed_by == admin.id
        auditoria = historial_cierres(db, company.id, period_id=periodo.id)
        assert len(auditoria) == 1
        assert auditoria[0].action == AccionCierre.CIERRE.value
        assert auditoria[0].previous_status == EstadoPeriodo.ABIERTO.value

    def test_cierre_rechazado_no_modifica(self, db, company, ejercicio):
        """Un asiento en borrador impide el cierre y el período queda intacto"""
        db.add(JournalEntry(
            company_id=company.id, number="ASI-00001", date=date(2025, 1, 5),
            description="Borrador", status=EstadoAsiento.BORRADOR.value,
        ))
        db.commit()
        enero = _enero(ejercicio)
        validacion = validate_period_before_close(db, enero.id)
        assert validacion["valid"] is False
        assert len(validacion["pending_entries"]) == 1

        with pytest.raises(PeriodValidationError):
            close_period(db, enero.id, None, "x")
        db.rollback()
        db.refresh(enero)
        assert enero.status == EstadoPeriodo.ABIERTO.value
        assert enero.closed_at is None
        assert db.query(ClosureAudit).count() == 0

    def test_asiento_descuadrado_detectado(self, db, uow, company, ejercicio):
        entry = contabilizar(uow, company.id, plantilla_comision(100, "x"), date(2025, 1, 15), "x", None)
        entry.lines[0].debit = Decimal("90")
        db.flush()
        validacion = validate_period_before_close(db, _enero(ejercicio).id)
        assert validacion["valid"] is False
        assert validacion["unbalanced_entries"][0]["difference"] == 10.0

    def test_periodo_ya_cerrado(self, db, ejercicio):
        close_period(db, _enero(ejercicio).id, None)
        with pytest.raises(PeriodValidationError):
            close_period(db, _enero(ejercicio).id, None)

    def test_cierre_oculta_documentos_del_periodo(self, db, uow, company, cliente, ejercicio):
        factura = crear_factura_venta(
            uow, company.id, cliente.id,
            [{"descripcion": "x", "cantidad": 1, "precio_unitario": 100, "tasa_iva": 22}],
            date(2025, 1, 10), None,
        )
        db.commit()
        close_period(db, _enero(ejercicio).id, None)
        db.commit()
        db.refresh(factura)
        assert factura.hidden_in_lists is True
        reopen_period(db, _enero(ejercicio).id, None, "Ajuste")
        db.commit()
        db.refresh(factura)
        assert factura.hidden_in_lists is False


class TestReapertura:

    def test_motivo_obligatorio(self, db, ejercicio):
        enero = close_period(db, _enero(ejercicio).id, None)
        with pytest.raises(PeriodValidationError):
            reopen_period(db, enero.id, None, "   ")
        assert enero.status == EstadoPeriodo.CERRADO.value

    def test_reapertura(self, db, company, admin, ejercicio):
        enero = close_period(db, _enero(ejercicio).id, admin.id)
        enero = reopen_period(db, enero.id, admin.id, "  Factura omitida  ")
        assert enero.status == EstadoPeriodo.ABIERTO.value
        assert enero.allows_entries is True
        assert enero.reopen_reason == "Factura omitida"
        acciones = [a.action for a in historial_cierres(db, company.id, period_id=enero.id)]
        assert sorted(acciones) == [AccionCierre.CIERRE.value, AccionCierre.REAPERTURA.value]

    def test_periodo_abierto_no_se_reabre(self, db, ejercicio):
        with pytest.raises(PeriodValidationError):
            reopen_period(db, _enero(ejercicio).id, None, "x")


class TestCierreEjercicio:

    def test_requiere_todos_los_periodos_cerrados(self, db, ejercicio):
        close_period(db, _enero(ejercicio).id, None)
        with pytest.raises(PeriodValidationError):
            close_fiscal_year(db, ejercicio.id, None)

    def test_cierre_y_cierre_definitivo(self, db, ejercicio):
        for p in ejercicio.periods:
            close_period(db, p.id, None)
        with pytest.raises(PeriodValidationError):
            definitive_close_fiscal_year(db, ejercicio.id, None)

        fy = close_fiscal_year(db, ejercicio.id, None, "Cierre anual")
        assert fy.status == EstadoPeriodo.CERRADO.value
        # Ejercicio cerrado sin cierre definitivo: sus períodos aún se reabren
        enero = reopen_period(db, _enero(fy).id, None, "Ajuste de auditoría")
        assert enero.status == EstadoPeriodo.ABIERTO.value
        assert enero.allows_entries is True
        assert fy.status == EstadoPeriodo.CERRADO.value

        fy = definitive_close_fiscal_year(db, ejercicio.id, None)
        assert fy.status == EstadoPeriodo.CERRADO_DEFINITIVO.value
        assert all(p.status == EstadoPeriodo.CERRADO_DEFINITIVO.value for p in fy.periods)
        with pytest.raises(PeriodValidationError, match="definitivo"):
            reopen_period(db, _enero(fy).id, None, "x")


class TestConsultas:

    def test_validar_fecha(self, db, company, ejercicio):
        assert validar_fecha_en_periodo_abierto(db, company.id, date(2025, 5, 5))["valido"] is True
        assert validar_fecha_en_periodo_abierto(db, company.id, date(2030, 1, 1))["period_id"] is None
        close_period(db, ejercicio.periods[4].id, None)
        resultado = validar_fecha_en_periodo_abierto(db, company.id, date(2025, 5, 5))
        assert resultado["valido"] is False

    def test_dias_restantes(self, db, company, ejercicio):
        assert dias_restantes_periodo_actual(db, company.id, hoy=date(2025, 2, 20)) == 8
        assert dias_restantes_periodo_actual(db, company.id, hoy=date(2031, 1, 1)) is None
