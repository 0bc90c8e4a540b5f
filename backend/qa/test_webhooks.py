"""
Tests de ingesta de webhooks de pedidos
"""
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from contaliados.domain.models_ventas import SalesInvoice, CreditNote
from contaliados.domain.models_partners import Partner, PartnerCommission
from contaliados.domain.models_eventos import ExternalEvent
from contaliados.domain.enums import EstadoFactura
from contaliados.application.services_webhooks import (
    verificar_secreto, registrar_evento, procesar_evento, reintentar_evento, listar_eventos,
    WebhookAuthError, WebhookError, EventoNoSoportadoError,
)


def pedido_pagado(company_id, order_id="ORD-100"):
    return {
        "version": "2.0",
        "event": "order.paid",
        "empresa_id": company_id,
        "order_id": order_id,
        "customer": {"documento": "45678901", "nombre": "Ana Gómez", "email": "ana@example.com"},
        "items": [
            {
                "codigo": "ALF-1", "descripcion": "Alfajores x12", "cantidad": 2, "precio_unitario": 250,
                "tasa_iva": 22,
                "partner": {"documento": "217700010019", "razon_social": "Dulces Criollos", "comision_porcentaje": 10},
            },
            {"codigo": "ENV", "descripcion": "Envío", "cantidad": 1, "precio_unitario": 100, "tasa_iva": 22},
        ],
        "amounts": {"subtotal": 600, "tax": 132, "total": 732},
        "payment": {"method": "TARJETA", "transaction_id": "tx-1", "paid_at": "2025-03-10T14:30:00"},
    }


def pedido_cancelado(company_id, order_id="ORD-100"):
    return {"version": "2.0", "event": "order.cancelled", "empresa_id": company_id, "order_id": order_id, "reason": "Sin stock"}


def _procesar(db, payload):
    evento = registrar_evento(db, payload)
    return evento, procesar_evento(db, evento.id)


class TestSecreto:

    def test_secreto_correcto(self):
        verificar_secreto("secreto-de-prueba")

    @pytest.mark.parametrize("recibido", [None, "", "otro"])
    def test_secreto_incorrecto(self, recibido):
        with pytest.raises(WebhookAuthError, match="Invalid webhook secret"):
            verificar_secreto(recibido)

    def test_sin_secreto_configurado_rechaza_todo(self):
        with patch("contaliados.application.services_webhooks.settings.webhook_secret", ""):
            with pytest.raises(WebhookAuthError):
                verificar_secreto("")


class TestPedidoPagado:

    def test_factura_comision_y_cobro(self, db, company):
        evento, resultado = _procesar(db, pedido_pagado(company.id))

        assert resultado["comisiones_registradas"] == 1
        factura = db.get(SalesInvoice, resultado["factura_id"])
        assert factura.status == EstadoFactura.PAGADA.value
        assert factura.external_order_id == "ORD-100"
        assert factura.issue_date == date(2025, 3, 10)
        assert factura.total == Decimal("732.00")
        assert factura.journal_entry_id and factura.payment_entry_id

        comision = db.query(PartnerCommission).one()
        assert comision.sale_amount == Decimal("500.00")
        assert comision.commission_amount == Decimal("50.00")
        partner = db.get(Partner, comision.partner_id)
        assert partner.legal_name == "Dulces Criollos"

        db.refresh(evento)
        assert evento.processed is True
        assert evento.sales_invoice_id == factura.id
        assert evento.error is None

    def test_pedido_repetido_no_duplica(self, db, company):
        _procesar(db, pedido_pagado(company.id))
        _, resultado = _procesar(db, pedido_pagado(company.id))
        assert resultado["duplicado"] is True
        assert db.query(SalesInvoice).count() == 1
        assert db.query(PartnerCommission).count() == 1

    def test_evento_no_soportado_queda_para_reintento(self, db, company):
        evento = registrar_evento(db, {"event": "order.shipped", "empresa_id": company.id, "order_id": "X"})
        with pytest.raises(EventoNoSoportadoError):
            procesar_evento(db, evento.id)
        db.refresh(evento)
        assert evento.processed is False
        assert evento.retries == 1
        assert "order.shipped" in evento.error

    def test_fallo_revierte_lo_de_negocio(self, db, company):
        payload = pedido_pagado(company.id)
        payload["items"] = []
        evento = registrar_evento(db, payload)
        with pytest.raises(WebhookError):
            procesar_evento(db, evento.id)
        assert db.query(SalesInvoice).count() == 0
        assert db.query(ExternalEvent).count() == 1

    def test_reintento(self, db, company):
        payload = pedido_pagado(company.id, "ORD-200")
        evento = registrar_evento(db, payload)
        with patch(
            "contaliados.application.services_webhooks.generar_asiento_cobro",
            side_effect=RuntimeError("BD no disponible"),
        ):
            with pytest.raises(RuntimeError):
                procesar_evento(db, evento.id)
        assert [e.id for e in listar_eventos(db, company.id, solo_pendientes=True)] == [evento.id]

        resultado = reintentar_evento(db, evento.id)
        assert resultado["numero_factura"] == "A-00000001"
        with pytest.raises(WebhookError, match="ya fue procesado"):
            reintentar_evento(db, evento.id)
        assert listar_eventos(db, company.id, solo_pendientes=True) == []


class TestPedidoCancelado:

    def test_factura_no_enviada_se_elimina(self, db, company):
        _procesar(db, pedido_pagado(company.id))
        _, resultado = _procesar(db, pedido_cancelado(company.id))
        assert resultado["accion"] == "eliminada"
        assert db.query(SalesInvoice).count() == 0
        assert db.query(PartnerCommission).count() == 0

    def test_factura_enviada_genera_nota_de_credito(self, db, company):
        _, pagado = _procesar(db, pedido_pagado(company.id))
        factura = db.get(SalesInvoice, pagado["factura_id"])
        factura.dgi_sent = True
        factura.dgi_cae = "CAE-1"
        db.commit()

        evento, resultado = _procesar(db, pedido_cancelado(company.id))
        assert resultado["accion"] == "nota_credito"
        nota = db.get(CreditNote, resultado["nota_credito_id"])
        assert nota.total == Decimal("-732.00")
        assert nota.reason == "Sin stock"
        db.refresh(factura)
        assert factura.status == EstadoFactura.ANULADA.value
        db.refresh(evento)
        assert evento.credit_note_id == nota.id

        _, otra = _procesar(db, pedido_cancelado(company.id))
        assert otra["accion"] == "ya_anulada"

    def test_pedido_inexistente(self, db, company):
        evento = registrar_evento(db, pedido_cancelado(company.id, "NO-EXISTE"))
        with pytest.raises(WebhookError):
            procesar_evento(db, evento.id)
