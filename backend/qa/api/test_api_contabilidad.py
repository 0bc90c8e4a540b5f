"""
Tests de API - Empresas, plan de cuentas, asientos, reportes, períodos y ventas
"""
from contaliados.domain.models import Company, User


def _asiento(company_id, lines, fecha="2025-03-01"):
    return {"company_id": company_id, "date": fecha, "description": "Aporte de capital", "lines": lines}


class TestEmpresasAPI:

    def test_crear_empresa_con_plan_base(self, client_auth, db):
        r = client_auth.post("/companies", json={"name": "Nueva S.R.L.", "rut": "210000000011"})
        assert r.status_code == 200
        company_id = r.json()["id"]
        cuentas = client_auth.get("/accounts", params={"company_id": company_id}).json()
        assert {"1011", "7011", "2211"} <= {c["code"] for c in cuentas}

    def test_nombre_duplicado(self, client_auth, company):
        r = client_auth.post("/companies", json={"name": company.name})
        assert r.status_code == 400


class TestCuentasAPI:

    def test_tipo_invalido(self, client_auth, company):
        r = client_auth.post("/accounts", json={"company_id": company.id, "code": "9999", "name": "X", "type": "OTRO"})
        assert r.status_code == 400

    def test_codigo_duplicado(self, client_auth, company):
        r = client_auth.post("/accounts", json={"company_id": company.id, "code": "1011", "name": "Caja", "type": "ACTIVO"})
        assert r.status_code == 400


class TestAsientosAPI:

    def test_asiento_manual(self, client_auth, company):
        r = client_auth.post("/journal/entries", json=_asiento(company.id, [
            {"account_code": "1041", "debit": 5000},
            {"account_code": "3111", "credit": 5000},
        ]))
        assert r.status_code == 200
        data = r.json()
        assert data["number"] == "ASI-00001"
        assert data["total_debit"] == data["total_credit"] == 5000.0
        assert client_auth.get(f"/journal/entries/{data['id']}").status_code == 200

    def test_descuadrado(self, client_auth, company):
        r = client_auth.post("/journal/entries", json=_asiento(company.id, [
            {"account_code": "1041", "debit": 5000},
            {"account_code": "3111", "credit": 4000},
        ]))
        assert r.status_code == 400
        assert "descuadrado" in r.json()["detail"]

    def test_linea_con_debe_y_haber(self, client_auth, company):
        r = client_auth.post("/journal/entries", json=_asiento(company.id, [
            {"account_code": "1041", "debit": 10, "credit": 10},
        ]))
        assert r.status_code == 400

    def test_operador_no_registra_asientos(self, client, db, company):
        from contaliados.main import app
        from contaliados.security.auth import get_current_user
        operador = User(username="operador", password_hash="x", role="OPERADOR", active=True)
        operador.companies.append(db.get(Company, company.id))
        db.add(operador)
        db.commit()
        app.dependency_overrides[get_current_user] = lambda: operador
        r = client.post("/journal/entries", json=_asiento(company.id, [
            {"account_code": "1041", "debit": 1},
            {"account_code": "3111", "credit": 1},
        ]))
        assert r.status_code == 403

    def test_empresa_no_asignada(self, client, db, company):
        from contaliados.main import app
        from contaliados.security.auth import get_current_user
        contador = User(username="contador", password_hash="x", role="CONTADOR", active=True)
        db.add(contador)
        db.commit()
        app.dependency_overrides[get_current_user] = lambda: contador
        r = client.get("/accounts", params={"company_id": company.id})
        assert r.status_code == 403


class TestReportesAPI:

    def test_balance_y_exportacion(self, client_auth, company):
        client_auth.post("/journal/entries", json=_asiento(company.id, [
            {"account_code": "1041", "debit": 5000},
            {"account_code": "3111", "credit": 5000},
        ]))
        r = client_auth.get("/reports/trial-balance", params={"company_id": company.id})
        assert r.status_code == 200
        totales = r.json()["totales"]
        assert totales["saldo_final_debe"] == totales["saldo_final_haber"] == 5000.0

        csv_resp = client_auth.get("/reports/trial-balance/export", params={"company_id": company.id, "formato": "csv"})
        assert csv_resp.status_code == 200
        assert "attachment" in csv_resp.headers["content-disposition"]

        pdf = client_auth.get("/reports/trial-balance/export", params={"company_id": company.id, "formato": "pdf"})
        assert pdf.status_code == 200
        assert pdf.content.startswith(b"%PDF")

        mayor = client_auth.get("/reports/ledger", params={"company_id": company.id, "account_code": "1041"})
        assert mayor.json()["saldo_final"] == 5000.0

    def test_rango_invalido(self, client_auth, company):
        r = client_auth.get("/reports/trial-balance", params={
            "company_id": company.id, "fecha_inicio": "2025-02-01", "fecha_fin": "2025-01-01",
        })
        assert r.status_code == 400


class TestPeriodosAPI:

    def test_cierre_bloquea_asientos(self, client_auth, company):
        fy = client_auth.post("/periods/fiscal-years", json={"company_id": company.id, "year": 2025}).json()
        marzo = fy["periods"][2]
        r = client_auth.post(f"/periods/{marzo['id']}/close", json={"reason": "Fin de mes"})
        assert r.status_code == 200
        assert r.json()["status"] == "cerrado"

        r = client_auth.post("/journal/entries", json=_asiento(company.id, [
            {"account_code": "1041", "debit": 1},
            {"account_code": "3111", "credit": 1},
        ], fecha="2025-03-10"))
        assert r.status_code == 400

        r = client_auth.post(f"/periods/{marzo['id']}/reopen", json={})
        assert r.status_code == 400
        r = client_auth.post(f"/periods/{marzo['id']}/reopen", json={"reason": "Ajuste"})
        assert r.status_code == 200

        historial = client_auth.get("/periods/history", params={"company_id": company.id}).json()
        assert len(historial) == 2


class TestVentasAPI:

    def test_factura_cobro_nota_credito_y_dgi(self, client_auth, company, cliente):
        r = client_auth.post("/ventas/facturas", json={
            "company_id": company.id, "customer_id": cliente.id, "issue_date": "2025-03-01",
            "lines": [{"description": "Poncho", "quantity": 1, "unit_price": 1000}],
        })
        assert r.status_code == 200
        factura = r.json()
        assert float(factura["total"]) == 1220.0

        dgi = client_auth.post(f"/ventas/facturas/{factura['id']}/enviar-dgi")
        assert dgi.status_code == 200
        assert dgi.json()["simulado"] is True

        cobro = client_auth.post(f"/ventas/facturas/{factura['id']}/cobro", json={
            "payment_type": "TRANSFERENCIA", "payment_date": "2025-03-02",
        })
        assert cobro.json()["status"] == "pagada"

        nota = client_auth.post(f"/ventas/facturas/{factura['id']}/nota-credito", json={"reason": "Devolución"})
        assert nota.status_code == 200
        assert float(nota.json()["total"]) == -1220.0

        otra = client_auth.post(f"/ventas/facturas/{factura['id']}/nota-credito", json={"reason": "Otra"})
        assert otra.status_code == 400

    def test_factura_inexistente(self, client_auth):
        assert client_auth.get("/ventas/facturas/999").status_code == 404
