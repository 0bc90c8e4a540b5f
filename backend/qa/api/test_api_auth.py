"""
Tests de API - Autenticación
"""
import jwt

from contaliados.config import settings
from contaliados.domain.models import User
from contaliados.security.auth import get_password_hash


class TestAuthAPI:
    """Tests de endpoints de autenticación"""

    def test_login_sin_credenciales(self, client):
        """POST /auth/login sin cuerpo debe retornar 422"""
        r = client.post("/auth/login")
        assert r.status_code == 422

    def test_login_credenciales_invalidas(self, client):
        """POST /auth/login con credenciales incorrectas debe retornar 401"""
        r = client.post("/auth/login", data={
            "username": "usuario_inexistente_xyz",
            "password": "clave_incorrecta"
        })
        assert r.status_code == 401

    def test_me_sin_token(self, client):
        """GET /auth/me sin token debe retornar 401"""
        r = client.get("/auth/me")
        assert r.status_code == 401

    def test_me_con_token_invalido(self, client):
        """GET /auth/me con token inválido debe retornar 401"""
        r = client.get("/auth/me", headers={"Authorization": "Bearer token_invalido"})
        assert r.status_code == 401

    def test_bootstrap_admin_en_desarrollo(self, client, db):
        """En desarrollo el primer login del admin configurado crea el usuario"""
        r = client.post("/auth/login", data={"username": settings.admin_user, "password": settings.admin_pass})
        assert r.status_code == 200
        token = r.json()["access_token"]
        assert db.query(User).filter_by(username=settings.admin_user).one().role == "ADMINISTRADOR"

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["username"] == settings.admin_user

    def test_usuario_inactivo(self, client, db):
        db.add(User(username="inactivo", password_hash=get_password_hash("clave"), role="CONTADOR", active=False))
        db.commit()
        r = client.post("/auth/login", data={"username": "inactivo", "password": "clave"})
        assert r.status_code == 401

    def test_token_incluye_rol(self, client, db):
        db.add(User(username="contadora", password_hash=get_password_hash("clave"), role="CONTADOR", active=True))
        db.commit()
        r = client.post("/auth/login", data={"username": "contadora", "password": "clave"})
        claims = jwt.decode(r.json()["access_token"], settings.secret_key, algorithms=["HS256"])
        assert claims["sub"] == "contadora"
        assert claims["role"] == "CONTADOR"


class TestUsuariosAPI:

    def test_alta_de_usuario_con_empresas(self, client_auth, company):
        r = client_auth.post("/auth/users", json={
            "username": "operador1", "password": "clave", "role": "OPERADOR", "company_ids": [company.id],
        })
        assert r.status_code == 200
        assert r.json()["company_ids"] == [company.id]

        login = client_auth.post("/auth/login", data={"username": "operador1", "password": "clave"})
        assert login.status_code == 200

    def test_rol_invalido(self, client_auth):
        r = client_auth.post("/auth/users", json={"username": "x", "password": "y", "role": "SUPERUSUARIO"})
        assert r.status_code == 400

    def test_empresa_inexistente(self, client_auth):
        r = client_auth.post("/auth/users", json={"username": "x", "password": "y", "company_ids": [999]})
        assert r.status_code == 404

    def test_usuario_repetido(self, client_auth, admin):
        r = client_auth.post("/auth/users", json={"username": admin.username, "password": "y"})
        assert r.status_code == 400

    def test_solo_administrador(self, client, db, company):
        from contaliados.main import app
        from contaliados.security.auth import get_current_user
        contador = User(username="contador", password_hash="x", role="CONTADOR", active=True)
        db.add(contador)
        db.commit()
        app.dependency_overrides[get_current_user] = lambda: contador
        r = client.post("/auth/users", json={"username": "nuevo", "password": "y"})
        assert r.status_code == 403

    def test_auditor_no_emite_facturas(self, client, db, company, cliente):
        from contaliados.main import app
        from contaliados.security.auth import get_current_user
        auditor = User(username="auditor", password_hash="x", role="AUDITOR", active=True)
        auditor.companies.append(company)
        db.add(auditor)
        db.commit()
        app.dependency_overrides[get_current_user] = lambda: auditor
        r = client.post("/ventas/facturas", json={
            "company_id": company.id, "customer_id": cliente.id, "issue_date": "2025-03-01",
            "lines": [{"description": "Poncho", "unit_price": 1000}],
        })
        assert r.status_code == 403
        assert client.get("/ventas/facturas", params={"company_id": company.id}).status_code == 200
