"""
Fixtures para tests de integración API.
Usa TestClient de FastAPI contra la app real, con la sesión de BD del test.
"""
import pytest
from fastapi.testclient import TestClient

from contaliados.main import app
from contaliados.dependencies import get_db
from contaliados.security.auth import get_current_user


@pytest.fixture
def client(db):
    """Cliente HTTP sin autenticación sobre la BD del test."""
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client_auth(client, admin):
    """Cliente autenticado como administrador (override de get_current_user)."""
    app.dependency_overrides[get_current_user] = lambda: admin
    return client
