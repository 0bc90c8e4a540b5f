"""
Configuración global de pytest: BD SQLite en memoria y datos base.
"""
import os
import sys
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Agregar el directorio raíz al path para imports
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

# Antes de importar contaliados: la configuración se lee al importar
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["WEBHOOK_SECRET"] = "secreto-de-prueba"
os.environ["ENVIRONMENT"] = "development"
os.environ["DGI_URL_WEBSERVICE"] = ""
os.environ["DGI_API_KEY"] = ""
os.environ["LOG_DIR"] = os.path.join(tempfile.gettempdir(), "contaliados-logs")

from contaliados.db import Base, engine, SessionLocal, _import_all_models  # noqa: E402
from contaliados.domain.models import Company, User  # noqa: E402
from contaliados.domain.models_ventas import Customer  # noqa: E402
from contaliados.domain.models_partners import Partner, PartnerCommission  # noqa: E402
from contaliados.domain.enums import UserRole  # noqa: E402
from contaliados.infrastructure.unit_of_work import UnitOfWork  # noqa: E402
from contaliados.application.services_ledger import cargar_plan_base  # noqa: E402
from contaliados.application.services_ventas import crear_factura_venta  # noqa: E402

_import_all_models()


@pytest.fixture
def db():
    """Sesión sobre un esquema recién creado para cada test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def uow(db):
    return UnitOfWork(db)


@pytest.fixture
def company(db, uow):
    """Empresa uruguaya con el plan base cargado."""
    c = Company(
        name="Tienda Demo S.A.",
        rut="211234560018",
        country_code="UY",
        settings={"retencion_pasarela": 7, "split_pasarela_partner": 50, "comision_sistema": 15},
    )
    db.add(c)
    db.flush()
    cargar_plan_base(uow, c.id)
    db.commit()
    return c


@pytest.fixture
def admin(db):
    user = User(username="admin_test", password_hash="x", role=UserRole.ADMINISTRADOR.value, active=True)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def cliente(db, company):
    c = Customer(company_id=company.id, document_type="CI", document_number="12345678", name="Juan Pérez")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def partner(db, company):
    p = Partner(
        company_id=company.id, document_number="219876540012", legal_name="Artesanías del Sur",
        commission_rate=Decimal("15"),
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def venta_con_comision(db, uow, company, cliente, partner):
    """
    Factura de 1000 + IVA con una línea del partner y su comisión pendiente (15% = 150).
    """
    factura = crear_factura_venta(
        uow, company.id, cliente.id,
        [{"descripcion": "Mate de calabaza", "cantidad": 2, "precio_unitario": 500, "tasa_iva": 22, "partner_id": partner.id}],
        date(2025, 3, 1), None,
    )
    linea = factura.lines[0]
    comision = PartnerCommission(
        company_id=company.id, partner_id=partner.id, sales_invoice_id=factura.id,
        sales_invoice_line_id=linea.id, order_id="ORD-1", sale_date=date(2025, 3, 1),
        sale_amount=Decimal("1000.00"), commission_rate=Decimal("15"), commission_amount=Decimal("150.00"),
    )
    db.add(comision)
    db.commit()
    return factura, comision
