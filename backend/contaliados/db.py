import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": False, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # SQLite en memoria: una sola conexión compartida
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            os.makedirs("./data", exist_ok=True)
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def _import_all_models():
    """Importa todos los modelos para que Base.metadata los registre."""
    from .domain import models  # noqa: F401 - Company, User, Account, JournalEntry, Period, etc.
    from .domain import models_ventas  # noqa: F401 - Customer, SalesInvoice, CreditNote
    from .domain import models_compras  # noqa: F401 - Supplier, PurchaseInvoice, AccountsPayable
    from .domain import models_partners  # noqa: F401 - Partner, PartnerCommission
    from .domain import models_eventos  # noqa: F401 - ExternalEvent


def init_db():
    """Crear tablas si no existen (arranque normal)."""
    _import_all_models()
    Base.metadata.create_all(bind=engine)
