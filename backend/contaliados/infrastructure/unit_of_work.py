from contextlib import contextmanager
from sqlalchemy.orm import Session
from ..db import SessionLocal
from .repositories import (
    AccountRepository, JournalRepository, CompanyRepository, PeriodRepository,
    CustomerRepository, SupplierRepository, PartnerRepository, CommissionRepository,
    SalesInvoiceRepository, PurchaseInvoiceRepository, EventRepository,
)

class UnitOfWork:
    def __init__(self, db: Session = None):
        self._owns_session = db is None
        self.db: Session = db if db is not None else SessionLocal()
        self.accounts = AccountRepository(self.db)
        self.journal = JournalRepository(self.db)
        self.companies = CompanyRepository(self.db)
        self.periods = PeriodRepository(self.db)
        self.customers = CustomerRepository(self.db)
        self.suppliers = SupplierRepository(self.db)
        self.partners = PartnerRepository(self.db)
        self.commissions = CommissionRepository(self.db)
        self.sales = SalesInvoiceRepository(self.db)
        self.purchases = PurchaseInvoiceRepository(self.db)
        self.events = EventRepository(self.db)

    def commit(self): self.db.commit()
    def rollback(self): self.db.rollback()
    def close(self):
        # La sesión de un request la cierra get_db
        if self._owns_session:
            self.db.close()

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise
        finally:
            self.close()
