from datetime import date
from sqlalchemy.orm import Session
from ..domain.models import Account, JournalEntry, Period, Company, SequenceCounter
from ..domain.models_ventas import Customer, SalesInvoice
from ..domain.models_compras import Supplier, PurchaseInvoice, AccountsPayable
from ..domain.models_partners import Partner, PartnerCommission
from ..domain.models_eventos import ExternalEvent

class AccountRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, acc: Account): self.db.add(acc); return acc
    def by_code(self, company_id:int, code:str):
        return self.db.query(Account).filter(Account.company_id==company_id, Account.code==code).first()
    def by_codes(self, company_id:int, codes):
        rows = self.db.query(Account).filter(Account.company_id==company_id, Account.code.in_(list(codes))).all()
        return {a.code: a for a in rows}
    def list(self, company_id:int):
        return self.db.query(Account).filter(Account.company_id==company_id).order_by(Account.code).all()

class JournalRepository:
    def __init__(self, db: Session): self.db = db
    def add_entry(self, e: JournalEntry): self.db.add(e); return e
    def get(self, id:int): return self.db.get(JournalEntry, id)
    def last_number(self, company_id:int, prefix:str):
        row = (self.db.query(JournalEntry.number)
               .filter(JournalEntry.company_id==company_id, JournalEntry.number.like(f"{prefix}-%"))
               .order_by(JournalEntry.id.desc()).first())
        return row[0] if row else None

class CompanyRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id:int): return self.db.get(Company, id)

class PeriodRepository:
    def __init__(self, db: Session): self.db = db
    def for_date(self, company_id:int, d:date):
        return self.db.query(Period).filter(
            Period.company_id==company_id, Period.start_date<=d, Period.end_date>=d
        ).first()

class SequenceRepository:
    def __init__(self, db: Session): self.db = db
    def locked(self, company_id:int, sequence:str):
        return (self.db.query(SequenceCounter)
                .filter_by(company_id=company_id, sequence=sequence)
                .with_for_update().first())

class CustomerRepository:
    def __init__(self, db: Session): self.db = db
    def by_document(self, company_id:int, document_number:str):
        return self.db.query(Customer).filter_by(company_id=company_id, document_number=document_number).first()
    def add(self, c: Customer): self.db.add(c); return c

class SupplierRepository:
    def __init__(self, db: Session): self.db = db
    def by_document(self, company_id:int, document_number:str):
        return self.db.query(Supplier).filter_by(company_id=company_id, document_number=document_number).first()
    def add(self, s: Supplier): self.db.add(s); return s

class PartnerRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id:int): return self.db.get(Partner, id)
    def by_document(self, company_id:int, document_number:str):
        return self.db.query(Partner).filter_by(company_id=company_id, document_number=document_number).first()
    def active(self, company_id:int):
        return self.db.query(Partner).filter_by(company_id=company_id, active=True).order_by(Partner.id).all()
    def add(self, p: Partner): self.db.add(p); return p

class CommissionRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id:int): return self.db.get(PartnerCommission, id)
    def add(self, c: PartnerCommission): self.db.add(c); return c
    def pending_settlement(self, company_id:int, partner_id:int):
        # Pendientes, ligadas a una factura de venta y aún sin factura de compra
        return self.db.query(PartnerCommission).filter(
            PartnerCommission.company_id==company_id,
            PartnerCommission.partner_id==partner_id,
            PartnerCommission.commission_status=="pendiente",
            PartnerCommission.sales_invoice_id.isnot(None),
            PartnerCommission.purchase_invoice_id.is_(None),
        ).order_by(PartnerCommission.id).all()
    def by_purchase_invoice(self, purchase_invoice_id:int):
        return self.db.query(PartnerCommission).filter_by(purchase_invoice_id=purchase_invoice_id).all()

class SalesInvoiceRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id:int): return self.db.get(SalesInvoice, id)
    def add(self, f: SalesInvoice): self.db.add(f); return f
    def by_order(self, company_id:int, order_id:str):
        return self.db.query(SalesInvoice).filter_by(company_id=company_id, external_order_id=order_id).first()

class PurchaseInvoiceRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id:int): return self.db.get(PurchaseInvoice, id)
    def add(self, f: PurchaseInvoice): self.db.add(f); return f
    def payable(self, id:int): return self.db.get(AccountsPayable, id)
    def payable_for_invoice(self, purchase_invoice_id:int):
        return self.db.query(AccountsPayable).filter_by(purchase_invoice_id=purchase_invoice_id).first()

class EventRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id:int): return self.db.get(ExternalEvent, id)
