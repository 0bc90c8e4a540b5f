"""
Modelos de compras y cuentas por pagar
"""
from sqlalchemy import Integer, String, Boolean, ForeignKey, Date, DateTime, Numeric, UniqueConstraint, JSON, Text
from datetime import datetime
from sqlalchemy.orm import relationship, Mapped, mapped_column
from typing import Dict, Any
from ..db import Base
from .enums import EstadoFactura, EstadoCuentaPorPagar

class Supplier(Base):
    """Proveedor. Los partners se registran también como proveedores para liquidarles comisiones."""
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    document_type: Mapped[str] = mapped_column(String(10), default="RUT")
    document_number: Mapped[str] = mapped_column(String(30), index=True)
    name: Mapped[str] = mapped_column(String(200))  # Razón social
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    supplier_type: Mapped[str] = mapped_column(String(20), default="general")  # general, partner
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('company_id', 'document_number', name='uq_company_supplier_doc'),)

class PurchaseInvoice(Base):
    __tablename__ = "purchase_invoices"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), index=True)
    partner_id: Mapped[int | None] = mapped_column(ForeignKey("partners.id"), nullable=True, index=True)
    series: Mapped[str] = mapped_column(String(10), default="A")
    number: Mapped[str] = mapped_column(String(20), index=True)
    invoice_type: Mapped[str] = mapped_column(String(30), default="general")  # general, partner_pago
    issue_date: Mapped[Date] = mapped_column(Date, index=True)
    due_date: Mapped[Date | None] = mapped_column(Date, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="UYU")
    subtotal: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    tax_amount: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    total: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    status: Mapped[str] = mapped_column(String(20), default=EstadoFactura.PENDIENTE.value)
    # Desglose de la liquidación y comisiones incluidas
    settlement_data: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    journal_entry_id: Mapped[int | None] = mapped_column(ForeignKey("journal_entries.id"), nullable=True)
    hidden_in_lists: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('company_id', 'series', 'number', name='uq_company_purchase_invoice_number'),)

    supplier = relationship("Supplier")
    lines = relationship("PurchaseInvoiceLine", back_populates="invoice", cascade="all, delete-orphan", order_by="PurchaseInvoiceLine.line_number")

    @property
    def full_number(self) -> str:
        return f"{self.series}-{self.number}"

class PurchaseInvoiceLine(Base):
    __tablename__ = "purchase_invoice_lines"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("purchase_invoices.id", ondelete="CASCADE"), index=True)
    line_number: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(String(500))
    quantity: Mapped[Numeric] = mapped_column(Numeric(14,4), default=1)
    unit_price: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    tax_rate: Mapped[Numeric] = mapped_column(Numeric(6,2), default=22)
    subtotal: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    tax_amount: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    total: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    invoice = relationship("PurchaseInvoice", back_populates="lines")

class AccountsPayable(Base):
    """Cuenta por pagar (facturas_por_pagar) espejo de una factura de compra"""
    __tablename__ = "accounts_payable"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), index=True)
    purchase_invoice_id: Mapped[int] = mapped_column(ForeignKey("purchase_invoices.id"), index=True)
    number: Mapped[str] = mapped_column(String(30), index=True)  # PART-00000001
    issue_date: Mapped[Date] = mapped_column(Date)
    due_date: Mapped[Date | None] = mapped_column(Date, nullable=True)
    amount: Mapped[Numeric] = mapped_column(Numeric(14,2))
    amount_paid: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    balance: Mapped[Numeric] = mapped_column(Numeric(14,2))  # saldo pendiente
    status: Mapped[str] = mapped_column(String(20), default=EstadoCuentaPorPagar.PENDIENTE.value)  # PENDIENTE, PARCIAL, PAGADA
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    supplier = relationship("Supplier")
    purchase_invoice = relationship("PurchaseInvoice")
    payments = relationship("SupplierPayment", back_populates="payable", cascade="all, delete-orphan")

class SupplierPayment(Base):
    """Pago a proveedor (pagos_proveedor)"""
    __tablename__ = "supplier_payments"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    payable_id: Mapped[int] = mapped_column(ForeignKey("accounts_payable.id"), index=True)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), index=True)
    bank_account_id: Mapped[int | None] = mapped_column(ForeignKey("bank_accounts.id"), nullable=True)
    payment_date: Mapped[Date] = mapped_column(Date)
    amount: Mapped[Numeric] = mapped_column(Numeric(14,2))
    payment_type: Mapped[str] = mapped_column(String(30))  # TRANSFERENCIA, CHEQUE, EFECTIVO
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    journal_entry_id: Mapped[int | None] = mapped_column(ForeignKey("journal_entries.id"), nullable=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    payable = relationship("AccountsPayable", back_populates="payments")
