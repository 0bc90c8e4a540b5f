"""
Modelos de ventas: clientes, facturas de venta y notas de crédito
"""
from sqlalchemy import Integer, String, Boolean, ForeignKey, Date, DateTime, Numeric, UniqueConstraint, JSON, Text
from datetime import datetime
from sqlalchemy.orm import relationship, Mapped, mapped_column
from typing import Dict, Any
from ..db import Base
from .enums import EstadoFactura

class Customer(Base):
    __tablename__ = "customers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    document_type: Mapped[str] = mapped_column(String(10), default="CI")  # CI, RUT, PASAPORTE
    document_number: Mapped[str] = mapped_column(String(30), index=True)
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('company_id', 'document_number', name='uq_company_customer_doc'),)

class SalesInvoice(Base):
    __tablename__ = "sales_invoices"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), index=True)
    series: Mapped[str] = mapped_column(String(10), default="A")
    number: Mapped[str] = mapped_column(String(20), index=True)  # 00000001
    issue_date: Mapped[Date] = mapped_column(Date, index=True)
    due_date: Mapped[Date | None] = mapped_column(Date, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="UYU")
    subtotal: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    tax_amount: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    total: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    status: Mapped[str] = mapped_column(String(20), default=EstadoFactura.PENDIENTE.value)  # borrador, pendiente, pagada, anulada
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    external_order_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    # DGI
    dgi_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    dgi_cae: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dgi_response: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    dgi_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    journal_entry_id: Mapped[int | None] = mapped_column(ForeignKey("journal_entries.id"), nullable=True)
    payment_entry_id: Mapped[int | None] = mapped_column(ForeignKey("journal_entries.id"), nullable=True)
    # Sin FK: la nota de crédito ya referencia a la factura
    credit_note_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hidden_in_lists: Mapped[bool] = mapped_column(Boolean, default=False)  # ocultar_en_listados
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('company_id', 'series', 'number', name='uq_company_sales_invoice_number'),)

    customer = relationship("Customer")
    lines = relationship("SalesInvoiceLine", back_populates="invoice", cascade="all, delete-orphan", order_by="SalesInvoiceLine.line_number")

    @property
    def full_number(self) -> str:
        return f"{self.series}-{self.number}"

class SalesInvoiceLine(Base):
    __tablename__ = "sales_invoice_lines"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("sales_invoices.id", ondelete="CASCADE"), index=True)
    line_number: Mapped[int] = mapped_column(Integer)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str] = mapped_column(String(500))
    quantity: Mapped[Numeric] = mapped_column(Numeric(14,4), default=1)
    unit_price: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    tax_rate: Mapped[Numeric] = mapped_column(Numeric(6,2), default=22)
    subtotal: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    tax_amount: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    total: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    partner_id: Mapped[int | None] = mapped_column(ForeignKey("partners.id"), nullable=True)
    invoice = relationship("SalesInvoice", back_populates="lines")

class CreditNote(Base):
    """Nota de crédito: siempre referencia exactamente una factura de venta"""
    __tablename__ = "credit_notes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    sales_invoice_id: Mapped[int] = mapped_column(ForeignKey("sales_invoices.id"), index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), index=True)
    series: Mapped[str] = mapped_column(String(10), default="NC")
    number: Mapped[str] = mapped_column(String(20), index=True)
    issue_date: Mapped[Date] = mapped_column(Date)
    type: Mapped[str] = mapped_column(String(10))  # total, parcial
    reason: Mapped[str] = mapped_column(String(500))
    # Importes negativos respecto de la factura
    subtotal: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    tax_amount: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    total: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    status: Mapped[str] = mapped_column(String(20), default="emitida")
    journal_entry_id: Mapped[int | None] = mapped_column(ForeignKey("journal_entries.id"), nullable=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    invoice = relationship("SalesInvoice")
    lines = relationship("CreditNoteLine", back_populates="credit_note", cascade="all, delete-orphan", order_by="CreditNoteLine.line_number")

class CreditNoteLine(Base):
    __tablename__ = "credit_note_lines"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    credit_note_id: Mapped[int] = mapped_column(ForeignKey("credit_notes.id", ondelete="CASCADE"), index=True)
    invoice_line_id: Mapped[int | None] = mapped_column(ForeignKey("sales_invoice_lines.id"), nullable=True)
    line_number: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(String(500))
    quantity: Mapped[Numeric] = mapped_column(Numeric(14,4))
    unit_price: Mapped[Numeric] = mapped_column(Numeric(14,2))
    tax_rate: Mapped[Numeric] = mapped_column(Numeric(6,2), default=22)
    subtotal: Mapped[Numeric] = mapped_column(Numeric(14,2))
    tax_amount: Mapped[Numeric] = mapped_column(Numeric(14,2))
    total: Mapped[Numeric] = mapped_column(Numeric(14,2))
    credit_note = relationship("CreditNote", back_populates="lines")
