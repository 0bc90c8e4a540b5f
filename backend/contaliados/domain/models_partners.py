"""
Modelos de partners (aliados) y sus comisiones
"""
from sqlalchemy import Integer, String, Boolean, ForeignKey, Date, DateTime, Numeric, UniqueConstraint
from datetime import datetime
from sqlalchemy.orm import relationship, Mapped, mapped_column
from ..db import Base
from .enums import EstadoComision, EstadoPagoComision, FrecuenciaFacturacion
from . import models_compras  # noqa: F401 - Partner.supplier

class Partner(Base):
    __tablename__ = "partners"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    external_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    document_number: Mapped[str] = mapped_column(String(30), index=True)
    legal_name: Mapped[str] = mapped_column(String(200))  # razon_social
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    commission_rate: Mapped[Numeric] = mapped_column(Numeric(6,2), default=15)  # % comisión del sistema
    billing_frequency: Mapped[str] = mapped_column(String(20), default=FrecuenciaFacturacion.QUINCENAL.value)
    billing_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_billing_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)  # proxima_facturacion
    last_billing_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    supplier_id: Mapped[int | None] = mapped_column(ForeignKey("suppliers.id"), nullable=True)
    bank_account_id: Mapped[int | None] = mapped_column(ForeignKey("bank_accounts.id"), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('company_id', 'document_number', name='uq_company_partner_doc'),)

    supplier = relationship("Supplier")

class PartnerCommission(Base):
    """Comisión por línea de pedido (comisiones_partners)"""
    __tablename__ = "partner_commissions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    partner_id: Mapped[int] = mapped_column(ForeignKey("partners.id"), index=True)
    sales_invoice_id: Mapped[int | None] = mapped_column(ForeignKey("sales_invoices.id"), nullable=True, index=True)
    sales_invoice_line_id: Mapped[int | None] = mapped_column(ForeignKey("sales_invoice_lines.id"), nullable=True)
    purchase_invoice_id: Mapped[int | None] = mapped_column(ForeignKey("purchase_invoices.id"), nullable=True, index=True)
    order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sale_date: Mapped[Date] = mapped_column(Date, index=True)
    sale_amount: Mapped[Numeric] = mapped_column(Numeric(14,2))  # monto de la venta (sin IVA)
    commission_rate: Mapped[Numeric] = mapped_column(Numeric(6,2))
    commission_amount: Mapped[Numeric] = mapped_column(Numeric(14,2))  # comisión del sistema
    commission_status: Mapped[str] = mapped_column(String(20), default=EstadoComision.PENDIENTE.value)  # estado_comision
    payment_status: Mapped[str] = mapped_column(String(20), default=EstadoPagoComision.PENDIENTE.value)  # estado_pago
    expense_entry_id: Mapped[int | None] = mapped_column(ForeignKey("journal_entries.id"), nullable=True)
    hidden_in_lists: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    partner = relationship("Partner")
