from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Date, DateTime, Numeric, Enum, UniqueConstraint, Table, JSON, Text
from datetime import datetime
from sqlalchemy.orm import relationship, Mapped, mapped_column
from typing import Dict, Any
from ..db import Base
from .enums import AccountType, EstadoAsiento, EstadoPeriodo

# Tabla intermedia para relación many-to-many entre User y Company
user_companies = Table(
    "user_companies",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("company_id", Integer, ForeignKey("companies.id"), primary_key=True),
)

class Company(Base):
    """Empresa (tenant). Todo dato contable cuelga de una empresa."""
    __tablename__ = "companies"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)  # Razón Social
    rut: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    country_code: Mapped[str] = mapped_column(String(2), default="UY")
    # retencion_pasarela, comision_sistema, split_pasarela_partner
    settings: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    users = relationship("User", secondary=user_companies, back_populates="companies")

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(String(50), default="OPERADOR")
    nombre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    correo: Mapped[str | None] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    companies = relationship("Company", secondary=user_companies, back_populates="users")

class Account(Base):
    """Plan de cuentas. El código es jerárquico: '1' agrupa a '1011', '1212', etc."""
    __tablename__ = "accounts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    code: Mapped[str] = mapped_column(String(20), index=True)
    name: Mapped[str] = mapped_column(String(200))
    level: Mapped[int] = mapped_column(Integer, default=4)
    type: Mapped[AccountType] = mapped_column(Enum(AccountType), nullable=False)
    parent_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    __table_args__ = (UniqueConstraint('company_id','code', name='uq_company_account_code'),)

class FiscalYear(Base):
    """Ejercicio contable"""
    __tablename__ = "fiscal_years"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    year: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(100))
    start_date: Mapped[Date] = mapped_column(Date)
    end_date: Mapped[Date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default=EstadoPeriodo.ABIERTO.value)  # abierto, cerrado, cerrado_definitivo
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    __table_args__ = (UniqueConstraint('company_id', 'year', name='uq_company_fiscal_year'),)

    periods = relationship("Period", back_populates="fiscal_year", order_by="Period.number", cascade="all, delete-orphan")

class Period(Base):
    """Período contable mensual"""
    __tablename__ = "periods"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    fiscal_year_id: Mapped[int] = mapped_column(ForeignKey("fiscal_years.id"), index=True)
    number: Mapped[int] = mapped_column(Integer)  # 1..12 dentro del ejercicio
    name: Mapped[str] = mapped_column(String(50))  # "Enero 2025"
    start_date: Mapped[Date] = mapped_column(Date, index=True)
    end_date: Mapped[Date] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(20), default=EstadoPeriodo.ABIERTO.value)  # abierto, cerrado, cerrado_definitivo
    allows_entries: Mapped[bool] = mapped_column(Boolean, default=True)  # permite_asientos
    # Totales capturados al cierre
    total_debit: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    total_credit: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    entry_count: Mapped[int] = mapped_column(Integer, default=0)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)  # Fecha/hora de cierre
    closed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)  # Usuario que cerró
    close_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reopened_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)  # Fecha/hora de reapertura
    reopened_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)  # Usuario que reabrió
    reopen_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    fiscal_year = relationship("FiscalYear", back_populates="periods")

class ClosureAudit(Base):
    """
    Bitácora de cierres y reaperturas (cierres_contables).
    Solo se insertan filas; nunca se actualizan ni eliminan.
    """
    __tablename__ = "closure_audits"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    closure_type: Mapped[str] = mapped_column(String(20))  # PERIODO, EJERCICIO
    action: Mapped[str] = mapped_column(String(20))  # CIERRE, REAPERTURA
    period_id: Mapped[int | None] = mapped_column(ForeignKey("periods.id"), nullable=True, index=True)
    fiscal_year_id: Mapped[int | None] = mapped_column(ForeignKey("fiscal_years.id"), nullable=True, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str] = mapped_column(String(20))
    total_debit: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    total_credit: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    entry_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)

class JournalEntry(Base):
    __tablename__ = "journal_entries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    number: Mapped[str] = mapped_column(String(20), index=True)  # ASI-00001
    date: Mapped[Date] = mapped_column(Date, index=True)
    period_id: Mapped[int | None] = mapped_column(ForeignKey("periods.id"), nullable=True)
    description: Mapped[str] = mapped_column(String(500), default="")
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)  # FACT-n, COBRO-n, ...
    status: Mapped[str] = mapped_column(String(20), default=EstadoAsiento.BORRADOR.value)  # borrador, confirmado
    origin: Mapped[str] = mapped_column(String(50), default="MANUAL")  # MANUAL, VENTAS, COMPRAS, COMISIONES, TESORERIA
    # Documento soporte: {"tipo": "factura_venta", "id": 1, "numero": "A-00000001", ...}
    supporting_document: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime, default=datetime.now, nullable=True)
    __table_args__ = (UniqueConstraint('company_id', 'number', name='uq_company_entry_number'),)

    lines = relationship("EntryLine", back_populates="entry", cascade="all, delete-orphan", order_by="EntryLine.line_number")
    creator = relationship("User", foreign_keys=[created_by])

class EntryLine(Base):
    __tablename__ = "entry_lines"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_id: Mapped[int] = mapped_column(ForeignKey("journal_entries.id"), index=True)
    line_number: Mapped[int] = mapped_column(Integer)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)
    debit: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    credit: Mapped[Numeric] = mapped_column(Numeric(14,2), default=0)
    memo: Mapped[str | None] = mapped_column(String(250))
    entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account")

class SequenceCounter(Base):
    """Contador monotónico por empresa y secuencia (asientos, facturas por serie)"""
    __tablename__ = "sequence_counters"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    sequence: Mapped[str] = mapped_column(String(50))  # "asientos", "factura_venta:A", "factura_compra:PART"
    value: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('company_id', 'sequence', name='uq_company_sequence'),)

class TaxConfig(Base):
    """Tasas de impuestos por país (impuestos_configuracion)"""
    __tablename__ = "tax_configs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    country_code: Mapped[str] = mapped_column(String(2), index=True)
    code: Mapped[str] = mapped_column(String(30))  # IVA_BASICO, IVA_MINIMO
    rate: Mapped[Numeric] = mapped_column(Numeric(6,2))  # 22.00
    active: Mapped[bool] = mapped_column(Boolean, default=True)

class BankAccount(Base):
    """Cuenta bancaria asociada a una cuenta contable"""
    __tablename__ = "bank_accounts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)
    bank_name: Mapped[str] = mapped_column(String(100))
    account_number: Mapped[str] = mapped_column(String(50))
    currency: Mapped[str] = mapped_column(String(3), default="UYU")
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    account = relationship("Account")
