from sqlalchemy import Integer, String, Boolean, ForeignKey, DateTime, JSON, Text
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from typing import Dict, Any
from ..db import Base

class ExternalEvent(Base):
    """
    Eventos recibidos por webhook (eventos_externos).
    El payload se guarda antes de procesarlo para auditoría y reintentos.
    """
    __tablename__ = "external_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(50), index=True)  # order.paid, order.cancelled
    source: Mapped[str] = mapped_column(String(30), default="webhook")
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    retries: Mapped[int] = mapped_column(Integer, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    sales_invoice_id: Mapped[int | None] = mapped_column(ForeignKey("sales_invoices.id"), nullable=True)
    credit_note_id: Mapped[int | None] = mapped_column(ForeignKey("credit_notes.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
