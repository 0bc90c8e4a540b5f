from pydantic import BaseModel, Field, constr
from typing import List, Optional, Dict, Any
from datetime import date, datetime

class AccountIn(BaseModel):
    company_id: int = Field(..., description="ID de la empresa")
    code: constr(strip_whitespace=True, min_length=1)
    name: str
    level: int = 4
    type: str  # ACTIVO, PASIVO, PATRIMONIO, INGRESO, GASTO
    parent_code: Optional[str] = None

class AccountOut(BaseModel):
    id: int
    company_id: int
    code: str
    name: str
    level: int
    type: str
    parent_code: Optional[str] = None
    active: bool

class EntryLineIn(BaseModel):
    account_code: str
    debit: float = 0.0
    credit: float = 0.0
    memo: Optional[str] = None

class JournalEntryIn(BaseModel):
    company_id: int
    date: date
    description: str = ""
    reference: Optional[str] = None
    lines: List[EntryLineIn]

class EntryLineOut(BaseModel):
    line_number: int
    account_code: str
    account_name: str
    debit: float
    credit: float
    memo: Optional[str] = None

class JournalEntryOut(BaseModel):
    id: int
    company_id: int
    number: str
    date: date
    description: str
    reference: Optional[str] = None
    status: str
    origin: str
    period_id: Optional[int] = None
    supporting_document: Optional[Dict[str, Any]] = None
    created_by: Optional[int] = None
    total_debit: float
    total_credit: float
    lines: List[EntryLineOut] = []

class TrialBalanceItem(BaseModel):
    account_id: int
    code: str
    name: str
    type: str
    level: int
    saldo_inicial: float  # con signo según naturaleza de la cuenta
    saldo_inicial_debe: float
    saldo_inicial_haber: float
    debe: float  # movimientos del período
    haber: float
    saldo_final: float
    saldo_final_debe: float
    saldo_final_haber: float

class TrialBalanceTotals(BaseModel):
    saldo_inicial_debe: float = 0.0
    saldo_inicial_haber: float = 0.0
    debe: float = 0.0
    haber: float = 0.0
    saldo_final_debe: float = 0.0
    saldo_final_haber: float = 0.0

class TrialBalanceOut(BaseModel):
    company_id: int
    fecha_inicio: Optional[date] = None
    fecha_fin: Optional[date] = None
    nivel: Optional[int] = None
    items: List[TrialBalanceItem]
    totales: TrialBalanceTotals

class LedgerRow(BaseModel):
    entry_id: int
    entry_number: str
    date: date
    description: str
    reference: Optional[str] = None
    debit: float
    credit: float
    balance: float
    memo: Optional[str] = None

class LedgerOut(BaseModel):
    account_code: str
    account_name: str
    saldo_inicial: float
    rows: List[LedgerRow]
    saldo_final: float

class ClosureAuditOut(BaseModel):
    id: int
    closure_type: str
    action: str
    period_id: Optional[int] = None
    fiscal_year_id: Optional[int] = None
    user_id: Optional[int] = None
    reason: Optional[str] = None
    observations: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: str
    total_debit: float
    total_credit: float
    entry_count: int
    created_at: datetime
    class Config:
        from_attributes = True
