# church_admin/schemas/ledger/ledger.py
from pydantic import BaseModel, Field, StrictFloat, StrictInt
from typing import List, Optional, Union
from datetime import datetime

from church_admin.application.ports.ledger_store import (
    Department,
    DepartmentTransaction,
    DepartmentTransfer,
    TransactionStatus,
    TransactionType,
)
from church_admin.application.services.ledger_service import DepartmentSummary, MonthlyBalance
from church_admin.utils import (
    format_currency,
    transaction_status_label,
    transaction_type_label,
)

# Amounts arrive as JSON numbers only; "1.234,56" style strings are refused
Amount = Union[StrictInt, StrictFloat]


# Departments
class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    initial_balance: Amount = 0
    responsible_user_id: Optional[str] = None
    responsible_name: Optional[str] = None
    is_active: bool = True

class DepartmentUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    responsible_user_id: Optional[str] = None
    responsible_name: Optional[str] = None
    is_active: Optional[bool] = None

class DepartmentResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    current_balance: float
    current_balance_display: str
    initial_balance: float
    responsible_user_id: Optional[str] = None
    responsible_name: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    created_by: str

    @classmethod
    def from_domain(cls, d: Department) -> "DepartmentResponse":
        return cls(
            id=d.id,
            name=d.name,
            description=d.description,
            color=d.color,
            icon=d.icon,
            current_balance=float(d.current_balance),
            current_balance_display=format_currency(d.current_balance),
            initial_balance=float(d.initial_balance),
            responsible_user_id=d.responsible_user_id,
            responsible_name=d.responsible_name,
            is_active=d.is_active,
            created_at=d.created_at,
            updated_at=d.updated_at,
            created_by=d.created_by,
        )


# Transactions
class TransactionCreate(BaseModel):
    department_id: str
    type: TransactionType
    amount: Amount
    description: str = Field(min_length=1, max_length=500)
    date: datetime
    status: TransactionStatus = TransactionStatus.PENDING
    reference: Optional[str] = None
    notes: Optional[str] = None
    receipt_number: Optional[str] = None

class TransactionStatusUpdate(BaseModel):
    status: TransactionStatus

class TransactionResponse(BaseModel):
    id: str
    department_id: str
    department_name: str
    type: TransactionType
    type_label: str
    amount: float
    amount_display: str
    description: str
    notes: Optional[str] = None
    reference: str
    receipt_number: Optional[str] = None
    transfer_id: Optional[str] = None
    date: datetime
    status: TransactionStatus
    status_label: str
    created_at: datetime
    updated_at: datetime
    created_by: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, t: DepartmentTransaction) -> "TransactionResponse":
        return cls(
            id=t.id,
            department_id=t.department_id,
            department_name=t.department_name,
            type=t.type,
            type_label=transaction_type_label(t.type),
            amount=float(t.amount),
            amount_display=format_currency(t.amount),
            description=t.description,
            notes=t.notes,
            reference=t.reference,
            receipt_number=t.receipt_number,
            transfer_id=t.transfer_id,
            date=t.date,
            status=t.status,
            status_label=transaction_status_label(t.status),
            created_at=t.created_at,
            updated_at=t.updated_at,
            created_by=t.created_by,
            approved_by=t.approved_by,
            approved_at=t.approved_at,
        )


# Transfers
class TransferCreate(BaseModel):
    from_department_id: str
    to_department_id: str
    amount: Amount
    description: str = Field(min_length=1, max_length=500)
    date: datetime
    status: TransactionStatus = TransactionStatus.PENDING
    reference: Optional[str] = None
    notes: Optional[str] = None

class TransferResponse(BaseModel):
    id: str
    from_department_id: str
    from_department_name: str
    to_department_id: str
    to_department_name: str
    amount: float
    amount_display: str
    description: str
    notes: Optional[str] = None
    reference: str
    date: datetime
    status: TransactionStatus
    created_at: datetime
    created_by: str

    @classmethod
    def from_domain(cls, t: DepartmentTransfer) -> "TransferResponse":
        return cls(
            id=t.id,
            from_department_id=t.from_department_id,
            from_department_name=t.from_department_name,
            to_department_id=t.to_department_id,
            to_department_name=t.to_department_name,
            amount=float(t.amount),
            amount_display=format_currency(t.amount),
            description=t.description,
            notes=t.notes,
            reference=t.reference,
            date=t.date,
            status=t.status,
            created_at=t.created_at,
            created_by=t.created_by,
        )


# Reports
class MonthlyBalanceResponse(BaseModel):
    department_id: str
    department_name: str
    year: int
    month: int
    opening_balance: float
    total_deposits: float
    total_withdrawals: float
    total_transfers_in: float
    total_transfers_out: float
    closing_balance: float
    transaction_count: int
    generated_at: datetime

    @classmethod
    def from_domain(cls, m: MonthlyBalance) -> "MonthlyBalanceResponse":
        return cls(
            department_id=m.department_id,
            department_name=m.department_name,
            year=m.year,
            month=m.month,
            opening_balance=float(m.opening_balance),
            total_deposits=float(m.total_deposits),
            total_withdrawals=float(m.total_withdrawals),
            total_transfers_in=float(m.total_transfers_in),
            total_transfers_out=float(m.total_transfers_out),
            closing_balance=float(m.closing_balance),
            transaction_count=m.transaction_count,
            generated_at=m.generated_at,
        )

class DepartmentBalance(BaseModel):
    id: str
    name: str
    balance: float
    color: Optional[str] = None

class ExtendedTotalsResponse(BaseModel):
    total_deposits: float
    total_withdrawals: float

class DepartmentSummaryResponse(BaseModel):
    total_departments: int
    active_departments: int
    total_balance: float
    departments: List[DepartmentBalance]
    extended_available: bool
    extended: Optional[ExtendedTotalsResponse] = None
    extended_error: Optional[str] = None

    @classmethod
    def from_domain(cls, s: DepartmentSummary) -> "DepartmentSummaryResponse":
        return cls(
            total_departments=s.total_departments,
            active_departments=s.active_departments,
            total_balance=float(s.total_balance),
            departments=[
                DepartmentBalance(id=d.id, name=d.name, balance=float(d.balance), color=d.color)
                for d in s.departments
            ],
            extended_available=s.extended_available,
            extended=ExtendedTotalsResponse(
                total_deposits=float(s.extended.total_deposits),
                total_withdrawals=float(s.extended.total_withdrawals),
            ) if s.extended else None,
            extended_error=s.extended_error,
        )
