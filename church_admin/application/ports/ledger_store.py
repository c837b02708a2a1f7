from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, TypeVar


T = TypeVar("T")


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def is_credit(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.TRANSFER_IN)

    def signed(self, amount: Decimal) -> Decimal:
        """Balance delta this transaction type applies once approved."""
        return amount if self.is_credit else -amount


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Department:
    id: str
    name: str
    current_balance: Decimal
    initial_balance: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime
    created_by: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    responsible_user_id: Optional[str] = None
    responsible_name: Optional[str] = None


@dataclass(frozen=True)
class DepartmentTransaction:
    id: str
    department_id: str
    department_name: str
    type: TransactionType
    amount: Decimal
    description: str
    reference: str
    date: datetime
    status: TransactionStatus
    created_at: datetime
    updated_at: datetime
    created_by: str
    notes: Optional[str] = None
    receipt_number: Optional[str] = None
    transfer_id: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


@dataclass(frozen=True)
class DepartmentTransfer:
    id: str
    from_department_id: str
    from_department_name: str
    to_department_id: str
    to_department_name: str
    amount: Decimal
    description: str
    reference: str
    date: datetime
    status: TransactionStatus
    created_at: datetime
    updated_at: datetime
    created_by: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class DepartmentUpdate:
    """Fields an administrator may edit on a department. Balances are not among them."""
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    responsible_user_id: Optional[str] = None
    responsible_name: Optional[str] = None
    is_active: Optional[bool] = None

    def changed_fields(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class StatusChange:
    """The only fields a review (approve/reject) writes on a transaction."""
    status: TransactionStatus
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    updated_at: datetime


@dataclass(frozen=True)
class DepartmentFilters:
    is_active: Optional[bool] = None
    responsible_user_id: Optional[str] = None


@dataclass(frozen=True)
class TransactionFilters:
    department_id: Optional[str] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    created_by: Optional[str] = None

    def matches(self, txn: DepartmentTransaction) -> bool:
        if self.department_id and txn.department_id != self.department_id:
            return False
        if self.type and txn.type != self.type:
            return False
        if self.status and txn.status != self.status:
            return False
        if self.start_date and txn.date < self.start_date:
            return False
        if self.end_date and txn.date > self.end_date:
            return False
        if self.min_amount is not None and txn.amount < self.min_amount:
            return False
        if self.max_amount is not None and txn.amount > self.max_amount:
            return False
        if self.created_by and txn.created_by != self.created_by:
            return False
        return True


class LedgerUnitOfWork(Protocol):
    """Reads and staged writes that commit together or not at all.

    All reads must happen before the first write.
    """

    async def get_department(self, department_id: str) -> Optional[Department]:
        ...

    async def get_transaction(self, transaction_id: str) -> Optional[DepartmentTransaction]:
        ...

    def add_transaction(self, transaction: DepartmentTransaction) -> str:
        ...

    def add_transfer(self, transfer: DepartmentTransfer) -> str:
        ...

    def set_balance(self, department_id: str, balance: Decimal, updated_at: datetime) -> None:
        ...

    def set_transaction_status(self, transaction_id: str, change: StatusChange) -> None:
        ...


class LedgerStore(Protocol):
    async def run_atomic(self, work: Callable[[LedgerUnitOfWork], Awaitable[T]]) -> T:
        ...

    async def add_department(self, department: Department) -> str:
        ...

    async def get_department(self, department_id: str) -> Optional[Department]:
        ...

    async def list_departments(self, filters: DepartmentFilters) -> List[Department]:
        ...

    async def update_department(self, department_id: str, update: DepartmentUpdate, updated_at: datetime) -> None:
        ...

    async def delete_department(self, department_id: str) -> None:
        ...

    async def department_has_transactions(self, department_id: str) -> bool:
        ...

    async def list_transactions(self, filters: TransactionFilters, limit: int) -> List[DepartmentTransaction]:
        ...

    def iter_transactions(self, filters: TransactionFilters, page_size: int) -> AsyncIterator[DepartmentTransaction]:
        """Every matching transaction, newest first, fetched page by page with no overall cap."""
        ...

    async def list_transfers(self, department_id: Optional[str], limit: int) -> List[DepartmentTransfer]:
        """Transfers touching the department (either side), newest first."""
        ...
