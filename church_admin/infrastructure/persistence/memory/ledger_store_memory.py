import asyncio
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

from ....application.ports.ledger_store import (
    Department,
    DepartmentFilters,
    DepartmentTransaction,
    DepartmentTransfer,
    DepartmentUpdate,
    LedgerStore,
    LedgerUnitOfWork,
    StatusChange,
    TransactionFilters,
)

T = TypeVar("T")


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


class _MemoryLedgerUnit(LedgerUnitOfWork):
    """Stages writes against a snapshot; nothing is visible until commit."""

    def __init__(self, store: "InMemoryLedgerStore") -> None:
        self._store = store
        self._departments: Dict[str, Department] = {}
        self._transactions: Dict[str, DepartmentTransaction] = {}
        self._transfers: Dict[str, DepartmentTransfer] = {}
        self._written = False

    def _check_read(self) -> None:
        # same rule the Firestore transaction enforces
        if self._written:
            raise RuntimeError("Transactions require all reads to be executed before all writes")

    async def get_department(self, department_id: str) -> Optional[Department]:
        self._check_read()
        return self._departments.get(department_id) or self._store._departments.get(department_id)

    async def get_transaction(self, transaction_id: str) -> Optional[DepartmentTransaction]:
        self._check_read()
        return self._transactions.get(transaction_id) or self._store._transactions.get(transaction_id)

    def add_transaction(self, transaction: DepartmentTransaction) -> str:
        self._written = True
        transaction_id = _new_id()
        self._transactions[transaction_id] = replace(transaction, id=transaction_id)
        return transaction_id

    def add_transfer(self, transfer: DepartmentTransfer) -> str:
        self._written = True
        transfer_id = _new_id()
        self._transfers[transfer_id] = replace(transfer, id=transfer_id)
        return transfer_id

    def set_balance(self, department_id: str, balance: Decimal, updated_at: datetime) -> None:
        self._written = True
        current = self._departments.get(department_id) or self._store._departments[department_id]
        self._departments[department_id] = replace(current, current_balance=balance, updated_at=updated_at)

    def set_transaction_status(self, transaction_id: str, change: StatusChange) -> None:
        self._written = True
        current = self._transactions.get(transaction_id) or self._store._transactions[transaction_id]
        self._transactions[transaction_id] = replace(
            current,
            status=change.status,
            approved_by=change.approved_by,
            approved_at=change.approved_at,
            updated_at=change.updated_at,
        )

    def commit(self) -> None:
        self._store._departments.update(self._departments)
        self._store._transactions.update(self._transactions)
        self._store._transfers.update(self._transfers)


class InMemoryLedgerStore(LedgerStore):
    """Process-local ledger store for development and tests.

    Atomic units are serialized with a lock, so concurrent units never
    interleave their read and commit phases.
    """

    def __init__(self) -> None:
        self._departments: Dict[str, Department] = {}
        self._transactions: Dict[str, DepartmentTransaction] = {}
        self._transfers: Dict[str, DepartmentTransfer] = {}
        self._lock = asyncio.Lock()

    async def run_atomic(self, work: Callable[[LedgerUnitOfWork], Awaitable[T]]) -> T:
        async with self._lock:
            unit = _MemoryLedgerUnit(self)
            result = await work(unit)
            unit.commit()
            return result

    async def add_department(self, department: Department) -> str:
        department_id = _new_id()
        self._departments[department_id] = replace(department, id=department_id)
        return department_id

    async def get_department(self, department_id: str) -> Optional[Department]:
        return self._departments.get(department_id)

    async def list_departments(self, filters: DepartmentFilters) -> List[Department]:
        items = list(self._departments.values())
        if filters.is_active is not None:
            items = [d for d in items if d.is_active == filters.is_active]
        if filters.responsible_user_id:
            items = [d for d in items if d.responsible_user_id == filters.responsible_user_id]
        return sorted(items, key=lambda d: d.name)

    async def update_department(self, department_id: str, update: DepartmentUpdate, updated_at: datetime) -> None:
        current = self._departments[department_id]
        self._departments[department_id] = replace(current, updated_at=updated_at, **update.changed_fields())

    async def delete_department(self, department_id: str) -> None:
        self._departments.pop(department_id, None)

    async def department_has_transactions(self, department_id: str) -> bool:
        return any(t.department_id == department_id for t in self._transactions.values())

    async def list_transactions(self, filters: TransactionFilters, limit: int) -> List[DepartmentTransaction]:
        items = [t for t in self._transactions.values() if filters.matches(t)]
        items.sort(key=lambda t: t.date, reverse=True)
        return items[:limit]

    async def iter_transactions(self, filters: TransactionFilters, page_size: int) -> AsyncIterator[DepartmentTransaction]:
        items = [t for t in self._transactions.values() if filters.matches(t)]
        items.sort(key=lambda t: t.date, reverse=True)
        for transaction in items:
            yield transaction

    async def list_transfers(self, department_id: Optional[str], limit: int) -> List[DepartmentTransfer]:
        items = [
            t for t in self._transfers.values()
            if not department_id or department_id in (t.from_department_id, t.to_department_id)
        ]
        items.sort(key=lambda t: t.date, reverse=True)
        return items[:limit]
