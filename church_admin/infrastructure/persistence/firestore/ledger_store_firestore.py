import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

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
    TransactionStatus,
    TransactionType,
)
from .converters import naive_datetime, to_money

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UPDATE_FIELDS = {
    "name": "name",
    "description": "description",
    "color": "color",
    "icon": "icon",
    "responsible_user_id": "responsibleUserId",
    "responsible_name": "responsibleName",
    "is_active": "isActive",
}


# ==================== MAPPING ====================

def department_to_doc(department: Department) -> Dict[str, Any]:
    return {
        "name": department.name,
        "description": department.description,
        "color": department.color,
        "icon": department.icon,
        "currentBalance": float(department.current_balance),
        "initialBalance": float(department.initial_balance),
        "responsibleUserId": department.responsible_user_id,
        "responsibleName": department.responsible_name,
        "isActive": department.is_active,
        "createdAt": department.created_at,
        "updatedAt": department.updated_at,
        "createdBy": department.created_by,
    }


def department_from_doc(doc_id: str, data: Dict[str, Any]) -> Department:
    return Department(
        id=doc_id,
        name=data.get("name", ""),
        current_balance=to_money(data.get("currentBalance")),
        initial_balance=to_money(data.get("initialBalance")),
        is_active=bool(data.get("isActive", True)),
        created_at=naive_datetime(data.get("createdAt")),
        updated_at=naive_datetime(data.get("updatedAt")),
        created_by=data.get("createdBy", ""),
        description=data.get("description"),
        color=data.get("color"),
        icon=data.get("icon"),
        responsible_user_id=data.get("responsibleUserId"),
        responsible_name=data.get("responsibleName"),
    )


def transaction_to_doc(txn: DepartmentTransaction) -> Dict[str, Any]:
    return {
        "departmentId": txn.department_id,
        "departmentName": txn.department_name,
        "type": txn.type.value,
        "amount": float(txn.amount),
        "description": txn.description,
        "notes": txn.notes,
        "reference": txn.reference,
        "receiptNumber": txn.receipt_number,
        "transferId": txn.transfer_id,
        "date": txn.date,
        "status": txn.status.value,
        "createdAt": txn.created_at,
        "updatedAt": txn.updated_at,
        "createdBy": txn.created_by,
        "approvedBy": txn.approved_by,
        "approvedAt": txn.approved_at,
    }


def transaction_from_doc(doc_id: str, data: Dict[str, Any]) -> DepartmentTransaction:
    return DepartmentTransaction(
        id=doc_id,
        department_id=data.get("departmentId", ""),
        department_name=data.get("departmentName", ""),
        type=TransactionType(data.get("type")),
        amount=to_money(data.get("amount")),
        description=data.get("description", ""),
        reference=data.get("reference", ""),
        date=naive_datetime(data.get("date")),
        status=TransactionStatus(data.get("status", TransactionStatus.PENDING.value)),
        created_at=naive_datetime(data.get("createdAt")),
        updated_at=naive_datetime(data.get("updatedAt")),
        created_by=data.get("createdBy", ""),
        notes=data.get("notes"),
        receipt_number=data.get("receiptNumber"),
        transfer_id=data.get("transferId"),
        approved_by=data.get("approvedBy"),
        approved_at=naive_datetime(data.get("approvedAt")),
    )


def transfer_to_doc(transfer: DepartmentTransfer) -> Dict[str, Any]:
    return {
        "fromDepartmentId": transfer.from_department_id,
        "fromDepartmentName": transfer.from_department_name,
        "toDepartmentId": transfer.to_department_id,
        "toDepartmentName": transfer.to_department_name,
        "amount": float(transfer.amount),
        "description": transfer.description,
        "notes": transfer.notes,
        "reference": transfer.reference,
        "date": transfer.date,
        "status": transfer.status.value,
        "createdAt": transfer.created_at,
        "updatedAt": transfer.updated_at,
        "createdBy": transfer.created_by,
    }


def transfer_from_doc(doc_id: str, data: Dict[str, Any]) -> DepartmentTransfer:
    return DepartmentTransfer(
        id=doc_id,
        from_department_id=data.get("fromDepartmentId", ""),
        from_department_name=data.get("fromDepartmentName", ""),
        to_department_id=data.get("toDepartmentId", ""),
        to_department_name=data.get("toDepartmentName", ""),
        amount=to_money(data.get("amount")),
        description=data.get("description", ""),
        reference=data.get("reference", ""),
        date=naive_datetime(data.get("date")),
        status=TransactionStatus(data.get("status", TransactionStatus.PENDING.value)),
        created_at=naive_datetime(data.get("createdAt")),
        updated_at=naive_datetime(data.get("updatedAt")),
        created_by=data.get("createdBy", ""),
        notes=data.get("notes"),
    )


# ==================== STORE ====================

class _FirestoreLedgerUnit(LedgerUnitOfWork):
    def __init__(self, store: "FirestoreLedgerStore", transaction: firestore.AsyncTransaction) -> None:
        self._store = store
        self._txn = transaction

    async def get_department(self, department_id: str) -> Optional[Department]:
        snap = await self._store.departments.document(department_id).get(transaction=self._txn)
        if not snap.exists:
            return None
        return department_from_doc(snap.id, snap.to_dict())

    async def get_transaction(self, transaction_id: str) -> Optional[DepartmentTransaction]:
        snap = await self._store.transactions.document(transaction_id).get(transaction=self._txn)
        if not snap.exists:
            return None
        return transaction_from_doc(snap.id, snap.to_dict())

    def add_transaction(self, transaction: DepartmentTransaction) -> str:
        ref = self._store.transactions.document()
        self._txn.set(ref, transaction_to_doc(transaction))
        return ref.id

    def add_transfer(self, transfer: DepartmentTransfer) -> str:
        ref = self._store.transfers.document()
        self._txn.set(ref, transfer_to_doc(transfer))
        return ref.id

    def set_balance(self, department_id: str, balance: Decimal, updated_at: datetime) -> None:
        self._txn.update(self._store.departments.document(department_id), {
            "currentBalance": float(balance),
            "updatedAt": updated_at,
        })

    def set_transaction_status(self, transaction_id: str, change: StatusChange) -> None:
        self._txn.update(self._store.transactions.document(transaction_id), {
            "status": change.status.value,
            "approvedBy": change.approved_by,
            "approvedAt": change.approved_at,
            "updatedAt": change.updated_at,
        })


class FirestoreLedgerStore(LedgerStore):
    def __init__(
        self,
        client: firestore.AsyncClient,
        departments_collection: str = "church_departments",
        transactions_collection: str = "church_department_transactions",
        transfers_collection: str = "church_department_transfers",
    ) -> None:
        self.client = client
        self.departments = client.collection(departments_collection)
        self.transactions = client.collection(transactions_collection)
        self.transfers = client.collection(transfers_collection)

    async def run_atomic(self, work: Callable[[LedgerUnitOfWork], Awaitable[T]]) -> T:
        @firestore.async_transactional
        async def _run(transaction: firestore.AsyncTransaction) -> T:
            return await work(_FirestoreLedgerUnit(self, transaction))

        return await _run(self.client.transaction())

    async def add_department(self, department: Department) -> str:
        ref = self.departments.document()
        await ref.set(department_to_doc(department))
        return ref.id

    async def get_department(self, department_id: str) -> Optional[Department]:
        snap = await self.departments.document(department_id).get()
        if not snap.exists:
            return None
        return department_from_doc(snap.id, snap.to_dict())

    async def list_departments(self, filters: DepartmentFilters) -> List[Department]:
        query = self.departments
        if filters.is_active is not None:
            query = query.where(filter=FieldFilter("isActive", "==", filters.is_active))
        if filters.responsible_user_id:
            query = query.where(filter=FieldFilter("responsibleUserId", "==", filters.responsible_user_id))
        items = [department_from_doc(doc.id, doc.to_dict()) async for doc in query.stream()]
        return sorted(items, key=lambda d: d.name)

    async def update_department(self, department_id: str, update: DepartmentUpdate, updated_at: datetime) -> None:
        data = {_UPDATE_FIELDS[k]: v for k, v in update.changed_fields().items()}
        data["updatedAt"] = updated_at
        await self.departments.document(department_id).update(data)

    async def delete_department(self, department_id: str) -> None:
        await self.departments.document(department_id).delete()

    async def department_has_transactions(self, department_id: str) -> bool:
        query = self.transactions.where(filter=FieldFilter("departmentId", "==", department_id)).limit(1)
        async for _ in query.stream():
            return True
        return False

    def _transactions_query(self, filters: TransactionFilters):
        query = self.transactions
        for field_name, value in (
            ("departmentId", filters.department_id),
            ("type", filters.type.value if filters.type else None),
            ("status", filters.status.value if filters.status else None),
            ("createdBy", filters.created_by),
        ):
            if value:
                query = query.where(filter=FieldFilter(field_name, "==", value))
        if filters.start_date:
            query = query.where(filter=FieldFilter("date", ">=", filters.start_date))
        if filters.end_date:
            query = query.where(filter=FieldFilter("date", "<=", filters.end_date))
        return query.order_by("date", direction=firestore.Query.DESCENDING)

    async def list_transactions(self, filters: TransactionFilters, limit: int) -> List[DepartmentTransaction]:
        query = self._transactions_query(filters).limit(limit)
        items = [transaction_from_doc(doc.id, doc.to_dict()) async for doc in query.stream()]
        # amount bounds would need a second inequality field; filter them here
        return [t for t in items if filters.matches(t)]

    async def iter_transactions(self, filters: TransactionFilters, page_size: int) -> AsyncIterator[DepartmentTransaction]:
        base = self._transactions_query(filters)
        last = None
        while True:
            query = base.start_after(last) if last is not None else base
            page = [doc async for doc in query.limit(page_size).stream()]
            for doc in page:
                transaction = transaction_from_doc(doc.id, doc.to_dict())
                if filters.matches(transaction):
                    yield transaction
            if len(page) < page_size:
                return
            last = page[-1]

    async def list_transfers(self, department_id: Optional[str], limit: int) -> List[DepartmentTransfer]:
        if not department_id:
            queries = [self.transfers]
        else:
            queries = [
                self.transfers.where(filter=FieldFilter("fromDepartmentId", "==", department_id)),
                self.transfers.where(filter=FieldFilter("toDepartmentId", "==", department_id)),
            ]
        found: Dict[str, DepartmentTransfer] = {}
        for query in queries:
            query = query.order_by("date", direction=firestore.Query.DESCENDING).limit(limit)
            async for doc in query.stream():
                found[doc.id] = transfer_from_doc(doc.id, doc.to_dict())
        items = sorted(found.values(), key=lambda t: t.date, reverse=True)
        return items[:limit]
