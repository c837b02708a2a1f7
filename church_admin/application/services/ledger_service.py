"""
Department Ledger

Keeps each department's independent cash box. Balances move only when a
transaction enters the ``approved`` state, and every balance write happens
inside the same atomic unit as the record write that triggers it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, List, Optional

from ..ports.audit_logger import AuditLogger
from ..ports.ledger_store import (
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
from ...exceptions import (
    InactiveDepartmentError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ...utils import generate_reference_number, month_bounds, to_decimal

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
_ONE_TICK = timedelta(microseconds=1)


@dataclass
class NewDepartment:
    name: str
    created_by: str
    initial_balance: Any = 0
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    responsible_user_id: Optional[str] = None
    responsible_name: Optional[str] = None
    is_active: bool = True


@dataclass
class NewTransaction:
    department_id: str
    type: TransactionType
    amount: Any
    description: str
    date: datetime
    created_by: str
    status: TransactionStatus = TransactionStatus.PENDING
    reference: Optional[str] = None
    notes: Optional[str] = None
    receipt_number: Optional[str] = None


@dataclass
class NewTransfer:
    from_department_id: str
    to_department_id: str
    amount: Any
    description: str
    date: datetime
    created_by: str
    status: TransactionStatus = TransactionStatus.PENDING
    reference: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class MonthlyBalance:
    department_id: str
    department_name: str
    year: int
    month: int
    opening_balance: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_transfers_in: Decimal
    total_transfers_out: Decimal
    closing_balance: Decimal
    transaction_count: int
    generated_at: datetime


@dataclass(frozen=True)
class DepartmentBalanceItem:
    id: str
    name: str
    balance: Decimal
    color: Optional[str] = None


@dataclass(frozen=True)
class ExtendedTotals:
    total_deposits: Decimal
    total_withdrawals: Decimal


@dataclass(frozen=True)
class DepartmentSummary:
    total_departments: int
    active_departments: int
    total_balance: Decimal
    departments: List[DepartmentBalanceItem]
    extended: Optional[ExtendedTotals] = None
    extended_error: Optional[str] = None

    @property
    def extended_available(self) -> bool:
        return self.extended is not None


# ==================== VALIDATION ====================

def _amount_errors(amount: Any, errors: List[str]) -> Optional[Decimal]:
    try:
        value = to_decimal(amount)
    except ValidationError as e:
        errors.extend(e.errors)
        return None
    if value <= 0:
        errors.append("Amount must be greater than zero")
    return value


def _description_errors(description: Optional[str], errors: List[str]) -> None:
    if not description or not description.strip():
        errors.append("Description is required")
    elif len(description) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"Description must have at most {MAX_DESCRIPTION_LENGTH} characters")


def _creation_status_errors(status: Any, errors: List[str]) -> None:
    if status not in (TransactionStatus.PENDING, TransactionStatus.APPROVED):
        errors.append("Status at creation must be pending or approved")


def validate_department(data: NewDepartment) -> List[str]:
    errors: List[str] = []
    if not data.name or not data.name.strip():
        errors.append("Department name is required")
    elif len(data.name) > MAX_NAME_LENGTH:
        errors.append(f"Department name must have at most {MAX_NAME_LENGTH} characters")
    try:
        if to_decimal(data.initial_balance, "initial_balance") < 0:
            errors.append("Initial balance cannot be negative")
    except ValidationError as e:
        errors.extend(e.errors)
    return errors


def validate_transaction(data: NewTransaction) -> List[str]:
    errors: List[str] = []
    if not data.department_id:
        errors.append("Department is required")
    if data.type not in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL):
        errors.append("Transaction type must be deposit or withdrawal")
    _amount_errors(data.amount, errors)
    _description_errors(data.description, errors)
    if not data.date:
        errors.append("Date is required")
    _creation_status_errors(data.status, errors)
    return errors


def validate_transfer(data: NewTransfer) -> List[str]:
    errors: List[str] = []
    if not data.from_department_id:
        errors.append("Source department is required")
    if not data.to_department_id:
        errors.append("Destination department is required")
    if data.from_department_id and data.from_department_id == data.to_department_id:
        errors.append("Source and destination departments must differ")
    _amount_errors(data.amount, errors)
    _description_errors(data.description, errors)
    if not data.date:
        errors.append("Date is required")
    _creation_status_errors(data.status, errors)
    return errors


def _require_active(department: Optional[Department], department_id: str, role: str = "Department") -> Department:
    if department is None:
        raise NotFoundError(f"{role} not found", {"department_id": department_id})
    if not department.is_active:
        raise InactiveDepartmentError(f"{role} is inactive", {"department_id": department_id})
    return department


def _sum(transactions: List[DepartmentTransaction], *types: TransactionType) -> Decimal:
    return sum((t.amount for t in transactions if t.type in types), Decimal("0"))


@dataclass
class DepartmentLedgerService:
    store: LedgerStore
    audit: AuditLogger
    query_limit: int = 10000
    page_size: int = 500
    clock: Callable[[], datetime] = field(default=datetime.now)

    # ==================== DEPARTMENTS ====================

    async def create_department(self, data: NewDepartment) -> str:
        errors = validate_department(data)
        if errors:
            raise ValidationError(errors)

        now = self.clock()
        initial = to_decimal(data.initial_balance, "initial_balance")
        department = Department(
            id="",
            name=data.name.strip(),
            current_balance=initial,
            initial_balance=initial,
            is_active=data.is_active,
            created_at=now,
            updated_at=now,
            created_by=data.created_by,
            description=data.description,
            color=data.color,
            icon=data.icon,
            responsible_user_id=data.responsible_user_id,
            responsible_name=data.responsible_name,
        )
        department_id = await self.store.add_department(department)
        logger.info(f"Department created: {department_id} ({department.name})")
        self.audit.log("department.created", data.created_by, department_id, details={"initial_balance": initial})
        return department_id

    async def get_department(self, department_id: str) -> Department:
        department = await self.store.get_department(department_id)
        if department is None:
            raise NotFoundError("Department not found", {"department_id": department_id})
        return department

    async def list_departments(self, filters: Optional[DepartmentFilters] = None) -> List[Department]:
        return await self.store.list_departments(filters or DepartmentFilters())

    async def update_department(self, department_id: str, update: DepartmentUpdate) -> Department:
        if update.name is not None:
            if not update.name.strip():
                raise ValidationError(["Department name is required"])
            if len(update.name) > MAX_NAME_LENGTH:
                raise ValidationError([f"Department name must have at most {MAX_NAME_LENGTH} characters"])
        await self.get_department(department_id)
        await self.store.update_department(department_id, update, self.clock())
        return await self.get_department(department_id)

    async def delete_department(self, department_id: str) -> None:
        await self.get_department(department_id)
        if await self.store.department_has_transactions(department_id):
            raise InvalidStateError(
                "Department has transactions; deactivate it instead of deleting",
                {"department_id": department_id},
            )
        await self.store.delete_department(department_id)
        logger.info(f"Department deleted: {department_id}")

    # ==================== TRANSACTIONS ====================

    async def create_transaction(self, data: NewTransaction) -> str:
        errors = validate_transaction(data)
        if errors:
            raise ValidationError(errors)

        amount = to_decimal(data.amount)
        now = self.clock()
        reference = data.reference or generate_reference_number("DEPT")

        async def work(unit: LedgerUnitOfWork) -> str:
            department = _require_active(await unit.get_department(data.department_id), data.department_id)
            if data.type == TransactionType.WITHDRAWAL and department.current_balance < amount:
                raise InsufficientBalanceError(department.current_balance, amount, department.id)

            transaction_id = unit.add_transaction(DepartmentTransaction(
                id="",
                department_id=department.id,
                department_name=department.name,
                type=data.type,
                amount=amount,
                description=data.description.strip(),
                reference=reference,
                date=data.date,
                status=data.status,
                created_at=now,
                updated_at=now,
                created_by=data.created_by,
                notes=data.notes,
                receipt_number=data.receipt_number,
                approved_by=data.created_by if data.status == TransactionStatus.APPROVED else None,
                approved_at=now if data.status == TransactionStatus.APPROVED else None,
            ))
            if data.status == TransactionStatus.APPROVED:
                unit.set_balance(department.id, department.current_balance + data.type.signed(amount), now)
            return transaction_id

        transaction_id = await self.store.run_atomic(work)
        logger.info(f"Department transaction {transaction_id} created ({data.type.value}, {data.status.value})")
        self.audit.log(
            "department_transaction.created",
            data.created_by,
            transaction_id,
            details={"department_id": data.department_id, "type": data.type.value, "amount": amount, "status": data.status.value},
        )
        return transaction_id

    async def update_transaction_status(self, transaction_id: str, new_status: TransactionStatus, approver: str) -> None:
        if new_status not in (TransactionStatus.APPROVED, TransactionStatus.REJECTED):
            raise InvalidStateError(
                "Transactions can only move from pending to approved or rejected",
                {"transaction_id": transaction_id, "requested_status": new_status.value},
            )
        now = self.clock()

        async def work(unit: LedgerUnitOfWork) -> None:
            transaction = await unit.get_transaction(transaction_id)
            if transaction is None:
                raise NotFoundError("Transaction not found", {"transaction_id": transaction_id})
            if transaction.status != TransactionStatus.PENDING:
                raise InvalidStateError(
                    "Only pending transactions can be approved or rejected",
                    {"transaction_id": transaction_id, "status": transaction.status.value},
                )
            department = await unit.get_department(transaction.department_id)
            if department is None:
                raise NotFoundError("Department not found", {"department_id": transaction.department_id})

            approved = new_status == TransactionStatus.APPROVED
            if approved:
                new_balance = department.current_balance + transaction.type.signed(transaction.amount)
                if new_balance < 0:
                    raise InsufficientBalanceError(department.current_balance, transaction.amount, department.id)
                unit.set_balance(department.id, new_balance, now)

            unit.set_transaction_status(transaction_id, StatusChange(
                status=new_status,
                approved_by=approver if approved else None,
                approved_at=now if approved else None,
                updated_at=now,
            ))

        await self.store.run_atomic(work)
        logger.info(f"Department transaction {transaction_id} marked {new_status.value} by {approver}")
        self.audit.log(f"department_transaction.{new_status.value}", approver, transaction_id)

    async def list_transactions(self, filters: Optional[TransactionFilters] = None, limit: Optional[int] = None) -> List[DepartmentTransaction]:
        return await self.store.list_transactions(filters or TransactionFilters(), limit or self.query_limit)

    # ==================== TRANSFERS ====================

    async def create_transfer(self, data: NewTransfer) -> str:
        errors = validate_transfer(data)
        if errors:
            raise ValidationError(errors)

        amount = to_decimal(data.amount)
        now = self.clock()
        reference = data.reference or generate_reference_number("TRANSF")
        approved = data.status == TransactionStatus.APPROVED

        async def work(unit: LedgerUnitOfWork) -> str:
            source = _require_active(await unit.get_department(data.from_department_id), data.from_department_id, "Source department")
            destination = _require_active(await unit.get_department(data.to_department_id), data.to_department_id, "Destination department")
            if source.current_balance < amount:
                raise InsufficientBalanceError(source.current_balance, amount, source.id)

            transfer_id = unit.add_transfer(DepartmentTransfer(
                id="",
                from_department_id=source.id,
                from_department_name=source.name,
                to_department_id=destination.id,
                to_department_name=destination.name,
                amount=amount,
                description=data.description.strip(),
                reference=reference,
                date=data.date,
                status=data.status,
                created_at=now,
                updated_at=now,
                created_by=data.created_by,
                notes=data.notes,
            ))
            for department, txn_type, text in (
                (source, TransactionType.TRANSFER_OUT, f"Transfer to {destination.name}: {data.description.strip()}"),
                (destination, TransactionType.TRANSFER_IN, f"Transfer from {source.name}: {data.description.strip()}"),
            ):
                unit.add_transaction(DepartmentTransaction(
                    id="",
                    department_id=department.id,
                    department_name=department.name,
                    type=txn_type,
                    amount=amount,
                    description=text,
                    reference=reference,
                    date=data.date,
                    status=data.status,
                    created_at=now,
                    updated_at=now,
                    created_by=data.created_by,
                    notes=data.notes,
                    transfer_id=transfer_id,
                    approved_by=data.created_by if approved else None,
                    approved_at=now if approved else None,
                ))

            if approved:
                unit.set_balance(source.id, source.current_balance - amount, now)
                unit.set_balance(destination.id, destination.current_balance + amount, now)
            return transfer_id

        transfer_id = await self.store.run_atomic(work)
        logger.info(f"Department transfer {transfer_id} created ({data.from_department_id} -> {data.to_department_id}, {data.status.value})")
        self.audit.log(
            "department_transfer.created",
            data.created_by,
            transfer_id,
            details={"from": data.from_department_id, "to": data.to_department_id, "amount": amount, "status": data.status.value},
        )
        return transfer_id

    async def list_transfers(self, department_id: Optional[str] = None, limit: Optional[int] = None) -> List[DepartmentTransfer]:
        return await self.store.list_transfers(department_id, limit or self.query_limit)

    # ==================== REPORTS AND SUMMARIES ====================

    async def _scan(self, filters: TransactionFilters) -> List[DepartmentTransaction]:
        """Every matching transaction, read page by page without an overall cap."""
        return [t async for t in self.store.iter_transactions(filters, self.page_size)]

    async def get_monthly_balance(self, department_id: str, year: int, month: int) -> MonthlyBalance:
        if not 1 <= month <= 12:
            raise ValidationError(["Month must be between 1 and 12"])
        department = await self.get_department(department_id)
        month_start, next_month = month_bounds(year, month)

        in_month = await self._scan(
            TransactionFilters(
                department_id=department_id,
                status=TransactionStatus.APPROVED,
                start_date=month_start,
                end_date=next_month - _ONE_TICK,
            )
        )
        previous = await self._scan(
            TransactionFilters(
                department_id=department_id,
                status=TransactionStatus.APPROVED,
                end_date=month_start - _ONE_TICK,
            )
        )

        opening = (
            department.initial_balance
            + _sum(previous, TransactionType.DEPOSIT, TransactionType.TRANSFER_IN)
            - _sum(previous, TransactionType.WITHDRAWAL, TransactionType.TRANSFER_OUT)
        )
        deposits = _sum(in_month, TransactionType.DEPOSIT)
        withdrawals = _sum(in_month, TransactionType.WITHDRAWAL)
        transfers_in = _sum(in_month, TransactionType.TRANSFER_IN)
        transfers_out = _sum(in_month, TransactionType.TRANSFER_OUT)

        return MonthlyBalance(
            department_id=department_id,
            department_name=department.name,
            year=year,
            month=month,
            opening_balance=opening,
            total_deposits=deposits,
            total_withdrawals=withdrawals,
            total_transfers_in=transfers_in,
            total_transfers_out=transfers_out,
            closing_balance=opening + deposits + transfers_in - withdrawals - transfers_out,
            transaction_count=len(in_month),
            generated_at=self.clock(),
        )

    async def get_department_summary(self) -> DepartmentSummary:
        departments = await self.store.list_departments(DepartmentFilters())

        extended: Optional[ExtendedTotals] = None
        extended_error: Optional[str] = None
        try:
            approved: List[DepartmentTransaction] = []
            for department in departments:
                approved.extend(await self._scan(TransactionFilters(department_id=department.id, status=TransactionStatus.APPROVED)))
            extended = ExtendedTotals(
                total_deposits=_sum(approved, TransactionType.DEPOSIT),
                total_withdrawals=_sum(approved, TransactionType.WITHDRAWAL),
            )
        except Exception as e:
            # the aggregation query can fail while its index is still building
            logger.warning(f"Could not load transaction totals: {e}")
            extended_error = str(e) or e.__class__.__name__

        return DepartmentSummary(
            total_departments=len(departments),
            active_departments=sum(1 for d in departments if d.is_active),
            total_balance=sum((d.current_balance for d in departments), Decimal("0")),
            departments=[
                DepartmentBalanceItem(id=d.id, name=d.name, balance=d.current_balance, color=d.color)
                for d in departments
            ],
            extended=extended,
            extended_error=extended_error,
        )
