import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from church_admin.application.ports.ledger_store import (
    Department,
    DepartmentTransaction,
    TransactionFilters,
    TransactionStatus,
    TransactionType,
)
from church_admin.application.ports.scheduling_repo import (
    AppointmentChange,
    AppointmentHistoryEntry,
    AppointmentStatus,
    ProfessionalChange,
    ProfessionalStatus,
)
from church_admin.infrastructure.persistence.memory.ledger_store_memory import InMemoryLedgerStore
from church_admin.infrastructure.persistence.memory.scheduling_repository_memory import InMemorySchedulingRepository
from tests.helpers import make_appointment, make_professional

NOW = datetime(2024, 5, 1, 12, 0)


def department(name="Missões", balance="100"):
    return Department(
        id="",
        name=name,
        current_balance=Decimal(balance),
        initial_balance=Decimal(balance),
        is_active=True,
        created_at=NOW,
        updated_at=NOW,
        created_by="admin",
    )


def transaction(dept_id, amount="10", date=NOW, status=TransactionStatus.APPROVED):
    return DepartmentTransaction(
        id="",
        department_id=dept_id,
        department_name="Missões",
        type=TransactionType.DEPOSIT,
        amount=Decimal(amount),
        description="oferta",
        reference="DEPT-1-001",
        date=date,
        status=status,
        created_at=NOW,
        updated_at=NOW,
        created_by="admin",
    )


@pytest.mark.asyncio
async def test_failed_unit_leaves_no_trace():
    store = InMemoryLedgerStore()
    dept_id = await store.add_department(department())

    async def work(unit):
        await unit.get_department(dept_id)
        unit.add_transaction(transaction(dept_id))
        unit.set_balance(dept_id, Decimal("110"), NOW)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await store.run_atomic(work)
    assert (await store.get_department(dept_id)).current_balance == Decimal("100")
    assert await store.list_transactions(TransactionFilters(), 10) == []


@pytest.mark.asyncio
async def test_reads_after_writes_are_rejected():
    store = InMemoryLedgerStore()
    dept_id = await store.add_department(department())

    async def work(unit):
        unit.set_balance(dept_id, Decimal("1"), NOW)
        await unit.get_department(dept_id)

    with pytest.raises(RuntimeError):
        await store.run_atomic(work)
    assert (await store.get_department(dept_id)).current_balance == Decimal("100")


@pytest.mark.asyncio
async def test_concurrent_units_do_not_lose_updates():
    store = InMemoryLedgerStore()
    dept_id = await store.add_department(department(balance="0"))

    async def add_one(unit):
        dept = await unit.get_department(dept_id)
        await asyncio.sleep(0)
        unit.set_balance(dept_id, dept.current_balance + 1, NOW)

    await asyncio.gather(*(store.run_atomic(add_one) for _ in range(20)))
    assert (await store.get_department(dept_id)).current_balance == Decimal("20")


@pytest.mark.asyncio
async def test_list_transactions_newest_first_with_limit_and_filters():
    store = InMemoryLedgerStore()
    dept_id = await store.add_department(department())

    async def work(unit):
        for days, amount in ((0, "5"), (1, "50"), (2, "500")):
            unit.add_transaction(transaction(dept_id, amount, NOW + timedelta(days=days)))

    await store.run_atomic(work)
    latest_two = await store.list_transactions(TransactionFilters(department_id=dept_id), 2)
    assert [t.amount for t in latest_two] == [Decimal("500"), Decimal("50")]

    bounded = await store.list_transactions(TransactionFilters(min_amount=Decimal("10"), max_amount=Decimal("100")), 10)
    assert [t.amount for t in bounded] == [Decimal("50")]
    assert await store.department_has_transactions(dept_id)


@pytest.mark.asyncio
async def test_appointment_change_appends_history():
    repo = InMemorySchedulingRepository()
    pid = await repo.add_professional(make_professional())
    start = NOW.replace(hour=9)

    async def book(unit):
        return unit.add_appointment(make_appointment(start, start + timedelta(hours=1), pid=pid))

    aid = await repo.run_atomic(book)

    async def confirm(unit):
        unit.apply_appointment_change(aid, AppointmentChange(
            status=AppointmentStatus.CONFIRMED,
            updated_at=NOW,
            history_entry=AppointmentHistoryEntry(at=NOW, action="confirmado", actor="admin"),
        ))

    await repo.run_atomic(confirm)
    appointment = await repo.get_appointment(aid)
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert appointment.start == start
    assert [h.action for h in appointment.history] == ["confirmado"]


@pytest.mark.asyncio
async def test_list_appointments_by_intersection():
    repo = InMemorySchedulingRepository()
    pid = await repo.add_professional(make_professional())
    start = NOW.replace(hour=9)

    async def book(unit):
        unit.add_appointment(make_appointment(start, start + timedelta(hours=1), pid=pid))

    await repo.run_atomic(book)
    assert len(await repo.list_appointments(pid, start + timedelta(minutes=30), start + timedelta(hours=2))) == 1
    assert await repo.list_appointments(pid, start + timedelta(hours=1), start + timedelta(hours=2)) == []


@pytest.mark.asyncio
async def test_update_professional_only_changes_given_fields():
    repo = InMemorySchedulingRepository()
    pid = await repo.add_professional(make_professional())
    await repo.update_professional(pid, ProfessionalChange(updated_at=NOW, status=ProfessionalStatus.ON_LEAVE, inactivation_reason="férias"))
    professional = await repo.get_professional(pid)
    assert professional.status == ProfessionalStatus.ON_LEAVE
    assert professional.consultation_duration_minutes == 60
    assert await repo.list_professionals(active_only=True) == []


@pytest.mark.asyncio
async def test_iter_transactions_is_not_capped_by_page_size():
    store = InMemoryLedgerStore()
    dept_id = await store.add_department(department())

    async def work(unit):
        for days in range(5):
            unit.add_transaction(transaction(dept_id, date=NOW + timedelta(days=days)))

    await store.run_atomic(work)
    dates = [t.date async for t in store.iter_transactions(TransactionFilters(department_id=dept_id), 2)]
    assert len(dates) == 5
    assert dates == sorted(dates, reverse=True)
