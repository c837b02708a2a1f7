import asyncio
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from ....application.ports.scheduling_repo import (
    Appointment,
    AppointmentChange,
    Professional,
    ProfessionalChange,
    SchedulingRepository,
    SchedulingUnitOfWork,
)

T = TypeVar("T")


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


def _in_range(appointments: List[Appointment], professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
    items = [
        a for a in appointments
        if a.professional_id == professional_id and a.start < range_end and a.end > range_start
    ]
    return sorted(items, key=lambda a: a.start)


class _MemorySchedulingUnit(SchedulingUnitOfWork):
    def __init__(self, repo: "InMemorySchedulingRepository") -> None:
        self._repo = repo
        self._appointments: Dict[str, Appointment] = {}

    async def get_professional(self, professional_id: str) -> Optional[Professional]:
        return self._repo._professionals.get(professional_id)

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id) or self._repo._appointments.get(appointment_id)

    async def list_appointments(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
        merged = {**self._repo._appointments, **self._appointments}
        return _in_range(list(merged.values()), professional_id, range_start, range_end)

    def add_appointment(self, appointment: Appointment) -> str:
        appointment_id = _new_id()
        self._appointments[appointment_id] = replace(appointment, id=appointment_id)
        return appointment_id

    def apply_appointment_change(self, appointment_id: str, change: AppointmentChange) -> None:
        current = self._appointments.get(appointment_id) or self._repo._appointments[appointment_id]
        self._appointments[appointment_id] = replace(
            current,
            status=change.status,
            updated_at=change.updated_at,
            start=change.start or current.start,
            end=change.end or current.end,
            cancellation_reason=change.cancellation_reason or current.cancellation_reason,
            history=[*current.history, change.history_entry],
        )

    def commit(self) -> None:
        self._repo._appointments.update(self._appointments)


class InMemorySchedulingRepository(SchedulingRepository):
    def __init__(self) -> None:
        self._professionals: Dict[str, Professional] = {}
        self._appointments: Dict[str, Appointment] = {}
        self._lock = asyncio.Lock()

    async def run_atomic(self, work: Callable[[SchedulingUnitOfWork], Awaitable[T]]) -> T:
        async with self._lock:
            unit = _MemorySchedulingUnit(self)
            result = await work(unit)
            unit.commit()
            return result

    async def add_professional(self, professional: Professional) -> str:
        professional_id = _new_id()
        self._professionals[professional_id] = replace(professional, id=professional_id)
        return professional_id

    async def get_professional(self, professional_id: str) -> Optional[Professional]:
        return self._professionals.get(professional_id)

    async def list_professionals(self, active_only: bool = False) -> List[Professional]:
        items = [p for p in self._professionals.values() if p.is_active or not active_only]
        return sorted(items, key=lambda p: p.name)

    async def update_professional(self, professional_id: str, change: ProfessionalChange) -> None:
        current = self._professionals[professional_id]
        fields = {
            "working_hours": change.working_hours,
            "consultation_duration_minutes": change.consultation_duration_minutes,
            "status": change.status,
            "inactivation_reason": change.inactivation_reason,
        }
        self._professionals[professional_id] = replace(
            current,
            updated_at=change.updated_at,
            **{k: v for k, v in fields.items() if v is not None},
        )

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    async def list_appointments(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
        return _in_range(list(self._appointments.values()), professional_id, range_start, range_end)
