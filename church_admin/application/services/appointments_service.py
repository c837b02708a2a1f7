import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional

from ..ports.scheduling_repo import (
    Appointment,
    AppointmentChange,
    AppointmentHistoryEntry,
    AppointmentStatus,
    Modality,
    Priority,
    SchedulingRepository,
    SchedulingUnitOfWork,
)
from .availability import NON_BLOCKING_STATUSES, slot_overlaps
from ...exceptions import InvalidStateError, NotFoundError, ScheduleConflictError, ValidationError
from ...utils import generate_booking_code, is_valid_email, is_valid_phone

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.RESCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


@dataclass
class NewAppointment:
    professional_id: str
    patient_id: str
    patient_name: str
    patient_phone: str
    start: datetime
    reason: str
    created_by: str
    patient_email: Optional[str] = None
    modality: Modality = Modality.IN_PERSON
    priority: Priority = Priority.NORMAL
    notes: Optional[str] = None


def validate_appointment(data: NewAppointment) -> List[str]:
    errors: List[str] = []
    if not data.professional_id:
        errors.append("Professional is required")
    if not data.patient_id:
        errors.append("Patient is required")
    if not data.patient_name or not data.patient_name.strip():
        errors.append("Patient name is required")
    if not is_valid_phone(data.patient_phone):
        errors.append("Invalid patient phone")
    if data.patient_email and not is_valid_email(data.patient_email):
        errors.append("Invalid patient email")
    if not data.reason or not data.reason.strip():
        errors.append("Reason is required")
    if not data.start:
        errors.append("Start time is required")
    return errors


def find_conflict(appointments: List[Appointment], start: datetime, end: datetime, exclude_id: Optional[str] = None) -> Optional[Appointment]:
    for appointment in appointments:
        if appointment.id == exclude_id or appointment.status in NON_BLOCKING_STATUSES:
            continue
        if slot_overlaps(start, end, appointment.start, appointment.end):
            return appointment
    return None


@dataclass
class AppointmentsService:
    repo: SchedulingRepository
    clock: Callable[[], datetime] = field(default=datetime.now)

    async def book(self, data: NewAppointment) -> Appointment:
        errors = validate_appointment(data)
        if errors:
            raise ValidationError(errors)
        now = self.clock()

        async def work(unit: SchedulingUnitOfWork) -> str:
            professional = await unit.get_professional(data.professional_id)
            if professional is None:
                raise NotFoundError("Professional not found", {"professional_id": data.professional_id})
            if not professional.is_active:
                raise InvalidStateError("Professional is not active", {"professional_id": professional.id})
            if professional.consultation_duration_minutes <= 0:
                raise InvalidStateError("Professional has no consultation duration", {"professional_id": professional.id})

            end = data.start + timedelta(minutes=professional.consultation_duration_minutes)
            existing = await unit.list_appointments(professional.id, data.start, end)
            conflict = find_conflict(existing, data.start, end)
            if conflict is not None:
                raise ScheduleConflictError("Time slot is already booked", {"conflicting_appointment_id": conflict.id})

            return unit.add_appointment(Appointment(
                id="",
                booking_code=generate_booking_code(),
                patient_id=data.patient_id,
                patient_name=data.patient_name.strip(),
                patient_phone=data.patient_phone,
                patient_email=data.patient_email,
                professional_id=professional.id,
                professional_name=professional.name,
                assistance_type=professional.specialty,
                start=data.start,
                end=end,
                modality=data.modality,
                priority=data.priority,
                status=AppointmentStatus.SCHEDULED,
                reason=data.reason.strip(),
                notes=data.notes,
                created_at=now,
                updated_at=now,
                created_by=data.created_by,
                history=[AppointmentHistoryEntry(
                    at=now,
                    action="criado",
                    actor=data.created_by,
                    new_status=AppointmentStatus.SCHEDULED,
                )],
            ))

        appointment_id = await self.repo.run_atomic(work)
        logger.info(f"Appointment booked: {appointment_id} with professional {data.professional_id}")
        return await self.get(appointment_id)

    async def get(self, appointment_id: str) -> Appointment:
        appointment = await self.repo.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found", {"appointment_id": appointment_id})
        return appointment

    async def list_for_professional(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
        if range_end <= range_start:
            raise ValidationError(["Range end must be after range start"])
        return await self.repo.list_appointments(professional_id, range_start, range_end)

    async def _transition(
        self,
        appointment_id: str,
        target: AppointmentStatus,
        action: str,
        actor: str,
        notes: Optional[str] = None,
        cancellation_reason: Optional[str] = None,
    ) -> Appointment:
        now = self.clock()

        async def work(unit: SchedulingUnitOfWork) -> None:
            appointment = await unit.get_appointment(appointment_id)
            if appointment is None:
                raise NotFoundError("Appointment not found", {"appointment_id": appointment_id})
            _check_transition(appointment, target)
            unit.apply_appointment_change(appointment_id, AppointmentChange(
                status=target,
                updated_at=now,
                cancellation_reason=cancellation_reason,
                history_entry=AppointmentHistoryEntry(
                    at=now,
                    action=action,
                    actor=actor,
                    previous_status=appointment.status,
                    new_status=target,
                    notes=notes,
                ),
            ))

        await self.repo.run_atomic(work)
        logger.info(f"Appointment {appointment_id}: {action} by {actor}")
        return await self.get(appointment_id)

    async def confirm(self, appointment_id: str, actor: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.CONFIRMED, "confirmado", actor)

    async def start(self, appointment_id: str, actor: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.IN_PROGRESS, "iniciado", actor)

    async def complete(self, appointment_id: str, actor: str, notes: Optional[str] = None) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.COMPLETED, "concluido", actor, notes=notes)

    async def cancel(self, appointment_id: str, actor: str, reason: str) -> Appointment:
        if not reason or not reason.strip():
            raise ValidationError(["Cancellation reason is required"])
        return await self._transition(
            appointment_id, AppointmentStatus.CANCELED, "cancelado", actor,
            notes=reason.strip(), cancellation_reason=reason.strip(),
        )

    async def mark_no_show(self, appointment_id: str, actor: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.NO_SHOW, "faltou", actor)

    async def reschedule(self, appointment_id: str, new_start: datetime, actor: str, notes: Optional[str] = None) -> Appointment:
        now = self.clock()

        async def work(unit: SchedulingUnitOfWork) -> None:
            appointment = await unit.get_appointment(appointment_id)
            if appointment is None:
                raise NotFoundError("Appointment not found", {"appointment_id": appointment_id})
            _check_transition(appointment, AppointmentStatus.RESCHEDULED)

            new_end = new_start + (appointment.end - appointment.start)
            existing = await unit.list_appointments(appointment.professional_id, new_start, new_end)
            conflict = find_conflict(existing, new_start, new_end, exclude_id=appointment_id)
            if conflict is not None:
                raise ScheduleConflictError("Time slot is already booked", {"conflicting_appointment_id": conflict.id})

            unit.apply_appointment_change(appointment_id, AppointmentChange(
                status=AppointmentStatus.RESCHEDULED,
                updated_at=now,
                start=new_start,
                end=new_end,
                history_entry=AppointmentHistoryEntry(
                    at=now,
                    action="remarcado",
                    actor=actor,
                    previous_status=appointment.status,
                    new_status=AppointmentStatus.RESCHEDULED,
                    notes=notes or f"Moved from {appointment.start.isoformat()} to {new_start.isoformat()}",
                ),
            ))

        await self.repo.run_atomic(work)
        logger.info(f"Appointment {appointment_id} rescheduled to {new_start.isoformat()} by {actor}")
        return await self.get(appointment_id)


def _check_transition(appointment: Appointment, target: AppointmentStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[appointment.status]:
        raise InvalidStateError(
            f"Cannot change appointment from {appointment.status.value} to {target.value}",
            {"appointment_id": appointment.id, "status": appointment.status.value},
        )
