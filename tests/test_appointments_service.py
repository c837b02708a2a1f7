import re
from datetime import datetime, timedelta

import pytest

from church_admin.application.ports.scheduling_repo import (
    AppointmentStatus,
    AssistanceType,
    ProfessionalStatus,
    WorkingHoursRule,
)
from church_admin.application.services.appointments_service import AppointmentsService, NewAppointment
from church_admin.application.services.professional_service import NewProfessional, ProfessionalService
from church_admin.exceptions import InvalidStateError, NotFoundError, ScheduleConflictError, ValidationError
from church_admin.infrastructure.persistence.memory.scheduling_repository_memory import InMemorySchedulingRepository

NOW = datetime(2024, 1, 1, 8, 0)
NINE = datetime(2024, 1, 1, 9, 0)


async def make_services(duration=60):
    repo = InMemorySchedulingRepository()
    professionals = ProfessionalService(repo=repo, clock=lambda: NOW)
    professional = await professionals.create_professional(NewProfessional(
        name="Ana Souza",
        email="ana@example.org",
        phone="(11) 99999-9999",
        specialty=AssistanceType.SOCIAL,
        consultation_duration_minutes=duration,
        working_hours=[WorkingHoursRule(1, "09:00", "12:00")],
        created_by="admin",
    ))
    return AppointmentsService(repo=repo, clock=lambda: NOW), professionals, professional


def request(professional_id, start=NINE, **overrides):
    data = dict(
        professional_id=professional_id,
        patient_id="m1",
        patient_name="João",
        patient_phone="11988887777",
        start=start,
        reason="orientação",
        created_by="secretaria",
    )
    data.update(overrides)
    return NewAppointment(**data)


@pytest.mark.asyncio
async def test_book_success():
    svc, _, professional = await make_services()
    appointment = await svc.book(request(professional.id))
    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.end == NINE + timedelta(hours=1)
    assert appointment.professional_name == "Ana Souza"
    assert appointment.assistance_type == AssistanceType.SOCIAL
    assert re.fullmatch(r"ASS-\d{6}-[A-Z0-9]{6}", appointment.booking_code)
    assert [h.action for h in appointment.history] == ["criado"]


@pytest.mark.asyncio
async def test_book_conflict():
    svc, _, professional = await make_services()
    await svc.book(request(professional.id))
    with pytest.raises(ScheduleConflictError):
        await svc.book(request(professional.id, start=NINE + timedelta(minutes=30), patient_id="m2"))
    # back-to-back is fine
    await svc.book(request(professional.id, start=NINE + timedelta(hours=1), patient_id="m2"))


@pytest.mark.asyncio
async def test_canceled_slot_can_be_booked_again():
    svc, _, professional = await make_services()
    first = await svc.book(request(professional.id))
    await svc.cancel(first.id, "secretaria", "paciente desistiu")
    second = await svc.book(request(professional.id, patient_id="m2"))
    assert second.start == first.start


@pytest.mark.asyncio
async def test_book_validation_and_professional_checks():
    svc, professionals, professional = await make_services()
    with pytest.raises(ValidationError) as exc:
        await svc.book(request(professional.id, patient_name="", patient_phone="123", reason=" "))
    assert len(exc.value.errors) == 3
    with pytest.raises(NotFoundError):
        await svc.book(request("missing"))

    await professionals.set_status(professional.id, ProfessionalStatus.SUSPENDED, "documentação")
    with pytest.raises(InvalidStateError):
        await svc.book(request(professional.id))


@pytest.mark.asyncio
async def test_full_lifecycle_records_history():
    svc, _, professional = await make_services()
    appointment = await svc.book(request(professional.id))
    await svc.confirm(appointment.id, "secretaria")
    await svc.start(appointment.id, "ana")
    done = await svc.complete(appointment.id, "ana", notes="encaminhado")
    assert done.status == AppointmentStatus.COMPLETED
    assert [h.action for h in done.history] == ["criado", "confirmado", "iniciado", "concluido"]
    assert done.history[-1].previous_status == AppointmentStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_terminal_states_reject_transitions():
    svc, _, professional = await make_services()
    appointment = await svc.book(request(professional.id))
    await svc.mark_no_show(appointment.id, "secretaria")
    with pytest.raises(InvalidStateError):
        await svc.confirm(appointment.id, "secretaria")
    with pytest.raises(InvalidStateError):
        await svc.cancel(appointment.id, "secretaria", "tarde demais")


@pytest.mark.asyncio
async def test_complete_requires_in_progress():
    svc, _, professional = await make_services()
    appointment = await svc.book(request(professional.id))
    with pytest.raises(InvalidStateError):
        await svc.complete(appointment.id, "ana")


@pytest.mark.asyncio
async def test_cancel_requires_reason():
    svc, _, professional = await make_services()
    appointment = await svc.book(request(professional.id))
    with pytest.raises(ValidationError):
        await svc.cancel(appointment.id, "secretaria", "  ")


@pytest.mark.asyncio
async def test_reschedule_moves_and_checks_conflicts():
    svc, _, professional = await make_services()
    appointment = await svc.book(request(professional.id))
    other = await svc.book(request(professional.id, start=NINE + timedelta(hours=2), patient_id="m2"))

    # overlapping only itself is allowed
    moved = await svc.reschedule(appointment.id, NINE + timedelta(minutes=30), "secretaria")
    assert moved.status == AppointmentStatus.RESCHEDULED
    assert moved.end == NINE + timedelta(minutes=90)

    with pytest.raises(ScheduleConflictError):
        await svc.reschedule(appointment.id, other.start, "secretaria")
    assert (await svc.get(appointment.id)).start == NINE + timedelta(minutes=30)


@pytest.mark.asyncio
async def test_list_for_professional_and_missing_appointment():
    svc, _, professional = await make_services()
    await svc.book(request(professional.id))
    listed = await svc.list_for_professional(professional.id, NINE.replace(hour=0), NINE.replace(hour=23))
    assert len(listed) == 1
    with pytest.raises(NotFoundError):
        await svc.get("missing")


@pytest.mark.asyncio
async def test_booked_slot_disappears_from_availability():
    svc, professionals, professional = await make_services()
    await svc.book(request(professional.id, start=NINE + timedelta(hours=1)))
    slots = await professionals.get_available_slots(professional.id, NINE.replace(hour=0), NINE + timedelta(days=1))
    assert slots == [NINE, NINE + timedelta(hours=2)]


@pytest.mark.asyncio
async def test_no_show_keeps_its_slot_for_booking_and_availability():
    svc, professionals, professional = await make_services()
    missed = await svc.book(request(professional.id))
    await svc.mark_no_show(missed.id, "secretaria")

    slots = await professionals.get_available_slots(professional.id, NINE.replace(hour=0), NINE + timedelta(days=1))
    assert NINE not in slots
    with pytest.raises(ScheduleConflictError):
        await svc.book(request(professional.id, patient_id="m2"))
