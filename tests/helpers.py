from datetime import datetime

from church_admin.application.ports.scheduling_repo import (
    Appointment,
    AppointmentStatus,
    AssistanceType,
    Modality,
    Priority,
    Professional,
    ProfessionalStatus,
    WorkingHoursRule,
)

MONDAY = datetime(2024, 1, 1)  # a Monday
MON = 1


def make_professional(duration=60, rules=None, pid="p1"):
    now = datetime(2023, 12, 1)
    return Professional(
        id=pid,
        name="Ana",
        email="ana@example.org",
        phone="11999999999",
        specialty=AssistanceType.PSYCHOLOGICAL,
        consultation_duration_minutes=duration,
        working_hours=rules if rules is not None else [WorkingHoursRule(MON, "09:00", "12:00")],
        status=ProfessionalStatus.ACTIVE,
        created_at=now,
        updated_at=now,
        created_by="admin",
    )


def make_appointment(start, end, status=AppointmentStatus.SCHEDULED, pid="p1", aid="a1"):
    return Appointment(
        id=aid,
        booking_code="ASS-000001-ABCDEF",
        patient_id="m1",
        patient_name="João",
        patient_phone="11988887777",
        professional_id=pid,
        professional_name="Ana",
        assistance_type=AssistanceType.PSYCHOLOGICAL,
        start=start,
        end=end,
        modality=Modality.IN_PERSON,
        priority=Priority.NORMAL,
        status=status,
        reason="acompanhamento",
        created_at=start,
        updated_at=start,
        created_by="admin",
    )


