# church_admin/schemas/scheduling/scheduling.py
from pydantic import BaseModel, Field, StrictFloat, StrictInt
from typing import List, Optional, Union
from datetime import datetime

from church_admin.application.ports.scheduling_repo import (
    Appointment,
    AppointmentHistoryEntry,
    AppointmentStatus,
    AssistanceType,
    Modality,
    Priority,
    Professional,
    ProfessionalStatus,
    WorkingHoursRule,
)
from church_admin.utils import appointment_status_label


class WorkingHoursRuleSchema(BaseModel):
    weekday: int = Field(ge=0, le=6, description="0 = Sunday")
    start: str = Field(pattern=r"^\d{2}:\d{2}$")  # HH:MM
    end: str = Field(pattern=r"^\d{2}:\d{2}$")  # HH:MM

    def to_domain(self) -> WorkingHoursRule:
        return WorkingHoursRule(weekday=self.weekday, start=self.start, end=self.end)

    @classmethod
    def from_domain(cls, rule: WorkingHoursRule) -> "WorkingHoursRuleSchema":
        return cls(weekday=rule.weekday, start=rule.start, end=rule.end)


# Professionals
class ProfessionalCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str
    phone: str
    specialty: AssistanceType
    consultation_duration_minutes: int = Field(gt=0)
    working_hours: List[WorkingHoursRuleSchema] = []
    professional_registry: Optional[str] = None
    consultation_fee: Optional[Union[StrictInt, StrictFloat]] = None

class WorkingHoursUpdate(BaseModel):
    working_hours: List[WorkingHoursRuleSchema]
    consultation_duration_minutes: Optional[int] = Field(default=None, gt=0)

class ProfessionalStatusUpdate(BaseModel):
    status: ProfessionalStatus
    reason: Optional[str] = None

class ProfessionalResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    specialty: AssistanceType
    consultation_duration_minutes: int
    working_hours: List[WorkingHoursRuleSchema]
    status: ProfessionalStatus
    professional_registry: Optional[str] = None
    consultation_fee: Optional[float] = None
    inactivation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, p: Professional) -> "ProfessionalResponse":
        return cls(
            id=p.id,
            name=p.name,
            email=p.email,
            phone=p.phone,
            specialty=p.specialty,
            consultation_duration_minutes=p.consultation_duration_minutes,
            working_hours=[WorkingHoursRuleSchema.from_domain(r) for r in p.working_hours],
            status=p.status,
            professional_registry=p.professional_registry,
            consultation_fee=float(p.consultation_fee) if p.consultation_fee is not None else None,
            inactivation_reason=p.inactivation_reason,
            created_at=p.created_at,
            updated_at=p.updated_at,
        )

class AvailableSlotsResponse(BaseModel):
    professional_id: str
    duration_minutes: int
    slots: List[datetime]


# Appointments
class AppointmentCreate(BaseModel):
    professional_id: str
    patient_id: str
    patient_name: str = Field(min_length=1)
    patient_phone: str
    patient_email: Optional[str] = None
    start: datetime
    reason: str = Field(min_length=1)
    modality: Modality = Modality.IN_PERSON
    priority: Priority = Priority.NORMAL
    notes: Optional[str] = None

class AppointmentCancel(BaseModel):
    reason: str = Field(min_length=1)

class AppointmentReschedule(BaseModel):
    start: datetime
    notes: Optional[str] = None

class AppointmentComplete(BaseModel):
    notes: Optional[str] = None

class AppointmentHistoryResponse(BaseModel):
    at: datetime
    action: str
    actor: str
    previous_status: Optional[AppointmentStatus] = None
    new_status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, h: AppointmentHistoryEntry) -> "AppointmentHistoryResponse":
        return cls(
            at=h.at,
            action=h.action,
            actor=h.actor,
            previous_status=h.previous_status,
            new_status=h.new_status,
            notes=h.notes,
        )

class AppointmentResponse(BaseModel):
    id: str
    booking_code: str
    patient_id: str
    patient_name: str
    patient_phone: str
    patient_email: Optional[str] = None
    professional_id: str
    professional_name: str
    assistance_type: AssistanceType
    start: datetime
    end: datetime
    modality: Modality
    priority: Priority
    status: AppointmentStatus
    status_label: str
    reason: str
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    history: List[AppointmentHistoryResponse] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, a: Appointment) -> "AppointmentResponse":
        return cls(
            id=a.id,
            booking_code=a.booking_code,
            patient_id=a.patient_id,
            patient_name=a.patient_name,
            patient_phone=a.patient_phone,
            patient_email=a.patient_email,
            professional_id=a.professional_id,
            professional_name=a.professional_name,
            assistance_type=a.assistance_type,
            start=a.start,
            end=a.end,
            modality=a.modality,
            priority=a.priority,
            status=a.status,
            status_label=appointment_status_label(a.status),
            reason=a.reason,
            notes=a.notes,
            cancellation_reason=a.cancellation_reason,
            history=[AppointmentHistoryResponse.from_domain(h) for h in a.history],
            created_at=a.created_at,
            updated_at=a.updated_at,
        )
