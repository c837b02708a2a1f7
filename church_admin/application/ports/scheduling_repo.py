from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar


T = TypeVar("T")


class ProfessionalStatus(str, Enum):
    ACTIVE = "ativo"
    INACTIVE = "inativo"
    ON_LEAVE = "licenca"
    SUSPENDED = "suspenso"


class AppointmentStatus(str, Enum):
    SCHEDULED = "agendado"
    CONFIRMED = "confirmado"
    IN_PROGRESS = "em_andamento"
    COMPLETED = "concluido"
    CANCELED = "cancelado"
    RESCHEDULED = "remarcado"
    NO_SHOW = "faltou"


class Modality(str, Enum):
    IN_PERSON = "presencial"
    ONLINE = "online"
    HOME_VISIT = "domiciliar"
    PHONE = "telefonico"


class Priority(str, Enum):
    LOW = "baixa"
    NORMAL = "normal"
    HIGH = "alta"
    URGENT = "urgente"
    EMERGENCY = "emergencial"


class AssistanceType(str, Enum):
    PSYCHOLOGICAL = "psicologica"
    SOCIAL = "social"
    LEGAL = "juridica"
    MEDICAL = "medica"
    PHYSIOTHERAPY = "fisioterapia"
    NUTRITION = "nutricao"


@dataclass(frozen=True)
class WorkingHoursRule:
    """Weekly window; weekday 0 is Sunday. start/end are "HH:MM"."""
    weekday: int
    start: str
    end: str


@dataclass(frozen=True)
class Professional:
    id: str
    name: str
    email: str
    phone: str
    specialty: AssistanceType
    consultation_duration_minutes: int
    working_hours: List[WorkingHoursRule]
    status: ProfessionalStatus
    created_at: datetime
    updated_at: datetime
    created_by: str
    professional_registry: Optional[str] = None
    consultation_fee: Optional[Decimal] = None
    inactivation_reason: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == ProfessionalStatus.ACTIVE


@dataclass(frozen=True)
class AppointmentHistoryEntry:
    at: datetime
    action: str
    actor: str
    previous_status: Optional[AppointmentStatus] = None
    new_status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Appointment:
    id: str
    booking_code: str
    patient_id: str
    patient_name: str
    patient_phone: str
    professional_id: str
    professional_name: str
    assistance_type: AssistanceType
    start: datetime
    end: datetime
    modality: Modality
    priority: Priority
    status: AppointmentStatus
    reason: str
    created_at: datetime
    updated_at: datetime
    created_by: str
    patient_email: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    history: List[AppointmentHistoryEntry] = field(default_factory=list)


@dataclass(frozen=True)
class AppointmentChange:
    """Fields a status transition writes. start/end only change on reschedule."""
    status: AppointmentStatus
    updated_at: datetime
    history_entry: AppointmentHistoryEntry
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


@dataclass(frozen=True)
class ProfessionalChange:
    updated_at: datetime
    working_hours: Optional[List[WorkingHoursRule]] = None
    consultation_duration_minutes: Optional[int] = None
    status: Optional[ProfessionalStatus] = None
    inactivation_reason: Optional[str] = None


class SchedulingUnitOfWork(Protocol):
    """Reads then staged writes, committed together."""

    async def get_professional(self, professional_id: str) -> Optional[Professional]:
        ...

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    async def list_appointments(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
        ...

    def add_appointment(self, appointment: Appointment) -> str:
        ...

    def apply_appointment_change(self, appointment_id: str, change: AppointmentChange) -> None:
        ...


class SchedulingRepository(Protocol):
    async def run_atomic(self, work: Callable[[SchedulingUnitOfWork], Awaitable[T]]) -> T:
        ...

    async def add_professional(self, professional: Professional) -> str:
        ...

    async def get_professional(self, professional_id: str) -> Optional[Professional]:
        ...

    async def list_professionals(self, active_only: bool = False) -> List[Professional]:
        ...

    async def update_professional(self, professional_id: str, change: ProfessionalChange) -> None:
        ...

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    async def list_appointments(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
        """Appointments of the professional intersecting [range_start, range_end)."""
        ...
