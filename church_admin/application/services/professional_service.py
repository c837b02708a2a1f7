import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, List, Optional

from ..ports.scheduling_repo import (
    AssistanceType,
    Professional,
    ProfessionalChange,
    ProfessionalStatus,
    SchedulingRepository,
    WorkingHoursRule,
)
from .availability import compute_available_slots
from ...exceptions import NotFoundError, ValidationError
from ...utils import is_valid_email, is_valid_phone, parse_hhmm, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class NewProfessional:
    name: str
    email: str
    phone: str
    specialty: AssistanceType
    consultation_duration_minutes: int
    created_by: str
    working_hours: List[WorkingHoursRule] = field(default_factory=list)
    professional_registry: Optional[str] = None
    consultation_fee: Any = None


def validate_working_hours(rules: List[WorkingHoursRule]) -> List[str]:
    errors: List[str] = []
    for index, rule in enumerate(rules):
        if not 0 <= rule.weekday <= 6:
            errors.append(f"Working hours #{index + 1}: weekday must be between 0 (Sunday) and 6 (Saturday)")
        try:
            if parse_hhmm(rule.start) >= parse_hhmm(rule.end):
                errors.append(f"Working hours #{index + 1}: start must be before end")
        except ValidationError as e:
            errors.extend(f"Working hours #{index + 1}: {msg}" for msg in e.errors)
    return errors


def validate_professional(data: NewProfessional) -> List[str]:
    errors: List[str] = []
    if not data.name or not data.name.strip():
        errors.append("Name is required")
    if not is_valid_email(data.email):
        errors.append("Invalid email")
    if not is_valid_phone(data.phone):
        errors.append("Invalid phone")
    if data.consultation_duration_minutes <= 0:
        errors.append("Consultation duration must be greater than zero")
    if data.consultation_fee is not None:
        try:
            if to_decimal(data.consultation_fee, "consultation_fee") < 0:
                errors.append("Consultation fee cannot be negative")
        except ValidationError as e:
            errors.extend(e.errors)
    errors.extend(validate_working_hours(data.working_hours))
    return errors


@dataclass
class ProfessionalService:
    repo: SchedulingRepository
    default_duration_minutes: int = 50
    default_start: str = "07:00"
    default_end: str = "21:00"
    default_weekdays: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])
    clock: Callable[[], datetime] = field(default=datetime.now)

    async def create_professional(self, data: NewProfessional) -> Professional:
        errors = validate_professional(data)
        if errors:
            raise ValidationError(errors)
        now = self.clock()
        professional = Professional(
            id="",
            name=data.name.strip(),
            email=data.email.strip().lower(),
            phone=data.phone,
            specialty=data.specialty,
            consultation_duration_minutes=data.consultation_duration_minutes,
            working_hours=list(data.working_hours),
            status=ProfessionalStatus.ACTIVE,
            created_at=now,
            updated_at=now,
            created_by=data.created_by,
            professional_registry=data.professional_registry,
            consultation_fee=to_decimal(data.consultation_fee, "consultation_fee") if data.consultation_fee is not None else None,
        )
        professional_id = await self.repo.add_professional(professional)
        logger.info(f"Professional created: {professional_id} ({professional.specialty.value})")
        return await self.get_professional(professional_id)

    async def get_professional(self, professional_id: str) -> Professional:
        professional = await self.repo.get_professional(professional_id)
        if professional is None:
            raise NotFoundError("Professional not found", {"professional_id": professional_id})
        return professional

    async def list_professionals(self, active_only: bool = False) -> List[Professional]:
        return await self.repo.list_professionals(active_only)

    async def update_working_hours(
        self,
        professional_id: str,
        rules: List[WorkingHoursRule],
        consultation_duration_minutes: Optional[int] = None,
    ) -> Professional:
        errors = validate_working_hours(rules)
        if consultation_duration_minutes is not None and consultation_duration_minutes <= 0:
            errors.append("Consultation duration must be greater than zero")
        if errors:
            raise ValidationError(errors)
        await self.get_professional(professional_id)
        await self.repo.update_professional(professional_id, ProfessionalChange(
            updated_at=self.clock(),
            working_hours=list(rules),
            consultation_duration_minutes=consultation_duration_minutes,
        ))
        return await self.get_professional(professional_id)

    async def set_status(self, professional_id: str, status: ProfessionalStatus, reason: Optional[str] = None) -> Professional:
        await self.get_professional(professional_id)
        await self.repo.update_professional(professional_id, ProfessionalChange(
            updated_at=self.clock(),
            status=status,
            inactivation_reason=reason if status != ProfessionalStatus.ACTIVE else "",
        ))
        logger.info(f"Professional {professional_id} status set to {status.value}")
        return await self.get_professional(professional_id)

    def _with_defaults(self, professional: Professional) -> Professional:
        rules = professional.working_hours or [
            WorkingHoursRule(weekday=d, start=self.default_start, end=self.default_end)
            for d in self.default_weekdays
        ]
        duration = professional.consultation_duration_minutes
        if duration <= 0:
            duration = self.default_duration_minutes
        return replace(professional, working_hours=rules, consultation_duration_minutes=duration)

    async def get_available_slots(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[datetime]:
        if range_end <= range_start:
            raise ValidationError(["Range end must be after range start"])
        professional = await self.get_professional(professional_id)
        if not professional.is_active:
            return []
        professional = self._with_defaults(professional)
        appointments = await self.repo.list_appointments(professional_id, range_start, range_end)
        return compute_available_slots(professional, range_start, range_end, appointments)

