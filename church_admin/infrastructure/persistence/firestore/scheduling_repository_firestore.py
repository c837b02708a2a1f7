import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from ....application.ports.scheduling_repo import (
    Appointment,
    AppointmentChange,
    AppointmentHistoryEntry,
    AppointmentStatus,
    AssistanceType,
    Modality,
    Priority,
    Professional,
    ProfessionalChange,
    ProfessionalStatus,
    SchedulingRepository,
    SchedulingUnitOfWork,
    WorkingHoursRule,
)
from .converters import naive_datetime, to_money

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Appointments are queried by start only; nothing runs longer than this
MAX_APPOINTMENT_SPAN = timedelta(days=1)


def _optional_status(value: Optional[str]) -> Optional[AppointmentStatus]:
    return AppointmentStatus(value) if value else None


# ==================== MAPPING ====================

def professional_to_doc(professional: Professional) -> Dict[str, Any]:
    return {
        "nome": professional.name,
        "email": professional.email,
        "telefone": professional.phone,
        "especialidade": professional.specialty.value,
        "tempoConsulta": professional.consultation_duration_minutes,
        "horariosFuncionamento": [
            {"diaSemana": r.weekday, "horaInicio": r.start, "horaFim": r.end}
            for r in professional.working_hours
        ],
        "status": professional.status.value,
        "registroProfissional": professional.professional_registry,
        "valorConsulta": float(professional.consultation_fee) if professional.consultation_fee is not None else None,
        "motivoInativacao": professional.inactivation_reason,
        "dataCadastro": professional.created_at,
        "createdAt": professional.created_at,
        "updatedAt": professional.updated_at,
        "createdBy": professional.created_by,
    }


def professional_from_doc(doc_id: str, data: Dict[str, Any]) -> Professional:
    fee = data.get("valorConsulta")
    return Professional(
        id=doc_id,
        name=data.get("nome", ""),
        email=data.get("email", ""),
        phone=data.get("telefone", ""),
        specialty=AssistanceType(data.get("especialidade", AssistanceType.SOCIAL.value)),
        consultation_duration_minutes=int(data.get("tempoConsulta") or 0),
        working_hours=[
            WorkingHoursRule(weekday=int(r["diaSemana"]), start=r["horaInicio"], end=r["horaFim"])
            for r in data.get("horariosFuncionamento") or []
        ],
        status=ProfessionalStatus(data.get("status", ProfessionalStatus.ACTIVE.value)),
        created_at=naive_datetime(data.get("createdAt")),
        updated_at=naive_datetime(data.get("updatedAt")),
        created_by=data.get("createdBy", ""),
        professional_registry=data.get("registroProfissional"),
        consultation_fee=to_money(fee) if fee is not None else None,
        inactivation_reason=data.get("motivoInativacao"),
    )


def history_to_doc(entry: AppointmentHistoryEntry) -> Dict[str, Any]:
    return {
        "id": uuid.uuid4().hex,
        "dataHora": entry.at,
        "acao": entry.action,
        "statusAnterior": entry.previous_status.value if entry.previous_status else None,
        "statusNovo": entry.new_status.value if entry.new_status else None,
        "observacoes": entry.notes,
        "responsavel": entry.actor,
    }


def history_from_doc(data: Dict[str, Any]) -> AppointmentHistoryEntry:
    return AppointmentHistoryEntry(
        at=naive_datetime(data.get("dataHora")),
        action=data.get("acao", ""),
        actor=data.get("responsavel", ""),
        previous_status=_optional_status(data.get("statusAnterior")),
        new_status=_optional_status(data.get("statusNovo")),
        notes=data.get("observacoes"),
    )


def appointment_to_doc(appointment: Appointment) -> Dict[str, Any]:
    return {
        "codigoAgendamento": appointment.booking_code,
        "pacienteId": appointment.patient_id,
        "pacienteNome": appointment.patient_name,
        "pacienteTelefone": appointment.patient_phone,
        "pacienteEmail": appointment.patient_email,
        "profissionalId": appointment.professional_id,
        "profissionalNome": appointment.professional_name,
        "tipoAssistencia": appointment.assistance_type.value,
        "dataHoraAgendamento": appointment.start,
        "dataHoraFim": appointment.end,
        "modalidade": appointment.modality.value,
        "prioridade": appointment.priority.value,
        "status": appointment.status.value,
        "motivo": appointment.reason,
        "observacoesPaciente": appointment.notes,
        "motivoCancelamento": appointment.cancellation_reason,
        "historico": [history_to_doc(h) for h in appointment.history],
        "createdAt": appointment.created_at,
        "updatedAt": appointment.updated_at,
        "createdBy": appointment.created_by,
    }


def appointment_from_doc(doc_id: str, data: Dict[str, Any]) -> Appointment:
    return Appointment(
        id=doc_id,
        booking_code=data.get("codigoAgendamento", ""),
        patient_id=data.get("pacienteId", ""),
        patient_name=data.get("pacienteNome", ""),
        patient_phone=data.get("pacienteTelefone", ""),
        patient_email=data.get("pacienteEmail"),
        professional_id=data.get("profissionalId", ""),
        professional_name=data.get("profissionalNome", ""),
        assistance_type=AssistanceType(data.get("tipoAssistencia", AssistanceType.SOCIAL.value)),
        start=naive_datetime(data.get("dataHoraAgendamento")),
        end=naive_datetime(data.get("dataHoraFim")),
        modality=Modality(data.get("modalidade", Modality.IN_PERSON.value)),
        priority=Priority(data.get("prioridade", Priority.NORMAL.value)),
        status=AppointmentStatus(data.get("status", AppointmentStatus.SCHEDULED.value)),
        reason=data.get("motivo", ""),
        notes=data.get("observacoesPaciente"),
        cancellation_reason=data.get("motivoCancelamento"),
        history=[history_from_doc(h) for h in data.get("historico") or []],
        created_at=naive_datetime(data.get("createdAt")),
        updated_at=naive_datetime(data.get("updatedAt")),
        created_by=data.get("createdBy", ""),
    )


def _range_query(collection, professional_id: str, range_start: datetime, range_end: datetime):
    return (
        collection
        .where(filter=FieldFilter("profissionalId", "==", professional_id))
        .where(filter=FieldFilter("dataHoraAgendamento", ">=", range_start - MAX_APPOINTMENT_SPAN))
        .where(filter=FieldFilter("dataHoraAgendamento", "<", range_end))
        .order_by("dataHoraAgendamento")
    )


def _intersecting(items: List[Appointment], range_start: datetime) -> List[Appointment]:
    return [a for a in items if a.end > range_start]


# ==================== REPOSITORY ====================

class _FirestoreSchedulingUnit(SchedulingUnitOfWork):
    def __init__(self, repo: "FirestoreSchedulingRepository", transaction: firestore.AsyncTransaction) -> None:
        self._repo = repo
        self._txn = transaction

    async def get_professional(self, professional_id: str) -> Optional[Professional]:
        snap = await self._repo.professionals.document(professional_id).get(transaction=self._txn)
        if not snap.exists:
            return None
        return professional_from_doc(snap.id, snap.to_dict())

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        snap = await self._repo.appointments.document(appointment_id).get(transaction=self._txn)
        if not snap.exists:
            return None
        return appointment_from_doc(snap.id, snap.to_dict())

    async def list_appointments(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
        query = _range_query(self._repo.appointments, professional_id, range_start, range_end)
        items = [appointment_from_doc(doc.id, doc.to_dict()) async for doc in query.stream(transaction=self._txn)]
        return _intersecting(items, range_start)

    def add_appointment(self, appointment: Appointment) -> str:
        ref = self._repo.appointments.document()
        self._txn.set(ref, appointment_to_doc(appointment))
        return ref.id

    def apply_appointment_change(self, appointment_id: str, change: AppointmentChange) -> None:
        data: Dict[str, Any] = {
            "status": change.status.value,
            "updatedAt": change.updated_at,
            "historico": firestore.ArrayUnion([history_to_doc(change.history_entry)]),
        }
        if change.start is not None:
            data["dataHoraAgendamento"] = change.start
        if change.end is not None:
            data["dataHoraFim"] = change.end
        if change.cancellation_reason:
            data["motivoCancelamento"] = change.cancellation_reason
        self._txn.update(self._repo.appointments.document(appointment_id), data)


class FirestoreSchedulingRepository(SchedulingRepository):
    def __init__(
        self,
        client: firestore.AsyncClient,
        professionals_collection: str = "profissionaisAssistencia",
        appointments_collection: str = "agendamentosAssistencia",
    ) -> None:
        self.client = client
        self.professionals = client.collection(professionals_collection)
        self.appointments = client.collection(appointments_collection)

    async def run_atomic(self, work: Callable[[SchedulingUnitOfWork], Awaitable[T]]) -> T:
        @firestore.async_transactional
        async def _run(transaction: firestore.AsyncTransaction) -> T:
            return await work(_FirestoreSchedulingUnit(self, transaction))

        return await _run(self.client.transaction())

    async def add_professional(self, professional: Professional) -> str:
        ref = self.professionals.document()
        await ref.set(professional_to_doc(professional))
        return ref.id

    async def get_professional(self, professional_id: str) -> Optional[Professional]:
        snap = await self.professionals.document(professional_id).get()
        if not snap.exists:
            return None
        return professional_from_doc(snap.id, snap.to_dict())

    async def list_professionals(self, active_only: bool = False) -> List[Professional]:
        query = self.professionals
        if active_only:
            query = query.where(filter=FieldFilter("status", "==", ProfessionalStatus.ACTIVE.value))
        items = [professional_from_doc(doc.id, doc.to_dict()) async for doc in query.stream()]
        return sorted(items, key=lambda p: p.name)

    async def update_professional(self, professional_id: str, change: ProfessionalChange) -> None:
        data: Dict[str, Any] = {"updatedAt": change.updated_at}
        if change.working_hours is not None:
            data["horariosFuncionamento"] = [
                {"diaSemana": r.weekday, "horaInicio": r.start, "horaFim": r.end}
                for r in change.working_hours
            ]
        if change.consultation_duration_minutes is not None:
            data["tempoConsulta"] = change.consultation_duration_minutes
        if change.status is not None:
            data["status"] = change.status.value
            if change.status != ProfessionalStatus.ACTIVE:
                data["dataInativacao"] = change.updated_at
        if change.inactivation_reason is not None:
            data["motivoInativacao"] = change.inactivation_reason
        await self.professionals.document(professional_id).update(data)

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        snap = await self.appointments.document(appointment_id).get()
        if not snap.exists:
            return None
        return appointment_from_doc(snap.id, snap.to_dict())

    async def list_appointments(self, professional_id: str, range_start: datetime, range_end: datetime) -> List[Appointment]:
        query = _range_query(self.appointments, professional_id, range_start, range_end)
        items = [appointment_from_doc(doc.id, doc.to_dict()) async for doc in query.stream()]
        return _intersecting(items, range_start)
