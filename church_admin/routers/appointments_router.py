from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..application.services.appointments_service import AppointmentsService, NewAppointment
from ..dependencies import get_appointments_service, get_current_user
from ..exceptions import DomainError
from ..schemas.common.common import CurrentUser
from ..schemas.scheduling.scheduling import (
    AppointmentCancel,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.post("/", response_model=AppointmentResponse, status_code=201)
async def book_appointment(
    body: AppointmentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    try:
        appointment = await service.book(NewAppointment(
            professional_id=body.professional_id,
            patient_id=body.patient_id,
            patient_name=body.patient_name,
            patient_phone=body.patient_phone,
            patient_email=body.patient_email,
            start=body.start,
            reason=body.reason,
            modality=body.modality,
            priority=body.priority,
            notes=body.notes,
            created_by=current_user.uid,
        ))
        return AppointmentResponse.from_domain(appointment)
    except (DomainError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error booking appointment: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to book appointment")


@router.get("/", response_model=List[AppointmentResponse])
async def list_professional_appointments(
    professional_id: str = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    appointments = await service.list_for_professional(professional_id, start, end)
    return [AppointmentResponse.from_domain(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_domain(await service.get(appointment_id))


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    appointment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_domain(await service.confirm(appointment_id, current_user.uid))


@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
async def start_appointment(
    appointment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_domain(await service.start(appointment_id, current_user.uid))


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: str,
    body: AppointmentComplete,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_domain(await service.complete(appointment_id, current_user.uid, body.notes))


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: str,
    body: AppointmentCancel,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_domain(await service.cancel(appointment_id, current_user.uid, body.reason))


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentResponse.from_domain(await service.mark_no_show(appointment_id, current_user.uid))


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: str,
    body: AppointmentReschedule,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentsService = Depends(get_appointments_service),
):
    appointment = await service.reschedule(appointment_id, body.start, current_user.uid, body.notes)
    return AppointmentResponse.from_domain(appointment)
