from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..application.services.professional_service import NewProfessional, ProfessionalService
from ..dependencies import get_current_user, get_professional_service
from ..exceptions import DomainError
from ..schemas.common.common import CurrentUser
from ..schemas.scheduling.scheduling import (
    AvailableSlotsResponse,
    ProfessionalCreate,
    ProfessionalResponse,
    ProfessionalStatusUpdate,
    WorkingHoursUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/professionals", tags=["Professionals"])


@router.post("/", response_model=ProfessionalResponse, status_code=201)
async def create_professional(
    body: ProfessionalCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ProfessionalService = Depends(get_professional_service),
):
    try:
        professional = await service.create_professional(NewProfessional(
            name=body.name,
            email=body.email,
            phone=body.phone,
            specialty=body.specialty,
            consultation_duration_minutes=body.consultation_duration_minutes,
            working_hours=[r.to_domain() for r in body.working_hours],
            professional_registry=body.professional_registry,
            consultation_fee=body.consultation_fee,
            created_by=current_user.uid,
        ))
        return ProfessionalResponse.from_domain(professional)
    except (DomainError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error creating professional: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create professional")


@router.get("/", response_model=List[ProfessionalResponse])
async def list_professionals(
    active_only: bool = Query(False),
    current_user: CurrentUser = Depends(get_current_user),
    service: ProfessionalService = Depends(get_professional_service),
):
    return [ProfessionalResponse.from_domain(p) for p in await service.list_professionals(active_only)]


@router.get("/{professional_id}", response_model=ProfessionalResponse)
async def get_professional(
    professional_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ProfessionalService = Depends(get_professional_service),
):
    return ProfessionalResponse.from_domain(await service.get_professional(professional_id))


@router.put("/{professional_id}/working-hours", response_model=ProfessionalResponse)
async def update_working_hours(
    professional_id: str,
    body: WorkingHoursUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ProfessionalService = Depends(get_professional_service),
):
    professional = await service.update_working_hours(
        professional_id,
        [r.to_domain() for r in body.working_hours],
        body.consultation_duration_minutes,
    )
    return ProfessionalResponse.from_domain(professional)


@router.patch("/{professional_id}/status", response_model=ProfessionalResponse)
async def set_professional_status(
    professional_id: str,
    body: ProfessionalStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ProfessionalService = Depends(get_professional_service),
):
    return ProfessionalResponse.from_domain(await service.set_status(professional_id, body.status, body.reason))


@router.get("/{professional_id}/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    professional_id: str,
    start: datetime = Query(..., description="Range start (inclusive)"),
    end: datetime = Query(..., description="Range end (exclusive)"),
    current_user: CurrentUser = Depends(get_current_user),
    service: ProfessionalService = Depends(get_professional_service),
):
    slots = await service.get_available_slots(professional_id, start, end)
    professional = await service.get_professional(professional_id)
    duration = professional.consultation_duration_minutes
    if duration <= 0:
        duration = service.default_duration_minutes
    return AvailableSlotsResponse(professional_id=professional_id, duration_minutes=duration, slots=slots)
