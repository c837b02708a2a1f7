from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..application.ports.ledger_store import DepartmentFilters, DepartmentUpdate
from ..application.services.ledger_service import DepartmentLedgerService, NewDepartment
from ..dependencies import get_current_user, get_ledger_service
from ..exceptions import DomainError
from ..schemas.common.common import CurrentUser, IdResponse, MessageResponse
from ..schemas.ledger.ledger import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentSummaryResponse,
    DepartmentUpdateRequest,
    MonthlyBalanceResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/departments", tags=["Departments"])


@router.post("/", response_model=IdResponse, status_code=201)
async def create_department(
    body: DepartmentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    try:
        department_id = await ledger.create_department(NewDepartment(
            name=body.name,
            description=body.description,
            color=body.color,
            icon=body.icon,
            initial_balance=body.initial_balance,
            responsible_user_id=body.responsible_user_id,
            responsible_name=body.responsible_name,
            is_active=body.is_active,
            created_by=current_user.uid,
        ))
        return IdResponse(id=department_id)
    except (DomainError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error creating department: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create department")


@router.get("/", response_model=List[DepartmentResponse])
async def list_departments(
    is_active: Optional[bool] = Query(None),
    responsible_user_id: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    departments = await ledger.list_departments(DepartmentFilters(is_active=is_active, responsible_user_id=responsible_user_id))
    return [DepartmentResponse.from_domain(d) for d in departments]


@router.get("/summary", response_model=DepartmentSummaryResponse)
async def get_department_summary(
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    return DepartmentSummaryResponse.from_domain(await ledger.get_department_summary())


@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    return DepartmentResponse.from_domain(await ledger.get_department(department_id))


@router.patch("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: str,
    body: DepartmentUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    department = await ledger.update_department(department_id, DepartmentUpdate(**body.model_dump(exclude_unset=True)))
    return DepartmentResponse.from_domain(department)


@router.delete("/{department_id}", response_model=MessageResponse)
async def delete_department(
    department_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    await ledger.delete_department(department_id)
    return MessageResponse(message="Department deleted")


@router.get("/{department_id}/monthly-balance", response_model=MonthlyBalanceResponse)
async def get_monthly_balance(
    department_id: str,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    report = await ledger.get_monthly_balance(department_id, year, month)
    return MonthlyBalanceResponse.from_domain(report)
