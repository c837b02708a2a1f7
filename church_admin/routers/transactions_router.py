from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..application.ports.ledger_store import TransactionFilters, TransactionStatus, TransactionType
from ..application.services.ledger_service import DepartmentLedgerService, NewTransaction, NewTransfer
from ..core.config import settings
from ..dependencies import get_current_user, get_ledger_service
from ..exceptions import DomainError
from ..schemas.common.common import CurrentUser, IdResponse, MessageResponse
from ..schemas.ledger.ledger import (
    TransactionCreate,
    TransactionResponse,
    TransactionStatusUpdate,
    TransferCreate,
    TransferResponse,
)
from ..utils import to_decimal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/department-transactions", tags=["Department Transactions"])
transfers_router = APIRouter(prefix="/department-transfers", tags=["Department Transfers"])


@router.post("/", response_model=IdResponse, status_code=201)
async def create_transaction(
    body: TransactionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    try:
        transaction_id = await ledger.create_transaction(NewTransaction(
            department_id=body.department_id,
            type=body.type,
            amount=body.amount,
            description=body.description,
            date=body.date,
            status=body.status,
            reference=body.reference,
            notes=body.notes,
            receipt_number=body.receipt_number,
            created_by=current_user.uid,
        ))
        return IdResponse(id=transaction_id)
    except (DomainError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error creating department transaction: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create transaction")


@router.get("/", response_model=List[TransactionResponse])
async def list_transactions(
    department_id: Optional[str] = Query(None),
    type: Optional[TransactionType] = Query(None),
    status: Optional[TransactionStatus] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    min_amount: Optional[float] = Query(None, ge=0),
    max_amount: Optional[float] = Query(None, ge=0),
    created_by: Optional[str] = Query(None),
    limit: int = Query(settings.TRANSACTIONS_PAGE_LIMIT, ge=1, le=1000),
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    filters = TransactionFilters(
        department_id=department_id,
        type=type,
        status=status,
        start_date=start_date,
        end_date=end_date,
        min_amount=to_decimal(min_amount, "min_amount") if min_amount is not None else None,
        max_amount=to_decimal(max_amount, "max_amount") if max_amount is not None else None,
        created_by=created_by,
    )
    transactions = await ledger.list_transactions(filters, limit)
    return [TransactionResponse.from_domain(t) for t in transactions]


@router.patch("/{transaction_id}/status", response_model=MessageResponse)
async def update_transaction_status(
    transaction_id: str,
    body: TransactionStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    try:
        await ledger.update_transaction_status(transaction_id, body.status, current_user.uid)
        return MessageResponse(message=f"Transaction {body.status.value}")
    except (DomainError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating transaction {transaction_id} status: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update transaction status")


@transfers_router.post("/", response_model=IdResponse, status_code=201)
async def create_transfer(
    body: TransferCreate,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    try:
        transfer_id = await ledger.create_transfer(NewTransfer(
            from_department_id=body.from_department_id,
            to_department_id=body.to_department_id,
            amount=body.amount,
            description=body.description,
            date=body.date,
            status=body.status,
            reference=body.reference,
            notes=body.notes,
            created_by=current_user.uid,
        ))
        return IdResponse(id=transfer_id)
    except (DomainError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error creating department transfer: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create transfer")


@transfers_router.get("/", response_model=List[TransferResponse])
async def list_transfers(
    department_id: Optional[str] = Query(None),
    limit: int = Query(settings.TRANSACTIONS_PAGE_LIMIT, ge=1, le=1000),
    current_user: CurrentUser = Depends(get_current_user),
    ledger: DepartmentLedgerService = Depends(get_ledger_service),
):
    transfers = await ledger.list_transfers(department_id, limit)
    return [TransferResponse.from_domain(t) for t in transfers]
