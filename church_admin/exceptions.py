from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class DomainError(Exception):
    """Base class for business-rule failures raised by the application services."""

    status_code = 400

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}


class ValidationError(DomainError):
    status_code = 422

    def __init__(self, errors: List[str]):
        super().__init__(f"Validation errors: {', '.join(errors)}", {"errors": list(errors)})
        self.errors = list(errors)


class NotFoundError(DomainError):
    status_code = 404


class InactiveDepartmentError(DomainError):
    status_code = 409


class InvalidStateError(DomainError):
    status_code = 409


class InsufficientBalanceError(DomainError):
    status_code = 409

    def __init__(self, current_balance: Decimal, requested_amount: Decimal, department_id: Optional[str] = None):
        super().__init__(
            "Insufficient balance",
            {
                "department_id": department_id,
                "current_balance": str(current_balance),
                "requested_amount": str(requested_amount),
            },
        )
        self.current_balance = current_balance
        self.requested_amount = requested_amount
        self.department_id = department_id


class ScheduleConflictError(DomainError):
    status_code = 409


def create_error_response(error_message: str, details: Optional[Dict[str, Any]] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message,
        "details": details or {},
    }


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.payload)
    )

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required")
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail))
    )

async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=create_error_response("Validation errors", {"errors": errors})
    )
