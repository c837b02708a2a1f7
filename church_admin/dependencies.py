import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .core.config import settings
from .application.services.appointments_service import AppointmentsService
from .application.services.ledger_service import DepartmentLedgerService
from .application.services.professional_service import ProfessionalService
from .infrastructure.audit.std_logger import StdAuditLogger
from .schemas.common.common import CurrentUser
from .services.auth import extract_user_info_from_claims, verify_firebase_id_token

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer(auto_error=False)

SYSTEM_USER = CurrentUser(uid="system", name="System")


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme)) -> CurrentUser:
    if not settings.AUTH_REQUIRED:
        return SYSTEM_USER
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")
    claims = verify_firebase_id_token(credentials.credentials)
    if not claims:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    info = extract_user_info_from_claims(claims)
    if not info["uid"]:
        raise HTTPException(status_code=401, detail="Invalid token: missing user ID")
    return CurrentUser(uid=info["uid"], name=info["name"], email=info["email"], claims=claims)


def get_ledger_service(request: Request) -> DepartmentLedgerService:
    return DepartmentLedgerService(
        store=request.app.state.ledger_store,
        audit=StdAuditLogger(),
        query_limit=settings.LEDGER_QUERY_LIMIT,
        page_size=settings.LEDGER_SCAN_PAGE_SIZE,
    )


def get_professional_service(request: Request) -> ProfessionalService:
    return ProfessionalService(
        repo=request.app.state.scheduling_repo,
        default_duration_minutes=settings.DEFAULT_CONSULTATION_MINUTES,
        default_start=settings.DEFAULT_WORKING_HOURS_START,
        default_end=settings.DEFAULT_WORKING_HOURS_END,
        default_weekdays=settings.default_working_weekdays,
    )


def get_appointments_service(request: Request) -> AppointmentsService:
    return AppointmentsService(repo=request.app.state.scheduling_repo)
