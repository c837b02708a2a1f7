from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging

from dotenv import load_dotenv

# Load environment variables as early as possible
load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from .core.config import settings
from .application.ports.ledger_store import LedgerStore
from .application.ports.scheduling_repo import SchedulingRepository
from .exceptions import (
    DomainError,
    domain_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, SecurityMiddleware
from .routers import appointments_router, departments_router, professionals_router, transactions_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


def build_stores():
    """Pick persistence adapters from STORAGE_BACKEND."""
    if settings.storage_backend == "firestore":
        from .services.auth import get_firestore_client
        from .infrastructure.persistence.firestore.ledger_store_firestore import FirestoreLedgerStore
        from .infrastructure.persistence.firestore.scheduling_repository_firestore import FirestoreSchedulingRepository

        client = get_firestore_client()
        ledger_store = FirestoreLedgerStore(
            client,
            settings.DEPARTMENTS_COLLECTION,
            settings.DEPARTMENT_TRANSACTIONS_COLLECTION,
            settings.DEPARTMENT_TRANSFERS_COLLECTION,
        )
        scheduling_repo = FirestoreSchedulingRepository(
            client,
            settings.PROFESSIONALS_COLLECTION,
            settings.APPOINTMENTS_COLLECTION,
        )
        return ledger_store, scheduling_repo

    from .infrastructure.persistence.memory.ledger_store_memory import InMemoryLedgerStore
    from .infrastructure.persistence.memory.scheduling_repository_memory import InMemorySchedulingRepository

    logger.warning("Using in-memory storage; data is lost on restart")
    return InMemoryLedgerStore(), InMemorySchedulingRepository()


def create_app(
    ledger_store: Optional[LedgerStore] = None,
    scheduling_repo: Optional[SchedulingRepository] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} ({settings.storage_backend} storage)...")
        yield
        logger.info(f"Shutting down {settings.APP_NAME}...")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
    )

    if ledger_store is None or scheduling_repo is None:
        default_ledger, default_scheduling = build_stores()
        ledger_store = ledger_store or default_ledger
        scheduling_repo = scheduling_repo or default_scheduling
    app.state.ledger_store = ledger_store
    app.state.scheduling_repo = scheduling_repo

    # Exception handlers
    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

    # Middleware
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=settings.GZIP_MIN_SIZE)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.allowed_methods_list,
        allow_headers=settings.allowed_headers_list,
    )

    app.include_router(departments_router.router)
    app.include_router(transactions_router.router)
    app.include_router(transactions_router.transfers_router)
    app.include_router(professionals_router.router)
    app.include_router(appointments_router.router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now().isoformat(),
            "storage": settings.storage_backend,
            "auth": {
                "required": settings.AUTH_REQUIRED,
                "firebase_configured": settings.firebase_configured,
            },
        }

    return app


app = create_app()


# ------------------------
# Run with correct PORT in local/production
# ------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "church_admin.main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=1,
        log_level=settings.LOG_LEVEL.lower()
    )
