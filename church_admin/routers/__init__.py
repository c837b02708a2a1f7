# Routers package
from . import departments_router
from . import transactions_router
from . import professionals_router
from . import appointments_router

__all__ = [
    "departments_router",
    "transactions_router",
    "professionals_router",
    "appointments_router",
]
