"""FastAPI routers package."""

from .booking import router as booking_router
from .health import router as health_router
from .metrics import router as metrics_router
from .payments import router as payments_router
from .reconciliation import router as reconciliation_router

__all__ = [
    "booking_router",
    "health_router",
    "metrics_router",
    "payments_router",
    "reconciliation_router",
]
