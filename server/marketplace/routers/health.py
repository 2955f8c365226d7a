"""Health check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])


@router.post("/ping", response_model=HealthResponse)
async def health_ping(request: Request) -> JSONResponse:
    """
    Health check endpoint.

    Returns current service status, background worker state and the side
    effect backlog.
    """
    state = request.app.state
    manager = getattr(state, "worker_manager", None)
    side_effects = getattr(state, "side_effects", None)

    workers = manager.get_worker_status() if manager else {}
    status = HealthStatus.HEALTHY
    if workers and not all(workers.values()):
        status = HealthStatus.DEGRADED

    response_data = HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        workers=workers,
        pending_side_effects=side_effects.pending if side_effects else None,
    )

    logger.debug(
        "Health check requested",
        extra={
            "status": response_data.status,
            "timestamp": response_data.timestamp.isoformat()
        }
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
