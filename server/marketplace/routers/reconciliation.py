"""Reconciliation router for back-office follow-up of failed bookings."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, require_admin
from ..schemas.common import Problem
from ..schemas.reconciliation import ReconciliationSearchRequest, WebhookDeliveryList
from ..services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/reconciliation", tags=["reconciliation"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
ADMIN_DEPENDENCY = Depends(require_admin)


@router.post(
    "/search",
    response_model=WebhookDeliveryList,
    responses={400: {"model": Problem}, 401: {"model": Problem}, 403: {"model": Problem}},
)
async def search_deliveries(
    request: ReconciliationSearchRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> JSONResponse:
    """List paid webhook deliveries whose bookings failed or were only partly created."""
    items, next_cursor = await ReconciliationService(db).search(request)

    logger.info(
        "Reconciliation search",
        extra={"admin": admin["user_id"], "outcomes": request.outcomes, "results": len(items)}
    )

    response = WebhookDeliveryList(items=items, next_cursor=next_cursor)
    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
