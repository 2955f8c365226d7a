"""Reconciliation service for paid-but-unbooked payments."""

import json
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ValidationError
from ..models.webhook_event import WebhookEvent, WebhookOutcome
from ..schemas.reconciliation import ReconciliationSearchRequest, WebhookDelivery

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Lists webhook deliveries that need a human to finish them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def search(self, request: ReconciliationSearchRequest) -> Tuple[List[WebhookDelivery], Optional[str]]:
        """
        Search recorded deliveries by outcome, newest first.

        Returns:
            Tuple of (deliveries, next cursor)

        Raises:
            ValidationError: If an outcome is unknown or the cursor is malformed
        """
        known = {outcome.value for outcome in WebhookOutcome}
        unknown = [outcome for outcome in request.outcomes if outcome not in known]
        if unknown:
            raise ValidationError(
                detail=f"Unknown outcomes: {', '.join(unknown)}",
                errors=[{"path": "outcomes", "message": f"must be one of {sorted(known)}"}],
            )

        offset = 0
        if request.cursor:
            try:
                offset = int(request.cursor)
            except ValueError:
                raise ValidationError(
                    detail="Malformed cursor",
                    errors=[{"path": "cursor", "message": "not a valid cursor"}],
                )

        stmt = select(WebhookEvent).where(WebhookEvent.outcome.in_(request.outcomes))
        if request.payment_intent_id:
            stmt = stmt.where(WebhookEvent.payment_intent_id == request.payment_intent_id)
        stmt = (
            stmt.order_by(WebhookEvent.updated_at.desc(), WebhookEvent.event_id)
            .offset(offset)
            .limit(request.limit + 1)
        )

        result = await self.db.execute(stmt)
        rows = list(result.scalars().all())

        next_cursor = None
        if len(rows) > request.limit:
            rows = rows[:request.limit]
            next_cursor = str(offset + request.limit)

        deliveries = [
            WebhookDelivery(
                event_id=row.event_id,
                event_type=row.event_type,
                payment_intent_id=row.payment_intent_id,
                booking_type=row.booking_type,
                outcome=row.outcome,
                error_class=row.error_class,
                detail=json.loads(row.detail) if row.detail else None,
                delivery_count=row.delivery_count,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
            for row in rows
        ]
        return deliveries, next_cursor
