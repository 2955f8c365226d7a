"""Revenue analytics hand-off service."""

import logging
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.analytics import RevenueEvent

logger = logging.getLogger(__name__)

ACTIONS = ("create", "update", "delete")


class RevenueAnalyticsService:
    """Appends booking revenue changes for the analytics aggregator."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        booking: Mapping[str, Any],
        action: str = "create",
        previous: Optional[Mapping[str, Any]] = None,
    ) -> RevenueEvent:
        """
        Record a revenue change for a booking.

        Args:
            booking: Booking snapshot after the change
            action: create, update or delete
            previous: Booking snapshot before the change, for updates
        """
        if action not in ACTIONS:
            raise ValueError(f"Unknown revenue action: {action}")

        event = RevenueEvent(
            booking_id=str(booking["id"]),
            action=action,
            amount=Decimal(str(booking.get("total_amount") or "0")),
            previous_amount=Decimal(str(previous["total_amount"])) if previous and previous.get("total_amount") else None,
            service_type=booking.get("service_type"),
            vendor_id=booking.get("vendor_id"),
            status=booking.get("status"),
            previous_status=previous.get("status") if previous else None,
        )
        self.db.add(event)
        await self.db.commit()

        logger.debug(
            "Revenue event recorded",
            extra={"booking_id": event.booking_id, "action": action, "amount": str(event.amount)}
        )
        return event
