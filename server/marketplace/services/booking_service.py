"""Booking service for read operations."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.booking import Booking
from ..schemas.booking import BookingsByTransactionRequest, GetBookingRequest

logger = logging.getLogger(__name__)


class BookingService:
    """Service for booking lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_booking(self, request: GetBookingRequest) -> Booking:
        """
        Get a booking by ID.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.db.get(Booking, request.booking_id)
        if booking is None:
            logger.warning("Booking not found", extra={"booking_id": str(request.booking_id)})
            raise NotFoundError(resource_type="booking", resource_id=str(request.booking_id))
        return booking

    async def get_bookings_by_transaction(self, request: BookingsByTransactionRequest) -> List[Booking]:
        """
        List the bookings a payment produced, in line order of creation.

        An empty list means the webhook has not been processed yet, or failed.
        """
        stmt = (
            select(Booking)
            .where(Booking.transaction_id == request.transaction_id)
            .order_by(Booking.created_at, Booking.line_ref)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
