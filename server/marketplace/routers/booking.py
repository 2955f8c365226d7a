"""Booking router for booking lookups."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db
from ..schemas.booking import Booking, BookingList, BookingsByTransactionRequest, GetBookingRequest
from ..schemas.common import Problem
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking.model_validate(booking_model)


@router.post("/get", response_model=Booking, responses={404: {"model": Problem}})
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Get booking details by ID."""
    booking = await BookingService(db).get_booking(request)
    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/by-transaction", response_model=BookingList)
async def get_bookings_by_transaction(
    request: BookingsByTransactionRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    List the bookings created for a payment intent.

    Checkout clients poll this after payment until the webhook has run.
    """
    bookings = await BookingService(db).get_bookings_by_transaction(request)
    response = BookingList(
        transaction_id=request.transaction_id,
        items=[_convert_booking_to_schema(booking) for booking in bookings],
    )
    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
