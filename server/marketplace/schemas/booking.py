"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: UUID = Field(..., description="Booking to retrieve")


class BookingsByTransactionRequest(BaseModel):
    """Request schema for listing the bookings a payment produced."""

    transaction_id: str = Field(..., min_length=1, max_length=255, description="Payment intent ID")


class Booking(BaseModel):
    """Booking response schema."""

    id: UUID = Field(..., description="Unique booking ID")
    booking_number: str = Field(..., description="Human-readable booking code")
    transaction_id: str = Field(..., description="Payment intent that paid for the booking")
    line_ref: str = Field(..., description="'single' or the cart item ID")
    customer_id: Optional[str] = Field(None, description="Registered user, if any")
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    service_id: str
    vendor_id: str
    service_type: str
    category: str
    status: str
    passengers_total: int = Field(..., ge=1)
    base_price: Decimal
    subtotal: Decimal
    total_amount: Decimal
    payment_method: str
    payment_status: str
    paid_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict, description="Category-specific booking details")
    referral_code: Optional[str] = None
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")

    class Config:
        from_attributes = True

    @field_serializer("base_price", "subtotal", "total_amount")
    def serialize_money(self, value: Decimal) -> str:
        return f"{value:.2f}"


class BookingList(BaseModel):
    """Bookings materialized from one payment."""

    transaction_id: str
    items: List[Booking] = Field(default_factory=list)
