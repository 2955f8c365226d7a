"""Payment-related Pydantic schemas."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .draft import BookingDraft


class ContactInfo(BaseModel):
    """Contact details collected on the checkout page."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: Optional[str] = Field(None, alias="firstName", max_length=60)
    last_name: Optional[str] = Field(None, alias="lastName", max_length=60)
    phone: Optional[str] = Field(None, max_length=32)

    @property
    def full_name(self) -> Optional[str]:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or None


class CreatePaymentIntentRequest(BaseModel):
    """Request schema for a single-item payment intent."""

    model_config = ConfigDict(populate_by_name=True)

    booking_data: BookingDraft = Field(..., alias="bookingData")
    contact_info: Optional[ContactInfo] = Field(None, alias="contactInfo")

    @model_validator(mode="before")
    @classmethod
    def fill_guest_from_contact(cls, data: Any) -> Any:
        # Guests often type their details only into the contact form
        if not isinstance(data, dict):
            return data
        booking = data.get("bookingData")
        contact = data.get("contactInfo")
        if not isinstance(booking, dict) or not isinstance(contact, dict):
            return data
        if booking.get("user"):
            return data

        booking = dict(booking)
        if not booking.get("guestEmail") and contact.get("email"):
            booking["guestEmail"] = contact["email"]
        if not booking.get("guestName"):
            name = " ".join(
                str(part) for part in (contact.get("firstName"), contact.get("lastName")) if part
            )
            if name:
                booking["guestName"] = name
        return {**data, "bookingData": booking}


class CartCheckoutItem(BaseModel):
    """One cart line as the checkout page sends it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, max_length=64, description="Cart item ID")
    service_id: str = Field(..., alias="serviceId", min_length=1, max_length=64)
    service_type: str = Field(..., alias="serviceType", max_length=32)
    total_price: float = Field(..., alias="totalPrice", gt=0)


class CreateCartPaymentIntentRequest(BaseModel):
    """Request schema for a whole-cart payment intent."""

    model_config = ConfigDict(populate_by_name=True)

    items: List[CartCheckoutItem] = Field(..., min_length=1, description="Cart lines being paid for")
    user: Optional[str] = Field(None, max_length=64)
    guest_name: Optional[str] = Field(None, alias="guestName", max_length=120)
    guest_email: Optional[str] = Field(None, alias="guestEmail", max_length=254)
    contact_info: ContactInfo = Field(..., alias="contactInfo")
    referral_code: str = Field("", alias="referralCode", max_length=64)

    @model_validator(mode="before")
    @classmethod
    def none_referral_to_empty(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("referralCode") is None and "referralCode" in data:
            return {**data, "referralCode": ""}
        return data


class PaymentIntentResponse(BaseModel):
    """Response schema for a created payment intent."""

    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(..., alias="clientSecret")
    payment_intent_id: str = Field(..., alias="paymentIntentId")


class WebhookAck(BaseModel):
    """Acknowledgement returned to the gateway for every authenticated event."""

    received: bool = Field(True, description="Always true once the signature is valid")
    booking_status: str = Field(..., description="created, exists, partial, failed or ignored")
    booking_type: Optional[str] = Field(None, description="single or cart")
    booking_id: Optional[str] = Field(None, description="Booking for a single-item payment")
    booking_ids: Optional[List[str]] = Field(None, description="Bookings for a cart payment")
    total_items: Optional[int] = Field(None, ge=0)
    bookings_created: Optional[int] = Field(None, ge=0)
    bookings_failed: Optional[int] = Field(None, ge=0)
    failed_items: Optional[List[str]] = Field(None, description="Cart item IDs that were not booked")
    cart_status: Optional[str] = Field(None, description="all_booked or partial")
    referral_code_used: Optional[bool] = None
    error: Optional[str] = Field(None, description="Failure class when booking_status is failed")


class GuestItemSummary(BaseModel):
    """Compact cart line carried in metadata when no persisted cart exists."""

    id: str = Field(..., min_length=1)
    sid: str = Field(..., min_length=1, description="Service ID")
    type: str = Field(..., description="Cart service type")
    price: float = Field(..., gt=0)


class CartCheckoutContext(BaseModel):
    """Everything the webhook needs to know about a paid cart."""

    user_id: Optional[str] = None
    cart_id: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    contact_email: Optional[str] = None
    contact_first_name: Optional[str] = None
    contact_last_name: Optional[str] = None
    referral_code: str = ""
    item_count: int = Field(0, ge=0)
    total_amount: Optional[str] = None
    guest_items: List[GuestItemSummary] = Field(default_factory=list)
    # Persisted-cart lines covered by the payment; lines added later are never booked
    paid_item_ids: List[str] = Field(default_factory=list)

    @property
    def display_name(self) -> Optional[str]:
        """Name to put on guest bookings."""
        if self.guest_name:
            return self.guest_name
        name = " ".join(part for part in (self.contact_first_name, self.contact_last_name) if part)
        return name or None
