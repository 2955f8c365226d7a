"""Booking draft schemas.

A booking draft is what the checkout page knows about a single-item
purchase before payment. It travels inside payment-intent metadata, so
field names are the short camelCase keys the checkout client sends.
"""

import datetime as dt
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class Category(str, Enum):
    """Service categories a draft can describe."""
    ACTIVITY = "activity"
    STAY = "stay"
    SPA = "spa"
    DINING = "dining"
    TRANSPORTATION = "transportation"


# Metadata keys shared by every category
COMMON_KEYS = (
    "category",
    "user",
    "guestName",
    "guestEmail",
    "numOfPeople",
    "totalPrice",
    "basePrice",
    "referralCode",
)

DEFAULT_GUEST_NAME = "Guest"


class TimeSlot(BaseModel):
    """Start and end of a bookable activity slot, as displayed to the customer."""

    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field(..., alias="startTime", max_length=32)
    end_time: str = Field(..., alias="endTime", max_length=32)


class DraftBase(BaseModel):
    """Fields every booking draft carries."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user: Optional[str] = Field(None, max_length=64, description="Registered user ID")
    guest_name: Optional[str] = Field(None, alias="guestName", max_length=120)
    guest_email: Optional[str] = Field(None, alias="guestEmail", max_length=254)
    num_of_people: int = Field(1, alias="numOfPeople", ge=1, le=500)
    total_price: float = Field(..., alias="totalPrice", gt=0)
    base_price: Optional[float] = Field(None, alias="basePrice", ge=0)
    referral_code: str = Field("", alias="referralCode", max_length=64)

    @field_validator("user", "guest_name", "guest_email", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("referral_code", mode="before")
    @classmethod
    def normalize_referral_code(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @model_validator(mode="after")
    def resolve_identity(self):
        # A draft belongs either to a registered user or to a guest, never both
        if self.user:
            self.guest_name = None
            self.guest_email = None
        elif not self.guest_email:
            raise ValueError("guestEmail is required when no user is given")
        elif not self.guest_name:
            self.guest_name = DEFAULT_GUEST_NAME

        if self.base_price is None:
            self.base_price = self.total_price
        return self

    @property
    def is_guest(self) -> bool:
        return self.user is None


class ActivityDraft(DraftBase):
    category: Literal["activity"] = "activity"
    activity: str = Field(..., min_length=1, max_length=64)
    option: str = Field(..., min_length=1, max_length=64)
    date: dt.date
    time: Optional[str] = Field(None, max_length=32)
    time_slot: Optional[TimeSlot] = Field(None, alias="timeSlot")

    @model_validator(mode="after")
    def require_time(self):
        if not self.time and self.time_slot is None:
            raise ValueError("an activity needs a time or a timeSlot")
        return self

    @property
    def service_ref(self) -> str:
        return self.activity


class StayDraft(DraftBase):
    category: Literal["stay"] = "stay"
    stay: str = Field(..., min_length=1, max_length=64)
    start_date: dt.date = Field(..., alias="startDate")
    end_date: Optional[dt.date] = Field(None, alias="endDate")

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self

    @property
    def service_ref(self) -> str:
        return self.stay


class SpaDraft(DraftBase):
    category: Literal["spa"] = "spa"
    spa: str = Field(..., min_length=1, max_length=64)
    service: str = Field(..., min_length=1, max_length=64, description="Treatment within the spa")
    service_name: str = Field(..., alias="serviceName", max_length=120)
    date: dt.date
    time: str = Field(..., max_length=32)

    @property
    def service_ref(self) -> str:
        return self.spa


class DiningDraft(DraftBase):
    category: Literal["dining"] = "dining"
    dining: str = Field(..., min_length=1, max_length=64)
    date: dt.date
    time: str = Field(..., min_length=1, max_length=32)

    @property
    def service_ref(self) -> str:
        return self.dining


class TransportationDraft(DraftBase):
    category: Literal["transportation"] = "transportation"
    transportation: str = Field(..., min_length=1, max_length=64)
    option: str = Field(..., min_length=1, max_length=64)
    date: dt.date
    time: str = Field(..., max_length=32)
    pickup_location: str = Field(..., alias="pickupLocation", min_length=1, max_length=120)
    dropoff_location: str = Field(..., alias="dropoffLocation", min_length=1, max_length=120)
    transportation_category: Optional[str] = Field(None, alias="transportationCategory", max_length=64)

    @property
    def service_ref(self) -> str:
        return self.transportation


BookingDraft = Annotated[
    Union[ActivityDraft, StayDraft, SpaDraft, DiningDraft, TransportationDraft],
    Field(discriminator="category"),
]

booking_draft_adapter: TypeAdapter = TypeAdapter(BookingDraft)


def dump_draft(draft: DraftBase) -> dict:
    """Metadata-ready view of a draft: aliased keys, no empty values."""
    return draft.model_dump(by_alias=True, exclude_none=True, mode="json")
