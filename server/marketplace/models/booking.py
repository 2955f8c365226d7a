"""Booking model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base

# line_ref used for single-item checkouts
SINGLE_LINE_REF = "single"


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"
    REVIEWED = "reviewed"


class PaymentStatus(str, Enum):
    """Payment snapshot status enumeration."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ServiceType(str, Enum):
    """Service families a booking can belong to."""
    ACTIVITY = "Activity"
    STAY = "Stay"
    DINING = "Dining"
    TRANSPORTATION = "Transportation"


class Booking(Base):
    """Booking entity materialized from a confirmed payment."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    # Idempotency key: payment intent id plus the cart line it paid for
    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    line_ref: Mapped[str] = mapped_column(String(64), nullable=False, default=SINGLE_LINE_REF)

    # Who booked
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    guest_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # What was booked
    service_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    service_type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    transport_category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    option_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    room_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.CONFIRMED.value,
        index=True
    )

    passengers_total: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Pricing snapshot
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Payment snapshot
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="credit-card")
    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.COMPLETED.value
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Scheduling and category-specific detail block
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    referral_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    booking_source: Mapped[str] = mapped_column(String(20), nullable=False, default="web")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint("transaction_id", "line_ref", name="uq_booking_transaction_line"),
        CheckConstraint("passengers_total > 0", name="ck_booking_passengers_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("length(transaction_id) > 0", name="ck_booking_transaction_not_empty"),
        CheckConstraint(
            "customer_id IS NOT NULL OR guest_email IS NOT NULL",
            name="ck_booking_has_identity"
        ),
    )

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view of the booking, safe to hand to background work."""
        return {
            "id": str(self.id),
            "booking_number": self.booking_number,
            "transaction_id": self.transaction_id,
            "line_ref": self.line_ref,
            "customer_id": self.customer_id,
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "service_id": self.service_id,
            "vendor_id": self.vendor_id,
            "service_type": self.service_type,
            "category": self.category,
            "transport_category": self.transport_category,
            "status": self.status,
            "total_amount": str(self.total_amount),
            "payment_method": self.payment_method,
        }

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, number='{self.booking_number}', "
            f"transaction_id='{self.transaction_id}', line_ref='{self.line_ref}', "
            f"status={self.status})>"
        )
