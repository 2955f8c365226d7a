"""Revenue analytics event model definition."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class RevenueEvent(Base):
    """Booking revenue change handed to the analytics aggregator."""

    __tablename__ = "revenue_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # create, update or delete
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    previous_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    service_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<RevenueEvent(booking_id='{self.booking_id}', action={self.action}, amount={self.amount})>"
