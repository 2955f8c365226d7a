"""Webhook delivery record model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class WebhookOutcome(str, Enum):
    """What an authenticated webhook delivery ended up doing."""
    CREATED = "created"
    EXISTS = "exists"
    PARTIAL = "partial"
    FAILED = "failed"
    IGNORED = "ignored"


class WebhookEvent(Base):
    """
    One row per gateway event id.

    Re-deliveries update the same row, so the table doubles as the
    manual reconciliation queue for paid-but-unbooked payments.
    """

    __tablename__ = "webhook_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    event_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    booking_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    outcome: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    error_class: Mapped[str | None] = mapped_column(String(100), nullable=True)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string
    delivery_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

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

    __table_args__ = (
        CheckConstraint("length(event_id) > 0", name="ck_webhook_event_id_not_empty"),
        CheckConstraint("delivery_count >= 1", name="ck_webhook_delivery_count_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookEvent(event_id='{self.event_id}', type='{self.event_type}', "
            f"outcome={self.outcome}, deliveries={self.delivery_count})>"
        )
