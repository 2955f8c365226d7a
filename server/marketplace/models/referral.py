"""Referral partner and commission model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base


class PartnerStatus(str, Enum):
    """Referral partner approval status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class CommissionStatus(str, Enum):
    """Referral commission lifecycle."""
    PENDING = "pending"
    EARNED = "earned"
    REQUESTED = "requested"
    PAID = "paid"
    REFUNDED = "refunded"


class ReferralPartner(Base):
    """Partner (concierge, driver, agent) whose code customers enter at checkout."""

    __tablename__ = "referral_partners"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    referral_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    commission_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("5"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PartnerStatus.PENDING.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    total_referrals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("commission_percentage >= 0", name="ck_partner_commission_min"),
        CheckConstraint("commission_percentage <= 100", name="ck_partner_commission_max"),
    )

    commissions: Mapped[list["ReferralCommission"]] = relationship(
        "ReferralCommission", back_populates="partner"
    )

    def __repr__(self) -> str:
        return (
            f"<ReferralPartner(id={self.id}, code='{self.referral_code}', "
            f"status={self.status}, active={self.is_active})>"
        )


class ReferralCommission(Base):
    """Commission owed to a partner for one booking."""

    __tablename__ = "referral_commissions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    partner_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("referral_partners.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # At most one commission per booking
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    commission_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    booking_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionStatus.PENDING.value,
        index=True
    )
    referral_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Denormalized booking details for partner statements
    service_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tourist_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tourist_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    partner: Mapped["ReferralPartner"] = relationship("ReferralPartner", back_populates="commissions")

    def __repr__(self) -> str:
        return (
            f"<ReferralCommission(id={self.id}, booking_id={self.booking_id}, "
            f"amount={self.commission_amount}, status={self.status})>"
        )
