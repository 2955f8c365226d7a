"""Referral commission service."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking
from ..models.referral import CommissionStatus, PartnerStatus, ReferralCommission, ReferralPartner

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class ReferralService:
    """Service for referral partner commissions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_partner(self, referral_code: str) -> Optional[ReferralPartner]:
        """Get an approved, active partner by referral code (case-insensitive)."""
        stmt = select(ReferralPartner).where(
            ReferralPartner.referral_code == referral_code.strip().upper(),
            ReferralPartner.status == PartnerStatus.APPROVED.value,
            ReferralPartner.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_commission_from_booking(
        self,
        booking_id: UUID,
        referral_code: str,
    ) -> Optional[ReferralCommission]:
        """
        Record the commission a partner earns for a booking.

        Args:
            booking_id: Booking the customer paid for
            referral_code: Code the customer entered at checkout

        Returns:
            The pending commission, the one already recorded for this booking,
            or None when the code or booking does not qualify
        """
        if not referral_code or not referral_code.strip():
            return None

        existing = await self.db.execute(
            select(ReferralCommission).where(ReferralCommission.booking_id == booking_id)
        )
        commission = existing.scalar_one_or_none()
        if commission is not None:
            return commission

        partner = await self.get_active_partner(referral_code)
        if partner is None:
            logger.info(
                "Referral code does not match an active partner",
                extra={"referral_code": referral_code, "booking_id": str(booking_id)}
            )
            return None

        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            logger.warning("Booking not found for referral commission", extra={"booking_id": str(booking_id)})
            return None

        booking_amount = booking.total_amount or Decimal("0")
        if booking_amount <= 0:
            logger.info("Booking has no billable amount, skipping commission", extra={"booking_id": str(booking_id)})
            return None

        percentage = partner.commission_percentage if partner.commission_percentage is not None else Decimal("5")
        amount = (booking_amount * percentage / Decimal("100")).quantize(CENTS, rounding=ROUND_HALF_UP)

        commission = ReferralCommission(
            partner_id=partner.id,
            booking_id=booking.id,
            commission_percentage=percentage,
            booking_amount=booking_amount,
            commission_amount=amount,
            status=CommissionStatus.PENDING.value,
            referral_code=partner.referral_code,
            service_type=booking.service_type,
            vendor_id=booking.vendor_id,
            tourist_name=booking.guest_name,
            tourist_email=booking.guest_email,
        )
        partner.total_referrals = (partner.total_referrals or 0) + 1
        partner.pending_commission = (partner.pending_commission or Decimal("0")) + amount

        self.db.add(commission)
        await self.db.commit()
        await self.db.refresh(commission)

        logger.info(
            "Referral commission created",
            extra={
                "commission_id": str(commission.id),
                "partner_id": str(partner.id),
                "booking_id": str(booking.id),
                "commission_amount": str(amount)
            }
        )
        return commission
