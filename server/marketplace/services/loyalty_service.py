"""Loyalty credit service."""

import logging
import math
from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.catalog import User

logger = logging.getLogger(__name__)


def credits_for(amount_paid: Decimal) -> int:
    """One credit per whole currency unit paid."""
    if amount_paid is None or amount_paid < 1:
        return 0
    return math.floor(amount_paid)


class LoyaltyService:
    """Service for awarding loyalty credits on paid bookings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def award_credits(self, user_id: Optional[str], amount_paid: Decimal) -> int:
        """
        Credit a registered user for a payment.

        Returns:
            Number of credits awarded; zero for guests and sub-unit amounts
        """
        credits = credits_for(Decimal(str(amount_paid)))
        if not user_id or credits == 0:
            return 0

        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(loyalty_credits=User.loyalty_credits + credits)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        if result.rowcount == 0:
            logger.warning("Loyalty credits not awarded, user not found", extra={"user_id": user_id})
            return 0

        logger.info(
            "Loyalty credits awarded",
            extra={"user_id": user_id, "credits": credits, "amount_paid": str(amount_paid)}
        )
        return credits
