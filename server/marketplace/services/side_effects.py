"""Post-booking side effects.

Referral commissions, loyalty credits, cart pruning and revenue analytics
follow a committed booking but are never part of it. They are queued and
run later, each in its own database session, and a failure in one is
logged and counted without touching the booking or the other effects.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import SideEffectError
from ..core.observability import metrics_collector
from ..models.booking import Booking
from .analytics_service import RevenueAnalyticsService
from .cart_service import CartService
from .loyalty_service import LoyaltyService
from .referral_service import ReferralService

logger = logging.getLogger(__name__)

REFERRAL = "referral_commission"
LOYALTY = "loyalty_credits"
CART_PRUNE = "cart_prune"
ANALYTICS = "revenue_analytics"


@dataclass
class SideEffect:
    """One queued unit of post-booking work."""

    name: str
    run: Callable[[AsyncSession], Awaitable[Any]]
    context: Dict[str, Any] = field(default_factory=dict)


class SideEffectOrchestrator:
    """Queues side effects for committed bookings and runs them in isolation."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: Optional[asyncio.Queue] = None,
    ):
        self.session_factory = session_factory
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    @property
    def pending(self) -> int:
        return self.queue.qsize()

    def _enqueue(self, effect: SideEffect) -> None:
        self.queue.put_nowait(effect)
        logger.debug("Side effect queued", extra={"effect": effect.name, **effect.context})

    def on_booking_committed(self, booking: Booking, context: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Queue the effects of a newly created booking.

        Args:
            booking: The committed booking
            context: Checkout context; "referral_code" triggers a commission

        Returns:
            Names of the effects queued
        """
        context = context or {}
        snapshot = booking.snapshot()
        booking_id = UUID(snapshot["id"])
        tags = {"booking_id": snapshot["id"], "transaction_id": snapshot["transaction_id"]}
        queued = []

        referral_code = (context.get("referral_code") or "").strip()
        if referral_code:
            async def create_commission(db: AsyncSession):
                return await ReferralService(db).create_commission_from_booking(booking_id, referral_code)

            self._enqueue(SideEffect(REFERRAL, create_commission, {**tags, "referral_code": referral_code}))
            queued.append(REFERRAL)

        customer_id = snapshot["customer_id"]
        if customer_id:
            amount_paid = Decimal(snapshot["total_amount"])

            async def award_credits(db: AsyncSession):
                return await LoyaltyService(db).award_credits(customer_id, amount_paid)

            self._enqueue(SideEffect(LOYALTY, award_credits, {**tags, "user_id": customer_id}))
            queued.append(LOYALTY)

        async def record_revenue(db: AsyncSession):
            return await RevenueAnalyticsService(db).record(snapshot, action="create")

        self._enqueue(SideEffect(ANALYTICS, record_revenue, tags))
        queued.append(ANALYTICS)

        return queued

    def on_cart_committed(self, cart_id: Optional[str], item_ids: List[str]) -> List[str]:
        """Queue removal of booked items from a persisted cart."""
        if not cart_id or not item_ids:
            return []

        ids = list(item_ids)

        async def prune(db: AsyncSession):
            return await CartService(db).prune_items(cart_id, ids)

        self._enqueue(SideEffect(CART_PRUNE, prune, {"cart_id": cart_id, "item_count": len(ids)}))
        return [CART_PRUNE]

    async def run_effect(self, effect: SideEffect) -> bool:
        """
        Run one effect in a fresh session.

        Returns:
            True if the effect succeeded; failures are logged, never raised
        """
        async with self.session_factory() as db:
            try:
                await effect.run(db)
            except Exception as e:
                await db.rollback()
                error = SideEffectError(effect.name, str(e))
                metrics_collector.record_side_effect(effect.name, "failed")
                logger.error(
                    f"Side effect failed: {error}",
                    exc_info=True,
                    extra={"effect": effect.name, "error_class": type(e).__name__, **effect.context}
                )
                return False

        metrics_collector.record_side_effect(effect.name, "succeeded")
        logger.info("Side effect completed", extra={"effect": effect.name, **effect.context})
        return True

    async def drain(self) -> int:
        """
        Run every queued effect now.

        Returns:
            Number of effects that succeeded
        """
        succeeded = 0
        while not self.queue.empty():
            effect = self.queue.get_nowait()
            try:
                if await self.run_effect(effect):
                    succeeded += 1
            finally:
                self.queue.task_done()
        return succeeded
