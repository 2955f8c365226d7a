"""Cart service for checkout lookups and post-payment pruning."""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.cart import Cart

logger = logging.getLogger(__name__)


class CartService:
    """Service for cart-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_cart(self, cart_id: str) -> Optional[Cart]:
        """Get a cart with its items."""
        # Reload items even if this session already holds the cart
        stmt = (
            select(Cart)
            .options(selectinload(Cart.items))
            .where(Cart.id == cart_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_cart_for_user(self, user_id: str) -> Optional[Cart]:
        """Get a registered user's cart with its items."""
        stmt = (
            select(Cart)
            .options(selectinload(Cart.items))
            .where(Cart.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def prune_items(self, cart_id: str, item_ids: Iterable[str]) -> int:
        """
        Remove booked items from a cart and recompute its total.

        Items already gone are ignored, so repeating the call is harmless.

        Returns:
            Number of items removed
        """
        ids = set(item_ids)
        if not ids:
            return 0

        cart = await self.get_cart(cart_id)
        if cart is None:
            logger.warning("Cart not found for pruning", extra={"cart_id": cart_id})
            return 0

        remaining = [item for item in cart.items if item.id not in ids]
        removed = len(cart.items) - len(remaining)
        if removed == 0:
            return 0

        cart.items = remaining
        cart.recompute_total()
        await self.db.commit()

        logger.info(
            "Booked items removed from cart",
            extra={
                "cart_id": cart_id,
                "removed": removed,
                "remaining": len(remaining),
                "total_price": str(cart.total_price)
            }
        )
        return removed
