"""Concurrency tests for duplicate webhook deliveries."""

import pytest
from sqlalchemy import func, select

from marketplace.models import Booking
from marketplace.schemas.draft import booking_draft_adapter
from marketplace.schemas.payment import CartCheckoutContext
from marketplace.services.materializer import BookingMaterializer, CartSnapshot


def _lose_the_lookup(monkeypatch):
    """Make the first lookup miss, as if a concurrent delivery had not committed yet."""
    original = BookingMaterializer._find_line
    calls = {"count": 0}

    async def find_line(self, transaction_id, line_ref):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return await original(self, transaction_id, line_ref)

    monkeypatch.setattr(BookingMaterializer, "_find_line", find_line)
    return calls


@pytest.mark.asyncio
async def test_losing_insert_returns_the_winner(test_session, test_settings, catalog, activity_draft_data, monkeypatch):
    """Test that a duplicate insert resolves to the booking that won the race."""
    draft = booking_draft_adapter.validate_python(activity_draft_data)
    winner = await BookingMaterializer(test_session, test_settings).materialize("pi_race", draft)

    calls = _lose_the_lookup(monkeypatch)
    loser = await BookingMaterializer(test_session, test_settings).materialize("pi_race", draft)

    # Missed lookup, failed insert, then the winner lookup
    assert calls["count"] == 2
    assert loser.created is False
    assert loser.bookings[0].id == winner.bookings[0].id

    count = await test_session.execute(select(func.count()).select_from(Booking))
    assert count.scalar_one() == 1


@pytest.mark.asyncio
async def test_losing_cart_line_is_committed_not_failed(test_session, test_settings, cart, monkeypatch):
    context = CartCheckoutContext(user_id="user_1", cart_id="cart_1", paid_item_ids=["item_1", "item_2", "item_3"])
    snapshot = CartSnapshot.from_cart(cart, context)
    materializer = BookingMaterializer(test_session, test_settings)
    first = await materializer.materialize_cart("pi_cart_race", snapshot)

    # The up-front lookup sees nothing, so every line races its own earlier insert
    async def nothing_yet(self, transaction_id):
        return {}

    monkeypatch.setattr(BookingMaterializer, "find_by_transaction", nothing_yet)
    second = await BookingMaterializer(test_session, test_settings).materialize_cart("pi_cart_race", snapshot)

    assert second.created == []
    assert {b.id for b in second.committed} == {b.id for b in first.committed}
    assert [f.item_id for f in second.failed] == ["item_2"]

