"""Unit tests for post-booking side effects."""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from marketplace.models import PartnerStatus, ReferralCommission, ReferralPartner, RevenueEvent, User
from marketplace.schemas.draft import booking_draft_adapter
from marketplace.services.analytics_service import RevenueAnalyticsService
from marketplace.services.cart_service import CartService
from marketplace.services.loyalty_service import LoyaltyService, credits_for
from marketplace.services.materializer import BookingMaterializer
from marketplace.services.referral_service import ReferralService
from marketplace.services.side_effects import (
    ANALYTICS,
    CART_PRUNE,
    LOYALTY,
    REFERRAL,
    SideEffect,
    SideEffectOrchestrator,
)
from marketplace.workers.side_effect_worker import SideEffectWorker


async def _book(session, settings, total="100.00", user=None, referral_code="", transaction_id="pi_1"):
    data = {
        "category": "dining",
        "dining": "dine_1",
        "date": "2026-05-20",
        "time": "8:00 PM",
        "totalPrice": float(total),
        "referralCode": referral_code,
    }
    if user:
        data["user"] = user
    else:
        data["guestEmail"] = "sam@example.com"
    draft = booking_draft_adapter.validate_python(data)
    result = await BookingMaterializer(session, settings).materialize(transaction_id, draft)
    return result.bookings[0]


@pytest.mark.parametrize(
    "amount, expected",
    [("42.70", 42), ("100.00", 100), ("1.00", 1), ("0.99", 0), ("0", 0)],
)
def test_credits_are_whole_units_paid(amount, expected):
    assert credits_for(Decimal(amount)) == expected


@pytest.mark.asyncio
async def test_award_credits(test_session, customer):
    """Test that a registered user earns one credit per whole unit paid."""
    awarded = await LoyaltyService(test_session).award_credits("user_1", Decimal("42.70"))

    assert awarded == 42
    await test_session.refresh(customer)
    assert customer.loyalty_credits == 42


@pytest.mark.asyncio
async def test_award_credits_guest_and_unknown_user(test_session, customer):
    service = LoyaltyService(test_session)

    assert await service.award_credits(None, Decimal("80.00")) == 0
    assert await service.award_credits("no_such_user", Decimal("80.00")) == 0

    await test_session.refresh(customer)
    assert customer.loyalty_credits == 0


@pytest.mark.asyncio
async def test_referral_commission(test_session, test_settings, catalog, partner):
    """Test that a $100 booking with a 5% partner code earns a $5.00 pending commission."""
    booking = await _book(test_session, test_settings, total="100.00", referral_code="island5")

    commission = await ReferralService(test_session).create_commission_from_booking(booking.id, "island5")

    assert commission is not None
    assert commission.commission_amount == Decimal("5.00")
    assert commission.booking_amount == Decimal("100.00")
    assert commission.status == "pending"
    assert commission.referral_code == "ISLAND5"
    assert commission.vendor_id == "vendor_3"

    await test_session.refresh(partner)
    assert partner.total_referrals == 1
    assert partner.pending_commission == Decimal("5.00")


@pytest.mark.asyncio
async def test_referral_commission_recorded_once(test_session, test_settings, catalog, partner):
    booking = await _book(test_session, test_settings, referral_code="ISLAND5")
    service = ReferralService(test_session)

    first = await service.create_commission_from_booking(booking.id, "ISLAND5")
    second = await service.create_commission_from_booking(booking.id, "ISLAND5")

    assert second.id == first.id
    result = await test_session.execute(select(ReferralCommission))
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_commission_rounds_half_up(test_session, test_settings, catalog, partner):
    booking = await _book(test_session, test_settings, total="33.33", referral_code="ISLAND5")

    commission = await ReferralService(test_session).create_commission_from_booking(booking.id, "ISLAND5")

    # 5% of 33.33 is 1.6665
    assert commission.commission_amount == Decimal("1.67")


@pytest.mark.asyncio
async def test_unknown_referral_code(test_session, test_settings, catalog, partner):
    booking = await _book(test_session, test_settings, referral_code="NOPE")

    assert await ReferralService(test_session).create_commission_from_booking(booking.id, "NOPE") is None


@pytest.mark.asyncio
async def test_suspended_partner_earns_nothing(test_session, test_settings, catalog):
    test_session.add(ReferralPartner(
        name="Old Partner",
        email="old@example.com",
        referral_code="OLD10",
        commission_percentage=Decimal("10"),
        status=PartnerStatus.SUSPENDED.value,
    ))
    await test_session.commit()
    booking = await _book(test_session, test_settings, referral_code="OLD10")

    assert await ReferralService(test_session).create_commission_from_booking(booking.id, "OLD10") is None


@pytest.mark.asyncio
async def test_prune_cart_items(test_session, cart):
    """Test that booked items leave the cart and the total follows."""
    service = CartService(test_session)

    removed = await service.prune_items("cart_1", ["item_1", "item_3"])

    assert removed == 2
    refreshed = await service.get_cart("cart_1")
    assert [item.id for item in refreshed.items] == ["item_2"]
    assert refreshed.total_price == Decimal("50.00")

    assert await service.prune_items("cart_1", ["item_1", "item_3"]) == 0
    assert await service.prune_items("no_such_cart", ["item_2"]) == 0


@pytest.mark.asyncio
async def test_record_revenue_event(test_session, test_settings, catalog):
    booking = await _book(test_session, test_settings, total="64.50")

    event = await RevenueAnalyticsService(test_session).record(booking.snapshot())

    assert event.booking_id == str(booking.id)
    assert event.action == "create"
    assert event.amount == Decimal("64.50")
    assert event.vendor_id == "vendor_3"
    assert event.service_type == "Dining"


@pytest.mark.asyncio
async def test_record_revenue_rejects_unknown_action(test_session, test_settings, catalog):
    booking = await _book(test_session, test_settings)

    with pytest.raises(ValueError):
        await RevenueAnalyticsService(test_session).record(booking.snapshot(), action="refund")


@pytest.mark.asyncio
async def test_guest_booking_only_records_revenue(test_session, test_settings, catalog, orchestrator):
    booking = await _book(test_session, test_settings)

    queued = orchestrator.on_booking_committed(booking, {"referral_code": ""})

    assert queued == [ANALYTICS]
    assert orchestrator.pending == 1


@pytest.mark.asyncio
async def test_registered_booking_side_effects(
    test_session, test_settings, session_factory, catalog, customer, partner, orchestrator
):
    """Test that a registered referral booking earns credits, a commission and a revenue event."""
    booking = await _book(test_session, test_settings, total="100.00", user="user_1", referral_code="ISLAND5")

    queued = orchestrator.on_booking_committed(booking, {"referral_code": "ISLAND5"})
    assert queued == [REFERRAL, LOYALTY, ANALYTICS]

    assert await orchestrator.drain() == 3
    assert orchestrator.pending == 0

    async with session_factory() as session:
        user = await session.get(User, "user_1")
        assert user.loyalty_credits == 100

        commissions = (await session.execute(select(ReferralCommission))).scalars().all()
        assert [c.commission_amount for c in commissions] == [Decimal("5.00")]

        events = (await session.execute(select(RevenueEvent))).scalars().all()
        assert [e.booking_id for e in events] == [str(booking.id)]


@pytest.mark.asyncio
async def test_failing_side_effect_is_isolated(
    test_session, test_settings, session_factory, catalog, customer, orchestrator
):
    """Test that one failing effect neither raises nor stops the others."""
    booking = await _book(test_session, test_settings, total="42.70", user="user_1")

    async def explode(db):
        raise RuntimeError("analytics store unavailable")

    orchestrator.queue.put_nowait(SideEffect("exploding_effect", explode))
    orchestrator.on_booking_committed(booking)

    assert await orchestrator.drain() == 2

    async with session_factory() as session:
        user = await session.get(User, "user_1")
        assert user.loyalty_credits == 42


@pytest.mark.asyncio
async def test_cart_prune_is_queued_for_persisted_carts(session_factory, cart, orchestrator):
    assert orchestrator.on_cart_committed(None, ["g1"]) == []
    assert orchestrator.on_cart_committed("cart_1", []) == []

    assert orchestrator.on_cart_committed("cart_1", ["item_1", "item_3"]) == [CART_PRUNE]
    assert await orchestrator.drain() == 1

    async with session_factory() as session:
        remaining = await CartService(session).get_cart("cart_1")
        assert [item.id for item in remaining.items] == ["item_2"]


@pytest.mark.asyncio
async def test_worker_runs_queued_effects(test_session, test_settings, session_factory, catalog, customer):
    """Test that the running worker picks up queued effects."""
    orchestrator = SideEffectOrchestrator(session_factory)
    worker = SideEffectWorker(orchestrator, interval_seconds=0.01)
    booking = await _book(test_session, test_settings, total="12.00", user="user_1")

    await worker.start()
    assert worker.is_running
    orchestrator.on_booking_committed(booking)
    await asyncio.wait_for(orchestrator.queue.join(), timeout=5)
    await worker.stop()

    assert not worker.is_running
    async with session_factory() as session:
        user = await session.get(User, "user_1")
        assert user.loyalty_credits == 12


@pytest.mark.asyncio
async def test_worker_drains_queue_on_stop(test_session, test_settings, session_factory, catalog, customer):
    """Test that effects still queued at shutdown are run before stop returns."""
    orchestrator = SideEffectOrchestrator(session_factory)
    worker = SideEffectWorker(orchestrator, interval_seconds=0.01)
    booking = await _book(test_session, test_settings, total="30.00", user="user_1")

    orchestrator.on_booking_committed(booking)
    await worker.start()
    await worker.stop()

    assert orchestrator.pending == 0
    async with session_factory() as session:
        user = await session.get(User, "user_1")
        assert user.loyalty_credits == 30
