"""Integration tests for the Stripe webhook endpoint."""

import json
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from marketplace.models import Booking, Cart, CartItem, User, WebhookEvent
from marketplace.schemas.draft import booking_draft_adapter
from marketplace.schemas.payment import CreateCartPaymentIntentRequest
from marketplace.services.metadata_codec import encode, encode_cart

WEBHOOK_URL = "/v1/payments/stripe-webhook"


async def _deliver(client, sign, payload, signature=None):
    headers = {"Content-Type": "application/json", "Stripe-Signature": signature or sign(payload)}
    return await client.post(WEBHOOK_URL, content=payload, headers=headers)


async def _bookings(session, transaction_id):
    result = await session.execute(select(Booking).where(Booking.transaction_id == transaction_id))
    return result.scalars().all()


@pytest.fixture
def single_metadata(activity_draft_data):
    return encode(booking_draft_adapter.validate_python(activity_draft_data))


@pytest.mark.asyncio
async def test_bad_signature_is_rejected(test_client, test_session, sign, paid_event, catalog, single_metadata):
    """Test that a delivery signed with the wrong secret gets 400 and creates nothing."""
    payload = paid_event("pi_1", single_metadata)

    response = await _deliver(test_client, sign, payload, signature=sign(payload, secret="whsec_wrong"))

    assert response.status_code == 400
    data = response.json()
    assert data["status"] == 400
    assert data["code"] == "SIGNATURE_INVALID"
    assert await _bookings(test_session, "pi_1") == []


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(test_client, paid_event, single_metadata):
    payload = paid_event("pi_1", single_metadata)

    response = await test_client.post(WEBHOOK_URL, content=payload, headers={"Content-Type": "application/json"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_tampered_payload_is_rejected(test_client, test_session, sign, paid_event, catalog, single_metadata):
    payload = paid_event("pi_1", single_metadata)
    signature = sign(payload)

    response = await _deliver(test_client, sign, payload.replace("pi_1", "pi_2"), signature=signature)

    assert response.status_code == 400
    assert await _bookings(test_session, "pi_2") == []


@pytest.mark.asyncio
async def test_stale_signature_is_rejected(test_client, sign, paid_event, single_metadata):
    payload = paid_event("pi_1", single_metadata)

    response = await _deliver(test_client, sign, payload, signature=sign(payload, timestamp=1_000_000))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_single_booking_created(test_client, test_session, sign, paid_event, orchestrator, catalog, single_metadata):
    """Test that a paid single-item intent becomes exactly one booking."""
    response = await _deliver(test_client, sign, paid_event("pi_1", single_metadata))

    assert response.status_code == 200
    data = response.json()
    assert data["received"] is True
    assert data["booking_status"] == "created"
    assert data["booking_type"] == "single"
    assert data["referral_code_used"] is False

    bookings = await _bookings(test_session, "pi_1")
    assert [str(b.id) for b in bookings] == [data["booking_id"]]
    assert bookings[0].status == "confirmed"

    # Guest booking: revenue analytics only
    assert orchestrator.pending == 1


@pytest.mark.asyncio
async def test_redelivery_does_not_duplicate(test_client, test_session, sign, paid_event, orchestrator, catalog, single_metadata):
    """Test that the same event delivered twice yields one booking and one set of side effects."""
    payload = paid_event("pi_1", single_metadata)

    first = await _deliver(test_client, sign, payload)
    second = await _deliver(test_client, sign, payload)

    assert first.json()["booking_status"] == "created"
    assert second.status_code == 200
    assert second.json()["booking_status"] == "exists"
    assert second.json()["booking_id"] == first.json()["booking_id"]
    assert len(await _bookings(test_session, "pi_1")) == 1
    assert orchestrator.pending == 1

    record = (await test_session.execute(select(WebhookEvent).where(WebhookEvent.event_id == "evt_1"))).scalar_one()
    assert record.delivery_count == 2
    assert record.outcome == "exists"


@pytest.mark.asyncio
async def test_split_metadata_is_decoded(test_client, test_session, sign, paid_event, catalog):
    draft = booking_draft_adapter.validate_python({
        "category": "transportation",
        "transportation": "ride_1",
        "option": "opt_van",
        "date": "2026-03-14",
        "time": "10:00 AM - 10:30 AM",
        "pickupLocation": "P" * 120,
        "dropoffLocation": "D" * 120,
        "guestName": "G" * 100,
        "guestEmail": "sam@example.com",
        "totalPrice": 75.5,
    })
    metadata = encode(draft)
    assert "basicData" in metadata

    response = await _deliver(test_client, sign, paid_event("pi_split", metadata))

    assert response.json()["booking_status"] == "created"
    booking = (await _bookings(test_session, "pi_split"))[0]
    assert booking.details["transportation"]["pickup"]["time"] == "10:00"
    assert booking.guest_name == "G" * 100


@pytest.mark.asyncio
async def test_referral_and_loyalty_for_registered_user(
    test_client, test_session, session_factory, sign, paid_event, orchestrator, catalog, customer, partner,
    activity_draft_data,
):
    draft = booking_draft_adapter.validate_python({**activity_draft_data, "user": "user_1", "referralCode": "ISLAND5"})

    response = await _deliver(test_client, sign, paid_event("pi_ref", encode(draft)))

    assert response.json()["referral_code_used"] is True
    assert orchestrator.pending == 3
    assert await orchestrator.drain() == 3

    async with session_factory() as session:
        user = await session.get(User, "user_1")
        assert user.loyalty_credits == 100


@pytest.mark.asyncio
async def test_other_events_are_acknowledged(test_client, test_session, sign):
    payload = json.dumps({"id": "evt_refund", "type": "charge.refunded", "data": {"object": {"id": "ch_1"}}})

    response = await _deliver(test_client, sign, payload)

    assert response.status_code == 200
    assert response.json() == {"received": True, "booking_status": "ignored"}

    record = (await test_session.execute(select(WebhookEvent))).scalar_one()
    assert record.outcome == "ignored"


@pytest.mark.asyncio
async def test_malformed_event_is_acknowledged(test_client, sign):
    response = await _deliver(test_client, sign, "[]")

    assert response.status_code == 200
    assert response.json()["booking_status"] == "failed"
    assert response.json()["error"] == "MalformedEvent"


@pytest.mark.asyncio
async def test_undecodable_metadata_is_acknowledged_and_recorded(test_client, test_session, sign, paid_event, catalog):
    """Test that a business failure after payment still gets 200 and is left for reconciliation."""
    response = await _deliver(test_client, sign, paid_event("pi_bad", {"bookingData": "{broken"}, event_id="evt_bad"))

    assert response.status_code == 200
    data = response.json()
    assert data["booking_status"] == "failed"
    assert data["error"] == "MetadataDecodingError"
    assert await _bookings(test_session, "pi_bad") == []

    record = (await test_session.execute(select(WebhookEvent).where(WebhookEvent.event_id == "evt_bad"))).scalar_one()
    assert record.outcome == "failed"
    assert record.error_class == "MetadataDecodingError"
    assert record.payment_intent_id == "pi_bad"


@pytest.mark.asyncio
async def test_missing_service_is_acknowledged(test_client, test_session, sign, paid_event, catalog, activity_draft_data):
    draft = booking_draft_adapter.validate_python({**activity_draft_data, "activity": "gone"})

    response = await _deliver(test_client, sign, paid_event("pi_gone", encode(draft)))

    assert response.status_code == 200
    assert response.json()["error"] == "ResolutionError"
    assert await _bookings(test_session, "pi_gone") == []


def _cart_metadata(user=None, cart_id=None, items=None, referral_code=""):
    request = CreateCartPaymentIntentRequest.model_validate({
        "items": items or [
            {"id": "item_1", "serviceId": "act_1", "serviceType": "Activity", "totalPrice": 120},
            {"id": "item_2", "serviceId": "missing_service", "serviceType": "Activity", "totalPrice": 50},
            {"id": "item_3", "serviceId": "dine_1", "serviceType": "Dining", "totalPrice": 80},
        ],
        "user": user,
        "contactInfo": {"email": "ana@example.com", "firstName": "Ana", "lastName": "Lopez"},
        "referralCode": referral_code,
    })
    return encode_cart(request, cart_id)


@pytest.mark.asyncio
async def test_cart_with_one_bad_line(
    test_client, test_session, session_factory, sign, paid_event, orchestrator, cart
):
    """Test that a cart books what it can, reports the rest, and prunes only what was booked."""
    response = await _deliver(test_client, sign, paid_event("pi_cart", _cart_metadata("user_1", "cart_1")))

    assert response.status_code == 200
    data = response.json()
    assert data["booking_status"] == "partial"
    assert data["booking_type"] == "cart"
    assert data["total_items"] == 3
    assert data["bookings_created"] == 2
    assert data["bookings_failed"] == 1
    assert data["failed_items"] == ["item_2"]
    assert data["cart_status"] == "partial"
    assert len(data["booking_ids"]) == 2

    await orchestrator.drain()

    async with session_factory() as session:
        remaining = (await session.execute(select(CartItem.id).where(CartItem.cart_id == "cart_1"))).scalars().all()
        assert remaining == ["item_2"]
        user = await session.get(User, "user_1")
        assert user.loyalty_credits == 200

        record = (await session.execute(select(WebhookEvent))).scalar_one()
        assert record.outcome == "partial"
        assert json.loads(record.detail)["failed"][0]["item_id"] == "item_2"


@pytest.mark.asyncio
async def test_cart_redelivery_after_pruning(test_client, test_session, sign, paid_event, orchestrator, cart):
    payload = paid_event("pi_cart", _cart_metadata("user_1", "cart_1"))

    first = await _deliver(test_client, sign, payload)
    await orchestrator.drain()
    second = await _deliver(test_client, sign, payload)

    assert second.status_code == 200
    data = second.json()
    assert sorted(data["booking_ids"]) == sorted(first.json()["booking_ids"])
    assert data["bookings_created"] == 0
    assert data["failed_items"] == ["item_2"]
    count = await test_session.execute(select(func.count()).select_from(Booking))
    assert count.scalar_one() == 2



@pytest.mark.asyncio
async def test_cart_redelivery_ignores_items_added_after_payment(
    test_client, test_session, session_factory, sign, paid_event, orchestrator, cart
):
    """Test that a line added to the cart after payment is never booked under that payment."""
    payload = paid_event("pi_cart", _cart_metadata("user_1", "cart_1"))

    await _deliver(test_client, sign, payload)
    await orchestrator.drain()

    test_session.add(CartItem(
        id="item_new",
        cart_id="cart_1",
        position=3,
        service_id="act_2",
        service_type="Activity",
        selected_date=date.today() + timedelta(days=14),
        selected_time="10:00",
        total_price=Decimal("999.00"),
    ))
    await test_session.commit()

    second = await _deliver(test_client, sign, payload)
    await orchestrator.drain()

    data = second.json()
    assert data["bookings_created"] == 0
    assert data["total_items"] == 3
    booked = {b.line_ref for b in await _bookings(test_session, "pi_cart")}
    assert booked == {"item_1", "item_3"}

    async with session_factory() as session:
        user = await session.get(User, "user_1")
        assert user.loyalty_credits == 200
        remaining = (await session.execute(select(CartItem.id).where(CartItem.cart_id == "cart_1"))).scalars().all()
        assert sorted(remaining) == ["item_2", "item_new"]


@pytest.mark.asyncio
async def test_cart_redelivery_after_cart_was_deleted(test_client, test_session, sign, paid_event, orchestrator, cart):
    payload = paid_event("pi_cart", _cart_metadata("user_1", "cart_1"))
    first = await _deliver(test_client, sign, payload)

    await test_session.delete(await test_session.get(Cart, "cart_1"))
    await test_session.commit()
    second = await _deliver(test_client, sign, payload)

    data = second.json()
    assert second.status_code == 200
    assert sorted(data["booking_ids"]) == sorted(first.json()["booking_ids"])
    assert data["bookings_created"] == 0
    assert data["failed_items"] == ["item_2"]

@pytest.mark.asyncio
async def test_guest_cart_all_booked(test_client, test_session, sign, paid_event, orchestrator, catalog):
    items = [
        {"id": "g1", "serviceId": "act_2", "serviceType": "Activity", "totalPrice": 40},
        {"id": "g2", "serviceId": "stay_1", "serviceType": "Stay", "totalPrice": 350},
    ]

    response = await _deliver(test_client, sign, paid_event("pi_guest", _cart_metadata(items=items)))

    data = response.json()
    assert data["booking_status"] == "created"
    assert data["cart_status"] == "all_booked"
    assert data["bookings_created"] == 2
    assert "failed_items" not in data

    bookings = await _bookings(test_session, "pi_guest")
    assert {b.guest_name for b in bookings} == {"Ana Lopez"}
    assert {b.customer_id for b in bookings} == {None}
    # Guests: no loyalty, no cart to prune
    assert orchestrator.pending == 2


@pytest.mark.asyncio
async def test_cart_where_nothing_can_be_booked(test_client, sign, paid_event, catalog):
    items = [{"id": "s1", "serviceId": "shop_1", "serviceType": "Shopping", "totalPrice": 15}]

    response = await _deliver(test_client, sign, paid_event("pi_shop", _cart_metadata(items=items)))

    data = response.json()
    assert data["booking_status"] == "failed"
    assert data["bookings_created"] == 0
    assert data["failed_items"] == ["s1"]
