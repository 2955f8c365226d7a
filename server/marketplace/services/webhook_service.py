"""Webhook processing: from an authenticated payment event to bookings.

Once a delivery's signature checks out, the gateway always gets a 200.
Anything that goes wrong after that is a business problem on our side;
it is logged, recorded in the webhook event log for reconciliation, and
acknowledged so the gateway does not keep retrying.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.exceptions import MetadataDecodingError, PersistenceError, PipelineError, ResolutionError
from ..core.observability import StructuredLogger, get_logger, metrics_collector
from ..models.webhook_event import WebhookEvent, WebhookOutcome
from ..schemas.payment import CartCheckoutContext, WebhookAck
from .cart_service import CartService
from .materializer import BookingMaterializer, CartMaterializationResult, CartSnapshot
from .metadata_codec import CART_BOOKING_TYPE, SINGLE_BOOKING_TYPE, booking_type, decode, decode_cart
from .payment_gateway import StripeGateway
from .scheduling import InvalidTimeError
from .side_effects import SideEffectOrchestrator

PAYMENT_SUCCEEDED = "payment_intent.succeeded"

Recorded = Tuple[WebhookAck, WebhookOutcome, Dict[str, Any]]


class WebhookProcessor:
    """Handles Stripe webhook deliveries."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: StripeGateway,
        orchestrator: SideEffectOrchestrator,
        settings: Settings,
    ):
        self.db = db
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.settings = settings
        self.log: StructuredLogger = get_logger(__name__)

    async def handle(self, payload: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Authenticate and process one webhook delivery.

        Args:
            payload: Raw request body, exactly as received
            signature: Stripe-Signature header value

        Returns:
            Acknowledgement describing what happened to the bookings

        Raises:
            SignatureError: If the delivery cannot be authenticated
        """
        text = self.gateway.verify(payload, signature)

        try:
            event = json.loads(text)
        except json.JSONDecodeError:
            event = None
        if not isinstance(event, dict):
            self.log.error("Authenticated webhook payload is not a JSON object", size=len(text))
            metrics_collector.record_webhook("malformed", WebhookOutcome.FAILED.value)
            return WebhookAck(booking_status=WebhookOutcome.FAILED.value, error="MalformedEvent")

        event_id = event.get("id")
        event_type = event.get("type") or "unknown"
        log = self.log.with_context(event_id=event_id, event_type=event_type)

        if event_type != PAYMENT_SUCCEEDED:
            log.info("Webhook event ignored")
            ack = WebhookAck(booking_status=WebhookOutcome.IGNORED.value)
            await self._record(event_id, event_type, None, None, WebhookOutcome.IGNORED, {}, None)
            metrics_collector.record_webhook(event_type, WebhookOutcome.IGNORED.value)
            return ack

        intent = (event.get("data") or {}).get("object") or {}
        intent_id = intent.get("id")
        metadata = intent.get("metadata") or {}
        kind = booking_type(metadata)
        log = log.with_context(payment_intent_id=intent_id, booking_type=kind)
        log.info("Payment succeeded", amount=intent.get("amount"), currency=intent.get("currency"))

        error_class = None
        try:
            if not intent_id:
                raise MetadataDecodingError("Payment event carries no payment intent id")
            if kind == CART_BOOKING_TYPE:
                ack, outcome, detail = await self._handle_cart(intent_id, metadata, log)
            else:
                ack, outcome, detail = await self._handle_single(intent_id, metadata, log)
        except (PipelineError, InvalidTimeError) as e:
            await self.db.rollback()
            error_class = type(e).__name__
            detail = {"message": str(e)}
            if isinstance(e, ResolutionError) and e.service_id:
                detail["service_id"] = e.service_id
            if isinstance(e, PersistenceError) and isinstance(e.partial, CartMaterializationResult):
                detail.update(self._cart_detail(e.partial))
            log.error("Booking could not be created for paid intent", error_class=error_class, error=str(e))
            ack = WebhookAck(booking_status=WebhookOutcome.FAILED.value, booking_type=kind, error=error_class)
            outcome = WebhookOutcome.FAILED
        except Exception as e:
            await self.db.rollback()
            error_class = type(e).__name__
            detail = {"message": str(e)}
            log.exception("Unexpected error processing paid intent", error_class=error_class)
            ack = WebhookAck(booking_status=WebhookOutcome.FAILED.value, booking_type=kind, error=error_class)
            outcome = WebhookOutcome.FAILED

        await self._record(event_id, event_type, intent_id, kind, outcome, detail, error_class)
        metrics_collector.record_webhook(event_type, outcome.value)
        return ack

    async def _handle_single(self, intent_id: str, metadata: Dict[str, str], log: StructuredLogger) -> Recorded:
        draft = decode(metadata)
        result = await BookingMaterializer(self.db, self.settings).materialize(
            intent_id, draft, paid_at=datetime.now(timezone.utc)
        )
        booking = result.bookings[0]

        if result.created:
            queued = self.orchestrator.on_booking_committed(booking, {"referral_code": draft.referral_code})
            log.info("Booking created", booking_id=str(booking.id), side_effects=queued)
            outcome = WebhookOutcome.CREATED
        else:
            log.info("Booking already existed for payment", booking_id=str(booking.id))
            outcome = WebhookOutcome.EXISTS

        ack = WebhookAck(
            booking_status=outcome.value,
            booking_type=SINGLE_BOOKING_TYPE,
            booking_id=str(booking.id),
            referral_code_used=bool(draft.referral_code),
        )
        return ack, outcome, {"booking_ids": [str(booking.id)]}

    async def _cart_snapshot(self, context: CartCheckoutContext) -> CartSnapshot:
        if context.user_id and context.cart_id:
            cart = await CartService(self.db).get_cart(context.cart_id)
            if cart is not None:
                return CartSnapshot.from_cart(cart, context)
            if context.paid_item_ids:
                return CartSnapshot.without_cart(context)
        if context.guest_items:
            return CartSnapshot.from_guest_items(context)
        raise ResolutionError(f"No items found for paid cart {context.cart_id or 'guest_cart'}")

    def _cart_detail(self, result: CartMaterializationResult) -> Dict[str, Any]:
        return {
            "booking_ids": [str(booking.id) for booking in result.committed],
            "failed": [failure.as_dict() for failure in result.failed],
        }

    async def _handle_cart(self, intent_id: str, metadata: Dict[str, str], log: StructuredLogger) -> Recorded:
        context = decode_cart(metadata)
        snapshot = await self._cart_snapshot(context)
        log = log.with_context(cart_id=snapshot.cart_id, total_items=len(snapshot.item_ids))

        result = await BookingMaterializer(self.db, self.settings).materialize_cart(
            intent_id, snapshot, paid_at=datetime.now(timezone.utc)
        )

        for booking in result.created:
            self.orchestrator.on_booking_committed(booking, {"referral_code": snapshot.referral_code})
        self.orchestrator.on_cart_committed(snapshot.cart_id, result.committed_item_ids)

        if not result.committed:
            outcome = WebhookOutcome.FAILED
        elif result.failed:
            outcome = WebhookOutcome.PARTIAL
        elif result.created:
            outcome = WebhookOutcome.CREATED
        else:
            outcome = WebhookOutcome.EXISTS

        log.info(
            "Cart checkout processed",
            outcome=outcome.value,
            bookings_committed=len(result.committed),
            bookings_created=len(result.created),
            bookings_failed=len(result.failed),
        )

        ack = WebhookAck(
            booking_status=outcome.value,
            booking_type=CART_BOOKING_TYPE,
            booking_ids=[str(booking.id) for booking in result.committed],
            total_items=len(snapshot.item_ids),
            bookings_created=len(result.created),
            bookings_failed=len(result.failed),
            failed_items=[failure.item_id for failure in result.failed] or None,
            cart_status="all_booked" if not result.failed else "partial",
            referral_code_used=bool(snapshot.referral_code),
        )
        return ack, outcome, self._cart_detail(result)

    async def _record(
        self,
        event_id: Optional[str],
        event_type: str,
        intent_id: Optional[str],
        kind: Optional[str],
        outcome: WebhookOutcome,
        detail: Dict[str, Any],
        error_class: Optional[str],
    ) -> None:
        """Upsert the delivery into the webhook event log; never raises."""
        if not event_id:
            return

        try:
            result = await self.db.execute(select(WebhookEvent).where(WebhookEvent.event_id == event_id))
            record = result.scalar_one_or_none()
            if record is None:
                record = WebhookEvent(event_id=event_id, event_type=event_type, delivery_count=1)
                self.db.add(record)
            else:
                record.delivery_count += 1

            record.payment_intent_id = intent_id
            record.booking_type = kind
            record.outcome = outcome.value
            record.error_class = error_class
            record.detail = json.dumps(detail, default=str) if detail else None
            await self.db.commit()
        except IntegrityError:
            # A concurrent delivery of the same event recorded it first
            await self.db.rollback()
            self.log.info("Webhook event already recorded by a concurrent delivery", event_id=event_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.log.error("Failed to record webhook event", event_id=event_id, error=str(e))
