"""Payment intent service for checkout operations."""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.exceptions import ValidationError
from ..core.observability import metrics_collector
from ..models.cart import Cart
from ..schemas.payment import (
    CreateCartPaymentIntentRequest,
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
)
from .cart_service import CartService
from .metadata_codec import encode, encode_cart, metadata_format
from .payment_gateway import StripeGateway, to_minor_units

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def check_against_cart(request: CreateCartPaymentIntentRequest, cart: Cart) -> Decimal:
    """
    Match the checkout request to the persisted cart and return the amount due.

    The persisted cart is what gets booked, so the request must list exactly
    its lines at its prices.

    Raises:
        ValidationError: If the request and the persisted cart disagree
    """
    saved = {item.id: item for item in cart.items}
    violations = []

    requested_ids = [item.id for item in request.items]
    for index, item in enumerate(request.items):
        saved_item = saved.get(item.id)
        if saved_item is None:
            violations.append({"path": f"items[{index}].id", "message": f"Item {item.id} is not in the cart"})
        elif Decimal(str(item.total_price)).quantize(CENT) != saved_item.total_price.quantize(CENT):
            violations.append({
                "path": f"items[{index}].totalPrice",
                "message": f"Price for {item.id} does not match the cart ({saved_item.total_price})",
            })

    if len(set(requested_ids)) != len(requested_ids):
        violations.append({"path": "items", "message": "Cart items are listed more than once"})

    unpaid = [item_id for item_id in saved if item_id not in requested_ids]
    if unpaid:
        violations.append({"path": "items", "message": f"Cart items missing from checkout: {', '.join(unpaid)}"})

    if violations:
        raise ValidationError(detail="Checkout items do not match the saved cart", errors=violations)

    return sum((item.total_price for item in cart.items), Decimal("0"))


class PaymentService:
    """Service for creating payment intents that carry booking metadata."""

    def __init__(self, db: AsyncSession, gateway: StripeGateway, settings: Settings):
        self.db = db
        self.gateway = gateway
        self.settings = settings

    async def create_booking_intent(
        self,
        request: CreatePaymentIntentRequest,
        user_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentResponse:
        """
        Create a payment intent for a single-item booking draft.

        Args:
            request: Checkout request with the booking draft
            user_id: Authenticated user, replaces any user in the draft
            idempotency_key: Forwarded to the gateway

        Raises:
            MetadataEncodingError: If the draft does not fit in metadata
            PaymentGatewayError: If the gateway call fails
        """
        draft = request.booking_data
        if user_id:
            draft = draft.model_copy(update={"user": user_id, "guest_name": None, "guest_email": None})

        metadata = encode(draft, limit=self.settings.metadata_value_limit)
        amount_cents = to_minor_units(Decimal(str(draft.total_price)))
        receipt_email = request.contact_info.email if request.contact_info else draft.guest_email

        intent = await self.gateway.create_payment_intent(
            amount_cents=amount_cents,
            metadata=metadata,
            receipt_email=receipt_email,
            idempotency_key=idempotency_key,
        )
        metrics_collector.record_payment_intent("single", metadata_format(metadata))

        logger.info(
            "Booking payment intent created",
            extra={
                "payment_intent_id": intent.id,
                "category": draft.category,
                "service_id": draft.service_ref,
                "amount_cents": amount_cents,
                "metadata_format": metadata_format(metadata),
                "guest": draft.user is None
            }
        )
        return PaymentIntentResponse(client_secret=intent.client_secret, payment_intent_id=intent.id)

    async def create_cart_intent(
        self,
        request: CreateCartPaymentIntentRequest,
        user_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentResponse:
        """
        Create one payment intent covering every item in a cart.

        Registered users' persisted carts are referenced by ID; otherwise the
        lines travel in the metadata.

        Raises:
            ValidationError: If the items do not match the persisted cart
            MetadataEncodingError: If the cart does not fit in metadata
            PaymentGatewayError: If the gateway call fails
        """
        user = user_id or request.user
        if user != request.user:
            request = request.model_copy(update={"user": user})

        cart = await CartService(self.db).get_cart_for_user(user) if user else None
        if cart is not None:
            total = check_against_cart(request, cart)
        else:
            if user:
                logger.info("No persisted cart for user, sending lines in metadata", extra={"user_id": user})
            total = sum((Decimal(str(item.total_price)) for item in request.items), Decimal("0"))

        metadata = encode_cart(request, cart.id if cart else None, limit=self.settings.metadata_value_limit)
        amount_cents = to_minor_units(total)

        intent = await self.gateway.create_payment_intent(
            amount_cents=amount_cents,
            metadata=metadata,
            receipt_email=request.contact_info.email,
            idempotency_key=idempotency_key,
        )
        metrics_collector.record_payment_intent("cart", "cart")

        logger.info(
            "Cart payment intent created",
            extra={
                "payment_intent_id": intent.id,
                "cart_id": cart.id if cart else None,
                "item_count": len(request.items),
                "amount_cents": amount_cents,
                "guest": user is None
            }
        )
        return PaymentIntentResponse(client_secret=intent.client_secret, payment_intent_id=intent.id)
