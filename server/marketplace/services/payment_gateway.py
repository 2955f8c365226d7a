"""Stripe payment gateway client."""

import asyncio
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

import stripe

from ..core.config import Settings
from ..core.exceptions import PaymentGatewayError, SignatureError

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to whole cents, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class CreatedPaymentIntent:
    """The parts of a new payment intent the checkout client needs."""

    id: str
    client_secret: str


class StripeGateway:
    """Creates payment intents and authenticates webhook deliveries."""

    def __init__(self, settings: Settings):
        self.api_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.tolerance = settings.stripe_webhook_tolerance_seconds
        self.currency = settings.currency

    async def create_payment_intent(
        self,
        amount_cents: int,
        metadata: Dict[str, str],
        receipt_email: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CreatedPaymentIntent:
        """
        Create a payment intent with automatic payment methods.

        Raises:
            PaymentGatewayError: If Stripe rejects the request or is unreachable
        """
        params = {
            "amount": amount_cents,
            "currency": self.currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata,
            "api_key": self.api_key,
        }
        if receipt_email:
            params["receipt_email"] = receipt_email
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            # The Stripe client is synchronous
            intent = await asyncio.to_thread(stripe.PaymentIntent.create, **params)
        except stripe.StripeError as e:
            logger.error(
                "Payment intent creation failed",
                extra={
                    "amount_cents": amount_cents,
                    "stripe_error": type(e).__name__,
                    "stripe_code": getattr(e, "code", None)
                }
            )
            raise PaymentGatewayError(detail=f"Failed to create payment intent: {e.user_message or type(e).__name__}") from e

        logger.info(
            "Payment intent created",
            extra={"payment_intent_id": intent.id, "amount_cents": amount_cents, "currency": self.currency}
        )
        return CreatedPaymentIntent(id=intent.id, client_secret=intent.client_secret)

    def verify(self, payload: bytes, signature: Optional[str]) -> str:
        """
        Authenticate a webhook body against its Stripe-Signature header.

        Returns:
            The payload text, untouched, for the caller to parse

        Raises:
            SignatureError: If the header is missing, malformed, stale or wrong
        """
        if not signature:
            raise SignatureError("Missing Stripe-Signature header")

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SignatureError("Webhook payload is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(text, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.warning("Webhook signature verification failed", extra={"reason": str(e)})
            raise SignatureError(f"Webhook signature verification failed: {e.user_message or e}") from e

        return text
