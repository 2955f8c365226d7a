"""Payments router: payment intents and the Stripe webhook."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.dependencies import (
    get_db,
    get_idempotency_key,
    get_optional_user,
    get_payment_gateway,
    get_settings,
    get_side_effects,
)
from ..schemas.common import Problem
from ..schemas.payment import (
    CreateCartPaymentIntentRequest,
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    WebhookAck,
)
from ..services.payment_gateway import StripeGateway
from ..services.payment_service import PaymentService
from ..services.side_effects import SideEffectOrchestrator
from ..services.webhook_service import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payments", tags=["payments"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
SETTINGS_DEPENDENCY = Depends(get_settings)
GATEWAY_DEPENDENCY = Depends(get_payment_gateway)
SIDE_EFFECTS_DEPENDENCY = Depends(get_side_effects)
OPTIONAL_USER_DEPENDENCY = Depends(get_optional_user)
IDEMPOTENCY_KEY_DEPENDENCY = Depends(get_idempotency_key)

PROBLEM_RESPONSES = {400: {"model": Problem}, 401: {"model": Problem}, 502: {"model": Problem}}


@router.post("/create-payment-intent", response_model=PaymentIntentResponse, responses=PROBLEM_RESPONSES)
async def create_payment_intent(
    request: CreatePaymentIntentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: StripeGateway = GATEWAY_DEPENDENCY,
    app_settings: Settings = SETTINGS_DEPENDENCY,
    user: Optional[dict] = OPTIONAL_USER_DEPENDENCY,
    idempotency_key: Optional[str] = IDEMPOTENCY_KEY_DEPENDENCY,
) -> JSONResponse:
    """
    Create a payment intent for a single-item booking.

    The booking draft travels in the intent's metadata and becomes a booking
    when the payment succeeds.
    """
    service = PaymentService(db, gateway, app_settings)
    result = await service.create_booking_intent(
        request,
        user_id=user["user_id"] if user else None,
        idempotency_key=idempotency_key,
    )
    return JSONResponse(status_code=200, content=result.model_dump(by_alias=True))


@router.post("/create-cart-payment-intent", response_model=PaymentIntentResponse, responses=PROBLEM_RESPONSES)
async def create_cart_payment_intent(
    request: CreateCartPaymentIntentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: StripeGateway = GATEWAY_DEPENDENCY,
    app_settings: Settings = SETTINGS_DEPENDENCY,
    user: Optional[dict] = OPTIONAL_USER_DEPENDENCY,
    idempotency_key: Optional[str] = IDEMPOTENCY_KEY_DEPENDENCY,
) -> JSONResponse:
    """Create one payment intent covering every item in a cart."""
    service = PaymentService(db, gateway, app_settings)
    result = await service.create_cart_intent(
        request,
        user_id=user["user_id"] if user else None,
        idempotency_key=idempotency_key,
    )
    return JSONResponse(status_code=200, content=result.model_dump(by_alias=True))


@router.post("/stripe-webhook", response_model=WebhookAck, responses={400: {"model": Problem}})
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = DB_DEPENDENCY,
    gateway: StripeGateway = GATEWAY_DEPENDENCY,
    side_effects: SideEffectOrchestrator = SIDE_EFFECTS_DEPENDENCY,
    app_settings: Settings = SETTINGS_DEPENDENCY,
) -> JSONResponse:
    """
    Receive a Stripe event.

    The raw body is verified against the Stripe-Signature header before it
    is parsed. Unauthenticated deliveries get 400; every authenticated one
    gets 200, whatever happened to the bookings.
    """
    payload = await request.body()
    processor = WebhookProcessor(db, gateway, side_effects, app_settings)
    ack = await processor.handle(payload, stripe_signature)
    return JSONResponse(status_code=200, content=ack.model_dump(exclude_none=True))
