"""Models module exporting all database models."""

from .analytics import RevenueEvent
from .booking import SINGLE_LINE_REF, Booking, BookingStatus, PaymentStatus, ServiceType
from .cart import Cart, CartItem
from .catalog import ServiceListing, User
from .referral import CommissionStatus, PartnerStatus, ReferralCommission, ReferralPartner
from .webhook_event import WebhookEvent, WebhookOutcome

__all__ = [
    # Catalog entities
    "ServiceListing",
    "User",

    # Cart entities
    "Cart",
    "CartItem",

    # Booking entities
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "ServiceType",
    "SINGLE_LINE_REF",

    # Referral entities
    "ReferralPartner",
    "PartnerStatus",
    "ReferralCommission",
    "CommissionStatus",

    # Analytics entity
    "RevenueEvent",

    # Webhook delivery log
    "WebhookEvent",
    "WebhookOutcome",
]
