"""Service layer package."""

from .analytics_service import RevenueAnalyticsService
from .booking_service import BookingService
from .cart_service import CartService
from .catalog_service import CatalogService
from .loyalty_service import LoyaltyService
from .materializer import BookingMaterializer
from .payment_gateway import StripeGateway
from .payment_service import PaymentService
from .reconciliation_service import ReconciliationService
from .referral_service import ReferralService
from .side_effects import SideEffectOrchestrator
from .webhook_service import WebhookProcessor

__all__ = [
    "BookingMaterializer",
    "BookingService",
    "CartService",
    "CatalogService",
    "LoyaltyService",
    "PaymentService",
    "ReconciliationService",
    "ReferralService",
    "RevenueAnalyticsService",
    "SideEffectOrchestrator",
    "StripeGateway",
    "WebhookProcessor",
]
