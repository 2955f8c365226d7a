"""Reconciliation-related Pydantic schemas."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .common import PaginatedResponse


class ReconciliationSearchRequest(BaseModel):
    """Request schema for searching webhook deliveries that need a human."""

    outcomes: List[str] = Field(
        default_factory=lambda: ["failed", "partial"],
        description="Delivery outcomes to include",
    )
    payment_intent_id: Optional[str] = Field(None, max_length=255)
    limit: int = Field(50, ge=1, le=200, description="Maximum number of results")
    cursor: Optional[str] = Field(None, description="Opaque pagination cursor")


class WebhookDelivery(BaseModel):
    """One recorded webhook delivery."""

    event_id: str
    event_type: str
    payment_intent_id: Optional[str] = None
    booking_type: Optional[str] = None
    outcome: str
    error_class: Optional[str] = None
    detail: Optional[Any] = Field(None, description="Decoded JSON detail recorded with the outcome")
    delivery_count: int
    created_at: datetime
    updated_at: datetime


class WebhookDeliveryList(PaginatedResponse):
    """Page of webhook deliveries."""

    items: List[WebhookDelivery] = Field(default_factory=list)
