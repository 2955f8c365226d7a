"""Payment-intent metadata codec.

The gateway stores metadata as a flat map of short string values, each at
most 500 characters. A single-item booking draft is packed as one JSON
value when it fits and split across two when it does not. Cart checkouts
carry their own flat set of keys.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import MetadataDecodingError, MetadataEncodingError
from ..schemas.draft import COMMON_KEYS, BookingDraft, booking_draft_adapter, dump_draft
from ..schemas.payment import CartCheckoutContext, CreateCartPaymentIntentRequest, GuestItemSummary

logger = logging.getLogger(__name__)

METADATA_VALUE_LIMIT = 500

SINGLE_KEY = "bookingData"
BASIC_KEY = "basicData"
SERVICE_KEY = "serviceData"

CART_BOOKING_TYPE = "cart"
SINGLE_BOOKING_TYPE = "single"
GUEST_USER = "guest"
GUEST_CART = "guest_cart"

EncodedMetadata = Dict[str, str]


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _load_object(metadata: Mapping[str, str], key: str) -> Dict[str, Any]:
    try:
        value = json.loads(metadata[key])
    except (TypeError, json.JSONDecodeError) as exc:
        raise MetadataDecodingError(f"Metadata field '{key}' is not valid JSON") from exc
    if not isinstance(value, dict):
        raise MetadataDecodingError(f"Metadata field '{key}' is not a JSON object")
    return value


def booking_type(metadata: Mapping[str, str]) -> str:
    """Return "cart" for cart checkouts and "single" for everything else."""
    if metadata.get("bookingType") == CART_BOOKING_TYPE:
        return CART_BOOKING_TYPE
    return SINGLE_BOOKING_TYPE


def encode(draft: BookingDraft, limit: int = METADATA_VALUE_LIMIT) -> EncodedMetadata:
    """
    Pack a booking draft into payment-intent metadata.

    Uses a single "bookingData" value when the compact JSON fits the limit,
    otherwise "basicData" (category-independent fields) plus "serviceData"
    (the category's own fields).

    Raises:
        MetadataEncodingError: If even the split halves exceed the limit
    """
    fields = dump_draft(draft)
    payload = _compact(fields)

    if len(payload) <= limit:
        logger.debug(
            "Booking metadata encoded",
            extra={"format": "single", "size": len(payload), "category": fields.get("category")}
        )
        return {SINGLE_KEY: payload}

    basic = {key: fields[key] for key in COMMON_KEYS if key in fields}
    service = {key: value for key, value in fields.items() if key not in COMMON_KEYS}
    encoded = {BASIC_KEY: _compact(basic), SERVICE_KEY: _compact(service)}

    for key, value in encoded.items():
        if len(value) > limit:
            logger.warning(
                "Booking metadata too large",
                extra={"field": key, "size": len(value), "limit": limit, "category": fields.get("category")}
            )
            raise MetadataEncodingError(
                detail=f"Booking data does not fit in payment metadata ({key} is {len(value)} characters, limit {limit})",
                field=key,
                size=len(value),
            )

    logger.debug(
        "Booking metadata encoded",
        extra={
            "format": "split",
            "basic_size": len(encoded[BASIC_KEY]),
            "service_size": len(encoded[SERVICE_KEY]),
            "category": fields.get("category"),
        }
    )
    return encoded


def metadata_format(metadata: Mapping[str, str]) -> str:
    """Which draft layout a metadata map uses: single, split or cart."""
    if booking_type(metadata) == CART_BOOKING_TYPE:
        return CART_BOOKING_TYPE
    return "split" if BASIC_KEY in metadata else "single"


def decode(metadata: Mapping[str, str]) -> BookingDraft:
    """
    Rebuild and validate a booking draft from payment-intent metadata.

    Raises:
        MetadataDecodingError: If no draft is present or it does not validate
    """
    if SINGLE_KEY in metadata:
        fields = _load_object(metadata, SINGLE_KEY)
    elif BASIC_KEY in metadata and SERVICE_KEY in metadata:
        fields = {**_load_object(metadata, BASIC_KEY), **_load_object(metadata, SERVICE_KEY)}
    else:
        raise MetadataDecodingError("No booking data found in payment metadata")

    try:
        return booking_draft_adapter.validate_python(fields)
    except PydanticValidationError as exc:
        raise MetadataDecodingError(f"Booking data in payment metadata is invalid: {exc}") from exc


def encode_cart(
    request: CreateCartPaymentIntentRequest,
    cart_id: Optional[str],
    limit: int = METADATA_VALUE_LIMIT,
) -> EncodedMetadata:
    """
    Pack a cart checkout into payment-intent metadata.

    A persisted cart is referenced by ID, with the IDs of the lines being
    paid for in "paidItems". Without one the lines themselves travel as
    "guestItems".

    Raises:
        MetadataEncodingError: If any value exceeds the limit
    """
    contact = request.contact_info
    total = sum((Decimal(str(item.total_price)) for item in request.items), Decimal("0"))

    metadata = {
        "bookingType": CART_BOOKING_TYPE,
        "itemCount": str(len(request.items)),
        "userId": request.user or GUEST_USER,
        "guestName": request.guest_name or "",
        "guestEmail": request.guest_email or contact.email,
        "contactEmail": contact.email,
        "contactFirstName": contact.first_name or "",
        "contactLastName": contact.last_name or "",
        "referralCode": request.referral_code.strip(),
        "cartId": cart_id or GUEST_CART,
        "totalAmount": str(total),
    }

    if cart_id is not None:
        metadata["paidItems"] = _compact([item.id for item in request.items])
    else:
        metadata["guestItems"] = _compact([
            {"id": item.id, "sid": item.service_id, "type": item.service_type, "price": item.total_price}
            for item in request.items
        ])

    for key, value in metadata.items():
        if len(value) > limit:
            raise MetadataEncodingError(
                detail=f"Cart does not fit in payment metadata ({key} is {len(value)} characters, limit {limit})",
                field=key,
                size=len(value),
            )

    return metadata


def decode_cart(metadata: Mapping[str, str]) -> CartCheckoutContext:
    """
    Read cart checkout metadata back.

    Raises:
        MetadataDecodingError: If the metadata is not a cart checkout or is malformed
    """
    if booking_type(metadata) != CART_BOOKING_TYPE:
        raise MetadataDecodingError("Payment metadata is not a cart checkout")

    user_id = metadata.get("userId")
    cart_id = metadata.get("cartId")

    guest_items = []
    if metadata.get("guestItems"):
        try:
            raw_items = json.loads(metadata["guestItems"])
        except json.JSONDecodeError as exc:
            raise MetadataDecodingError("Metadata field 'guestItems' is not valid JSON") from exc
        if not isinstance(raw_items, list):
            raise MetadataDecodingError("Metadata field 'guestItems' is not a JSON list")
        try:
            guest_items = [GuestItemSummary.model_validate(item) for item in raw_items]
        except PydanticValidationError as exc:
            raise MetadataDecodingError(f"Cart lines in payment metadata are invalid: {exc}") from exc

    has_cart = bool(cart_id) and cart_id != GUEST_CART
    paid_item_ids = []
    if has_cart:
        if not metadata.get("paidItems"):
            raise MetadataDecodingError("Cart checkout metadata does not list the paid items")
        try:
            paid_item_ids = json.loads(metadata["paidItems"])
        except json.JSONDecodeError as exc:
            raise MetadataDecodingError("Metadata field 'paidItems' is not valid JSON") from exc
        if not isinstance(paid_item_ids, list) or not all(isinstance(i, str) for i in paid_item_ids):
            raise MetadataDecodingError("Metadata field 'paidItems' is not a list of item IDs")

    try:
        item_count = int(metadata.get("itemCount") or 0)
    except ValueError as exc:
        raise MetadataDecodingError("Metadata field 'itemCount' is not an integer") from exc

    return CartCheckoutContext(
        user_id=user_id if user_id and user_id != GUEST_USER else None,
        cart_id=cart_id if has_cart else None,
        guest_name=metadata.get("guestName") or None,
        guest_email=metadata.get("guestEmail") or metadata.get("contactEmail") or None,
        contact_email=metadata.get("contactEmail") or None,
        contact_first_name=metadata.get("contactFirstName") or None,
        contact_last_name=metadata.get("contactLastName") or None,
        referral_code=(metadata.get("referralCode") or "").strip(),
        item_count=item_count,
        total_amount=metadata.get("totalAmount") or None,
        guest_items=guest_items,
        paid_item_ids=paid_item_ids,
    )
