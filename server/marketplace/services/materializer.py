"""Idempotent booking materialization from confirmed payments.

A payment transaction id plus a line reference ("single", or the cart item
id) identifies a booking. The unique constraint on that pair is what keeps
re-delivered webhooks from creating duplicates; the lookup before insert
only saves a round trip in the common case.
"""

import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.exceptions import PersistenceError, ResolutionError
from ..core.observability import metrics_collector
from ..models.booking import SINGLE_LINE_REF, Booking, BookingStatus, PaymentStatus, ServiceType
from ..models.cart import Cart
from ..schemas.draft import (
    ActivityDraft,
    DiningDraft,
    SpaDraft,
    StayDraft,
    TransportationDraft,
)
from ..schemas.payment import CartCheckoutContext
from .catalog_service import CatalogService
from .scheduling import InvalidTimeError, combine, normalize_clock_time

logger = logging.getLogger(__name__)

DEFAULT_ROOM_TYPE = "Standard"
DEFAULT_DINING_TIME = "19:00"
UNSPECIFIED_LOCATION = "Not specified"
DEFAULT_TRANSPORT_CATEGORY = "Airport Transfer"

CATEGORY_SERVICE_TYPES = {
    "activity": ServiceType.ACTIVITY,
    "spa": ServiceType.ACTIVITY,
    "stay": ServiceType.STAY,
    "dining": ServiceType.DINING,
    "transportation": ServiceType.TRANSPORTATION,
}

# Cart service type -> booking category
CART_CATEGORIES = {
    "Activity": "activity",
    "WellnessSpa": "spa",
    "Spa": "spa",
    "Stay": "stay",
    "Dining": "dining",
    "Transportation": "transportation",
}


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


@dataclass
class BookingLine:
    """One thing to book, whichever checkout path it came from."""

    line_ref: str
    service_id: str
    category: str
    total_price: Decimal
    base_price: Decimal
    num_people: int = 1
    customer_id: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    referral_code: str = ""
    day: Optional[date] = None
    end_day: Optional[date] = None
    time: Optional[str] = None
    slot_start: Optional[str] = None
    slot_end: Optional[str] = None
    option_id: Optional[str] = None
    room_id: Optional[str] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    transport_category: Optional[str] = None
    sub_service_id: Optional[str] = None
    sub_service_name: Optional[str] = None
    notes: Optional[str] = None

    @property
    def service_type(self) -> ServiceType:
        return CATEGORY_SERVICE_TYPES[self.category]


def line_from_draft(draft) -> BookingLine:
    """Flatten a validated booking draft into a booking line."""
    line = BookingLine(
        line_ref=SINGLE_LINE_REF,
        service_id=draft.service_ref,
        category=draft.category,
        total_price=_money(draft.total_price),
        base_price=_money(draft.base_price),
        num_people=draft.num_of_people,
        customer_id=draft.user,
        guest_name=draft.guest_name,
        guest_email=draft.guest_email,
        referral_code=draft.referral_code,
    )

    if isinstance(draft, ActivityDraft):
        line.day = draft.date
        line.time = draft.time
        line.option_id = draft.option
        if draft.time_slot is not None:
            line.slot_start = draft.time_slot.start_time
            line.slot_end = draft.time_slot.end_time
    elif isinstance(draft, StayDraft):
        line.day = draft.start_date
        line.end_day = draft.end_date
    elif isinstance(draft, SpaDraft):
        line.day = draft.date
        line.time = draft.time
        line.sub_service_id = draft.service
        line.sub_service_name = draft.service_name
    elif isinstance(draft, DiningDraft):
        line.day = draft.date
        line.time = draft.time
    elif isinstance(draft, TransportationDraft):
        line.day = draft.date
        line.time = draft.time
        line.option_id = draft.option
        line.pickup_location = draft.pickup_location
        line.dropoff_location = draft.dropoff_location
        line.transport_category = draft.transportation_category

    return line


@dataclass
class CartLine:
    """A cart item as it stood when the customer paid."""

    item_id: str
    service_id: str
    service_type: str
    total_price: Decimal
    base_price: Optional[Decimal] = None
    num_people: int = 1
    category: Optional[str] = None
    selected_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    selected_time: Optional[str] = None
    slot_start: Optional[str] = None
    slot_end: Optional[str] = None
    option_id: Optional[str] = None
    room_id: Optional[str] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    service_name: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class CartSnapshot:
    """Paid cart: who paid and the lines they paid for."""

    cart_id: Optional[str]
    lines: List[CartLine]
    customer_id: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    referral_code: str = ""
    # Paid lines that have left the cart since payment
    missing_item_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_cart(cls, cart: Cart, context: CartCheckoutContext) -> "CartSnapshot":
        """Lines of the persisted cart that the payment covered, and nothing else."""
        paid = set(context.paid_item_ids)
        lines = [
            CartLine(
                item_id=item.id,
                service_id=item.service_id,
                service_type=item.service_type,
                total_price=item.total_price,
                base_price=item.base_price,
                num_people=item.num_people,
                category=item.category,
                selected_date=item.selected_date,
                start_date=item.start_date,
                end_date=item.end_date,
                selected_time=item.selected_time,
                slot_start=item.time_slot_start,
                slot_end=item.time_slot_end,
                option_id=item.option_id,
                room_id=item.room_id,
                pickup_location=item.pickup_location,
                dropoff_location=item.dropoff_location,
                service_name=item.service_name,
                notes=item.notes,
            )
            for item in cart.items
            if item.id in paid
        ]
        in_cart = {line.item_id for line in lines}
        return cls(
            cart_id=cart.id,
            lines=lines,
            missing_item_ids=[item_id for item_id in context.paid_item_ids if item_id not in in_cart],
            customer_id=context.user_id,
            guest_name=None if context.user_id else context.display_name,
            guest_email=None if context.user_id else context.guest_email,
            referral_code=context.referral_code,
        )

    @classmethod
    def without_cart(cls, context: CartCheckoutContext) -> "CartSnapshot":
        """Persisted cart is gone; every paid line counts as missing."""
        return cls(
            cart_id=context.cart_id,
            lines=[],
            missing_item_ids=list(context.paid_item_ids),
            customer_id=context.user_id,
            referral_code=context.referral_code,
        )

    @classmethod
    def from_guest_items(cls, context: CartCheckoutContext) -> "CartSnapshot":
        lines = [
            CartLine(
                item_id=item.id,
                service_id=item.sid,
                service_type=item.type,
                total_price=_money(item.price),
            )
            for item in context.guest_items
        ]
        return cls(
            cart_id=context.cart_id,
            lines=lines,
            customer_id=context.user_id,
            guest_name=None if context.user_id else (context.display_name or "Guest"),
            guest_email=None if context.user_id else context.guest_email,
            referral_code=context.referral_code,
        )

    @property
    def item_ids(self) -> List[str]:
        """Every paid line, whether or not it is still in the cart."""
        return [line.item_id for line in self.lines] + self.missing_item_ids


def line_from_cart(line: CartLine, snapshot: CartSnapshot) -> BookingLine:
    """
    Turn a paid cart line into a booking line.

    Raises:
        ResolutionError: If the cart line's service type cannot be booked
    """
    category = CART_CATEGORIES.get(line.service_type)
    if category is None:
        raise ResolutionError(
            f"Service type '{line.service_type}' cannot be booked",
            service_id=line.service_id,
        )

    total = _money(line.total_price)
    return BookingLine(
        line_ref=line.item_id,
        service_id=line.service_id,
        category=category,
        total_price=total,
        base_price=_money(line.base_price) if line.base_price is not None else total,
        num_people=line.num_people or 1,
        customer_id=snapshot.customer_id,
        guest_name=snapshot.guest_name,
        guest_email=snapshot.guest_email,
        referral_code=snapshot.referral_code,
        day=line.selected_date or line.start_date,
        end_day=line.end_date,
        time=line.selected_time,
        slot_start=line.slot_start,
        slot_end=line.slot_end,
        option_id=line.option_id,
        room_id=line.room_id,
        pickup_location=line.pickup_location,
        dropoff_location=line.dropoff_location,
        transport_category=line.category if category == "transportation" else None,
        sub_service_id=line.option_id if category == "spa" else None,
        sub_service_name=line.service_name if category == "spa" else None,
        notes=line.notes,
    )


@dataclass
class MaterializationResult:
    """Bookings for a single-item payment."""

    bookings: List[Booking]
    created: bool


@dataclass
class FailedLine:
    """A cart line that could not be booked."""

    item_id: str
    reason: str
    error: str
    service_id: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "service_id": self.service_id,
            "reason": self.reason,
            "error": self.error,
        }


@dataclass
class CartMaterializationResult:
    """Outcome of booking every line of a paid cart."""

    committed: List[Booking] = field(default_factory=list)
    created: List[Booking] = field(default_factory=list)
    failed: List[FailedLine] = field(default_factory=list)

    @property
    def committed_item_ids(self) -> List[str]:
        return [booking.line_ref for booking in self.committed]


class BookingMaterializer:
    """Creates bookings from confirmed payments, at most once per line."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.catalog = CatalogService(db)

    def _generate_booking_number(self, length: int = 8) -> str:
        """Generate a random human-readable booking number."""
        alphabet = string.ascii_uppercase + string.digits
        return "BK" + "".join(secrets.choice(alphabet) for _ in range(length))

    async def find_by_transaction(self, transaction_id: str) -> Dict[str, Booking]:
        """Existing bookings for a transaction, keyed by line reference."""
        stmt = select(Booking).where(Booking.transaction_id == transaction_id)
        result = await self.db.execute(stmt)
        return {booking.line_ref: booking for booking in result.scalars().all()}

    async def _find_line(self, transaction_id: str, line_ref: str) -> Optional[Booking]:
        stmt = select(Booking).where(
            Booking.transaction_id == transaction_id,
            Booking.line_ref == line_ref,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    def _detach(self, booking: Booking) -> Booking:
        # Later rollbacks in this session must not expire bookings already handed out
        if booking in self.db:
            self.db.expunge(booking)
        return booking

    def _details(self, line: BookingLine) -> Tuple[Dict[str, Any], Optional[datetime]]:
        """
        Category detail block and scheduled start for a line.

        Raises:
            InvalidTimeError: If a supplied clock time cannot be read
        """
        time = normalize_clock_time(line.time) if line.time else None
        day = line.day.isoformat() if line.day else None

        if line.category == "stay":
            check_in = line.day
            if line.end_day is not None:
                check_out = line.end_day
            else:
                check_out = check_in + timedelta(days=self.settings.default_stay_nights) if check_in else None
                logger.info(
                    "Stay booked without an end date, using default length",
                    extra={"service_id": line.service_id, "nights": self.settings.default_stay_nights}
                )
            nights = (check_out - check_in).days if check_in and check_out else self.settings.default_stay_nights
            details = {
                "stay": {
                    "check_in": check_in.isoformat() if check_in else None,
                    "check_out": check_out.isoformat() if check_out else None,
                    "nights": nights,
                    "room_type": line.room_id or DEFAULT_ROOM_TYPE,
                }
            }
            scheduled = combine(check_in) if check_in else None
            return details, scheduled

        if line.category == "transportation":
            details = {
                "transportation": {
                    "trip_type": "one-way",
                    "pickup": {
                        "location": line.pickup_location or UNSPECIFIED_LOCATION,
                        "date": day,
                        "time": time,
                    },
                    "dropoff": {
                        "location": line.dropoff_location or UNSPECIFIED_LOCATION,
                    },
                }
            }
            return details, combine(line.day, time) if line.day else None

        if line.category == "dining":
            time = time or DEFAULT_DINING_TIME
            details = {
                "dining": {
                    "reservation_date": day,
                    "reservation_time": time,
                    "party_size": line.num_people,
                }
            }
            return details, combine(line.day, time) if line.day else None

        if line.category == "spa":
            details = {
                "spa": {
                    "service_id": line.sub_service_id,
                    "service_name": line.sub_service_name,
                    "date": day,
                    "time": time,
                }
            }
            return details, combine(line.day, time) if line.day else None

        # activity
        start = time
        if start is None and line.slot_start:
            start = normalize_clock_time(line.slot_start)
        duration = f"{line.slot_start} - {line.slot_end}" if line.slot_start and line.slot_end else None
        activity: Dict[str, Any] = {"date": day, "time": start, "duration": duration}
        if line.slot_start:
            activity["time_slot"] = {"start_time": line.slot_start, "end_time": line.slot_end}
        return {"activity": activity}, combine(line.day, start) if line.day else None

    async def _write_line(
        self,
        transaction_id: str,
        line: BookingLine,
        paid_at: datetime,
        existing: Optional[Booking] = None,
    ) -> Tuple[Booking, bool]:
        """
        Materialize one line, returning (booking, created).

        Raises:
            ResolutionError: If the service or vendor is missing
            InvalidTimeError: If a clock time cannot be read
            PersistenceError: If the insert fails for any reason other than a duplicate
        """
        if existing is not None:
            logger.info(
                "Booking already exists for payment line",
                extra={
                    "transaction_id": transaction_id,
                    "line_ref": line.line_ref,
                    "booking_id": str(existing.id)
                }
            )
            return self._detach(existing), False

        _, vendor_id = await self.catalog.resolve_vendor(line.service_id)
        details, scheduled_at = self._details(line)

        booking = Booking(
            booking_number=self._generate_booking_number(),
            transaction_id=transaction_id,
            line_ref=line.line_ref,
            customer_id=line.customer_id,
            guest_name=None if line.customer_id else line.guest_name,
            guest_email=None if line.customer_id else line.guest_email,
            service_id=line.service_id,
            vendor_id=vendor_id,
            service_type=line.service_type.value,
            category=line.category,
            transport_category=(
                line.transport_category or DEFAULT_TRANSPORT_CATEGORY
                if line.category == "transportation" else None
            ),
            option_id=line.option_id,
            room_id=line.room_id,
            status=BookingStatus.CONFIRMED.value,
            passengers_total=line.num_people,
            base_price=line.base_price,
            subtotal=line.base_price,
            total_amount=line.total_price,
            payment_method="credit-card",
            payment_status=PaymentStatus.COMPLETED.value,
            paid_at=paid_at,
            scheduled_at=scheduled_at or paid_at,
            details=details,
            referral_code=line.referral_code or None,
            notes=line.notes,
        )

        self.db.add(booking)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            winner = await self._find_line(transaction_id, line.line_ref)
            if winner is None:
                logger.error(
                    "Booking insert violated a constraint",
                    extra={"transaction_id": transaction_id, "line_ref": line.line_ref, "error": str(e.orig)}
                )
                raise PersistenceError(f"Booking insert failed: {e.orig}", transaction_id) from e

            logger.info(
                "Concurrent delivery already created booking",
                extra={
                    "transaction_id": transaction_id,
                    "line_ref": line.line_ref,
                    "booking_id": str(winner.id)
                }
            )
            return self._detach(winner), False
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        await self.db.refresh(booking)
        metrics_collector.record_booking_materialized(line.category)

        logger.info(
            "Booking created from payment",
            extra={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "transaction_id": transaction_id,
                "line_ref": line.line_ref,
                "service_id": line.service_id,
                "vendor_id": vendor_id,
                "total_amount": str(line.total_price)
            }
        )
        return self._detach(booking), True

    async def materialize(
        self,
        transaction_id: str,
        draft,
        paid_at: Optional[datetime] = None,
    ) -> MaterializationResult:
        """
        Create the booking for a single-item payment, or return the existing one.

        Args:
            transaction_id: Payment intent ID
            draft: Validated booking draft decoded from the payment metadata
            paid_at: Payment confirmation time, defaults to now

        Returns:
            MaterializationResult with exactly one booking

        Raises:
            ResolutionError: If the service or vendor is missing
            InvalidTimeError: If the draft's time cannot be read
            PersistenceError: If the database write fails
        """
        paid_at = paid_at or datetime.now(timezone.utc)
        line = line_from_draft(draft)

        try:
            existing = await self._find_line(transaction_id, line.line_ref)
            booking, created = await self._write_line(transaction_id, line, paid_at, existing)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Booking write failed: {e}", transaction_id) from e

        return MaterializationResult(bookings=[booking], created=created)

    async def materialize_cart(
        self,
        transaction_id: str,
        snapshot: CartSnapshot,
        paid_at: Optional[datetime] = None,
    ) -> CartMaterializationResult:
        """
        Create one booking per cart line, isolating failures per line.

        Lines already booked for this transaction are returned as committed
        without being written again.

        Raises:
            PersistenceError: If the database becomes unusable mid-batch; the
                error carries the partial result
        """
        paid_at = paid_at or datetime.now(timezone.utc)
        result = CartMaterializationResult()

        try:
            existing = {
                line_ref: self._detach(booking)
                for line_ref, booking in (await self.find_by_transaction(transaction_id)).items()
            }
        except SQLAlchemyError as e:
            raise PersistenceError(f"Booking lookup failed: {e}", transaction_id, partial=result) from e

        for cart_line in snapshot.lines:
            try:
                line = line_from_cart(cart_line, snapshot)
                booking, created = await self._write_line(
                    transaction_id, line, paid_at, existing.get(line.line_ref)
                )
            except ResolutionError as e:
                result.failed.append(FailedLine(cart_line.item_id, "resolution", str(e), cart_line.service_id))
            except InvalidTimeError as e:
                result.failed.append(FailedLine(cart_line.item_id, "invalid_time", str(e), cart_line.service_id))
            except PersistenceError as e:
                result.failed.append(FailedLine(cart_line.item_id, "persistence", str(e), cart_line.service_id))
            except OperationalError as e:
                raise PersistenceError(f"Database unavailable: {e}", transaction_id, partial=result) from e
            except SQLAlchemyError as e:
                result.failed.append(FailedLine(cart_line.item_id, "persistence", str(e), cart_line.service_id))
            else:
                result.committed.append(booking)
                if created:
                    result.created.append(booking)
                continue

            failure = result.failed[-1]
            metrics_collector.record_line_failed(failure.reason)
            logger.warning(
                "Cart line could not be booked",
                extra={
                    "transaction_id": transaction_id,
                    "item_id": failure.item_id,
                    "service_id": failure.service_id,
                    "reason": failure.reason,
                    "error": failure.error
                }
            )

        # Paid lines no longer in the cart: booked by an earlier delivery and
        # since pruned, or removed before any booking was made
        for item_id in snapshot.missing_item_ids:
            booking = existing.get(item_id)
            if booking is not None:
                result.committed.append(self._detach(booking))
                continue
            failure = FailedLine(item_id, "resolution", "Paid cart item is no longer in the cart")
            result.failed.append(failure)
            metrics_collector.record_line_failed(failure.reason)
            logger.warning(
                "Paid cart line missing from cart",
                extra={"transaction_id": transaction_id, "item_id": item_id}
            )

        logger.info(
            "Cart materialized",
            extra={
                "transaction_id": transaction_id,
                "cart_id": snapshot.cart_id,
                "total_items": len(snapshot.item_ids),
                "committed": len(result.committed),
                "created": len(result.created),
                "failed": len(result.failed)
            }
        )
        return result
