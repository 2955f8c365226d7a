"""Persistent shopping cart model definitions."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base


class Cart(Base):
    """A registered user's cart of pending service selections."""

    __tablename__ = "carts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    items: Mapped[list["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.position",
    )

    def recompute_total(self) -> Decimal:
        self.total_price = sum((item.total_price for item in self.items), Decimal("0"))
        return self.total_price

    def __repr__(self) -> str:
        return f"<Cart(id='{self.id}', user_id='{self.user_id}', items={len(self.items)})>"


class CartItem(Base):
    """One service selection inside a cart."""

    __tablename__ = "cart_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    cart_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    service_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Activity, Stay, Transportation, Dining, WellnessSpa, Shopping
    service_type: Mapped[str] = mapped_column(String(32), nullable=False)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    option_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    room_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    selected_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    selected_time: Mapped[str | None] = mapped_column(String(32), nullable=True)
    time_slot_start: Mapped[str | None] = mapped_column(String(16), nullable=True)
    time_slot_end: Mapped[str | None] = mapped_column(String(16), nullable=True)

    num_people: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    pickup_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dropoff_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    service_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("num_people >= 1", name="ck_cart_item_people_positive"),
        CheckConstraint("total_price >= 0", name="ck_cart_item_price_non_negative"),
    )

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<CartItem(id='{self.id}', service_id='{self.service_id}', "
            f"type={self.service_type}, total_price={self.total_price})>"
        )
