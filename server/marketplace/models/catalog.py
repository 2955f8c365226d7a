"""Service catalog and user model definitions."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class ServiceListing(Base):
    """A bookable service offered by a vendor (or, for stays, a host)."""

    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    service_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Listings created through the stay flow carry host_id instead of vendor_id
    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    host_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    @property
    def owner_id(self) -> str | None:
        """Vendor who gets paid for this service."""
        return self.vendor_id or self.host_id

    def __repr__(self) -> str:
        return f"<ServiceListing(id='{self.id}', name='{self.name}', type={self.service_type})>"


class User(Base):
    """Registered marketplace user, as far as loyalty credits are concerned."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    loyalty_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("loyalty_credits >= 0", name="ck_user_loyalty_credits_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User(id='{self.id}', loyalty_credits={self.loyalty_credits})>"
