"""Deal model representing a discount offered at one physical store location."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, Numeric, DateTime, Integer, Float, Index
from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column

from dealhub.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


DEAL_CATEGORIES = ("restaurant", "grocery", "gas", "coffee")


class Deal(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A deal pinned to a single store location.

    Chains with many stores get one row per selected location; the
    location columns are denormalized onto the row so distance filtering
    needs no join.
    """

    __tablename__ = "deals"

    # Store
    store_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    store_logo: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="One of: restaurant, grocery, gas, coffee"
    )

    # Content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image: Mapped[str] = mapped_column(String(1000), nullable=False)
    badge: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="great-deal, ends-soon, trending or new"
    )

    # Pricing
    discount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Discount as percentage (0-100)")
    original_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    discounted_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Location (WGS84 degrees)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    # Lifetime
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Engagement metrics
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Partner app deep link
    partner_app_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    partner_app_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Sub-deals offered by the same store, stored as a JSON list
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("idx_deals_category_expires", "category", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Deal(id={self.id}, store='{self.store_name}', title='{self.title[:50]}', discount={self.discount})>"
