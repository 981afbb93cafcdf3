"""Wholesale pricing models: customer tiers and per-variant bulk bands."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import PaymentTerms, enum_values
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class WholesaleTier(Base):
    """A named wholesale tier. Higher priority wins when several qualify."""

    __tablename__ = "wholesale_tiers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    # Qualification thresholds over the customer's completed wholesale orders
    min_order_value: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    min_order_quantity: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    default_moq: Mapped[int] = mapped_column(
        Integer, default=1, server_default="1", nullable=False
    )
    payment_terms: Mapped[PaymentTerms] = mapped_column(
        SAEnum(PaymentTerms, values_callable=enum_values, name="payment_terms_enum"),
        default=PaymentTerms.NET_30,
        nullable=False,
    )
    priority: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    # Bumped on every admin edit so in-flight quotes can be traced to a revision
    version: Mapped[int] = mapped_column(
        Integer, default=1, server_default="1", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="tier_discount_range",
        ),
    )

    def __repr__(self):
        return f"<WholesaleTier {self.slug} {self.discount_percent}%>"


class BulkDiscount(Base):
    """Quantity band: ordering at least min_quantity units takes discount_percent off."""

    __tablename__ = "bulk_discounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    variant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False
    )
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        CheckConstraint("min_quantity > 0", name="bulk_min_quantity_positive"),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="bulk_discount_range",
        ),
    )
