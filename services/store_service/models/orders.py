"""Order models: order header and immutable line-item snapshots."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.store_service.models.enums import (
    FulfillmentStatus,
    OrderStatus,
    PaymentStatus,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, Sequence, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


# Human order numbers. Dialects without sequences (SQLite) fall back to max + 1.
DISPLAY_ID_SEQ = Sequence("order_display_id_seq", start=1001)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    display_id: Mapped[int] = mapped_column(
        Integer, DISPLAY_ID_SEQ, unique=True, nullable=False
    )

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, values_callable=enum_values, name="order_status_enum"),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, values_callable=enum_values, name="payment_status_enum"),
        default=PaymentStatus.AWAITING,
        nullable=False,
    )
    fulfillment_status: Mapped[FulfillmentStatus] = mapped_column(
        SAEnum(
            FulfillmentStatus,
            values_callable=enum_values,
            name="fulfillment_status_enum",
        ),
        default=FulfillmentStatus.NOT_FULFILLED,
        nullable=False,
    )

    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    region_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("regions.id"), nullable=False
    )
    shipping_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("addresses.id"), nullable=True
    )
    billing_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("addresses.id"), nullable=True
    )
    discount_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("discounts.id", ondelete="RESTRICT"), nullable=True
    )

    # Totals, all in minor units of currency_code
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("0"), nullable=False
    )
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    shipping_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tax_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)

    # Wholesale
    is_wholesale: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Payment processor
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )
    payment_failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    order_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSONType, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("total >= 0", name="order_total_non_negative"),
        CheckConstraint("subtotal >= 0", name="order_subtotal_non_negative"),
    )

    items = relationship(
        "LineItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="LineItem.created_at",
    )
    customer = relationship("Customer")
    region = relationship("Region")
    shipping_address = relationship("Address", foreign_keys=[shipping_address_id])
    billing_address = relationship("Address", foreign_keys=[billing_address_id])
    discount = relationship("Discount")

    def __repr__(self):
        return f"<Order #{self.display_id} {self.status.value} total={self.total}>"


class LineItem(Base):
    """
    Snapshot of what was bought. Title, price and thumbnail are copied at
    placement time so later catalog edits never rewrite order history.
    """

    __tablename__ = "line_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    # Plain reference: catalog deletes must not touch order history
    variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    thumbnail: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    compare_at_unit_price: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)

    item_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSONType, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="line_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="line_item_price_non_negative"),
    )

    order = relationship("Order", back_populates="items")
