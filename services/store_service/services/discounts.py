"""Discount code evaluation and redemption."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from libs.common.datetime_utils import as_utc, utc_now
from libs.common.logging import get_logger
from services.store_service.errors import (
    ConflictError,
    DiscountInvalidError,
    DiscountReason,
)
from services.store_service.models import (
    Campaign,
    Discount,
    DiscountType,
    DiscountUsage,
)
from services.store_service.services.pricing import percent_of
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscountEvaluation:
    discount: Discount
    amount: int
    waives_shipping: bool = False

    @property
    def code(self) -> str:
        return self.discount.code


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _percentage(discount: Discount, subtotal: int) -> int:
    return percent_of(subtotal, discount.value)


def _fixed_amount(discount: Discount, subtotal: int) -> int:
    return discount.value


def _free_shipping(discount: Discount, subtotal: int) -> int:
    return 0


CALCULATORS: dict[DiscountType, Callable[[Discount, int], int]] = {
    DiscountType.PERCENTAGE: _percentage,
    DiscountType.FIXED_AMOUNT: _fixed_amount,
    DiscountType.FREE_SHIPPING: _free_shipping,
}


def calculate_discount_amount(discount: Discount, subtotal: int) -> int:
    """Amount off the subtotal, never more than the subtotal itself."""
    amount = CALCULATORS[discount.type](discount, subtotal)
    return max(0, min(amount, subtotal))


async def get_discount_by_code(db: AsyncSession, code: str) -> Optional[Discount]:
    result = await db.execute(
        select(Discount).where(Discount.code == normalize_code(code))
    )
    return result.scalar_one_or_none()


def check_discount(
    discount: Optional[Discount], subtotal: int, now: Optional[datetime] = None
) -> None:
    """Raise DiscountInvalidError for the first rule the code breaks."""
    if discount is None:
        raise DiscountInvalidError("Invalid discount code", reason=DiscountReason.INVALID_CODE)

    if not discount.is_active:
        raise DiscountInvalidError(
            "This discount code is no longer active", reason=DiscountReason.INACTIVE
        )

    now = now or utc_now()
    starts_at = as_utc(discount.starts_at)
    ends_at = as_utc(discount.ends_at)
    if starts_at and now < starts_at:
        raise DiscountInvalidError(
            "This discount code is not active yet", reason=DiscountReason.NOT_YET_ACTIVE
        )
    if ends_at and now > ends_at:
        raise DiscountInvalidError(
            "This discount code has expired", reason=DiscountReason.EXPIRED
        )

    if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
        raise DiscountInvalidError(
            "This discount code has reached its usage limit",
            reason=DiscountReason.LIMIT_REACHED,
        )

    if subtotal < (discount.min_purchase_amount or 0):
        raise DiscountInvalidError(
            f"Minimum purchase of {discount.min_purchase_amount} required",
            reason=DiscountReason.BELOW_MINIMUM,
            details={"min_purchase_amount": discount.min_purchase_amount},
        )


async def has_customer_used(
    db: AsyncSession, discount_id: uuid.UUID, customer_id: uuid.UUID
) -> bool:
    result = await db.execute(
        select(DiscountUsage.discount_id).where(
            DiscountUsage.discount_id == discount_id,
            DiscountUsage.customer_id == customer_id,
        )
    )
    return result.first() is not None


async def validate_discount(
    db: AsyncSession,
    code: str,
    subtotal: int,
    customer_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> DiscountEvaluation:
    """
    Check a code against a cart subtotal and price it.

    Read-only: usage_count is only touched by redeem_discount inside the
    order transaction.
    """
    discount = await get_discount_by_code(db, code)
    check_discount(discount, subtotal, now)

    if customer_id is not None and await has_customer_used(db, discount.id, customer_id):
        raise ConflictError(
            "You have already used this discount code",
            reason=DiscountReason.ALREADY_USED,
        )

    return DiscountEvaluation(
        discount=discount,
        amount=calculate_discount_amount(discount, subtotal),
        waives_shipping=discount.type == DiscountType.FREE_SHIPPING,
    )


async def redeem_discount(
    db: AsyncSession,
    *,
    discount: Discount,
    customer_id: uuid.UUID,
    order_id: uuid.UUID,
    order_total: int,
) -> None:
    """Record one redemption. Must run inside the caller's order transaction.

    1. Insert the (discount, customer) usage row; its primary key rejects a second use.
    2. Increment usage_count only while it is still under usage_limit.
    3. Credit the campaign with one conversion and the order revenue.
    """
    db.add(
        DiscountUsage(discount_id=discount.id, customer_id=customer_id, order_id=order_id)
    )
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError(
            "You have already used this discount code",
            reason=DiscountReason.ALREADY_USED,
        )

    result = await db.execute(
        update(Discount)
        .where(
            Discount.id == discount.id,
            or_(
                Discount.usage_limit.is_(None),
                Discount.usage_count < Discount.usage_limit,
            ),
        )
        .values(usage_count=Discount.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise DiscountInvalidError(
            "This discount code has reached its usage limit",
            reason=DiscountReason.LIMIT_REACHED,
        )

    if discount.campaign_id:
        await db.execute(
            update(Campaign)
            .where(Campaign.id == discount.campaign_id)
            .values(
                conversions=Campaign.conversions + 1,
                revenue=Campaign.revenue + order_total,
            )
            .execution_options(synchronize_session=False)
        )

    logger.info(
        "Redeemed discount %s for customer %s",
        discount.code,
        customer_id,
        extra={"extra_fields": {"order_id": str(order_id)}},
    )
