"""Wholesale tier pricing, bulk quantity bands, MOQ and tier assignment.

Tiers and bands are read from the database whenever a price is computed, so
an admin edit applies to the very next quote without any cache to flush.

Pricing order for one line:
1. explicit variant wholesale price, else retail less the tier percentage
2. bulk band on top of that tier price (the two compound)
3. MOQ check against the variant, then the tier default
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.logging import get_logger
from services.store_service.errors import MOQNotMetError, NotFoundError
from services.store_service.models import (
    BulkDiscount,
    Customer,
    Order,
    OrderStatus,
    ProductVariant,
    WholesaleTier,
)
from services.store_service.services.pricing import percent_of, resolve_prices
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Orders whose payment went through count towards tier qualification
QUALIFYING_ORDER_STATUSES = (
    OrderStatus.COMPLETED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

ZERO = Decimal("0")


@dataclass(frozen=True)
class WholesalePrice:
    price: int
    is_wholesale_price: bool
    discount_percent: Decimal
    savings: int


@dataclass(frozen=True)
class BulkPrice:
    price: int
    discount_percent: Decimal
    savings: int
    band_min_quantity: Optional[int] = None


@dataclass(frozen=True)
class LineQuote:
    variant_id: uuid.UUID
    quantity: int
    retail_price: int
    tier_price: int
    unit_price: int
    total: int
    tier_discount_percent: Decimal = ZERO
    bulk_discount_percent: Decimal = ZERO
    tier_savings: int = 0
    bulk_savings: int = 0
    is_wholesale_price: bool = False
    moq: int = 1

    @property
    def total_savings(self) -> int:
        return self.tier_savings + self.bulk_savings


@dataclass
class OrderStats:
    order_count: int = 0
    total_value: int = 0
    total_quantity: int = 0


@dataclass
class TierAssignment:
    customer_id: uuid.UUID
    tier_slug: Optional[str]
    changed: bool
    reason: str
    stats: OrderStats = field(default_factory=OrderStats)


# ---------------------------------------------------------------------------
# Pure pricing
# ---------------------------------------------------------------------------


def resolve_tier_discount(tier: Optional[WholesaleTier]) -> Decimal:
    if tier is None or not tier.active:
        return ZERO
    return Decimal(str(tier.discount_percent))


def effective_price(
    retail_price: int,
    wholesale_price: Optional[int],
    tier: Optional[WholesaleTier],
) -> WholesalePrice:
    """Tier-adjusted unit price. An explicit positive wholesale price wins outright."""
    if wholesale_price is not None and wholesale_price > 0:
        return WholesalePrice(
            price=wholesale_price,
            is_wholesale_price=True,
            discount_percent=ZERO,
            savings=max(retail_price - wholesale_price, 0),
        )

    pct = resolve_tier_discount(tier)
    if pct <= 0:
        return WholesalePrice(
            price=retail_price, is_wholesale_price=False, discount_percent=ZERO, savings=0
        )

    price = retail_price - percent_of(retail_price, pct)
    return WholesalePrice(
        price=price,
        is_wholesale_price=False,
        discount_percent=pct,
        savings=retail_price - price,
    )


def select_bulk_band(
    quantity: int, bands: Sequence[BulkDiscount]
) -> Optional[BulkDiscount]:
    """Highest min_quantity the quantity reaches; ties go to the larger discount."""
    qualifying = [b for b in bands if b.active and quantity >= b.min_quantity]
    if not qualifying:
        return None
    return max(
        qualifying,
        key=lambda b: (b.min_quantity, Decimal(str(b.discount_percent))),
    )


def apply_bulk_discount(
    base_price: int, quantity: int, bands: Sequence[BulkDiscount]
) -> BulkPrice:
    band = select_bulk_band(quantity, bands)
    if band is None:
        return BulkPrice(price=base_price, discount_percent=ZERO, savings=0)

    pct = Decimal(str(band.discount_percent))
    per_unit = percent_of(base_price, pct)
    return BulkPrice(
        price=base_price - per_unit,
        discount_percent=pct,
        savings=per_unit * quantity,
        band_min_quantity=band.min_quantity,
    )


def resolve_moq(variant: ProductVariant, tier: Optional[WholesaleTier]) -> int:
    if variant.moq:
        return variant.moq
    if tier is not None and tier.default_moq:
        return tier.default_moq
    return 1


def enforce_moq(
    variant: ProductVariant, quantity: int, tier: Optional[WholesaleTier]
) -> int:
    moq = resolve_moq(variant, tier)
    if quantity < moq:
        raise MOQNotMetError(variant.id, moq, quantity)
    return moq


def build_line_quote(
    variant: ProductVariant,
    retail_price: int,
    quantity: int,
    tier: Optional[WholesaleTier],
    bands: Sequence[BulkDiscount],
    check_moq: bool = True,
) -> LineQuote:
    """Price one line for a wholesale buyer. Callers pass bands for this variant only."""
    moq = enforce_moq(variant, quantity, tier) if check_moq else resolve_moq(variant, tier)

    tier_price = effective_price(retail_price, variant.wholesale_price, tier)
    bulk = apply_bulk_discount(tier_price.price, quantity, bands)

    return LineQuote(
        variant_id=variant.id,
        quantity=quantity,
        retail_price=retail_price,
        tier_price=tier_price.price,
        unit_price=bulk.price,
        total=bulk.price * quantity,
        tier_discount_percent=tier_price.discount_percent,
        bulk_discount_percent=bulk.discount_percent,
        tier_savings=tier_price.savings * quantity,
        bulk_savings=bulk.savings,
        is_wholesale_price=tier_price.is_wholesale_price,
        moq=moq,
    )


# ---------------------------------------------------------------------------
# Database lookups
# ---------------------------------------------------------------------------


async def get_bulk_discounts(
    db: AsyncSession, variant_ids: Sequence[uuid.UUID]
) -> dict[uuid.UUID, list[BulkDiscount]]:
    result = await db.execute(
        select(BulkDiscount)
        .where(
            BulkDiscount.variant_id.in_(list(variant_ids)),
            BulkDiscount.active.is_(True),
        )
        .order_by(BulkDiscount.min_quantity)
    )
    bands: dict[uuid.UUID, list[BulkDiscount]] = {vid: [] for vid in variant_ids}
    for band in result.scalars().all():
        bands.setdefault(band.variant_id, []).append(band)
    return bands


async def get_customer_tier(
    db: AsyncSession, customer: Optional[Customer]
) -> Optional[WholesaleTier]:
    """Active tier of a wholesale customer, or None for retail buyers."""
    if customer is None or not customer.is_wholesale or not customer.wholesale_tier_id:
        return None
    tier = await db.get(WholesaleTier, customer.wholesale_tier_id)
    if tier is None or not tier.active:
        return None
    return tier


async def get_variant_moq(
    db: AsyncSession, variant_id: uuid.UUID, tier: Optional[WholesaleTier] = None
) -> int:
    variant = await db.get(ProductVariant, variant_id)
    if not variant:
        raise NotFoundError("Variant not found", details={"variant_id": str(variant_id)})
    return resolve_moq(variant, tier)


async def get_order_stats(db: AsyncSession, customer_id: uuid.UUID) -> OrderStats:
    result = await db.execute(
        select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.coalesce(func.sum(Order.total_items), 0),
        ).where(
            Order.customer_id == customer_id,
            Order.is_wholesale.is_(True),
            Order.status.in_(QUALIFYING_ORDER_STATUSES),
        )
    )
    count, value, quantity = result.one()
    return OrderStats(
        order_count=int(count), total_value=int(value), total_quantity=int(quantity)
    )


async def _active_tiers(db: AsyncSession) -> list[WholesaleTier]:
    result = await db.execute(
        select(WholesaleTier)
        .where(WholesaleTier.active.is_(True))
        .order_by(WholesaleTier.priority.desc())
    )
    return list(result.scalars().all())


def _qualifies(tier: WholesaleTier, stats: OrderStats) -> bool:
    return (
        stats.total_value >= tier.min_order_value
        and stats.total_quantity >= tier.min_order_quantity
    )


async def _get_customer(db: AsyncSession, customer_id: uuid.UUID) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": str(customer_id)})
    return customer


async def tier_eligibility(db: AsyncSession, customer_id: uuid.UUID) -> dict:
    """Every active tier with whether the customer's order history meets it."""
    customer = await _get_customer(db, customer_id)
    stats = await get_order_stats(db, customer_id)
    current = await get_customer_tier(db, customer)

    tiers = []
    for tier in await _active_tiers(db):
        tiers.append(
            {
                "slug": tier.slug,
                "name": tier.name,
                "discount_percent": tier.discount_percent,
                "priority": tier.priority,
                "qualified": _qualifies(tier, stats),
                "requirements": (
                    f"Min order value: {tier.min_order_value}, "
                    f"Min quantity: {tier.min_order_quantity}"
                ),
                "is_current": current is not None and current.id == tier.id,
            }
        )

    return {
        "customer_id": customer.id,
        "current_tier": current.slug if current else None,
        "stats": stats,
        "tiers": tiers,
    }


async def auto_assign_tier(db: AsyncSession, customer_id: uuid.UUID) -> TierAssignment:
    """
    Move a wholesale customer up to the best tier their completed orders earn.

    Tiers are scanned by descending priority and the first one whose value
    and quantity thresholds are both met is chosen. Customers never move down.
    """
    customer = await _get_customer(db, customer_id)
    stats = await get_order_stats(db, customer_id)

    if not customer.is_wholesale:
        return TierAssignment(
            customer_id=customer.id,
            tier_slug=None,
            changed=False,
            reason="Customer is not a wholesale account",
            stats=stats,
        )

    current = (
        await db.get(WholesaleTier, customer.wholesale_tier_id)
        if customer.wholesale_tier_id
        else None
    )

    best = next((t for t in await _active_tiers(db) if _qualifies(t, stats)), None)
    if best is None:
        return TierAssignment(
            customer_id=customer.id,
            tier_slug=current.slug if current else None,
            changed=False,
            reason="No tier requirements met",
            stats=stats,
        )

    if current is not None and current.priority >= best.priority:
        return TierAssignment(
            customer_id=customer.id,
            tier_slug=current.slug,
            changed=False,
            reason="Already on this tier or higher",
            stats=stats,
        )

    customer.wholesale_tier_id = best.id
    db.add(customer)
    await db.commit()

    logger.info(
        "Assigned wholesale tier %s to customer %s",
        best.slug,
        customer.id,
        extra={
            "extra_fields": {
                "previous_tier": current.slug if current else None,
                "total_value": stats.total_value,
                "total_quantity": stats.total_quantity,
            }
        },
    )
    return TierAssignment(
        customer_id=customer.id,
        tier_slug=best.slug,
        changed=True,
        reason=f"Qualified for {best.name}",
        stats=stats,
    )


async def quote_cart(
    db: AsyncSession,
    region_id: uuid.UUID,
    quantities: dict[uuid.UUID, int],
    tier: Optional[WholesaleTier],
) -> list[LineQuote]:
    """Price a prospective wholesale cart without touching stock."""
    result = await db.execute(
        select(ProductVariant).where(ProductVariant.id.in_(list(quantities)))
    )
    variants = {v.id: v for v in result.scalars().all()}
    missing = [str(vid) for vid in quantities if vid not in variants]
    if missing:
        raise NotFoundError("Variant not found", details={"variant_ids": missing})

    bands = await get_bulk_discounts(db, list(quantities))
    prices = await resolve_prices(db, quantities, region_id)
    quotes = []
    for variant_id, quantity in quantities.items():
        price = prices[variant_id]
        quotes.append(
            build_line_quote(
                variants[variant_id],
                price.amount,
                quantity,
                tier,
                bands.get(variant_id, []),
                check_moq=tier is not None,
            )
        )
    return quotes
