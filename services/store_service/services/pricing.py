"""Regional price resolution and tax calculation.

Prices are integers in the minor unit of the region's currency. A variant
without a price in the requested region cannot be sold there.
"""

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

from services.store_service.errors import (
    NotFoundError,
    PriceNotFoundError,
    ValidationFailedError,
)
from services.store_service.models import MoneyAmount, Region
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class ResolvedPrice:
    variant_id: uuid.UUID
    amount: int
    currency_code: str
    min_quantity: Optional[int] = None


@dataclass(frozen=True)
class TaxBreakdown:
    rate: Decimal
    total: int
    cgst: int
    sgst: int


def round_minor(value: Decimal) -> int:
    """Round half-up to a whole minor unit."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent) -> int:
    return round_minor(Decimal(amount) * Decimal(str(percent)) / Decimal(100))


async def get_region(db: AsyncSession, region_id: uuid.UUID) -> Region:
    region = await db.get(Region, region_id)
    if not region:
        raise NotFoundError("Region not found", details={"region_id": str(region_id)})
    return region


def _check_min_quantity(price: MoneyAmount, quantity: Optional[int]) -> None:
    if quantity is not None and price.min_quantity and quantity < price.min_quantity:
        raise ValidationFailedError(
            f"This price requires at least {price.min_quantity} units",
            reason="BELOW_PRICE_MIN_QUANTITY",
            details={
                "variant_id": str(price.variant_id),
                "min_quantity": price.min_quantity,
                "requested": quantity,
            },
        )


def _resolved(price: MoneyAmount) -> ResolvedPrice:
    return ResolvedPrice(
        variant_id=price.variant_id,
        amount=price.amount,
        currency_code=price.currency_code.lower(),
        min_quantity=price.min_quantity,
    )


async def resolve_prices(
    db: AsyncSession,
    quantities: Mapping[uuid.UUID, int],
    region_id: uuid.UUID,
) -> dict[uuid.UUID, ResolvedPrice]:
    """
    One query for a whole cart. Lines are checked in cart order and the first
    one without a regional price, or below its price's minimum, raises.
    """
    result = await db.execute(
        select(MoneyAmount).where(
            MoneyAmount.variant_id.in_(list(quantities)),
            MoneyAmount.region_id == region_id,
        )
    )
    found = {p.variant_id: p for p in result.scalars().all()}

    prices = {}
    for variant_id, quantity in quantities.items():
        price = found.get(variant_id)
        if price is None:
            raise PriceNotFoundError(variant_id, region_id)
        _check_min_quantity(price, quantity)
        prices[variant_id] = _resolved(price)
    return prices


def calculate_tax(subtotal: int, tax_rate) -> TaxBreakdown:
    """
    Region tax on the pre-discount subtotal, split evenly into CGST and SGST.
    Any odd minor unit lands on SGST so the halves always add up.
    """
    rate = Decimal(str(tax_rate or 0))
    if subtotal <= 0 or rate <= 0:
        return TaxBreakdown(rate=rate, total=0, cgst=0, sgst=0)

    total = percent_of(subtotal, rate)
    cgst = round_minor(Decimal(subtotal) * rate / Decimal(2) / Decimal(100))
    return TaxBreakdown(rate=rate, total=total, cgst=cgst, sgst=total - cgst)
