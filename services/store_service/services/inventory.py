"""Stock checks and race-safe decrements."""

import uuid
from typing import Iterable

from libs.common.logging import get_logger
from services.store_service.errors import InsufficientStockError, NotFoundError
from services.store_service.models import ProductVariant
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

logger = get_logger(__name__)


async def lock_variants(
    db: AsyncSession, variant_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, ProductVariant]:
    """
    SELECT ... FOR UPDATE the variants, in id order so two checkouts touching
    the same variants always queue instead of deadlocking. Locks are held
    until the surrounding transaction ends.
    """
    wanted = sorted(set(variant_ids))
    result = await db.execute(
        select(ProductVariant)
        .where(ProductVariant.id.in_(wanted))
        .options(selectinload(ProductVariant.product))
        .order_by(ProductVariant.id)
        .with_for_update(of=ProductVariant)
        .execution_options(populate_existing=True)
    )
    variants = {v.id: v for v in result.scalars().all()}

    missing = [str(vid) for vid in wanted if vid not in variants]
    if missing:
        raise NotFoundError("Variant not found", details={"variant_ids": missing})
    return variants


def check_stock(variant: ProductVariant, quantity: int) -> None:
    if not variant.manage_inventory:
        return
    if variant.inventory_quantity < quantity:
        title = variant.product.title if variant.product else variant.title
        raise InsufficientStockError(
            title, variant.inventory_quantity, quantity, variant_id=variant.id
        )


async def reserve_stock(
    db: AsyncSession, variant: ProductVariant, quantity: int
) -> None:
    """
    Conditional decrement: only succeeds while enough stock remains. Zero
    rows updated means another order got there first.
    """
    if not variant.manage_inventory:
        return

    result = await db.execute(
        update(ProductVariant)
        .where(
            ProductVariant.id == variant.id,
            ProductVariant.inventory_quantity >= quantity,
        )
        .values(inventory_quantity=ProductVariant.inventory_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.refresh(variant, ["inventory_quantity"])
        title = variant.product.title if variant.product else variant.title
        raise InsufficientStockError(
            title, variant.inventory_quantity, quantity, variant_id=variant.id
        )

    # Mirror the row without marking the attribute dirty
    set_committed_value(
        variant, "inventory_quantity", variant.inventory_quantity - quantity
    )


async def adjust_stock(
    db: AsyncSession, variant_id: uuid.UUID, delta: int
) -> ProductVariant:
    """Admin stock correction. A negative delta may not take stock below zero."""
    variants = await lock_variants(db, [variant_id])
    variant = variants[variant_id]

    if delta < 0:
        await reserve_stock(db, variant, -delta)
    elif delta > 0:
        await db.execute(
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(inventory_quantity=ProductVariant.inventory_quantity + delta)
            .execution_options(synchronize_session=False)
        )

    await db.commit()
    await db.refresh(variant)
    logger.info(
        "Adjusted stock for variant %s by %d",
        variant_id,
        delta,
        extra={"extra_fields": {"inventory_quantity": variant.inventory_quantity}},
    )
    return variant
