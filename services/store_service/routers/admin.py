"""Admin router: order status, wholesale tiers and stock adjustments."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.errors import ConflictError, NotFoundError, ValidationFailedError
from services.store_service.models import Customer, WholesaleTier
from services.store_service.schemas import (
    BulkOrderStatusUpdate,
    CustomerTierAssign,
    OrderResponse,
    OrderStatusUpdate,
    StockAdjustRequest,
    VariantStockResponse,
    WholesaleTierCreate,
    WholesaleTierResponse,
    WholesaleTierUpdate,
)
from services.store_service.services import inventory
from services.store_service.services import orders as order_service
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin", tags=["admin"])
logger = get_logger(__name__)


# ============================================================================
# ORDERS
# ============================================================================


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Move an order along the status state machine."""
    order = await order_service.transition_order_status(db, order_id, payload.status)
    logger.info(
        f"Admin {current_user.user_id} set order {order.display_id} to {payload.status.value}"
    )
    return order


@router.post("/orders/bulk-status", response_model=list[OrderResponse])
async def bulk_update_order_status(
    payload: BulkOrderStatusUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_service.bulk_transition_order_status(
        db, payload.order_ids, payload.status
    )


# ============================================================================
# WHOLESALE TIERS
# ============================================================================


async def _get_tier(db: AsyncSession, tier_id: uuid.UUID) -> WholesaleTier:
    tier = await db.get(WholesaleTier, tier_id)
    if not tier:
        raise NotFoundError("Tier not found", details={"tier_id": str(tier_id)})
    return tier


@router.get("/wholesale/tiers", response_model=list[WholesaleTierResponse])
async def list_tiers(
    include_inactive: bool = False,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(WholesaleTier).order_by(WholesaleTier.priority)
    if not include_inactive:
        query = query.where(WholesaleTier.active.is_(True))
    result = await db.execute(query)
    return result.scalars().all()


@router.post(
    "/wholesale/tiers",
    response_model=WholesaleTierResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_tier(
    payload: WholesaleTierCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    tier = WholesaleTier(**payload.model_dump())
    db.add(tier)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Tier slug '{payload.slug}' already exists")
    await db.refresh(tier)
    logger.info(f"Created wholesale tier {tier.slug}")
    return tier


@router.patch("/wholesale/tiers/{tier_id}", response_model=WholesaleTierResponse)
async def update_tier(
    tier_id: uuid.UUID,
    payload: WholesaleTierUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    tier = await _get_tier(db, tier_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return tier

    for field, value in changes.items():
        setattr(tier, field, value)
    tier.version = (tier.version or 0) + 1
    db.add(tier)
    await db.commit()
    await db.refresh(tier)

    logger.info(
        f"Updated wholesale tier {tier.slug} to version {tier.version}",
        extra={"extra_fields": {"fields": sorted(changes)}},
    )
    return tier


@router.delete("/wholesale/tiers/{tier_id}", response_model=WholesaleTierResponse)
async def deactivate_tier(
    tier_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Tiers are deactivated, not deleted; past orders still name them."""
    tier = await _get_tier(db, tier_id)
    tier.active = False
    tier.version = (tier.version or 0) + 1
    db.add(tier)
    await db.commit()
    await db.refresh(tier)
    return tier


@router.post("/wholesale/customers/{customer_id}/tier")
async def assign_customer_tier(
    customer_id: uuid.UUID,
    payload: CustomerTierAssign,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, Optional[str]]:
    """Set or clear a customer's tier by hand. Assigning a tier marks the account wholesale."""
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": str(customer_id)})

    tier = None
    if payload.tier_id is not None:
        tier = await _get_tier(db, payload.tier_id)
        if not tier.active:
            raise ValidationFailedError("Cannot assign an inactive tier")
        customer.is_wholesale = True

    customer.wholesale_tier_id = tier.id if tier else None
    db.add(customer)
    await db.commit()
    return {"customer_id": str(customer.id), "tier": tier.slug if tier else None}


# ============================================================================
# INVENTORY
# ============================================================================


@router.post("/inventory/{variant_id}/adjust", response_model=VariantStockResponse)
async def adjust_inventory(
    variant_id: uuid.UUID,
    payload: StockAdjustRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    variant = await inventory.adjust_stock(db, variant_id, payload.delta)
    logger.info(
        f"Admin {current_user.user_id} adjusted stock of {variant.sku} by {payload.delta}",
        extra={"extra_fields": {"reason": payload.reason}},
    )
    return variant
