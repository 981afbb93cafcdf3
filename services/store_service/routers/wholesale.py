"""Wholesale router: quotes, MOQ, bulk bands and tier eligibility."""

import dataclasses
import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.schemas import (
    BulkDiscountResponse,
    LineQuoteResponse,
    MOQResponse,
    TierAssignmentResponse,
    TierEligibilityResponse,
    WholesaleCalculateRequest,
    WholesaleCalculateResponse,
)
from services.store_service.services import customers, wholesale
from services.store_service.services.orders import merge_items
from services.store_service.services.pricing import get_region
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/wholesale", tags=["wholesale"])


async def _tier_for(db: AsyncSession, current_user: Optional[AuthUser]):
    if current_user is None:
        return None
    customer = await customers.find_customer(db, current_user=current_user)
    return await wholesale.get_customer_tier(db, customer)


@router.post("/calculate", response_model=WholesaleCalculateResponse)
async def calculate(
    payload: WholesaleCalculateRequest,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Quote a cart at the caller's tier, bulk bands included. Stock is not touched."""
    region = await get_region(db, payload.region_id)
    tier = await _tier_for(db, current_user)
    quotes = await wholesale.quote_cart(db, region.id, merge_items(payload.items), tier)

    return WholesaleCalculateResponse(
        tier=tier.slug if tier else None,
        currency_code=region.currency_code.lower(),
        items=[LineQuoteResponse.model_validate(q) for q in quotes],
        subtotal=sum(q.total for q in quotes),
        retail_subtotal=sum(q.retail_price * q.quantity for q in quotes),
        total_savings=sum(q.total_savings for q in quotes),
    )


@router.get("/moq/{variant_id}", response_model=MOQResponse)
async def get_moq(
    variant_id: uuid.UUID,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    tier = await _tier_for(db, current_user)
    moq = await wholesale.get_variant_moq(db, variant_id, tier)
    return MOQResponse(variant_id=variant_id, moq=moq)


@router.get("/bulk-discounts/{variant_id}", response_model=list[BulkDiscountResponse])
async def list_bulk_discounts(
    variant_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)
):
    bands = await wholesale.get_bulk_discounts(db, [variant_id])
    return bands[variant_id]


@router.get("/tier/eligibility", response_model=TierEligibilityResponse)
async def tier_eligibility(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    customer = await customers.require_customer(db, current_user)
    eligibility = await wholesale.tier_eligibility(db, customer.id)
    eligibility["stats"] = dataclasses.asdict(eligibility["stats"])
    return eligibility


@router.post("/tier/auto-assign", response_model=TierAssignmentResponse)
async def auto_assign(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Re-evaluate the caller's tier from their completed wholesale orders."""
    customer = await customers.require_customer(db, current_user)
    assignment = await wholesale.auto_assign_tier(db, customer.id)
    return TierAssignmentResponse.model_validate(dataclasses.asdict(assignment))
