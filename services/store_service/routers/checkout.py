"""Checkout router: coupon validation and order placement."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.errors import ConflictError, DiscountInvalidError
from services.store_service.schemas import (
    ErrorResponse,
    InvalidCouponResponse,
    OrderResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    ValidateCouponRequest,
    ValidateCouponResponse,
)
from services.store_service.services import customers
from services.store_service.services import discounts as discount_service
from services.store_service.services import orders as order_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post(
    "/validate-coupon",
    response_model=ValidateCouponResponse,
    responses={400: {"model": InvalidCouponResponse}},
)
async def validate_coupon(
    payload: ValidateCouponRequest,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Preview a discount code against a cart total. Never consumes the code."""
    customer = (
        await customers.find_customer(db, current_user=current_user)
        if current_user
        else None
    )
    try:
        evaluation = await discount_service.validate_discount(
            db,
            payload.code,
            payload.cart_total,
            customer_id=customer.id if customer else None,
        )
    except (DiscountInvalidError, ConflictError) as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=InvalidCouponResponse(message=e.message, reason=e.reason).model_dump(),
        )

    discount = evaluation.discount
    return ValidateCouponResponse(
        code=discount.code,
        type=discount.type,
        value=discount.value,
        discount_amount=evaluation.amount,
    )


@router.post(
    "/place-order",
    response_model=PlaceOrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def place_order(
    payload: PlaceOrderRequest,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Price, stock-check and persist an order in a single transaction."""
    order = await order_service.place_order(db, payload, current_user)
    return PlaceOrderResponse(order=OrderResponse.model_validate(order))
