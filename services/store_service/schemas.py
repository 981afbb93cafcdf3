"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from services.store_service.models import (
    DiscountType,
    FulfillmentStatus,
    OrderStatus,
    PaymentStatus,
    PaymentTerms,
)

# ============================================================================
# ERROR ENVELOPE
# ============================================================================


class ErrorBody(BaseModel):
    code: str
    message: str
    reason: Optional[str] = None
    details: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    error: ErrorBody


# ============================================================================
# COUPON SCHEMAS
# ============================================================================


class ValidateCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    cart_total: int = Field(..., ge=0)


class ValidateCouponResponse(BaseModel):
    valid: bool = True
    code: str
    type: DiscountType
    value: int
    discount_amount: int


class InvalidCouponResponse(BaseModel):
    valid: bool = False
    message: str
    reason: Optional[str] = None


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class AddressInput(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company: Optional[str] = Field(None, max_length=255)
    address_1: str = Field(..., min_length=1, max_length=255)
    address_2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country_code: str = Field(..., min_length=2, max_length=2)
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator("country_code")
    @classmethod
    def lower_country(cls, v: str) -> str:
        return v.lower()


class CartItemInput(BaseModel):
    variant_id: uuid.UUID
    quantity: int = Field(..., gt=0)


class PlaceOrderRequest(BaseModel):
    region_id: uuid.UUID
    currency_code: str = Field(..., min_length=3, max_length=3)
    email: EmailStr
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    shipping_address: AddressInput
    billing_address: Optional[AddressInput] = None
    items: list[CartItemInput] = Field(..., min_length=1)
    discount_code: Optional[str] = Field(None, max_length=64)
    po_number: Optional[str] = Field(None, max_length=100)

    @field_validator("currency_code")
    @classmethod
    def lower_currency(cls, v: str) -> str:
        return v.lower()

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class AddressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    address_1: str
    address_2: Optional[str] = None
    city: str
    province: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: str
    phone: Optional[str] = None


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    title: str
    description: Optional[str] = None
    sku: Optional[str] = None
    thumbnail: Optional[str] = None
    unit_price: int
    compare_at_unit_price: Optional[int] = None
    quantity: int
    total: int
    metadata: Optional[dict] = Field(None, validation_alias="item_metadata")


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    display_id: int
    status: OrderStatus
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    customer_id: Optional[uuid.UUID] = None
    email: str
    region_id: uuid.UUID
    currency_code: str
    tax_rate: Decimal
    subtotal: int
    discount_total: int
    shipping_total: int
    tax_total: int
    total: int
    is_wholesale: bool
    total_items: int
    payment_intent_id: Optional[str] = None
    metadata: Optional[dict] = Field(None, validation_alias="order_metadata")
    items: list[LineItemResponse] = []
    shipping_address: Optional[AddressResponse] = None
    billing_address: Optional[AddressResponse] = None
    created_at: datetime
    updated_at: datetime


class PlaceOrderResponse(BaseModel):
    order: OrderResponse


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class BulkOrderStatusUpdate(BaseModel):
    order_ids: list[uuid.UUID] = Field(..., min_length=1)
    status: OrderStatus


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================


class CreateIntentRequest(BaseModel):
    order_id: uuid.UUID


class CreateIntentResponse(BaseModel):
    client_secret: Optional[str] = None
    payment_intent_id: str


class PaymentStatusResponse(BaseModel):
    order_id: uuid.UUID
    payment_status: PaymentStatus
    status: OrderStatus
    payment_intent_id: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: bool = False


# ============================================================================
# WHOLESALE SCHEMAS
# ============================================================================


class WholesaleTierBase(BaseModel):
    name: str = Field(..., max_length=100)
    slug: str = Field(..., max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    discount_percent: Decimal = Field(..., ge=0, le=100)
    min_order_value: int = Field(0, ge=0)
    min_order_quantity: int = Field(0, ge=0)
    default_moq: int = Field(1, ge=1)
    payment_terms: PaymentTerms = PaymentTerms.NET_30
    priority: int = 0
    active: bool = True


class WholesaleTierCreate(WholesaleTierBase):
    pass


class WholesaleTierUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    min_order_value: Optional[int] = Field(None, ge=0)
    min_order_quantity: Optional[int] = Field(None, ge=0)
    default_moq: Optional[int] = Field(None, ge=1)
    payment_terms: Optional[PaymentTerms] = None
    priority: Optional[int] = None
    active: Optional[bool] = None


class WholesaleTierResponse(WholesaleTierBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    version: int
    created_at: datetime
    updated_at: datetime


class CustomerTierAssign(BaseModel):
    tier_id: Optional[uuid.UUID] = None


class BulkDiscountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    variant_id: uuid.UUID
    min_quantity: int
    discount_percent: Decimal
    description: Optional[str] = None


class WholesaleCalculateRequest(BaseModel):
    region_id: uuid.UUID
    items: list[CartItemInput] = Field(..., min_length=1)


class LineQuoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    variant_id: uuid.UUID
    quantity: int
    retail_price: int
    tier_price: int
    unit_price: int
    total: int
    tier_discount_percent: Decimal
    bulk_discount_percent: Decimal
    tier_savings: int
    bulk_savings: int
    total_savings: int
    is_wholesale_price: bool
    moq: int


class WholesaleCalculateResponse(BaseModel):
    tier: Optional[str] = None
    currency_code: str
    items: list[LineQuoteResponse]
    subtotal: int
    retail_subtotal: int
    total_savings: int


class MOQResponse(BaseModel):
    variant_id: uuid.UUID
    moq: int


class OrderStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_count: int
    total_value: int
    total_quantity: int


class TierEligibilityItem(BaseModel):
    slug: str
    name: str
    discount_percent: Decimal
    priority: int
    qualified: bool
    requirements: str
    is_current: bool


class TierEligibilityResponse(BaseModel):
    customer_id: uuid.UUID
    current_tier: Optional[str] = None
    stats: OrderStatsResponse
    tiers: list[TierEligibilityItem]


class TierAssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: uuid.UUID
    tier_slug: Optional[str] = None
    changed: bool
    reason: str
    stats: OrderStatsResponse


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================


class StockAdjustRequest(BaseModel):
    delta: int
    reason: Optional[str] = Field(None, max_length=255)

    @field_validator("delta")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("delta must be non-zero")
        return v


class VariantStockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sku: Optional[str] = None
    inventory_quantity: int
