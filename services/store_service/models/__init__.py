"""Store Service models package."""

from services.store_service.models.catalog import (
    MoneyAmount,
    Product,
    ProductVariant,
    Region,
)
from services.store_service.models.customers import Address, Customer
from services.store_service.models.enums import (
    CampaignStatus,
    DiscountType,
    FulfillmentStatus,
    OrderStatus,
    PaymentStatus,
    PaymentTerms,
    WebhookEventStatus,
)
from services.store_service.models.orders import LineItem, Order
from services.store_service.models.payments import WebhookEvent
from services.store_service.models.promotions import Campaign, Discount, DiscountUsage
from services.store_service.models.wholesale import BulkDiscount, WholesaleTier

__all__ = [
    "Address",
    "BulkDiscount",
    "Campaign",
    "CampaignStatus",
    "Customer",
    "Discount",
    "DiscountType",
    "DiscountUsage",
    "FulfillmentStatus",
    "LineItem",
    "MoneyAmount",
    "Order",
    "OrderStatus",
    "PaymentStatus",
    "PaymentTerms",
    "Product",
    "ProductVariant",
    "Region",
    "WebhookEvent",
    "WebhookEventStatus",
    "WholesaleTier",
]
