"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    region = RegionFactory.create(tax_rate=Decimal("18"))
    db_session.add(region)
    await db_session.commit()
"""

import itertools
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_display_ids = itertools.count(5001)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _tomorrow() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=1)


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:8]}@test.com"


def _suffix() -> str:
    return uuid.uuid4().hex[:8]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class RegionFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Region

        defaults = {
            "id": _uuid(),
            "name": "India",
            "currency_code": "inr",
            "tax_rate": Decimal("0"),
            "countries": ["in"],
        }
        defaults.update(overrides)
        return Region(**defaults)


class ProductFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Product

        suffix = _suffix()
        defaults = {
            "id": _uuid(),
            "title": "Linen Shirt",
            "handle": f"linen-shirt-{suffix}",
            "description": "Breathable linen shirt",
            "thumbnail": f"https://cdn.test/{suffix}.jpg",
            "is_wholesale_only": False,
        }
        defaults.update(overrides)
        return Product(**defaults)


class VariantFactory:
    @staticmethod
    def create(product_id=None, **overrides):
        from services.store_service.models import ProductVariant

        defaults = {
            "id": _uuid(),
            "product_id": product_id or _uuid(),
            "title": "M / White",
            "sku": f"SKU-{_suffix().upper()}",
            "inventory_quantity": 100,
            "manage_inventory": True,
            "wholesale_price": None,
            "moq": None,
        }
        defaults.update(overrides)
        return ProductVariant(**defaults)


class MoneyAmountFactory:
    @staticmethod
    def create(variant_id=None, region_id=None, **overrides):
        from services.store_service.models import MoneyAmount

        defaults = {
            "id": _uuid(),
            "variant_id": variant_id or _uuid(),
            "region_id": region_id or _uuid(),
            "currency_code": "inr",
            "amount": 1000,
            "min_quantity": None,
        }
        defaults.update(overrides)
        return MoneyAmount(**defaults)


# ---------------------------------------------------------------------------
# Wholesale
# ---------------------------------------------------------------------------


class WholesaleTierFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import PaymentTerms, WholesaleTier

        defaults = {
            "id": _uuid(),
            "name": "Growth",
            "slug": f"growth-{_suffix()}",
            "discount_percent": Decimal("30"),
            "min_order_value": 0,
            "min_order_quantity": 0,
            "default_moq": 1,
            "payment_terms": PaymentTerms.NET_45,
            "priority": 2,
            "active": True,
            "version": 1,
        }
        defaults.update(overrides)
        return WholesaleTier(**defaults)


class BulkDiscountFactory:
    @staticmethod
    def create(variant_id=None, **overrides):
        from services.store_service.models import BulkDiscount

        defaults = {
            "id": _uuid(),
            "variant_id": variant_id or _uuid(),
            "min_quantity": 50,
            "discount_percent": Decimal("10"),
            "description": "Bulk 50+",
            "active": True,
        }
        defaults.update(overrides)
        return BulkDiscount(**defaults)


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


class CustomerFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Customer

        defaults = {
            "id": _uuid(),
            "email": _unique_email(),
            "first_name": "Test",
            "last_name": "Buyer",
            "has_account": True,
            "is_wholesale": False,
            "company_name": None,
            "wholesale_tier_id": None,
        }
        defaults.update(overrides)
        return Customer(**defaults)


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------


class CampaignFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Campaign, CampaignStatus

        defaults = {
            "id": _uuid(),
            "name": "Summer Sale",
            "status": CampaignStatus.ACTIVE,
            "conversions": 0,
            "revenue": 0,
        }
        defaults.update(overrides)
        return Campaign(**defaults)


class DiscountFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Discount, DiscountType

        defaults = {
            "id": _uuid(),
            "code": f"SAVE-{_suffix().upper()}",
            "type": DiscountType.PERCENTAGE,
            "value": 10,
            "starts_at": None,
            "ends_at": None,
            "usage_limit": None,
            "usage_count": 0,
            "min_purchase_amount": 0,
            "is_active": True,
            "campaign_id": None,
        }
        defaults.update(overrides)
        return Discount(**defaults)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class OrderFactory:
    @staticmethod
    def create(region_id=None, **overrides):
        from services.store_service.models import (
            FulfillmentStatus,
            Order,
            OrderStatus,
            PaymentStatus,
        )

        defaults = {
            "id": _uuid(),
            "display_id": next(_display_ids),
            "status": OrderStatus.PENDING,
            "payment_status": PaymentStatus.AWAITING,
            "fulfillment_status": FulfillmentStatus.NOT_FULFILLED,
            "customer_id": None,
            "email": _unique_email(),
            "region_id": region_id or _uuid(),
            "currency_code": "inr",
            "tax_rate": Decimal("0"),
            "subtotal": 1000,
            "discount_total": 0,
            "shipping_total": 0,
            "tax_total": 0,
            "total": 1000,
            "is_wholesale": False,
            "total_items": 1,
            "payment_intent_id": None,
            "order_metadata": {},
        }
        defaults.update(overrides)
        return Order(**defaults)


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


async def seed_region(db, **overrides):
    region = RegionFactory.create(**overrides)
    db.add(region)
    await db.commit()
    return region


async def seed_variant(db, region, amount=1000, stock=100, product=None, **overrides):
    """Product + variant + its price in ``region``, committed."""
    if product is None:
        product = ProductFactory.create()
        db.add(product)
    variant = VariantFactory.create(
        product_id=product.id, inventory_quantity=stock, **overrides
    )
    db.add(variant)
    db.add(
        MoneyAmountFactory.create(
            variant_id=variant.id,
            region_id=region.id,
            currency_code=region.currency_code,
            amount=amount,
        )
    )
    await db.commit()
    return variant


def checkout_payload(region, items, **overrides) -> dict:
    """JSON body for place-order; ``items`` is a list of (variant, quantity)."""
    payload = {
        "region_id": str(region.id),
        "currency_code": region.currency_code,
        "email": _unique_email(),
        "first_name": "Asha",
        "last_name": "Rao",
        "shipping_address": {
            "address_1": "12 MG Road",
            "city": "Bengaluru",
            "postal_code": "560001",
            "country_code": "IN",
        },
        "items": [
            {"variant_id": str(variant.id), "quantity": quantity}
            for variant, quantity in items
        ],
    }
    payload.update(overrides)
    return payload
