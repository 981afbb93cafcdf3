"""Seed script for local checkout data.

Creates regions, the default wholesale tiers, a few priced products with
bulk bands and a welcome discount code so the checkout flow can be tried
end-to-end.

Usage:
    python -m services.store_service.seed_store_data
"""

import asyncio
from decimal import Decimal

from libs.db.config import AsyncSessionLocal
from services.store_service.models import (
    BulkDiscount,
    Discount,
    DiscountType,
    MoneyAmount,
    PaymentTerms,
    Product,
    ProductVariant,
    Region,
    WholesaleTier,
)
from sqlalchemy import func, select

TIERS = [
    # name, slug, discount %, default MOQ, terms, colour, priority
    ("Starter", "starter", 20, 50, PaymentTerms.NET_30, "#3B82F6", 1),
    ("Growth", "growth", 30, 200, PaymentTerms.NET_45, "#8B5CF6", 2),
    ("Enterprise", "enterprise", 40, 500, PaymentTerms.NET_60, "#F59E0B", 3),
]

# (title, handle, [(variant title, sku, stock, inr price, usd price)])
PRODUCTS = [
    (
        "Linen Shirt",
        "linen-shirt",
        [
            ("S / White", "LIN-S-WHT", 120, 249900, 3500),
            ("M / White", "LIN-M-WHT", 200, 249900, 3500),
            ("L / Indigo", "LIN-L-IND", 80, 269900, 3800),
        ],
    ),
    (
        "Block Print Kurta",
        "block-print-kurta",
        [
            ("M / Rust", "KUR-M-RST", 60, 189900, 2700),
            ("L / Rust", "KUR-L-RST", 45, 189900, 2700),
        ],
    ),
    (
        "Handloom Stole",
        "handloom-stole",
        [("One Size / Ivory", "STO-OS-IVR", 300, 99900, 1400)],
    ),
]


async def seed_store_data():
    async with AsyncSessionLocal() as db:
        print("Seeding store data...")

        count = await db.scalar(select(func.count()).select_from(WholesaleTier))
        if count:
            print(f"Store data already exists ({count} tiers). Skipping seed.")
            return

        # =========================================================================
        # 1. REGIONS
        # =========================================================================
        india = Region(
            name="India", currency_code="inr", tax_rate=Decimal("18"), countries=["in"]
        )
        international = Region(
            name="International",
            currency_code="usd",
            tax_rate=Decimal("0"),
            countries=["us", "gb", "ae", "sg"],
        )
        db.add_all([india, international])
        await db.flush()
        print("  Created 2 regions")

        # =========================================================================
        # 2. WHOLESALE TIERS
        # =========================================================================
        for name, slug, pct, moq, terms, color, priority in TIERS:
            db.add(
                WholesaleTier(
                    name=name,
                    slug=slug,
                    description=f"{name} wholesale tier with {pct}% discount",
                    color=color,
                    discount_percent=Decimal(pct),
                    default_moq=moq,
                    payment_terms=terms,
                    priority=priority,
                )
            )
        print(f"  Created {len(TIERS)} wholesale tiers")

        # =========================================================================
        # 3. PRODUCTS, VARIANTS, PRICES
        # =========================================================================
        variant_count = 0
        for title, handle, variants in PRODUCTS:
            product = Product(title=title, handle=handle)
            db.add(product)
            await db.flush()

            for variant_title, sku, stock, inr, usd in variants:
                variant = ProductVariant(
                    product_id=product.id,
                    title=variant_title,
                    sku=sku,
                    inventory_quantity=stock,
                )
                db.add(variant)
                await db.flush()

                db.add_all(
                    [
                        MoneyAmount(
                            variant_id=variant.id,
                            region_id=india.id,
                            currency_code="inr",
                            amount=inr,
                        ),
                        MoneyAmount(
                            variant_id=variant.id,
                            region_id=international.id,
                            currency_code="usd",
                            amount=usd,
                        ),
                        BulkDiscount(
                            variant_id=variant.id,
                            min_quantity=50,
                            discount_percent=Decimal("5"),
                            description="50+ units",
                        ),
                        BulkDiscount(
                            variant_id=variant.id,
                            min_quantity=100,
                            discount_percent=Decimal("10"),
                            description="100+ units",
                        ),
                    ]
                )
                variant_count += 1
        print(f"  Created {len(PRODUCTS)} products with {variant_count} variants")

        # =========================================================================
        # 4. DISCOUNTS
        # =========================================================================
        db.add_all(
            [
                Discount(code="SAVE10", type=DiscountType.PERCENTAGE, value=10),
                Discount(
                    code="SHIPFREE",
                    type=DiscountType.FREE_SHIPPING,
                    value=0,
                    min_purchase_amount=200000,
                ),
            ]
        )
        print("  Created discount codes SAVE10, SHIPFREE")

        await db.commit()
        print("Store data seeded.")


if __name__ == "__main__":
    asyncio.run(seed_store_data())
